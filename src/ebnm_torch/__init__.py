# Submodules for advanced usage
from . import ebnm, priors, utils

# Core entry points
from .ebnm.fitted_g import NormalMixPrior, PointNormalPrior
from .ebnm.mle_normal import OptimizationError
from .ebnm.normalmix import ebnm_normalmix_fixed
from .ebnm.output import EBNMResult, Output
from .ebnm.point_normal import ebnm_point_normal
from .main import fit_ebnm

__all__ = [
    # Main entry points
    "fit_ebnm",
    "ebnm_point_normal",
    "ebnm_normalmix_fixed",
    # Result and prior types
    "EBNMResult",
    "NormalMixPrior",
    "OptimizationError",
    "Output",
    "PointNormalPrior",
    # Submodules
    "ebnm",
    "priors",
    "utils",
]
