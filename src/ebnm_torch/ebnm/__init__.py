"""Empirical Bayes Normal Means (EBNM) solvers."""

from .fitted_g import NormalMixPrior, PointNormalPrior
from .mle_normal import MLEConfig, OptimizationError, mle_normal_logscale_grad
from .normalmix import ebnm_normalmix_fixed
from .output import EBNMResult, Output
from .point_normal import ebnm_point_normal

__all__ = [
    "EBNMResult",
    "MLEConfig",
    "NormalMixPrior",
    "OptimizationError",
    "Output",
    "PointNormalPrior",
    "ebnm_normalmix_fixed",
    "ebnm_point_normal",
    "mle_normal_logscale_grad",
]
