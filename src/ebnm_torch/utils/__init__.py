"""Mathematical utilities and helper functions."""

from . import maths, normalizer, optimizer, posterior
from .maths import log_norm_pdf
from .normalizer import ScaleNormalizer
from .optimizer import LBFGSOptimizer, OptimizeResult
from .posterior import PosteriorSummary

__all__ = [
    # Submodules
    "maths",
    "normalizer",
    "optimizer",
    "posterior",
    # Common objects
    "LBFGSOptimizer",
    "OptimizeResult",
    "PosteriorSummary",
    "ScaleNormalizer",
    "log_norm_pdf",
]
