"""Prior families sharing the EBNM call contract, and their registry."""

from . import base, mixture, point
from .base import PriorFamily
from .mixture import NormalMixFamily
from .point import PointNormalFamily
from .registry import PRIOR_REGISTRY, PriorRegistry

__all__ = [
    "PRIOR_REGISTRY",
    "PriorRegistry",
    "PriorFamily",
    "PointNormalFamily",
    "NormalMixFamily",
    "base",
    "mixture",
    "point",
]
