from collections.abc import Iterable
from typing import Any

from torch import Tensor

from ebnm_torch.ebnm.fitted_g import PointNormalPrior
from ebnm_torch.ebnm.output import EBNMResult
from ebnm_torch.ebnm.point_normal import ebnm_point_normal

from .base import PriorFamily


class PointNormalFamily(PriorFamily):
    """
    Point mass at zero plus a zero-mean normal, fitted by marginal maximum likelihood.

    Parameters
    ----------
    **kwargs : Any
        Default keyword arguments for :func:`ebnm_point_normal`
        (e.g. ``norm``, ``control``, ``optimizer``, ``verbose``).
    """

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs

    @property
    def name(self) -> str:
        return "point_normal"

    def fit(
        self,
        x: Tensor,
        s: Tensor | float = 1.0,
        g: PointNormalPrior | None = None,
        fix_g: bool = False,
        output: str | Iterable[str] | None = None,
        **kwargs: Any,
    ) -> EBNMResult:
        return ebnm_point_normal(x, s, g=g, fix_g=fix_g, output=output, **{**self.kwargs, **kwargs})
