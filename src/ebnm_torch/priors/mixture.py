from collections.abc import Iterable
from typing import Any

from torch import Tensor

from ebnm_torch.ebnm.fitted_g import NormalMixPrior
from ebnm_torch.ebnm.normalmix import ebnm_normalmix_fixed
from ebnm_torch.ebnm.output import EBNMResult

from .base import PriorFamily


class NormalMixFamily(PriorFamily):
    """
    Mixture-of-normals prior supplied by the caller.

    Estimating the mixture (e.g. with a nonparametric MLE solver) happens
    outside this package, so only ``fix_g=True`` is supported.
    """

    @property
    def name(self) -> str:
        return "normalmix"

    def fit(
        self,
        x: Tensor,
        s: Tensor | float = 1.0,
        g: NormalMixPrior | None = None,
        fix_g: bool = False,
        output: str | Iterable[str] | None = None,
        **kwargs: Any,
    ) -> EBNMResult:
        if not fix_g:
            raise ValueError("prior family 'normalmix' can only be used with fix_g=True and a NormalMixPrior g")
        return ebnm_normalmix_fixed(x, s, g=g, output=output, **kwargs)
