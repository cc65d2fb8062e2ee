from collections.abc import Iterable
from typing import Any

from torch import Tensor

from ebnm_torch.ebnm.output import EBNMResult
from ebnm_torch.priors import PRIOR_REGISTRY


def fit_ebnm(
    x: Tensor,
    s: Tensor | float = 1.0,
    prior_family: str = "point_normal",
    g: Any | None = None,
    fix_g: bool = False,
    output: str | Iterable[str] | None = None,
    **kwargs: Any,
) -> EBNMResult:
    """
    Solve the EBNM problem with a registered prior family.

    Parameters
    ----------
    x : torch.Tensor
        Observations.
    s : torch.Tensor or float, optional
        Standard errors (scalar if all equal). Default is 1.
    prior_family : str, optional
        Name of a family in ``PRIOR_REGISTRY`` (default: "point_normal").
    g : Any or None, optional
        Prior to hold fixed when ``fix_g`` is True.
    fix_g : bool, optional
        Whether to use ``g`` as given.
    output : str, iterable of str, or None, optional
        Names from :class:`~ebnm_torch.ebnm.output.Output`.
    **kwargs : Any
        Passed to the family's ``fit``.

    Returns
    -------
    EBNMResult
        Mapping with exactly the requested outputs.
    """
    family = PRIOR_REGISTRY.get_builder(prior_family)
    return family.fit(x, s, g=g, fix_g=fix_g, output=output, **kwargs)
