from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

from torch import Tensor

from ebnm_torch.ebnm.output import EBNMResult


class PriorFamily(ABC):
    """
    Base class for EBNM prior families.

    Every family answers the same call: given observations, standard errors
    and an output request, return an :class:`EBNMResult` holding the posterior
    summary, the fitted prior, the log-likelihood and/or a posterior sampler.
    """

    @abstractmethod
    def fit(
        self,
        x: Tensor,
        s: Tensor | float = 1.0,
        g: Any | None = None,
        fix_g: bool = False,
        output: str | Iterable[str] | None = None,
        **kwargs: Any,
    ) -> EBNMResult:
        """
        Fit the prior (or use ``g`` as given) and compute the requested outputs.

        Parameters
        ----------
        x : torch.Tensor
            Observations.
        s : torch.Tensor or float, optional
            Standard errors.
        g : Any or None, optional
            Prior object of the family's type, used when ``fix_g`` is True.
        fix_g : bool, optional
            Whether to hold ``g`` fixed.
        output : str, iterable of str, or None, optional
            Names from :class:`~ebnm_torch.ebnm.output.Output`.
        **kwargs : Any
            Family-specific arguments.

        Returns
        -------
        EBNMResult
            Mapping with exactly the requested outputs.
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Return a string identifier for this prior family.

        Returns
        -------
        str
            String identifier for the family.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
