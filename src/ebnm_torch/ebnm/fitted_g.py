from dataclasses import dataclass

import torch
from torch import Tensor


@dataclass(frozen=True)
class PointNormalPrior:
    """
    Point-normal prior ``pi0 δ0 + (1 - pi0) N(0, 1/a)``.

    Attributes
    ----------
    pi0 : float
        Weight of the point mass at zero, in [0, 1].
    a : float
        Precision of the normal component. Irrelevant when ``pi0 == 1``.
    """

    pi0: float
    a: float

    def __post_init__(self):
        if not 0.0 <= self.pi0 <= 1.0:
            raise ValueError(f"pi0 must lie in [0, 1], got {self.pi0}")
        if self.pi0 < 1.0 and not (0.0 < self.a < float("inf")):
            raise ValueError(f"a must be positive and finite, got {self.a}")

    @property
    def w(self) -> float:
        """Weight of the normal component."""
        return 1.0 - self.pi0

    @property
    def sd(self) -> float:
        """Standard deviation of the normal component."""
        return self.a**-0.5

    def rescale(self, norm: float) -> "PointNormalPrior":
        """Prior for θ multiplied by ``norm``; the precision scales by 1 / norm^2."""
        return PointNormalPrior(pi0=self.pi0, a=self.a / norm**2)


@dataclass(frozen=True)
class NormalMixPrior:
    """
    Mixture of normals ``sum_k pi_k N(mean_k, sd_k^2)``; ``sd_k == 0`` is a point mass.

    This is the form in which a discrete mixing distribution (e.g. from a
    nonparametric MLE solver) is handed to :func:`ebnm_normalmix_fixed`.

    Attributes
    ----------
    pi : torch.Tensor
        (K,) mixture weights summing to one.
    mean : torch.Tensor
        (K,) component means.
    sd : torch.Tensor
        (K,) component standard deviations (>= 0).
    """

    pi: Tensor
    mean: Tensor
    sd: Tensor

    def __post_init__(self):
        pi = torch.as_tensor(self.pi, dtype=torch.float64)
        mean = torch.as_tensor(self.mean, dtype=torch.float64)
        sd = torch.as_tensor(self.sd, dtype=torch.float64)
        if pi.ndim != 1 or pi.shape != mean.shape or pi.shape != sd.shape:
            raise ValueError("pi, mean and sd must be 1-d with the same length")
        if (pi < 0).any() or not torch.isclose(pi.sum(), torch.tensor(1.0, dtype=pi.dtype), atol=1e-8):
            raise ValueError("pi must be non-negative and sum to one")
        if (sd < 0).any() or not torch.isfinite(sd).all() or not torch.isfinite(mean).all():
            raise ValueError("sd must be non-negative; mean and sd must be finite")
        object.__setattr__(self, "pi", pi)
        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "sd", sd)

    @property
    def n_components(self) -> int:
        return self.pi.shape[0]

    def rescale(self, norm: float) -> "NormalMixPrior":
        return NormalMixPrior(pi=self.pi, mean=self.mean * norm, sd=self.sd * norm)
