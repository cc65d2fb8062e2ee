import math
from collections.abc import Callable
from dataclasses import dataclass

import torch
from torch import Tensor

from ebnm_torch.utils.posterior import PosteriorSummary


@dataclass
class ScaledSampler:
    """Wraps a sampler fitted on normalized data and maps its draws back by ``norm``."""

    sampler: Callable[..., Tensor]
    norm: float

    def __call__(self, nsamp: int, generator: torch.Generator | None = None) -> Tensor:
        return self.norm * self.sampler(nsamp, generator=generator)


@dataclass(frozen=True)
class ScaleNormalizer:
    """
    Divides x and s by ``norm`` before fitting and maps every output back.

    Results do not depend on ``norm``; it only keeps the optimizer
    well-conditioned when the data are very large or very small.

    Attributes
    ----------
    norm : float
        Positive, finite normalization factor.
    """

    norm: float

    def __post_init__(self):
        if not (0.0 < self.norm < math.inf):
            raise ValueError(f"norm must be positive and finite, got {self.norm}")

    @classmethod
    def from_data(cls, s: Tensor, norm: float | None = None) -> "ScaleNormalizer":
        """
        Build the normalizer, defaulting to ``mean(s)``.

        When every standard error is zero, mean(s) is zero and the data are
        left unscaled.
        """
        if norm is None:
            norm = float(s.mean().item()) if s.numel() > 0 else 1.0
            if norm == 0.0:
                norm = 1.0
        return cls(float(norm))

    def scale(self, x: Tensor, s: Tensor) -> tuple[Tensor, Tensor]:
        return x / self.norm, s / self.norm

    def scale_prior(self, g):
        """Express a prior given on the original scale in normalized units."""
        return g.rescale(1.0 / self.norm)

    def unscale_prior(self, g):
        return g.rescale(self.norm)

    def unscale_summary(self, summary: PosteriorSummary) -> PosteriorSummary:
        return summary.rescale(self.norm)

    def unscale_loglik(self, loglik: float, n: int) -> float:
        """Add the log-Jacobian of x -> x / norm for n independent observations."""
        return loglik - n * math.log(self.norm)

    def wrap_sampler(self, sampler: Callable[..., Tensor]) -> ScaledSampler:
        return ScaledSampler(sampler, self.norm)
