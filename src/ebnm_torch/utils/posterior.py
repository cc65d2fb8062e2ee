from dataclasses import dataclass

import torch
from torch import Tensor


@dataclass
class PosteriorSummary:
    """
    Container for posterior mean, second moment, and standard deviation.

    Parameters
    ----------
    post_mean : torch.Tensor
        Posterior mean E[θ_i | x_i].
    post_mean2 : torch.Tensor
        Posterior second moment E[θ_i^2 | x_i].
    post_sd : torch.Tensor
        Posterior standard deviation.
    """

    post_mean: Tensor
    post_mean2: Tensor
    post_sd: Tensor

    @classmethod
    def from_moments(cls, post_mean: Tensor, post_mean2: Tensor) -> "PosteriorSummary":
        post_sd = torch.sqrt(torch.clamp(post_mean2 - post_mean.pow(2), min=0.0))
        return cls(post_mean, post_mean2, post_sd)

    def rescale(self, norm: float) -> "PosteriorSummary":
        """Summary for data multiplied by ``norm``."""
        return PosteriorSummary(
            post_mean=self.post_mean * norm,
            post_mean2=self.post_mean2 * norm**2,
            post_sd=self.post_sd * norm,
        )

    def __len__(self) -> int:
        return self.post_mean.shape[0]
