from typing import Protocol

import torch
from torch import Tensor

from ebnm_torch.ebnm.loglik_normal import wpost_normal
from ebnm_torch.ebnm.posterior_normal import pmean_cond_normal, pvar_cond_normal


class PosteriorSampler(Protocol):
    """Draws from the posterior of every θ_i given a fixed prior."""

    def __call__(self, nsamp: int, generator: torch.Generator | None = None) -> Tensor:
        """
        Args:
            nsamp: Number of draws per observation
            generator: Optional torch.Generator for reproducible draws

        Returns:
            Tensor of shape (nsamp, n), one column per observation
        """
        ...


def _check_nsamp(nsamp: int) -> int:
    nsamp = int(nsamp)
    if nsamp < 0:
        raise ValueError(f"nsamp must be non-negative, got {nsamp}")
    return nsamp


class PointNormalSampler:
    """
    Exact posterior sampler for the point-normal prior.

    Each draw picks the normal branch with probability ``wpost_normal`` and
    otherwise returns exactly 0; normal-branch draws come from
    N(x / (1 + s^2 a), s^2 / (1 + s^2 a)).
    """

    def __init__(self, x: Tensor, s: Tensor, w: float, a: float):
        self.n = x.shape[0]
        self.dtype, self.device = x.dtype, x.device
        self.w = w
        if w <= 0:
            self.wpost = torch.zeros_like(x)
            self.mean = torch.zeros_like(x)
            self.sd = torch.zeros_like(x)
        else:
            self.wpost = wpost_normal(x, s, w, a)
            self.mean = pmean_cond_normal(x, s, a)
            self.sd = torch.sqrt(pvar_cond_normal(s, a))

    @torch.no_grad()
    def __call__(self, nsamp: int, generator: torch.Generator | None = None) -> Tensor:
        nsamp = _check_nsamp(nsamp)
        out = torch.zeros(nsamp, self.n, dtype=self.dtype, device=self.device)
        if self.w <= 0 or nsamp == 0:
            return out
        probs = self.wpost.unsqueeze(0).expand(nsamp, self.n).contiguous()
        is_nonnull = torch.bernoulli(probs, generator=generator).bool()
        z = torch.randn(nsamp, self.n, generator=generator, dtype=self.dtype, device=self.device)
        draws = self.mean.unsqueeze(0) + self.sd.unsqueeze(0) * z
        return torch.where(is_nonnull, draws, out)


class NormalMixSampler:
    """
    Exact posterior sampler for a mixture-of-normals prior (point masses allowed).

    Parameters
    ----------
    resp : torch.Tensor
        (n, K) posterior component probabilities.
    comp_mean : torch.Tensor
        (n, K) posterior means within each component.
    comp_var : torch.Tensor
        (n, K) posterior variances within each component (0 for point masses).
    """

    def __init__(self, resp: Tensor, comp_mean: Tensor, comp_var: Tensor):
        self.resp = resp
        self.comp_mean = comp_mean
        self.comp_sd = torch.sqrt(torch.clamp(comp_var, min=0.0))

    @torch.no_grad()
    def __call__(self, nsamp: int, generator: torch.Generator | None = None) -> Tensor:
        nsamp = _check_nsamp(nsamp)
        n = self.resp.shape[0]
        if nsamp == 0:
            return torch.zeros(0, n, dtype=self.comp_mean.dtype, device=self.comp_mean.device)
        idx = torch.multinomial(self.resp, nsamp, replacement=True, generator=generator)  # (n, nsamp)
        mean = torch.gather(self.comp_mean, 1, idx)
        sd = torch.gather(self.comp_sd, 1, idx)
        z = torch.randn(n, nsamp, generator=generator, dtype=mean.dtype, device=mean.device)
        return (mean + sd * z).T.contiguous()
