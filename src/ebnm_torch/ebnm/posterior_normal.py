import torch
from torch import Tensor

from ebnm_torch.ebnm.loglik_normal import wpost_normal
from ebnm_torch.utils.posterior import PosteriorSummary


def pmean_cond_normal(x: Tensor, s: Tensor, a: float) -> Tensor:
    """Posterior mean of θ given it came from N(0, 1/a): x / (1 + s^2 a)."""
    return x / (1.0 + s * s * a)


def pvar_cond_normal(s: Tensor, a: float) -> Tensor:
    """Posterior variance of θ given it came from N(0, 1/a): s^2 / (1 + s^2 a)."""
    return s * s / (1.0 + s * s * a)


@torch.no_grad()
def posterior_summary_normal(x: Tensor, s: Tensor, w: float, a: float) -> PosteriorSummary:
    """
    Closed-form posterior moments under the point-normal prior.

    The posterior of θ_i is ``(1 - r_i) δ0 + r_i N(m_i, v_i)`` with
    ``r_i = wpost_normal(x, s, w, a)``, ``m_i = x_i / (1 + s_i^2 a)`` and
    ``v_i = s_i^2 / (1 + s_i^2 a)``. The point mass contributes nothing to
    either moment.

    Parameters
    ----------
    x : torch.Tensor
        Observations.
    s : torch.Tensor
        Standard errors.
    w : float
        Weight of the normal component.
    a : float
        Precision of the normal component.

    Returns
    -------
    PosteriorSummary
        Posterior mean, second moment and sd for every observation.
    """
    if w <= 0:
        zeros = torch.zeros_like(x)
        return PosteriorSummary(zeros, zeros.clone(), zeros.clone())

    wpost = wpost_normal(x, s, w, a)
    pmean_cond = pmean_cond_normal(x, s, a)
    pvar_cond = pvar_cond_normal(s, a)

    post_mean = wpost * pmean_cond
    post_mean2 = wpost * (pvar_cond + pmean_cond * pmean_cond)
    return PosteriorSummary.from_moments(post_mean, post_mean2)
