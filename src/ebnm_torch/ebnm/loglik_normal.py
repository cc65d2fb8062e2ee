"""
Log-likelihood of the point-normal EBNM model and its gradient.

The prior is ``(1 - w) δ0 + w N(0, 1/a)`` and the data ``x_i ~ N(θ_i, s_i^2)``,
so each observation has marginal density ``(1 - w) f_i + w g_i`` with

    f_i = N(x_i; 0, s_i^2)            (null / point-mass component)
    g_i = N(x_i; 0, s_i^2 + 1/a)      (normal component)

Everything is evaluated in log-space by factoring out ``max(log f_i, log g_i)``.
"""

import math

import torch
from torch import Tensor

from ebnm_torch.utils.maths import log_norm_pdf


def logf_null(x: Tensor, s: Tensor) -> Tensor:
    """
    Log-density of x under the null component, log N(x; 0, s^2).

    For ``s == 0`` this is the Dirac limit: ``+inf`` at ``x == 0`` and
    ``-inf`` elsewhere.
    """
    return log_norm_pdf(x, 0.0, s)


def logg_normal(x: Tensor, s: Tensor, a: float) -> Tensor:
    """
    Log-density of N(0, 1/a) convolved with N(0, s^2), evaluated at x.

    Parameters
    ----------
    x : torch.Tensor
        Observations.
    s : torch.Tensor
        Standard errors.
    a : float
        Precision of the normal component.

    Returns
    -------
    torch.Tensor
        log N(x; 0, s^2 + 1/a) for each observation.
    """
    return log_norm_pdf(x, 0.0, torch.sqrt(s * s + 1.0 / a))


def vloglik_normal(x: Tensor, s: Tensor, w: float, a: float) -> Tensor:
    """
    Per-observation log((1 - w) f + w g).

    The cases ``w <= 0`` and ``w >= 1`` return the single-component
    log-density exactly. Observations with infinite null log-density
    (``s == 0`` and ``x == 0``) get ``log(1 - w)``.

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
    torch.Tensor
        Log marginal density of every observation.
    """
    lf = logf_null(x, s)
    if w <= 0:
        return lf
    lg = logg_normal(x, s, a)
    if w >= 1:
        return lg

    lfac = torch.maximum(lf, lg)
    result = lfac + torch.log((1 - w) * torch.exp(lf - lfac) + w * torch.exp(lg - lfac))
    # point mass at an exact zero observation
    result = torch.where(torch.isposinf(lf), torch.full_like(result, math.log1p(-w)), result)
    return result


def loglik_normal(x: Tensor, s: Tensor, w: float, a: float) -> float:
    """Summed log-likelihood of the point-normal model."""
    return float(vloglik_normal(x, s, w, a).sum().item())


def wpost_normal(x: Tensor, s: Tensor, w: float, a: float) -> Tensor:
    """
    Posterior probability that each θ_i was drawn from the normal component.

    Uses the same max-factored weights as :func:`vloglik_normal`, so an
    observation that rules out the point mass (``s == 0``, ``x != 0``) gets
    exactly 1 and an exact zero observation gets exactly 0.
    """
    if w <= 0:
        return torch.zeros_like(x)
    if w >= 1:
        return torch.ones_like(x)

    lf = logf_null(x, s)
    lg = logg_normal(x, s, a)
    lfac = torch.maximum(lf, lg)
    num = w * torch.exp(lg - lfac)
    denom = (1 - w) * torch.exp(lf - lfac) + num
    wpost = num / denom
    return torch.where(torch.isposinf(lf), torch.zeros_like(wpost), wpost)


def grad_loglik_normal_logscale(x: Tensor, s: Tensor, w: float, a: float) -> Tensor:
    """
    Gradient of the summed log-likelihood with respect to (logit(w), log(a)).

    With ``r_i`` the normal-component responsibility and ``v_i = s_i^2 + 1/a``:

        d/d logit(w) = sum_i (r_i - w)
        d/d log(a)   = sum_i r_i (1 - x_i^2 / v_i) / (2 a v_i)

    At ``w <= 0`` the normal component carries no weight and the derivative
    in ``log(a)`` is exactly zero; at ``w >= 1`` the derivative in
    ``logit(w)`` is exactly zero.

    Returns
    -------
    torch.Tensor
        Tensor of shape (2,).
    """
    if w <= 0:
        d_logit_w = -w * x.numel()
        d_log_a = 0.0
        return torch.tensor([d_logit_w, d_log_a], dtype=x.dtype, device=x.device)

    v = s * s + 1.0 / a
    dlg = (1.0 - x * x / v) / (2.0 * a * v)
    if w >= 1:
        d_logit_w = 0.0
        d_log_a = float(dlg.sum().item())
        return torch.tensor([d_logit_w, d_log_a], dtype=x.dtype, device=x.device)

    r = wpost_normal(x, s, w, a)
    d_logit_w = float((r - w).sum().item())
    d_log_a = float((r * dlg).sum().item())
    return torch.tensor([d_logit_w, d_log_a], dtype=x.dtype, device=x.device)


def theta_to_params(theta: Tensor) -> tuple[float, float]:
    """Map optimizer coordinates (logit(w), log(a)) to (w, a)."""
    w = float(torch.sigmoid(theta[0]).item())
    a = float(torch.exp(theta[1]).item())
    return w, a


def negloglik_logscale(theta: Tensor, x: Tensor, s: Tensor) -> float:
    """Negative log-likelihood as a function of (logit(w), log(a))."""
    w, a = theta_to_params(theta)
    return -loglik_normal(x, s, w, a)


def grad_negloglik_logscale(theta: Tensor, x: Tensor, s: Tensor) -> Tensor:
    """Gradient of :func:`negloglik_logscale`."""
    w, a = theta_to_params(theta)
    return -grad_loglik_normal_logscale(x, s, w, a)
