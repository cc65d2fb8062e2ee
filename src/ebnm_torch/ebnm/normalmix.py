import math
from collections.abc import Iterable

import torch
from torch import Tensor

from ebnm_torch.ebnm._checks import check_data
from ebnm_torch.ebnm.fitted_g import NormalMixPrior
from ebnm_torch.ebnm.output import EBNMResult, Output, set_output
from ebnm_torch.ebnm.samplers import NormalMixSampler
from ebnm_torch.utils.maths import log_norm_pdf
from ebnm_torch.utils.normalizer import ScaleNormalizer
from ebnm_torch.utils.posterior import PosteriorSummary


def get_data_loglik_normalmix(x: Tensor, s: Tensor, g: NormalMixPrior) -> Tensor:
    """
    (J, K) matrix of log N(x_j; mean_k, s_j^2 + sd_k^2).

    Entries with ``s_j == 0`` and ``sd_k == 0`` are Dirac limits (+inf / -inf).
    """
    mean = g.mean.to(dtype=x.dtype, device=x.device).unsqueeze(0)
    sd = g.sd.to(dtype=x.dtype, device=x.device).unsqueeze(0)
    scale = torch.sqrt(s.unsqueeze(1).pow(2) + sd.pow(2))
    return log_norm_pdf(x.unsqueeze(1).expand_as(scale), mean, scale)


def _weighted_loglik(L: Tensor, g: NormalMixPrior) -> tuple[Tensor, Tensor, Tensor]:
    # +inf entries: exact observation sitting on a point mass
    log_pi = torch.log(g.pi.to(dtype=L.dtype, device=L.device)).unsqueeze(0)
    pos = g.pi.to(device=L.device).unsqueeze(0) > 0
    is_inf = torch.isposinf(L) & pos
    inf_rows = is_inf.any(dim=1)
    combined = torch.where(pos, L + log_pi, torch.full_like(L, -math.inf))
    return combined, is_inf, inf_rows


def vloglik_normalmix(x: Tensor, s: Tensor, g: NormalMixPrior) -> Tensor:
    """
    Per-observation log sum_k pi_k N(x; mean_k, s^2 + sd_k^2).

    An exact observation sitting on a point mass contributes the log of the
    total weight of the point masses at that location.
    """
    L = get_data_loglik_normalmix(x, s, g)
    combined, is_inf, inf_rows = _weighted_loglik(L, g)
    finite = torch.where(inf_rows.unsqueeze(1), torch.full_like(combined, -math.inf), combined)
    out = torch.logsumexp(finite, dim=1)
    if inf_rows.any():
        pi = g.pi.to(dtype=x.dtype, device=x.device).unsqueeze(0)
        mass = torch.log((pi * is_inf).sum(dim=1))
        out = torch.where(inf_rows, mass, out)
    return out


def posterior_normalmix(x: Tensor, s: Tensor, g: NormalMixPrior) -> tuple[Tensor, Tensor, Tensor]:
    """
    Component responsibilities and conditional posterior moments.

    Returns
    -------
    tuple of torch.Tensor
        (resp, comp_mean, comp_var), each of shape (J, K).
    """
    L = get_data_loglik_normalmix(x, s, g)
    combined, is_inf, inf_rows = _weighted_loglik(L, g)
    finite = torch.where(inf_rows.unsqueeze(1), torch.full_like(combined, -math.inf), combined)
    resp = torch.softmax(finite, dim=1)
    if inf_rows.any():
        pi = g.pi.to(dtype=x.dtype, device=x.device).unsqueeze(0) * is_inf
        resp_inf = pi / pi.sum(dim=1, keepdim=True).clamp_min(1e-300)
        resp = torch.where(inf_rows.unsqueeze(1), resp_inf, resp)

    s2 = s.unsqueeze(1).pow(2)
    t2 = g.sd.to(dtype=x.dtype, device=x.device).pow(2).unsqueeze(0)
    mean = g.mean.to(dtype=x.dtype, device=x.device).unsqueeze(0)
    tot = s2 + t2
    safe_tot = torch.where(tot > 0, tot, torch.ones_like(tot))

    # v = s^2 t^2 / (s^2 + t^2), m = (x t^2 + mean s^2) / (s^2 + t^2); point mass on exact data -> mean
    comp_var = torch.where(tot > 0, s2 * t2 / safe_tot, torch.zeros_like(tot))
    comp_mean = torch.where(tot > 0, (x.unsqueeze(1) * t2 + mean * s2) / safe_tot, mean.expand_as(tot))
    return resp, comp_mean, comp_var


@torch.no_grad()
def posterior_summary_normalmix(x: Tensor, s: Tensor, g: NormalMixPrior) -> PosteriorSummary:
    resp, comp_mean, comp_var = posterior_normalmix(x, s, g)
    post_mean = torch.sum(resp * comp_mean, dim=1)
    post_mean2 = torch.sum(resp * (comp_var + comp_mean.pow(2)), dim=1)
    return PosteriorSummary.from_moments(post_mean, post_mean2)


def ebnm_normalmix_fixed(
    x: Tensor,
    s: Tensor | float = 1.0,
    g: NormalMixPrior | None = None,
    norm: float | None = None,
    output: str | Iterable[str] | None = None,
) -> EBNMResult:
    """
    EBNM computations with a fixed mixture-of-normals prior.

    This is where a discrete mixing distribution estimated elsewhere (for
    example by a nonparametric MLE solver, as point masses with ``sd == 0``)
    is turned into posterior summaries, a log-likelihood and a sampler.

    Parameters
    ----------
    x : torch.Tensor
        Observations.
    s : torch.Tensor or float, optional
        Standard errors (scalar if all equal). Default is 1.
    g : NormalMixPrior
        The prior to use as given.
    norm : float or None, optional
        Normalization factor (default: mean(s)).
    output : str, iterable of str, or None, optional
        Names from :class:`Output` to compute.

    Returns
    -------
    EBNMResult
        Mapping with exactly the requested outputs.

    Raises
    ------
    ValueError
        If g is missing or of the wrong type, or if some observation has zero
        likelihood under g (``s == 0`` with x on none of the point masses and
        no component of positive sd).
    """
    output = set_output(output)
    if g is None:
        raise ValueError("must specify g for a fixed mixture prior")
    if not isinstance(g, NormalMixPrior):
        raise ValueError(f"g must be a NormalMixPrior, got {type(g).__name__}")

    x, s = check_data(x, s)
    n = x.shape[0]
    normalizer = ScaleNormalizer.from_data(s, norm)
    x, s = normalizer.scale(x, s)
    g_scaled = normalizer.scale_prior(g)

    row_loglik = vloglik_normalmix(x, s, g_scaled)
    impossible = torch.isneginf(row_loglik)
    if impossible.any():
        idx = torch.nonzero(impossible).flatten().tolist()
        raise ValueError(f"observations {idx[:10]} have zero likelihood under g (exact data off every point mass)")

    res = EBNMResult()
    if Output.POSTERIOR in output:
        res[Output.POSTERIOR] = normalizer.unscale_summary(posterior_summary_normalmix(x, s, g_scaled))
    if Output.FITTED_G in output:
        res[Output.FITTED_G] = g
    if Output.LOG_LIKELIHOOD in output:
        loglik = float(row_loglik.sum().item())
        res[Output.LOG_LIKELIHOOD] = normalizer.unscale_loglik(loglik, n)
    if Output.POSTERIOR_SAMPLER in output:
        sampler = NormalMixSampler(*posterior_normalmix(x, s, g_scaled))
        res[Output.POSTERIOR_SAMPLER] = normalizer.wrap_sampler(sampler)
    return res
