from collections.abc import Iterable
from typing import Any

from torch import Tensor

from ebnm_torch.ebnm._checks import check_data
from ebnm_torch.ebnm.fitted_g import PointNormalPrior
from ebnm_torch.ebnm.loglik_normal import loglik_normal
from ebnm_torch.ebnm.mle_normal import MLEConfig, mle_normal_logscale_grad
from ebnm_torch.ebnm.output import EBNMResult, Output, set_output
from ebnm_torch.ebnm.posterior_normal import posterior_summary_normal
from ebnm_torch.ebnm.samplers import PointNormalSampler
from ebnm_torch.utils.normalizer import ScaleNormalizer
from ebnm_torch.utils.optimizer import Optimizer


def ebnm_point_normal(
    x: Tensor,
    s: Tensor | float = 1.0,
    g: PointNormalPrior | None = None,
    fix_g: bool = False,
    norm: float | None = None,
    output: str | Iterable[str] | None = None,
    control: dict[str, Any] | None = None,
    optimizer: Optimizer | None = None,
    verbose: bool = False,
) -> EBNMResult:
    """
    Solve the EBNM problem with a point-normal prior.

    The prior on θ is ``pi0 δ0 + (1 - pi0) N(0, 1/a)`` and the data are
    ``x_i ~ N(θ_i, s_i^2)``. Unless ``fix_g`` is set, (pi0, a) are estimated
    by marginal maximum likelihood.

    x and s are divided by ``norm`` before any computation and every output is
    mapped back, so the results do not depend on ``norm``.

    Parameters
    ----------
    x : torch.Tensor
        Observations.
    s : torch.Tensor or float, optional
        Standard errors (scalar if all equal). Default is 1.
    g : PointNormalPrior or None, optional
        Prior to use when ``fix_g`` is True.
    fix_g : bool, optional
        If True, use ``g`` as given and skip estimation (default: False).
    norm : float or None, optional
        Normalization factor (default: mean(s)).
    output : str, iterable of str, or None, optional
        Names from :class:`Output` to compute. None gives posterior summary,
        fitted prior and log-likelihood.
    control : dict or None, optional
        Optimizer settings passed through to :class:`MLEConfig`.
    optimizer : Optimizer or None, optional
        Minimizer strategy (default: L-BFGS).
    verbose : bool, optional
        Print optimizer progress (default: False).

    Returns
    -------
    EBNMResult
        Mapping with exactly the requested outputs.

    Raises
    ------
    ValueError
        For invalid or contradictory arguments.
    OptimizationError
        If estimation of g fails.
    """
    output = set_output(output)
    if fix_g and g is None:
        raise ValueError("must specify g if fix_g=True")
    if g is not None and not fix_g:
        raise ValueError("initialising the optimization from g is not supported; pass fix_g=True to use g as given")
    if g is not None and not isinstance(g, PointNormalPrior):
        raise ValueError(f"g must be a PointNormalPrior, got {type(g).__name__}")
    config = MLEConfig.from_control(control, verbose=verbose)

    x, s = check_data(x, s)
    n = x.shape[0]
    if not fix_g and n == 0:
        raise ValueError("cannot estimate g from an empty x")

    # scale for stability; the log-likelihood needs a Jacobian correction
    normalizer = ScaleNormalizer.from_data(s, norm)
    x, s = normalizer.scale(x, s)

    if fix_g:
        g_scaled = normalizer.scale_prior(g)
    else:
        g_scaled = mle_normal_logscale_grad(x, s, config=config, optimizer=optimizer)

    w = g_scaled.w
    a = g_scaled.a

    res = EBNMResult()
    if Output.POSTERIOR in output:
        res[Output.POSTERIOR] = normalizer.unscale_summary(posterior_summary_normal(x, s, w, a))
    if Output.FITTED_G in output:
        res[Output.FITTED_G] = g if fix_g else normalizer.unscale_prior(g_scaled)
    if Output.LOG_LIKELIHOOD in output:
        res[Output.LOG_LIKELIHOOD] = normalizer.unscale_loglik(loglik_normal(x, s, w, a), n)
    if Output.POSTERIOR_SAMPLER in output:
        res[Output.POSTERIOR_SAMPLER] = normalizer.wrap_sampler(PointNormalSampler(x, s, w, a))
    return res
