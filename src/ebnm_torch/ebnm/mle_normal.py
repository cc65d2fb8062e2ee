"""Marginal maximum-likelihood estimation of the point-normal prior."""

import math
from dataclasses import dataclass, fields
from typing import Any

import torch
from torch import Tensor

from ebnm_torch.ebnm.fitted_g import PointNormalPrior
from ebnm_torch.ebnm.loglik_normal import (
    grad_negloglik_logscale,
    negloglik_logscale,
    theta_to_params,
)
from ebnm_torch.utils.maths import logit
from ebnm_torch.utils.optimizer import LBFGS_CONTROL_KEYS, LBFGSOptimizer, Optimizer

# starting weight is kept away from the logit bounds
_W_INIT_RANGE = (0.05, 0.95)


class OptimizationError(RuntimeError):
    """
    The optimizer failed to converge or returned an invalid prior.

    Attributes
    ----------
    fun : float
        Last objective value (negative log-likelihood on the normalized scale).
    n_iter : int
        Iterations performed.
    """

    def __init__(self, message: str, fun: float = math.nan, n_iter: int = 0):
        super().__init__(message)
        self.fun = fun
        self.n_iter = n_iter


@dataclass
class MLEConfig:
    """
    Settings for the point-normal optimizer.

    Every field except ``verbose`` can be passed through ``control``.
    ``bounds`` are box constraints on (logit(w), log(a)). ``tolerance_grad``
    and ``tolerance_change`` apply to the per-observation objective, so they
    do not tighten as n grows.
    """

    max_iter: int = 500
    max_eval: int | None = None
    lr: float = 1.0
    tolerance_grad: float = 1e-7
    tolerance_change: float = 1e-12
    history_size: int = 20
    line_search_fn: str | None = "strong_wolfe"
    bounds: tuple[tuple[float, float], tuple[float, float]] = ((-20.0, 20.0), (-30.0, 30.0))
    verbose: bool = False

    @classmethod
    def from_control(cls, control: dict[str, Any] | None = None, verbose: bool = False) -> "MLEConfig":
        """
        Build a config from user-supplied optimizer control parameters.

        Raises
        ------
        ValueError
            If ``control`` contains parameters the optimizer does not support.
        """
        control = dict(control or {})
        allowed = {f.name for f in fields(cls)} - {"verbose"}
        unknown = sorted(set(control) - allowed)
        if unknown:
            raise ValueError(f"Unsupported optimizer control parameter(s) {unknown}. Available: {sorted(allowed)}")
        return cls(verbose=verbose, **control)

    def optimizer_control(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in sorted(LBFGS_CONTROL_KEYS)}


def init_point_normal(x: Tensor, s: Tensor) -> tuple[float, float]:
    """
    Data-driven starting values for (w, a).

    The excess second moment ``mean(x^2) - median(s^2)`` estimates the prior
    variance ``w / a``; w starts at the share of the second moment that is
    excess over the noise, and a at ``w / excess``.
    """
    m2 = float((x * x).mean().item())
    noise = float((s * s).median().item())
    excess = m2 - noise
    floor = max(1e-2 * noise, 1e-8)

    if m2 > 0:
        w0 = min(max(excess / m2, _W_INIT_RANGE[0]), _W_INIT_RANGE[1])
    else:
        w0 = _W_INIT_RANGE[0]
    a0 = w0 / max(excess, floor)
    return w0, a0


def mle_normal_logscale_grad(
    x: Tensor,
    s: Tensor,
    init: PointNormalPrior | None = None,
    config: MLEConfig | None = None,
    optimizer: Optimizer | None = None,
) -> PointNormalPrior:
    """
    Fit (pi0, a) by maximizing the point-normal marginal log-likelihood.

    The optimizer works on (logit(w), log(a)) inside ``config.bounds`` and is
    given the analytic gradient of the mean negative log-likelihood. A single
    optimization is run. A maximum on the boundary of the box (data with no
    signal, or with no null observations) is a valid fit.

    Parameters
    ----------
    x : torch.Tensor
        Observations (ideally normalized to unit-scale standard errors).
    s : torch.Tensor
        Standard errors.
    init : PointNormalPrior or None, optional
        Starting point. If None, :func:`init_point_normal` is used.
    config : MLEConfig or None, optional
        Optimizer settings.
    optimizer : Optimizer or None, optional
        Minimizer strategy. Default is :class:`LBFGSOptimizer`.

    Returns
    -------
    PointNormalPrior
        Fitted prior on the scale of x.

    Raises
    ------
    OptimizationError
        If the optimizer does not converge or the fitted parameters are invalid.
    """
    config = config or MLEConfig()
    optimizer = optimizer or LBFGSOptimizer()

    w0, a0 = init_point_normal(x, s)
    if init is not None:
        w0 = min(max(init.w, _W_INIT_RANGE[0]), _W_INIT_RANGE[1])
        if init.pi0 < 1.0:
            a0 = init.a
    theta0 = torch.tensor([logit(w0), math.log(a0)], dtype=x.dtype, device=x.device)

    if config.verbose:
        print(f"[EBNM-PN] n={x.numel()} | init w={w0:.4g}, a={a0:.4g}")

    # mean over observations
    n = max(x.numel(), 1)
    res = optimizer(
        lambda theta: negloglik_logscale(theta, x, s) / n,
        lambda theta: grad_negloglik_logscale(theta, x, s) / n,
        theta0,
        config.bounds,
        **config.optimizer_control(),
    )
    negloglik = res.fun * n

    if config.verbose:
        print(f"[EBNM-PN] {res.message} | iter={res.n_iter} | negloglik={negloglik:.6f}")

    if not res.success:
        raise OptimizationError(
            f"Point-normal optimization failed: {res.message} (negloglik={negloglik}, n_iter={res.n_iter})",
            fun=negloglik,
            n_iter=res.n_iter,
        )

    w, a = theta_to_params(res.x)
    if not (math.isfinite(w) and math.isfinite(a)) or not (0.0 <= w <= 1.0) or a <= 0.0 or math.isinf(a):
        raise OptimizationError(
            f"Point-normal optimization returned an invalid prior (w={w}, a={a}, negloglik={negloglik}, n_iter={res.n_iter})",
            fun=negloglik,
            n_iter=res.n_iter,
        )

    if config.verbose:
        print(f"[EBNM-PN] fitted pi0={1.0 - w:.4g}, a={a:.4g}")
    return PointNormalPrior(pi0=1.0 - w, a=a)
