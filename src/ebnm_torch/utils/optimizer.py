import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

import torch
from torch import Tensor

LBFGS_CONTROL_KEYS = frozenset(
    {"lr", "max_iter", "max_eval", "tolerance_grad", "tolerance_change", "history_size", "line_search_fn"}
)


@dataclass
class OptimizeResult:
    """
    Outcome of a single optimizer run.

    Attributes
    ----------
    x : torch.Tensor
        Final point (inside the bounds).
    fun : float
        Objective value at x.
    success : bool
        Whether the optimizer reports convergence.
    n_iter : int
        Number of iterations performed.
    message : str
        Human-readable stopping reason.
    """

    x: Tensor
    fun: float
    success: bool
    n_iter: int
    message: str = ""


class Optimizer(Protocol):
    """Protocol for box-constrained minimizers driven by an analytic gradient."""

    def __call__(
        self,
        fun: Callable[[Tensor], float],
        grad: Callable[[Tensor], Tensor],
        x0: Tensor,
        bounds: Sequence[tuple[float, float]],
        **control,
    ) -> OptimizeResult:
        """
        Minimize ``fun`` from ``x0`` within ``bounds``.

        Args:
            fun: Objective, maps a parameter vector to a float
            grad: Analytic gradient of ``fun``
            x0: Initial point
            bounds: One (lower, upper) pair per coordinate
            **control: Optimizer-specific settings

        Returns:
            OptimizeResult
        """
        ...


def _projected_grad(g: Tensor, x: Tensor, lower: Tensor, upper: Tensor) -> Tensor:
    # components pushing out of the box at an active bound do not count
    at_lower = (x <= lower) & (g > 0)
    at_upper = (x >= upper) & (g < 0)
    return torch.where(at_lower | at_upper, torch.zeros_like(g), g)


class LBFGSOptimizer:
    """
    L-BFGS (``torch.optim.LBFGS``) on a box, with gradients supplied by the caller.

    The objective is evaluated at the parameters clamped to the box; the
    gradient is zeroed in clamped coordinates, so the optimizer sees a flat
    objective outside the bounds. Components pointing out of the box at an
    active bound are zeroed as well, so a minimum on the boundary stops the
    run through ``tolerance_grad``.
    """

    def __call__(
        self,
        fun: Callable[[Tensor], float],
        grad: Callable[[Tensor], Tensor],
        x0: Tensor,
        bounds: Sequence[tuple[float, float]],
        lr: float = 1.0,
        max_iter: int = 200,
        max_eval: int | None = None,
        tolerance_grad: float = 1e-7,
        tolerance_change: float = 1e-12,
        history_size: int = 20,
        line_search_fn: str | None = "strong_wolfe",
    ) -> OptimizeResult:
        dtype, device = x0.dtype, x0.device
        lower = torch.tensor([b[0] for b in bounds], dtype=dtype, device=device)
        upper = torch.tensor([b[1] for b in bounds], dtype=dtype, device=device)
        if max_eval is None:
            max_eval = max_iter * 5 // 4

        theta = torch.nn.Parameter(torch.clamp(x0.detach().clone(), lower, upper))
        opt = torch.optim.LBFGS(
            [theta],
            lr=lr,
            max_iter=max_iter,
            max_eval=max_eval,
            tolerance_grad=tolerance_grad,
            tolerance_change=tolerance_change,
            history_size=history_size,
            line_search_fn=line_search_fn,
        )

        def closure():
            with torch.no_grad():
                point = torch.clamp(theta, lower, upper)
                loss = fun(point)
                g = grad(point).to(dtype=dtype, device=device)
                outside = (theta < lower) | (theta > upper)
                g = torch.where(outside, torch.zeros_like(g), g)
                g = _projected_grad(g, point, lower, upper)
                g = torch.nan_to_num(g, nan=0.0, posinf=0.0, neginf=0.0)
            theta.grad = g
            loss = torch.tensor(loss, dtype=dtype, device=device)
            return torch.nan_to_num(loss, nan=1e30, posinf=1e30, neginf=1e30)

        opt.step(closure)

        state = opt.state[theta]
        n_iter = int(state.get("n_iter", 0))
        func_evals = int(state.get("func_evals", 0))

        with torch.no_grad():
            x = torch.clamp(theta.detach(), lower, upper)
            fval = fun(x)
            pg = _projected_grad(grad(x).to(dtype=dtype, device=device), x, lower, upper)
        pg_max = float(pg.abs().max().item())

        finite = bool(torch.isfinite(x).all()) and math.isfinite(fval)
        hit_limit = n_iter >= max_iter or func_evals >= max_eval
        if not finite:
            success, message = False, "non-finite objective or parameters"
        elif not hit_limit:
            success, message = True, "converged (tolerance reached)"
        elif pg_max <= tolerance_grad:
            success, message = True, "converged (projected gradient below tolerance_grad)"
        else:
            success = False
            message = f"iteration limit reached (max_iter={max_iter}, max_eval={max_eval}), |grad|={pg_max:.3g}"
        return OptimizeResult(x=x, fun=float(fval), success=success, n_iter=n_iter, message=message)
