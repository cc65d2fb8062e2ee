import math

import torch
from torch import Tensor

_TWOPI = 2.0 * math.pi
_LOG_2PI = math.log(_TWOPI)
_LOG_SQRT_2PI = 0.5 * _LOG_2PI


def as_float_tensor(value, dtype: torch.dtype = torch.float64, device: torch.device | None = None) -> Tensor:
    """
    Convert array-likes, scalars or tensors to a float tensor.

    Parameters
    ----------
    value : array-like, float or torch.Tensor
        Input values.
    dtype : torch.dtype, optional
        Target dtype. Default is float64.
    device : torch.device or None, optional
        Target device. If None, keeps the device of a tensor input (CPU otherwise).

    Returns
    -------
    torch.Tensor
        Tensor with the requested dtype.
    """
    if isinstance(value, Tensor):
        return value.to(dtype=dtype, device=device if device is not None else value.device)
    return torch.as_tensor(value, dtype=dtype, device=device)


def log_norm_pdf(x: Tensor, loc: Tensor | float, scale: Tensor) -> Tensor:
    """
    Compute the log-density of a normal distribution, including the Dirac limit.

    Where ``scale == 0`` the density is a point mass at ``loc``: the log-density
    is ``+inf`` when ``x == loc`` and ``-inf`` otherwise.

    Parameters
    ----------
    x : torch.Tensor
        Input tensor.
    loc : torch.Tensor or float
        Mean of the normal distribution.
    scale : torch.Tensor
        Standard deviation of the normal distribution (>= 0).

    Returns
    -------
    torch.Tensor
        Log-density evaluated at x.
    """
    diff = x - loc
    scale = torch.as_tensor(scale, dtype=x.dtype, device=x.device)
    is_dirac = scale == 0
    safe_scale = torch.where(is_dirac, torch.ones_like(scale), scale)
    z = diff / safe_scale
    out = -0.5 * z * z - torch.log(safe_scale) - _LOG_SQRT_2PI
    if is_dirac.any():
        dirac = torch.where(
            diff == 0,
            torch.full_like(out, math.inf),
            torch.full_like(out, -math.inf),
        )
        out = torch.where(is_dirac, dirac, out)
    return out


def logit(p: float) -> float:
    """log(p / (1 - p)) for a probability strictly inside (0, 1)."""
    return math.log(p) - math.log1p(-p)
