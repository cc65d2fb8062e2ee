import torch
from torch import Tensor

from ebnm_torch.utils.maths import as_float_tensor


def check_data(x, s, dtype: torch.dtype = torch.float64) -> tuple[Tensor, Tensor]:
    """
    Convert (x, s) to 1-d float tensors of equal length.

    A scalar ``s`` is broadcast to the length of ``x``.

    Raises
    ------
    ValueError
        If shapes do not match, values are missing, or any s is negative or infinite.
    """
    x = as_float_tensor(x, dtype=dtype).reshape(-1)
    s = as_float_tensor(s, dtype=dtype, device=x.device)
    if s.ndim == 0:
        s = s.expand_as(x).clone()
    else:
        s = s.reshape(-1)
    if s.shape != x.shape:
        raise ValueError(f"s must be a scalar or have the same length as x ({x.shape[0]}), got {s.shape[0]}")
    if not torch.isfinite(x).all():
        raise ValueError("x must be finite (no NaN or Inf)")
    if not torch.isfinite(s).all() or (s < 0).any():
        raise ValueError("s must be finite and non-negative")
    return x, s
