"""
Shared helpers for building tensors in tests.
"""

import base64
import numpy as np
import torch
from typing import List, Optional

from constellation import Tensor


def float32_bits(values: List[float]) -> bytes:
    """Raw bytes of `values` rounded to float32 by numpy (round-to-nearest)."""
    return np.array(values, dtype=np.float32).tobytes()


def b64_of(values: list, dtype: str) -> str:
    """Base64 of the little-endian raw bytes of `values` as numpy `dtype`."""
    return base64.b64encode(np.array(values, dtype=np.dtype(dtype)).tobytes()).decode(
        "utf-8"
    )


def generate_fake_float_tensor(
    shape: List[int], type: str = "float32", name: Optional[str] = None
) -> Tensor:
    """
    Build a random float tensor of the given shape.

    Usage:
    - generate_fake_float_tensor([2, 3]) -> float32 tensor with 6 elements
    - generate_fake_float_tensor([4], "float64", "x") -> named float64 tensor
    """
    numel = 1
    for d in shape:
        numel *= d
    dtype = torch.float64 if type == "float64" else torch.float32
    return Tensor(type, shape, torch.randn(numel, dtype=dtype), name)
