"""
Utilities for moving numeric tensor storage to and from base64 for HTTP transport.

Only the raw element bytes travel on the wire (no pickling, no header), always
little-endian, so any runtime that knows the element type can rebuild the array.
"""

import base64
import numpy as np
import torch

from .errors import MalformedInputError, ShapeError


def array_to_b64(storage: torch.Tensor, wire_dtype: np.dtype) -> str:
    """
    Encode the raw bytes of a flat numeric tensor as base64.

    Args:
        storage: 1-D tensor holding the elements
        wire_dtype: little-endian numpy dtype the bytes are laid out as

    Returns:
        base64 text of len(storage) * wire_dtype.itemsize bytes
    """
    array = storage.detach().cpu().contiguous().numpy()
    array = array.astype(wire_dtype, copy=False)
    return base64.b64encode(array.tobytes()).decode("utf-8")


def b64_to_array(b64_value: str, wire_dtype: np.dtype) -> torch.Tensor:
    """
    Decode base64 text produced by array_to_b64 back into a flat tensor.

    Raises:
        MalformedInputError: if the text is not valid base64
        ShapeError: if the byte count is not a multiple of the element width
    """
    try:
        data_bytes = base64.b64decode(b64_value, validate=True)
    except (TypeError, ValueError) as e:
        raise MalformedInputError(f"invalid base64 payload: {e}") from e

    if len(data_bytes) % wire_dtype.itemsize != 0:
        raise ShapeError(
            f"invalid number of bytes ({len(data_bytes)}) for input of type {wire_dtype.name}"
        )

    # astype copies into native byte order, so the result is writable
    array = np.frombuffer(data_bytes, dtype=wire_dtype)
    return torch.from_numpy(array.astype(wire_dtype.newbyteorder("=")))
