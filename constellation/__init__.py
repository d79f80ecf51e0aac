from .api import ConstellationApi, normalize_inputs
from .errors import (
    ConstellationError,
    MalformedInputError,
    RangeNarrowingError,
    ShapeError,
    TransportError,
    TypeConversionError,
)
from .schemas import RunRequest, TensorJSON
from .tensor import MAX_SAFE_INTEGER, MIN_SAFE_INTEGER, ElementType, Tensor

__all__ = [
    "ConstellationApi",
    "ConstellationError",
    "ElementType",
    "MAX_SAFE_INTEGER",
    "MIN_SAFE_INTEGER",
    "MalformedInputError",
    "RangeNarrowingError",
    "RunRequest",
    "ShapeError",
    "Tensor",
    "TensorJSON",
    "TransportError",
    "TypeConversionError",
    "normalize_inputs",
]
