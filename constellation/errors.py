"""
Exception hierarchy for tensor construction, narrowing and dispatch.

Every error raised by this package derives from ConstellationError. The
concrete classes also derive from the matching builtin (TypeError/ValueError)
so callers that only know the builtins still catch them.
"""

from typing import Optional


class ConstellationError(Exception):
    """Base exception for all constellation errors."""


class TypeConversionError(ConstellationError, TypeError):
    """Unsupported element type or an element that cannot be coerced to it."""


class ShapeError(ConstellationError, ValueError):
    """Invalid shape dimension or element-count mismatch."""


class RangeNarrowingError(ConstellationError, ValueError):
    """Value outside the safe-integer bound while narrowing int64 to int32."""


class MalformedInputError(ConstellationError, TypeError):
    """Input that is not shaped like a tensor (or a collection of tensors)."""


class TransportError(ConstellationError):
    """Non-success status returned by the inference endpoint."""

    def __init__(self, status_code: int, body: str, message: Optional[str] = None):
        super().__init__(message or f"API returned {status_code}: {body}")
        self.status_code = status_code
        self.body = body
