"""
Typed tensor value object and its JSON / base64 codec.

A Tensor is a flat array of elements tagged with an element type and a shape.
Numeric and boolean elements are stored in a 1-D torch tensor of the matching
dtype, string elements in a plain list. The shape only constrains the element
count; the layout of the flat array is up to the caller.

Two wire forms exist:
    - JSON-native: elements as a JSON list. Wide types (float64, int64) are
      narrowed to their 32-bit counterpart first, so this path is lossy for them.
    - base64: the raw little-endian bytes of a wide tensor. Lossless.
"""

import copy
import numbers
import numpy as np
import torch
from enum import Enum
from pydantic import ValidationError
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import (
    MalformedInputError,
    RangeNarrowingError,
    ShapeError,
    TypeConversionError,
)
from .schemas import TensorJSON
from .tensor_utils import array_to_b64, b64_to_array

# Narrowing int64 -> int32 only accepts values a double can hold exactly
MAX_SAFE_INTEGER = 2**53 - 1
MIN_SAFE_INTEGER = -(2**53 - 1)


class ElementType(str, Enum):
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    INT32 = "int32"
    INT64 = "int64"
    STRING = "string"
    BOOL = "bool"

    def __str__(self) -> str:
        return self.value

    @property
    def is_64bit(self) -> bool:
        return self in (ElementType.FLOAT64, ElementType.INT64)

    @classmethod
    def parse(cls, type: Any) -> "ElementType":
        """Return the ElementType for `type`, raising TypeConversionError if unknown."""
        try:
            return cls(type)
        except (ValueError, TypeError):
            raise TypeConversionError(f"unsupported type: {type}") from None


TORCH_DTYPES: Dict[ElementType, torch.dtype] = {
    ElementType.FLOAT32: torch.float32,
    ElementType.FLOAT64: torch.float64,
    ElementType.INT32: torch.int32,
    ElementType.INT64: torch.int64,
    ElementType.BOOL: torch.bool,
}

# Element types allowed on the base64 path, with their byte layout
WIRE_DTYPES: Dict[ElementType, np.dtype] = {
    ElementType.FLOAT32: np.dtype("<f4"),
    ElementType.FLOAT64: np.dtype("<f8"),
    ElementType.INT32: np.dtype("<i4"),
    ElementType.INT64: np.dtype("<i8"),
}

INT_BOUNDS: Dict[ElementType, Tuple[int, int]] = {
    ElementType.INT32: (-(2**31), 2**31 - 1),
    ElementType.INT64: (-(2**63), 2**63 - 1),
}

Storage = Union[torch.Tensor, List[str]]


# ============================================================================
# ELEMENT CONVERSION
# ============================================================================


def _to_real(element: Any, element_type: ElementType) -> float:
    if not isinstance(element, (numbers.Real, np.bool_)):
        raise TypeConversionError(
            f"element {element!r} of type {type(element).__name__} is not a number"
        )
    try:
        return float(element)
    except OverflowError:
        raise TypeConversionError(
            f"element {element} is out of range for {element_type}"
        ) from None


def _to_bool(element: Any) -> bool:
    # NaN is falsy, as in JavaScript
    if isinstance(element, numbers.Real) and element != element:
        return False
    return bool(element)


def _to_integer(element: Any, element_type: ElementType) -> int:
    """Convert one element to int, rejecting fractional and out-of-range values."""
    if isinstance(element, (numbers.Integral, np.bool_)):
        n = int(element)
    elif isinstance(element, numbers.Real):
        try:
            f = float(element)
        except OverflowError:
            raise TypeConversionError(
                f"element {element} is out of range for {element_type}"
            ) from None
        if not f.is_integer():
            raise TypeConversionError(
                f"element {element!r} is not integer-valued and cannot be stored as {element_type}"
            )
        n = int(f)
    else:
        raise TypeConversionError(
            f"element {element!r} of type {type(element).__name__} is not an integer"
        )

    low, high = INT_BOUNDS[element_type]
    if n < low or n > high:
        raise TypeConversionError(f"element {n} is out of range for {element_type}")
    return n


def _make_string_array(values: Iterable[Any]) -> List[str]:
    arr = []
    for s in values:
        if not isinstance(s, str):
            raise TypeConversionError(f"element {s!r} is not a string")
        # str subclasses are normalized to plain str
        arr.append(str(s))
    return arr


def _from_torch(values: torch.Tensor, element_type: ElementType) -> Storage:
    flat = values.detach().cpu().reshape(-1)

    if element_type is ElementType.STRING:
        return _make_string_array(flat.tolist())
    if flat.is_complex():
        raise TypeConversionError(
            f"tensor of dtype {flat.dtype} cannot be stored as {element_type}"
        )

    dtype = TORCH_DTYPES[element_type]
    if flat.dtype == dtype:
        return flat.clone()
    if element_type in (ElementType.INT32, ElementType.INT64):
        return torch.tensor(
            [_to_integer(x, element_type) for x in flat.tolist()], dtype=dtype
        )
    if element_type is ElementType.BOOL and flat.is_floating_point():
        # nonzero -> True, except NaN
        return (flat != 0) & ~torch.isnan(flat)
    return flat.to(dtype)


def _coerce_value(element_type: ElementType, value: Any) -> Storage:
    """Build the canonical flat storage for `element_type` from `value`."""
    if isinstance(value, np.ndarray):
        if value.dtype.kind in "biuf":
            # torch only accepts native byte order
            native = value.astype(value.dtype.newbyteorder("="), copy=False)
            value = torch.from_numpy(np.ascontiguousarray(native))
        else:
            value = value.reshape(-1).tolist()

    if isinstance(value, torch.Tensor):
        return _from_torch(value, element_type)

    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise TypeConversionError(
            f"expected a sequence of elements but found {type(value).__name__}"
        )

    if element_type in (ElementType.FLOAT32, ElementType.FLOAT64):
        return torch.tensor(
            [_to_real(x, element_type) for x in value], dtype=TORCH_DTYPES[element_type]
        )
    elif element_type in (ElementType.INT32, ElementType.INT64):
        return torch.tensor(
            [_to_integer(x, element_type) for x in value],
            dtype=TORCH_DTYPES[element_type],
        )
    elif element_type is ElementType.BOOL:
        return torch.tensor([_to_bool(x) for x in value], dtype=torch.bool)
    elif element_type is ElementType.STRING:
        return _make_string_array(value)
    raise TypeConversionError(f"unsupported type: {element_type}")


def compute_shape_numel(shape: Any) -> Tuple[Tuple[int, ...], int]:
    """
    Validate a shape and compute its element count.

    Returns:
        (dims as a tuple of ints, product of dims)

    Raises:
        ShapeError: if shape is not a sequence of non-negative integers
    """
    if isinstance(shape, (str, bytes)) or not isinstance(shape, Iterable):
        raise ShapeError(
            f"invalid shape: expected shape to be array-like of integers but found {type(shape).__name__}"
        )

    dims = []
    numel = 1
    for d in shape:
        if isinstance(d, (bool, np.bool_)):
            dim = None
        elif isinstance(d, numbers.Integral):
            dim = int(d)
        elif isinstance(d, numbers.Real) and float(d).is_integer():
            dim = int(d)
        else:
            dim = None

        if dim is None:
            raise ShapeError(
                f"invalid shape: expected shape to be array-like of integers but found non-integer element {d!r}"
            )
        if dim < 0:
            raise ShapeError(f"invalid shape: found negative dimension {dim}")
        dims.append(dim)
        numel *= dim

    return tuple(dims), numel


def _int64_to_int32(values: torch.Tensor) -> torch.Tensor:
    out_of_range = (values < MIN_SAFE_INTEGER) | (values > MAX_SAFE_INTEGER)
    if bool(out_of_range.any()):
        n = int(values[out_of_range][0])
        raise RangeNarrowingError(f"element {n} is too big to represent as int32")
    # in-bound values outside the int32 range wrap (two's complement)
    return values.to(torch.int32)


# ============================================================================
# TENSOR
# ============================================================================


class Tensor:
    """
    Immutable typed tensor.

    Attributes (read-only):
        type: ElementType of every element
        shape: tuple of dimensions, product equals the element count
        value: flat storage (torch tensor, or list of str for string tensors)
        name: optional identifier used inside request/response mappings
        is_64bit: True for float64 and int64

    The base64 encoding of a wide tensor is cached on first use.
    """

    def __init__(
        self,
        type: Union[ElementType, str],
        shape: Iterable[int],
        value: Any,
        name: Optional[str] = None,
    ):
        element_type = ElementType.parse(type)
        # raises TypeConversionError on elements that don't fit the type
        storage = _coerce_value(element_type, value)

        dims, numel = compute_shape_numel(shape)
        if numel != len(storage):
            raise ShapeError(
                f"invalid shape: expected {numel} elements for shape {list(dims)} "
                f"but value array has length {len(storage)}"
            )

        if name is not None and not isinstance(name, str):
            raise TypeConversionError(
                f"tensor name must be a string but found {_type_name(name)}"
            )

        self._type = element_type
        self._shape = dims
        self._value = storage
        self._name = name
        self._b64_value: Optional[str] = None

    # ------------------------------------------------------------------
    # factories
    # ------------------------------------------------------------------

    @classmethod
    def from_base64_value(
        cls,
        type: Union[ElementType, str],
        shape: Iterable[int],
        b64_value: str,
        name: Optional[str] = None,
    ) -> "Tensor":
        """Build a tensor from base64 raw bytes; only numeric types are allowed."""
        element_type = ElementType.parse(type)
        wire_dtype = WIRE_DTYPES.get(element_type)
        if wire_dtype is None:
            raise TypeConversionError(f"invalid data type for base64 input: {element_type}")

        tensor = cls(element_type, shape, b64_to_array(b64_value, wire_dtype), name)
        tensor._cache_b64(b64_value)
        return tensor

    @classmethod
    def from_json(cls, obj: Union[TensorJSON, Mapping[str, Any]]) -> "Tensor":
        """
        Build a tensor from its JSON wire shape.

        A non-null `value` always wins over `b64Value`; the two are not
        cross-checked.
        """
        if not isinstance(obj, TensorJSON):
            try:
                obj = TensorJSON.model_validate(obj)
            except ValidationError as e:
                raise MalformedInputError(f"invalid tensor JSON: {e}") from e

        if obj.value is not None:
            return cls(obj.type, obj.shape, obj.value, obj.name)
        if obj.b64_value is None:
            raise MalformedInputError(
                "tensor JSON carries neither a value nor a b64Value payload"
            )
        return cls.from_base64_value(obj.type, obj.shape, obj.b64_value, obj.name)

    @classmethod
    def from_ort(cls, tensor: Any) -> "Tensor":
        """Adapt an inference-engine tensor exposing `type`, `dims` and `data`."""
        if isinstance(tensor, Mapping):
            return cls(tensor["type"], tensor["dims"], tensor["data"])
        return cls(tensor.type, tensor.dims, tensor.data)

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def type(self) -> ElementType:
        return self._type

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._shape

    @property
    def value(self) -> Storage:
        return self._value

    @property
    def name(self) -> Optional[str]:
        return self._name

    @property
    def is_64bit(self) -> bool:
        return self._type.is_64bit

    @property
    def b64_value(self) -> Optional[str]:
        """Cached base64 encoding, or None if it was never computed."""
        return self._b64_value

    @property
    def numel(self) -> int:
        return len(self._value)

    def __len__(self) -> int:
        return len(self._value)

    def __repr__(self) -> str:
        return (
            f"Tensor(type={self._type.value!r}, shape={list(self._shape)}, "
            f"name={self._name!r}, numel={self.numel})"
        )

    def tolist(self) -> List[Any]:
        """Elements as plain Python values."""
        if isinstance(self._value, torch.Tensor):
            return self._value.tolist()
        return list(self._value)

    def with_name(self, name: Optional[str]) -> "Tensor":
        """Return a copy carrying `name`; storage and cached encoding are shared."""
        if name is not None and not isinstance(name, str):
            raise TypeConversionError(
                f"tensor name must be a string but found {_type_name(name)}"
            )
        renamed = copy.copy(self)
        renamed._name = name
        return renamed

    def _cache_b64(self, b64_value: str) -> str:
        # write-once: the first encoding stays
        if self._b64_value is None:
            self._b64_value = b64_value
        return self._b64_value

    # ------------------------------------------------------------------
    # narrowing and serialization
    # ------------------------------------------------------------------

    def as_32bit(self) -> "Tensor":
        """
        Narrow a wide tensor to its 32-bit counterpart.

        float64 values are rounded to the nearest float32. int64 values must lie
        within [MIN_SAFE_INTEGER, MAX_SAFE_INTEGER], otherwise RangeNarrowingError
        is raised. Narrow tensors are returned as-is.
        """
        if self._type is ElementType.FLOAT64:
            return Tensor(
                ElementType.FLOAT32, self._shape, self._value.to(torch.float32), self._name
            )
        elif self._type is ElementType.INT64:
            return Tensor(
                ElementType.INT32, self._shape, _int64_to_int32(self._value), self._name
            )
        return self

    def to_json(self, encode64: bool = False) -> Dict[str, Any]:
        """
        Serialize to the JSON wire shape.

        With encode64=True a wide tensor is sent as base64 raw bytes (lossless).
        Otherwise it is narrowed to 32 bits and sent as a JSON list, which loses
        64-bit precision. Narrow tensors are always sent as a JSON list.
        """
        if encode64 and self.is_64bit:
            if self._b64_value is None:
                self._cache_b64(array_to_b64(self._value, WIRE_DTYPES[self._type]))
            wire = TensorJSON(
                type=self._type.value,
                shape=list(self._shape),
                value=None,
                b64_value=self._b64_value,
                name=self._name,
            )
        else:
            as32 = self.as_32bit()
            wire = TensorJSON(
                type=as32.type.value,
                shape=list(self._shape),
                value=as32.tolist(),
                b64_value=None,
                name=self._name,
            )
        return wire.model_dump(by_alias=True)


def _type_name(obj: Any) -> str:
    return type(obj).__name__
