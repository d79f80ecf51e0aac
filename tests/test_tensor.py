"""
Test suite for Tensor construction, validation and narrowing.

Tests verify:
- Every element type is converted to its canonical storage
- Shape / element-count mismatches are rejected
- Non-coercible elements are rejected instead of silently truncated
- int64 and float64 narrowing follow the safe-integer bound and float32 rounding
"""

import numpy as np
import pytest
import torch
from types import SimpleNamespace

from constellation import (
    MAX_SAFE_INTEGER,
    ElementType,
    RangeNarrowingError,
    ShapeError,
    Tensor,
    TypeConversionError,
)
from tensor_utils import float32_bits, generate_fake_float_tensor


# ============================================================================
# CONSTRUCTION
# ============================================================================


@pytest.mark.parametrize(
    "type,value,dtype",
    [
        ("float32", [1.5, -2.0], torch.float32),
        ("float64", [1.5, -2.0], torch.float64),
        ("int32", [1, -2], torch.int32),
        ("int64", [1, -2], torch.int64),
        ("bool", [True, False], torch.bool),
    ],
)
def test_numeric_storage_dtype(type, value, dtype):
    """Numeric and boolean tensors are stored as torch tensors of the matching dtype."""
    t = Tensor(type, [2], value)
    assert t.type is ElementType(type)
    assert t.value.dtype == dtype
    assert t.shape == (2,)
    assert t.numel == 2


def test_shape_mismatch_reports_expected_count():
    with pytest.raises(ShapeError) as exc_info:
        Tensor("float32", [2, 3], [1, 2, 3, 4, 5])

    message = str(exc_info.value)
    assert "expected 6 elements" in message
    assert "length 5" in message
    assert "[2, 3]" in message


def test_shape_match_succeeds():
    t = Tensor("float32", [2, 3], [1, 2, 3, 4, 5, 6])
    assert t.numel == 6
    assert len(t) == 6


@pytest.mark.parametrize("shape", [[2, 1.5], [2, "3"], [True, 2], [None]])
def test_non_integer_dimension_rejected(shape):
    with pytest.raises(ShapeError, match="non-integer"):
        Tensor("float32", shape, [1.0, 2.0])


def test_negative_dimension_rejected():
    with pytest.raises(ShapeError, match="negative"):
        Tensor("float32", [-1, -2], [1.0, 2.0])


def test_integral_float_dimension_normalized():
    t = Tensor("int32", [2.0, 1], [1, 2])
    assert t.shape == (2, 1)
    assert all(isinstance(d, int) for d in t.shape)


def test_empty_shape_is_scalar():
    t = Tensor("int32", [], [7])
    assert t.numel == 1

    empty = Tensor("int32", [0, 3], [])
    assert empty.numel == 0


def test_unknown_type_rejected():
    with pytest.raises(TypeConversionError, match="unsupported type: complex64"):
        Tensor("complex64", [1], [1])


def test_errors_are_builtin_subclasses():
    """Callers catching builtin TypeError/ValueError still see these errors."""
    with pytest.raises(TypeError):
        Tensor("nope", [1], [1])
    with pytest.raises(ValueError):
        Tensor("float32", [3], [1.0])


def test_non_numeric_element_rejected():
    with pytest.raises(TypeConversionError) as exc_info:
        Tensor("float32", [2], [1.0, "abc"])
    assert "str" in str(exc_info.value)


@pytest.mark.parametrize("value", [[1.5], [float("nan")], ["1"]])
def test_int_rejects_non_integral(value):
    with pytest.raises(TypeConversionError):
        Tensor("int32", [1], value)


def test_int_accepts_integral_float():
    t = Tensor("int64", [2], [2.0, -3.0])
    assert t.tolist() == [2, -3]


def test_int_range_checked():
    with pytest.raises(TypeConversionError, match="out of range for int32"):
        Tensor("int32", [1], [2**31])
    with pytest.raises(TypeConversionError, match="out of range for int64"):
        Tensor("int64", [1], [2**63])


def test_int64_keeps_full_precision():
    big = [2**62 + 1, -(2**63), MAX_SAFE_INTEGER + 2]
    t = Tensor("int64", [3], big)
    assert t.tolist() == big


def test_bool_uses_truthiness():
    t = Tensor("bool", [4], [0, 1, "", "x"])
    assert t.tolist() == [False, True, False, True]


def test_string_wrappers_normalized():
    class Label(str):
        pass

    t = Tensor("string", [2], [Label("cat"), "dog"])
    assert t.tolist() == ["cat", "dog"]
    assert all(type(s) is str for s in t.value)


def test_string_rejects_non_string_element():
    with pytest.raises(TypeConversionError, match="element 3 is not a string"):
        Tensor("string", [2], ["a", 3])


def test_plain_string_value_rejected():
    """A bare str is not a sequence of elements."""
    with pytest.raises(TypeConversionError):
        Tensor("string", [3], "abc")


def test_name_must_be_string():
    with pytest.raises(TypeConversionError, match="name"):
        Tensor("int32", [1], [1], name=5)


def test_from_torch_and_numpy():
    from_torch = Tensor("float32", [2, 2], torch.ones(2, 2))
    assert from_torch.value.shape == (4,)

    from_numpy = Tensor("int64", [3], np.array([1, 2, 3], dtype=np.int64))
    assert from_numpy.tolist() == [1, 2, 3]

    # float source into an int tensor is checked element by element
    with pytest.raises(TypeConversionError):
        Tensor("int32", [2], torch.tensor([1.0, 2.5]))


def test_source_tensor_is_copied():
    source = torch.zeros(3)
    t = Tensor("float32", [3], source)
    source[0] = 42.0
    assert t.tolist() == [0.0, 0.0, 0.0]


def test_is_64bit_derived_and_read_only():
    assert Tensor("float64", [1], [1.0]).is_64bit
    assert Tensor("int64", [1], [1]).is_64bit
    assert not Tensor("float32", [1], [1.0]).is_64bit
    assert not Tensor("string", [1], ["a"]).is_64bit

    t = Tensor("int32", [1], [1])
    with pytest.raises(AttributeError):
        t.is_64bit = True


def test_from_ort_renames_fields():
    ort_tensor = SimpleNamespace(type="float32", dims=[1, 2], data=[0.5, 1.5])
    t = Tensor.from_ort(ort_tensor)
    assert t.type is ElementType.FLOAT32
    assert t.shape == (1, 2)
    assert t.tolist() == [0.5, 1.5]
    assert t.name is None

    t = Tensor.from_ort({"type": "int32", "dims": [2], "data": [1, 2]})
    assert t.tolist() == [1, 2]


def test_with_name_does_not_mutate():
    t = generate_fake_float_tensor([2, 2], name="orig")
    renamed = t.with_name("x")
    assert renamed.name == "x"
    assert t.name == "orig"
    assert renamed.value is t.value


# ============================================================================
# NARROWING
# ============================================================================


def test_narrow_types_return_self():
    for t in [
        Tensor("float32", [1], [1.0]),
        Tensor("int32", [1], [1]),
        Tensor("string", [1], ["a"]),
        Tensor("bool", [1], [True]),
    ]:
        assert t.as_32bit() is t


def test_float64_rounds_to_nearest_float32():
    t = Tensor("float64", [1], [0.1])
    narrowed = t.as_32bit()

    assert narrowed.type is ElementType.FLOAT32
    assert narrowed.value.numpy().tobytes() == float32_bits([0.1])
    # rounding, not truncation toward zero: float32(0.1) is slightly above 0.1
    assert narrowed.tolist()[0] > 0.1


def test_int64_narrowing_at_safe_bound():
    ok = Tensor("int64", [2], [MAX_SAFE_INTEGER, -MAX_SAFE_INTEGER])
    narrowed = ok.as_32bit()
    assert narrowed.type is ElementType.INT32
    assert narrowed.numel == 2


def test_int64_narrowing_small_values_exact():
    t = Tensor("int64", [3], [0, -7, 2**31 - 1])
    assert t.as_32bit().tolist() == [0, -7, 2**31 - 1]


@pytest.mark.parametrize("n", [9007199254740993, -9007199254740993])
def test_int64_narrowing_beyond_safe_bound(n):
    t = Tensor("int64", [2], [1, n])

    with pytest.raises(RangeNarrowingError, match=f"element {n} is too big"):
        t.as_32bit()
    with pytest.raises(RangeNarrowingError):
        t.to_json(False)


def test_narrowing_keeps_shape_and_name():
    t = Tensor("float64", [1, 3], [1.0, 2.0, 3.0], name="w")
    narrowed = t.as_32bit()
    assert narrowed.shape == (1, 3)
    assert narrowed.name == "w"


def test_huge_int_in_float_tensor_rejected():
    """JSON integer literals too large for a double are a conversion error."""
    with pytest.raises(TypeConversionError, match="out of range for float64"):
        Tensor.from_json({"type": "float64", "shape": [1], "value": [10**400]})
    with pytest.raises(TypeConversionError, match="out of range for float32"):
        Tensor("float32", [1], [-(10**400)])


def test_non_native_byte_order_numpy_input():
    t = Tensor("float64", [2], np.array([1.0, 2.0], dtype=">f8"))
    assert t.tolist() == [1.0, 2.0]

    t = Tensor("int32", [2], np.array([7, -7], dtype=">i4"))
    assert t.tolist() == [7, -7]


def test_bool_nan_is_false():
    nan = float("nan")
    assert Tensor("bool", [3], [nan, 0.5, 0.0]).tolist() == [False, True, False]
    from_torch = Tensor("bool", [3], torch.tensor([nan, 2.0, 0.0]))
    assert from_torch.tolist() == [False, True, False]
