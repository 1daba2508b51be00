"""
Tests for line protocol field values
"""

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from lineflux.exceptions import InvalidValueError
from lineflux.value import Value, ValueKind, convert_field, new_value


def test_new_value_kinds():
    """Native scalars map to the matching kind"""
    assert new_value(23.5).kind is ValueKind.FLOAT
    assert new_value(45).kind is ValueKind.INTEGER
    assert new_value("ok").kind is ValueKind.STRING
    assert new_value(True).kind is ValueKind.BOOLEAN
    assert new_value(b"raw").kind is ValueKind.BYTES


def test_bool_is_not_integer():
    value = new_value(False)
    assert value.kind is ValueKind.BOOLEAN
    assert value.encode() == "false"


def test_numpy_scalars():
    assert new_value(np.uint32(7)).kind is ValueKind.UINTEGER
    assert new_value(np.int16(-3)).kind is ValueKind.INTEGER
    assert new_value(np.float32(1.5)).kind is ValueKind.FLOAT
    assert new_value(np.bool_(True)).kind is ValueKind.BOOLEAN


def test_int_above_int64_becomes_unsigned():
    value = new_value(2 ** 63)
    assert value.kind is ValueKind.UINTEGER
    assert value.encode() == "9223372036854775808u"


def test_out_of_range_integers():
    with pytest.raises(InvalidValueError):
        new_value(2 ** 64)
    with pytest.raises(InvalidValueError):
        Value.from_uint(-1)
    with pytest.raises(InvalidValueError):
        Value.from_int(-(2 ** 63) - 1)


def test_non_finite_floats_rejected():
    for bad in (math.nan, math.inf, -math.inf):
        with pytest.raises(InvalidValueError):
            new_value(bad)


def test_invalid_utf8_rejected():
    with pytest.raises(InvalidValueError):
        Value.from_bytes(b"\xff\xfe")
    with pytest.raises(InvalidValueError):
        Value.from_string("\ud800")


def test_unsupported_type_rejected():
    with pytest.raises(InvalidValueError):
        new_value(object())


def test_encode_suffixes():
    """Integer, unsigned, float, boolean and string encodings"""
    assert Value.from_int(-45).encode() == "-45i"
    assert Value.from_uint(45).encode() == "45u"
    assert Value.from_float(23.2).encode() == "23.2"
    assert Value.from_float(45.0).encode() == "45"
    assert Value.from_float(1e21).encode() == "1e+21"
    assert Value.from_bool(True).encode() == "true"
    assert Value.from_string('say "hi" \\o/').encode() == '"say \\"hi\\" \\\\o/"'


def test_value_equality():
    assert Value.from_int(1) == Value.from_int(1)
    assert Value.from_int(1) != Value.from_uint(1)
    assert Value.from_float(1.0) != Value.from_int(1)
    assert len({Value.from_int(1), Value.from_int(1)}) == 1


def test_convert_field_special_types():
    """datetimes, timedeltas and bytes become strings"""
    dt = datetime(2022, 12, 13, 14, 15, 16, tzinfo=timezone.utc)
    assert convert_field(dt) == Value.from_string("2022-12-13T14:15:16Z")
    assert convert_field(timedelta(hours=12, minutes=11, seconds=10)) == Value.from_string("12:11:10")
    assert convert_field(b"abc") == Value.from_string("abc")


def test_convert_field_fallback_stringifies():
    class Custom:
        def __str__(self):
            return "custom"

    assert convert_field(Custom()) == Value.from_string("custom")


def test_native_round_trip():
    assert new_value(23.5).native() == 23.5
    assert new_value("x").native() == "x"
    assert Value.from_uint(8).native() == 8
