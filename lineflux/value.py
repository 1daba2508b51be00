"""
Line Protocol Field Values

Closed set of scalar types a line protocol field can carry:

    float    -> 23.5          (IEEE-754 64-bit, finite only)
    integer  -> 45i           (signed 64-bit)
    uinteger -> 45u           (unsigned 64-bit)
    string   -> "text"        (valid UTF-8)
    boolean  -> true / false
    bytes    -> "text"        (UTF-8 payload written as a string)
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Union

import numpy as np

from .exceptions import InvalidValueError

logger = logging.getLogger(__name__)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1


class ValueKind(str, Enum):
    FLOAT = "float"
    INTEGER = "integer"
    UINTEGER = "uinteger"
    STRING = "string"
    BOOLEAN = "boolean"
    BYTES = "bytes"


NativeValue = Union[float, int, str, bool, bytes]


def _check_utf8(text: str) -> str:
    try:
        text.encode('utf-8')
    except UnicodeEncodeError as e:
        raise InvalidValueError(f"invalid utf-8 string value: {text!r}") from e
    return text


def format_datetime(value: datetime) -> str:
    """RFC 3339 text of a datetime; naive datetimes are taken as UTC"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def format_float(value: float) -> str:
    """Shortest round-trip text of a float, without a trailing '.0'"""
    text = repr(value)
    if text.endswith('.0'):
        text = text[:-2]
    return text


class Value:
    """
    Immutable tagged union of line protocol scalars.

    Build values through the from_* constructors or new_value(); they
    validate the payload so an existing Value is always encodable.
    """

    __slots__ = ('_kind', '_value')

    def __init__(self, kind: ValueKind, value: NativeValue):
        self._kind = kind
        self._value = value

    @classmethod
    def from_float(cls, value: float) -> "Value":
        value = float(value)
        if not math.isfinite(value):
            raise InvalidValueError(f"invalid float value: {value!r}")
        return cls(ValueKind.FLOAT, value)

    @classmethod
    def from_int(cls, value: int) -> "Value":
        value = int(value)
        if not INT64_MIN <= value <= INT64_MAX:
            raise InvalidValueError(f"integer value out of int64 range: {value}")
        return cls(ValueKind.INTEGER, value)

    @classmethod
    def from_uint(cls, value: int) -> "Value":
        value = int(value)
        if not 0 <= value <= UINT64_MAX:
            raise InvalidValueError(f"unsigned value out of uint64 range: {value}")
        return cls(ValueKind.UINTEGER, value)

    @classmethod
    def from_string(cls, value: str) -> "Value":
        return cls(ValueKind.STRING, _check_utf8(str(value)))

    @classmethod
    def from_bool(cls, value: bool) -> "Value":
        return cls(ValueKind.BOOLEAN, bool(value))

    @classmethod
    def from_bytes(cls, value: Union[bytes, bytearray, memoryview]) -> "Value":
        payload = bytes(value)
        try:
            payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise InvalidValueError(f"invalid utf-8 bytes value: {payload!r}") from e
        return cls(ValueKind.BYTES, payload)

    @classmethod
    def from_datetime(cls, value: datetime) -> "Value":
        return cls.from_string(format_datetime(value))

    @classmethod
    def from_timedelta(cls, value: timedelta) -> "Value":
        return cls.from_string(str(value))

    @property
    def kind(self) -> ValueKind:
        return self._kind

    def native(self) -> NativeValue:
        return self._value

    def encode(self) -> str:
        """Field value text as written in line protocol"""
        kind = self._kind
        if kind is ValueKind.FLOAT:
            return format_float(self._value)
        if kind is ValueKind.INTEGER:
            return f"{self._value}i"
        if kind is ValueKind.UINTEGER:
            return f"{self._value}u"
        if kind is ValueKind.BOOLEAN:
            return 'true' if self._value else 'false'
        text = self._value.decode('utf-8') if kind is ValueKind.BYTES else self._value
        return '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Value):
            return NotImplemented
        return self._kind is other._kind and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._kind, self._value))

    def __repr__(self) -> str:
        return f"Value({self._kind.value}, {self._value!r})"


def new_value(value: Any) -> Value:
    """
    Create a Value from a native Python scalar.

    Args:
        value: float, int, str, bool, bytes, or an existing Value

    Returns:
        Value of the matching kind

    Raises:
        InvalidValueError: non-finite float, invalid UTF-8, integer out of
            64-bit range, or a type that is not a line protocol scalar
    """
    if isinstance(value, Value):
        return value
    if isinstance(value, (bool, np.bool_)):
        return Value.from_bool(value)
    if isinstance(value, np.unsignedinteger):
        return Value.from_uint(int(value))
    if isinstance(value, (int, np.integer)):
        value = int(value)
        if value > INT64_MAX:
            return Value.from_uint(value)
        return Value.from_int(value)
    if isinstance(value, (float, np.floating)):
        return Value.from_float(float(value))
    if isinstance(value, str):
        return Value.from_string(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Value.from_bytes(value)
    raise InvalidValueError(f"unsupported value type: {type(value).__name__}")


def convert_field(value: Any) -> Value:
    """
    Convert an arbitrary field value to a line protocol Value.

    bytes become strings, datetimes and timedeltas their canonical string
    form. Unknown types fall back to str(value); that branch is lossy and
    only meant as a safety net.
    """
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return Value.from_string(bytes(value).decode('utf-8'))
        except UnicodeDecodeError as e:
            raise InvalidValueError(f"invalid utf-8 bytes value: {bytes(value)!r}") from e
    if isinstance(value, datetime):
        return Value.from_datetime(value)
    if isinstance(value, timedelta):
        return Value.from_timedelta(value)
    if isinstance(value, (Value, bool, int, float, str, np.bool_, np.integer, np.floating)):
        return new_value(value)

    logger.debug(f"Converting unsupported field type {type(value).__name__} to string")
    return Value.from_string(str(value))
