"""
Arrow Column Value Decoding

Turns a single cell of an Arrow column into a native Python value and
classifies the column through its `iox::column::type` metadata.

Temporal types are decoded from their raw integer value so nanosecond
columns never depend on pandas:

    timestamp -> datetime (UTC, truncated to microseconds; timestamp_nanos()
                 returns the exact epoch nanoseconds)
    duration  -> timedelta
    time32/64 -> datetime.time
"""

import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

import pyarrow as pa

from ..exceptions import UnsupportedTypeError

logger = logging.getLogger(__name__)

COLUMN_TYPE_METADATA_KEY = b'iox::column::type'

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MIDNIGHT = datetime(1970, 1, 1)

_UNIT_NANOS = {'s': 1_000_000_000, 'ms': 1_000_000, 'us': 1_000, 'ns': 1}


class ColumnType(str, Enum):
    """Role of a result column in the point it belongs to"""
    UNKNOWN = "unknown"
    TIMESTAMP = "timestamp"
    FIELD = "field"
    TAG = "tag"


def _is_text(data_type: pa.DataType) -> bool:
    return pa.types.is_string(data_type) or pa.types.is_large_string(data_type)


# metadata value -> (type check on the column's value type, role)
_METADATA_TYPES: Dict[bytes, Tuple[Callable[[pa.DataType], bool], ColumnType]] = {
    b'iox::column_type::field::integer': (pa.types.is_int64, ColumnType.FIELD),
    b'iox::column_type::field::uinteger': (pa.types.is_uint64, ColumnType.FIELD),
    b'iox::column_type::field::float': (pa.types.is_float64, ColumnType.FIELD),
    b'iox::column_type::field::string': (_is_text, ColumnType.FIELD),
    b'iox::column_type::field::boolean': (pa.types.is_boolean, ColumnType.FIELD),
    b'iox::column_type::tag': (_is_text, ColumnType.TAG),
    b'iox::column_type::timestamp': (pa.types.is_timestamp, ColumnType.TIMESTAMP),
}

_SUPPORTED_TYPES = (
    pa.types.is_null,
    pa.types.is_boolean,
    pa.types.is_integer,
    pa.types.is_floating,
    pa.types.is_string,
    pa.types.is_large_string,
    pa.types.is_binary,
    pa.types.is_large_binary,
    pa.types.is_fixed_size_binary,
    pa.types.is_date,
    pa.types.is_timestamp,
    pa.types.is_time,
    pa.types.is_interval,
    pa.types.is_decimal,
    pa.types.is_duration,
)


def value_type(data_type: pa.DataType) -> pa.DataType:
    """Type of the decoded values; the dictionary value type for dictionary columns"""
    if pa.types.is_dictionary(data_type):
        return data_type.value_type
    return data_type


def is_supported_type(data_type: pa.DataType) -> bool:
    data_type = value_type(data_type)
    return any(check(data_type) for check in _SUPPORTED_TYPES)


def column_type(field: pa.Field) -> ColumnType:
    """
    Classify a column from its metadata.

    A classification only applies when the column's value type matches it,
    e.g. `field::integer` on a string column stays UNKNOWN.
    """
    metadata = field.metadata or {}
    declared = metadata.get(COLUMN_TYPE_METADATA_KEY)
    if declared is None:
        return ColumnType.UNKNOWN

    entry = _METADATA_TYPES.get(declared)
    if entry is None:
        logger.debug(f"Unknown column type metadata '{declared!r}' on column '{field.name}'")
        return ColumnType.UNKNOWN

    check, role = entry
    if check(value_type(field.type)):
        return role
    return ColumnType.UNKNOWN


def _nanos(scalar: pa.Scalar, data_type: pa.DataType) -> int:
    return scalar.value * _UNIT_NANOS[data_type.unit]


def decode_scalar(scalar: pa.Scalar) -> Any:
    """Decode one Arrow scalar; None for nulls"""
    if not scalar.is_valid:
        return None
    data_type = scalar.type
    if pa.types.is_dictionary(data_type):
        scalar = scalar.value
        data_type = scalar.type
        if not scalar.is_valid:
            return None

    if pa.types.is_timestamp(data_type):
        return _EPOCH + timedelta(microseconds=_nanos(scalar, data_type) // 1000)
    if pa.types.is_duration(data_type):
        return timedelta(microseconds=_nanos(scalar, data_type) // 1000)
    if pa.types.is_time(data_type):
        return (_MIDNIGHT + timedelta(microseconds=_nanos(scalar, data_type) // 1000)).time()
    if pa.types.is_float16(data_type):
        return float(scalar.as_py())
    return scalar.as_py()


def get_arrow_value(array: Any, field: pa.Field, row: int) -> Tuple[Any, ColumnType]:
    """
    Decode one cell and classify its column.

    Args:
        array: Arrow array (or chunked array) holding the column
        field: Schema field of the column, carrying its metadata
        row: Row index within the array

    Returns:
        (value, column type); value is None for nulls

    Raises:
        UnsupportedTypeError: column type has no native decoding (lists,
            structs, maps, ...)
    """
    if not is_supported_type(array.type):
        raise UnsupportedTypeError(str(array.type))

    value = decode_scalar(array[row])
    if value is None:
        return None, ColumnType.UNKNOWN
    return value, column_type(field)


def timestamp_nanos(array: Any, row: int) -> Optional[int]:
    """Raw epoch nanoseconds of a timestamp cell; None for nulls and other types"""
    scalar = array[row]
    if not scalar.is_valid:
        return None
    if pa.types.is_dictionary(scalar.type):
        scalar = scalar.value
        if not scalar.is_valid:
            return None
    if not pa.types.is_timestamp(scalar.type):
        return None
    return _nanos(scalar, scalar.type)
