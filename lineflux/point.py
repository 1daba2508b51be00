"""
Line Protocol Point

In-memory time-series observation and its line protocol encoding.

Line Protocol Format:
    measurement[,tag_key=tag_value...] field_key=field_value[,field_key=field_value...] [timestamp]

Examples:
    stat,unit=temperature avg=23.2,max=45 1609459200000000000
    http_requests,method=GET,status=200 count=1i
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union

from .exceptions import EncodingError
from .value import Value, convert_field

logger = logging.getLogger(__name__)

Timestamp = Union[datetime, int]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# str.translate escapes every character exactly once
_MEASUREMENT_ESCAPES = str.maketrans({',': '\\,', ' ': '\\ '})
_KEY_ESCAPES = str.maketrans({'\\': '\\\\', ',': '\\,', ' ': '\\ ', '=': '\\='})
_TAG_VALUE_ESCAPES = str.maketrans({'\\': '\\\\', ',': '\\,', ' ': '\\ ', '=': '\\=', '\n': '\\n'})


class Precision(str, Enum):
    """Timestamp unit used when writing line protocol"""
    NANOSECOND = "ns"
    MICROSECOND = "us"
    MILLISECOND = "ms"
    SECOND = "s"

    @property
    def nanoseconds(self) -> int:
        return _PRECISION_NANOS[self]

    @classmethod
    def parse(cls, text: Union[str, "Precision"]) -> "Precision":
        if isinstance(text, Precision):
            return text
        key = text.strip().lower()
        if key in _PRECISION_ALIASES:
            return _PRECISION_ALIASES[key]
        raise ValueError(f"unsupported precision: {text!r}")


_PRECISION_NANOS = {
    Precision.NANOSECOND: 1,
    Precision.MICROSECOND: 1_000,
    Precision.MILLISECOND: 1_000_000,
    Precision.SECOND: 1_000_000_000,
}

_PRECISION_ALIASES = {
    'ns': Precision.NANOSECOND, 'nanosecond': Precision.NANOSECOND,
    'us': Precision.MICROSECOND, 'microsecond': Precision.MICROSECOND,
    'ms': Precision.MILLISECOND, 'millisecond': Precision.MILLISECOND,
    's': Precision.SECOND, 'second': Precision.SECOND,
}


class Tag(NamedTuple):
    key: str
    value: str


class Field(NamedTuple):
    key: str
    value: Value


def timestamp_to_ns(timestamp: Timestamp) -> int:
    """Epoch nanoseconds of a datetime (naive taken as UTC) or an int passthrough"""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        delta = timestamp - _EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    if isinstance(timestamp, int) and not isinstance(timestamp, bool):
        return timestamp
    raise EncodingError(f"unsupported timestamp type: {type(timestamp).__name__}")


def escape_measurement(name: str) -> str:
    return name.translate(_MEASUREMENT_ESCAPES)


def escape_key(key: str) -> str:
    return key.translate(_KEY_ESCAPES)


def escape_tag_value(value: str) -> str:
    return value.translate(_TAG_VALUE_ESCAPES)


def _check_key(kind: str, key: str) -> None:
    if not key or '\n' in key:
        raise EncodingError(f"invalid {kind} key {key!r}")


class Point:
    """
    Time series point: measurement, tags, fields and an optional timestamp.

    Builder methods mutate the point in place and return it, so calls chain:

        Point("stat").add_tag("unit", "temperature").add_field("avg", 23.2)

    Tags and fields are upserted by key. They are sorted by key only when
    the point is encoded, so the encoded bytes do not depend on insertion
    order. A Point is not safe for concurrent mutation.
    """

    def __init__(
        self,
        measurement: str,
        tags: Optional[Mapping[str, str]] = None,
        fields: Optional[Mapping[str, Any]] = None,
        timestamp: Optional[Timestamp] = None
    ):
        self.measurement = measurement
        self._tags: Dict[str, str] = {}
        self._fields: Dict[str, Value] = {}
        self.timestamp = timestamp

        for key, value in (tags or {}).items():
            self.add_tag(key, value)
        for key, value in (fields or {}).items():
            self.add_field(key, value)

    @classmethod
    def with_measurement(cls, measurement: str) -> "Point":
        return cls(measurement)

    def set_measurement(self, measurement: str) -> "Point":
        self.measurement = measurement
        return self

    def set_timestamp(self, timestamp: Optional[Timestamp]) -> "Point":
        self.timestamp = timestamp
        return self

    # Tags

    @property
    def tags(self) -> List[Tag]:
        return [Tag(k, v) for k, v in self._tags.items()]

    def add_tag(self, key: str, value: str) -> "Point":
        self._tags[key] = str(value)
        return self

    def get_tag(self, key: str) -> Optional[str]:
        return self._tags.get(key)

    def remove_tag(self, key: str) -> "Point":
        self._tags.pop(key, None)
        return self

    def get_tag_names(self) -> List[str]:
        return list(self._tags)

    def sort_tags(self) -> "Point":
        self._tags = dict(sorted(self._tags.items()))
        return self

    # Fields

    @property
    def fields(self) -> List[Field]:
        return [Field(k, v) for k, v in self._fields.items()]

    def add_field(self, key: str, value: Any) -> "Point":
        """
        Add or replace a field.

        Args:
            key: Field key
            value: Native value, converted with convert_field()

        Raises:
            InvalidValueError: value cannot be represented (NaN, bad UTF-8)
        """
        self._fields[key] = convert_field(value)
        return self

    def add_field_from_value(self, key: str, value: Value) -> "Point":
        self._fields[key] = value
        return self

    def get_field(self, key: str) -> Any:
        value = self._fields.get(key)
        return value.native() if value is not None else None

    def get_field_value(self, key: str) -> Optional[Value]:
        return self._fields.get(key)

    def remove_field(self, key: str) -> "Point":
        self._fields.pop(key, None)
        return self

    def get_field_names(self) -> List[str]:
        return list(self._fields)

    def has_fields(self) -> bool:
        return bool(self._fields)

    def sort_fields(self) -> "Point":
        self._fields = dict(sorted(self._fields.items()))
        return self

    def copy(self) -> "Point":
        clone = Point(self.measurement, timestamp=self.timestamp)
        clone._tags = dict(self._tags)
        clone._fields = dict(self._fields)
        return clone

    # Encoding

    def marshal_binary(self, precision: Precision = Precision.NANOSECOND) -> bytes:
        """
        Encode the point as one newline-terminated line protocol record.

        Args:
            precision: Unit of the written timestamp

        Returns:
            UTF-8 encoded line protocol

        Raises:
            EncodingError: empty measurement, no fields, or an invalid key
        """
        return self._encode(precision, self._tags)

    def marshal_binary_with_default_tags(
        self,
        precision: Precision = Precision.NANOSECOND,
        default_tags: Optional[Mapping[str, str]] = None
    ) -> bytes:
        """Encode with default tags merged in; the point's own tags win on conflict"""
        if not default_tags:
            return self._encode(precision, self._tags)
        merged = dict(default_tags)
        merged.update(self._tags)
        return self._encode(precision, merged)

    def _encode(self, precision: Precision, tags: Mapping[str, str]) -> bytes:
        if not self.measurement:
            raise EncodingError("empty measurement name")
        if '\n' in self.measurement:
            raise EncodingError(f"invalid measurement {self.measurement!r}")
        if not self._fields:
            raise EncodingError(f"no fields in point '{self.measurement}'")

        self.sort_tags()
        self.sort_fields()

        parts = [escape_measurement(self.measurement)]
        for key in sorted(tags):
            value = tags[key]
            _check_key('tag', key)
            if value == '':
                # the server rejects empty tag values
                continue
            parts.append(f",{escape_key(key)}={escape_tag_value(value)}")

        separator = ' '
        for key, value in self._fields.items():
            _check_key('field', key)
            parts.append(f"{separator}{escape_key(key)}={value.encode()}")
            separator = ','

        if self.timestamp is not None:
            precision = Precision.parse(precision)
            parts.append(f" {timestamp_to_ns(self.timestamp) // precision.nanoseconds}")

        parts.append('\n')
        return ''.join(parts).encode('utf-8')

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Point):
            return NotImplemented
        return (
            self.measurement == other.measurement
            and self._tags == other._tags
            and self._fields == other._fields
            and self.timestamp == other.timestamp
        )

    def __repr__(self) -> str:
        fields = {k: v.native() for k, v in self._fields.items()}
        return (
            f"Point(measurement={self.measurement!r}, tags={self._tags!r}, "
            f"fields={fields!r}, timestamp={self.timestamp!r})"
        )
