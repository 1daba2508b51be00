"""
Point Values

Decoded query row split into measurement, tags, fields and timestamp,
ready to be turned back into a writable Point.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..exceptions import EncodingError, InvalidValueError
from ..point import Point
from ..value import Value, ValueKind, new_value

logger = logging.getLogger(__name__)


class PointValues:
    """
    Measurement, tags, fields and timestamp of one query row.

    Field values are stored as decoded from Arrow; unsigned integer columns
    are kept as Value so they stay unsigned when written back.
    """

    def __init__(self, measurement: str = ""):
        self.measurement = measurement
        self.tags: Dict[str, str] = {}
        self.fields: Dict[str, Any] = {}
        self.timestamp: Optional[datetime] = None
        # Exact epoch nanoseconds when known; `timestamp` is microsecond precision
        self.timestamp_ns: Optional[int] = None

    def set_measurement(self, measurement: str) -> "PointValues":
        self.measurement = measurement
        return self

    def set_timestamp(self, timestamp: Optional[datetime], nanoseconds: Optional[int] = None) -> "PointValues":
        self.timestamp = timestamp
        self.timestamp_ns = nanoseconds
        return self

    def set_tag(self, name: str, value: str) -> "PointValues":
        self.tags[name] = value
        return self

    def get_tag(self, name: str) -> Optional[str]:
        return self.tags.get(name)

    def remove_tag(self, name: str) -> "PointValues":
        self.tags.pop(name, None)
        return self

    def get_tag_names(self) -> List[str]:
        return list(self.tags)

    def set_field(self, name: str, value: Any) -> "PointValues":
        self.fields[name] = value
        return self

    def get_field(self, name: str) -> Any:
        value = self.fields.get(name)
        if isinstance(value, Value):
            return value.native()
        return value

    def remove_field(self, name: str) -> "PointValues":
        self.fields.pop(name, None)
        return self

    def get_field_names(self) -> List[str]:
        return list(self.fields)

    def has_fields(self) -> bool:
        return bool(self.fields)

    def _typed_field(self, name: str, kind: ValueKind) -> Any:
        raw = self.fields.get(name)
        if raw is None:
            return None
        try:
            value = new_value(raw)
        except InvalidValueError:
            return None
        return value.native() if value.kind is kind else None

    def get_float_field(self, name: str) -> Optional[float]:
        return self._typed_field(name, ValueKind.FLOAT)

    def get_integer_field(self, name: str) -> Optional[int]:
        return self._typed_field(name, ValueKind.INTEGER)

    def get_uinteger_field(self, name: str) -> Optional[int]:
        return self._typed_field(name, ValueKind.UINTEGER)

    def get_string_field(self, name: str) -> Optional[str]:
        return self._typed_field(name, ValueKind.STRING)

    def get_boolean_field(self, name: str) -> Optional[bool]:
        return self._typed_field(name, ValueKind.BOOLEAN)

    def as_point(self, measurement: Optional[str] = None) -> Point:
        """
        Build a Point, optionally under a different measurement.

        Raises:
            EncodingError: neither measurement nor self.measurement is set
            InvalidValueError: a field value cannot be written (NaN, ...)
        """
        name = measurement or self.measurement
        if not name:
            raise EncodingError("missing measurement")

        timestamp = self.timestamp_ns if self.timestamp_ns is not None else self.timestamp
        point = Point(name, tags=self.tags, timestamp=timestamp)
        for key, value in self.fields.items():
            if isinstance(value, Value):
                point.add_field_from_value(key, value)
            else:
                point.add_field(key, value)
        return point

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PointValues):
            return NotImplemented
        return (
            self.measurement == other.measurement
            and self.tags == other.tags
            and self.fields == other.fields
            and self.timestamp == other.timestamp
            and self.timestamp_ns == other.timestamp_ns
        )

    def __repr__(self) -> str:
        return (
            f"PointValues(measurement={self.measurement!r}, tags={self.tags!r}, "
            f"fields={self.fields!r}, timestamp={self.timestamp!r})"
        )
