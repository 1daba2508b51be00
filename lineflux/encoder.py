"""
Record Encoder

Turns application records into line protocol without hand-building Points.
A record is either:

- a Point,
- any object implementing LineProtocolEncodable (a to_point() method), or
- a dataclass whose fields are annotated with lp():

    @dataclass
    class AirSensor:
        measurement: str = lp("measurement")
        sensor: str = lp("tag")
        device: str = lp("tag", "device_id")
        temperature: float = lp("field")
        humidity: int = lp("field")
        time: datetime = lp("timestamp")
        description: str = lp("-", default="")

The annotation layout is resolved once per class and cached.
"""

import dataclasses
import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Type, runtime_checkable

from .exceptions import EncodingError
from .point import Point, Precision

logger = logging.getLogger(__name__)

LP_METADATA_KEY = 'lp'

_KINDS = ('measurement', 'tag', 'field', 'timestamp')


@runtime_checkable
class LineProtocolEncodable(Protocol):
    """Records that know how to describe themselves as a Point"""

    def to_point(self) -> Point:
        ...


def lp(kind: str, name: Optional[str] = None, **kwargs) -> Any:
    """
    Declare a dataclass field's role in line protocol.

    Args:
        kind: measurement, tag, field, timestamp, or "-" to skip
        name: Tag/field name written to line protocol (defaults to the attribute name)
        **kwargs: Passed through to dataclasses.field (default, default_factory, ...)
    """
    annotation = kind if name is None else f"{kind},{name}"
    metadata = dict(kwargs.pop('metadata', None) or {})
    metadata[LP_METADATA_KEY] = annotation
    return dataclasses.field(metadata=metadata, **kwargs)


# (attribute, kind, line protocol name) per annotated field
_Layout = List[Tuple[str, str, str]]
_layout_cache: Dict[Type, _Layout] = {}


def _resolve_layout(cls: Type) -> _Layout:
    layout = _layout_cache.get(cls)
    if layout is not None:
        return layout

    layout = []
    has_measurement = False
    for f in dataclasses.fields(cls):
        annotation = f.metadata.get(LP_METADATA_KEY)
        if annotation is None or annotation == '-':
            continue
        parts = annotation.split(',')
        if len(parts) > 2:
            raise EncodingError("multiple tag attributes are not supported")
        kind = parts[0]
        name = parts[1] if len(parts) == 2 else f.name
        if kind not in _KINDS:
            raise EncodingError(f"invalid tag {kind}")
        if kind == 'measurement':
            if has_measurement:
                raise EncodingError("multiple measurement fields")
            has_measurement = True
        layout.append((f.name, kind, name))

    _layout_cache[cls] = layout
    return layout


def to_point(record: Any) -> Point:
    """
    Build a Point from a record.

    Raises:
        EncodingError: the record is not encodable or its annotations are invalid
    """
    if isinstance(record, Point):
        return record
    if isinstance(record, LineProtocolEncodable):
        return record.to_point()
    if not dataclasses.is_dataclass(record) or isinstance(record, type):
        raise EncodingError(f"cannot encode {type(record).__name__} as a point")

    point = Point('')
    for attribute, kind, name in _resolve_layout(type(record)):
        value = getattr(record, attribute)
        if value is None:
            # unset attributes are left out, never written as "None"
            continue
        if kind == 'measurement':
            point.set_measurement(str(value))
        elif kind == 'tag':
            point.add_tag(name, str(value))
        elif kind == 'field':
            point.add_field(name, value)
        elif kind == 'timestamp':
            if not isinstance(value, datetime):
                raise EncodingError(f"cannot use field '{attribute}' as a timestamp")
            point.set_timestamp(value)

    if not point.measurement:
        raise EncodingError("no field with tag 'measurement'")
    if not point.has_fields():
        raise EncodingError("no field with tag 'field'")
    return point


def encode(
    record: Any,
    precision: Precision = Precision.NANOSECOND,
    default_tags: Optional[Mapping[str, str]] = None
) -> bytes:
    """
    Encode a record to a newline-terminated line protocol record.

    Args:
        record: Point, LineProtocolEncodable, or lp-annotated dataclass
        precision: Timestamp unit
        default_tags: Tags added unless the record sets them itself

    Returns:
        Line protocol bytes
    """
    return to_point(record).marshal_binary_with_default_tags(precision, default_tags)
