"""
Line Protocol Parser

Parses line protocol text back into Point objects. Useful for inspecting
what a batcher emitted and for re-routing raw line protocol as points.

Line Protocol Format:
    measurement[,tag_key=tag_value...] field_key=field_value[,field_key=field_value...] [timestamp]
"""

import logging
from typing import List, Optional, Tuple, Union

from .exceptions import EncodingError
from .point import Point, Precision
from .value import Value

logger = logging.getLogger(__name__)

_UNESCAPES = {',': ',', ' ': ' ', '=': '=', '\\': '\\', 'n': '\n', '"': '"'}


class LineProtocolParser:
    """Parser for line protocol records"""

    @staticmethod
    def parse_line(line: Union[str, bytes], precision: Precision = Precision.NANOSECOND) -> Optional[Point]:
        """
        Parse a single line protocol record

        Args:
            line: Line protocol record
            precision: Unit of the timestamp in the record

        Returns:
            Point with an epoch-nanosecond int timestamp (or None when the
            record has none). Returns None for blank lines and comments.

        Raises:
            EncodingError: malformed record
        """
        if isinstance(line, bytes):
            try:
                line = line.decode('utf-8')
            except UnicodeDecodeError as e:
                raise EncodingError(f"invalid utf-8 in line protocol: {line!r}") from e
        line = line.strip()

        if not line or line.startswith('#'):
            return None

        # Quotes only delimit string field values; tags and measurements keep them verbatim
        head, _, rest = LineProtocolParser._partition_unescaped(line, ' ')
        parts = [head] + LineProtocolParser._split(rest, ' ')
        if len(parts) < 2 or len(parts) > 3:
            raise EncodingError(f"invalid line protocol: {line}")

        measurement, tags = LineProtocolParser._parse_measurement_tags(parts[0])
        point = Point(measurement, tags=tags)

        for key, value in LineProtocolParser._parse_fields(parts[1]):
            point.add_field_from_value(key, value)
        if not point.has_fields():
            raise EncodingError(f"no valid fields in line: {line}")

        if len(parts) == 3:
            try:
                point.set_timestamp(int(parts[2]) * Precision.parse(precision).nanoseconds)
            except ValueError as e:
                raise EncodingError(f"invalid timestamp: {parts[2]}") from e

        return point

    @classmethod
    def parse_batch(cls, lines: Union[str, bytes], precision: Precision = Precision.NANOSECOND) -> List[Point]:
        """
        Parse multiple newline-separated records, skipping invalid ones

        Args:
            lines: Multi-line line protocol

        Returns:
            List of parsed points
        """
        if isinstance(lines, bytes):
            # Decoded per line so one bad line does not drop the batch
            records = lines.split(b'\n')
        else:
            records = lines.split('\n')

        points = []
        for line in records:
            try:
                point = cls.parse_line(line, precision)
            except EncodingError as e:
                logger.warning(f"Skipping invalid line protocol record: {e}")
                continue
            if point is not None:
                points.append(point)

        return points

    @staticmethod
    def _partition_unescaped(text: str, separator: str) -> Tuple[str, str, str]:
        """Partition on the first unescaped separator, ignoring quotes"""
        i = 0
        while i < len(text):
            if text[i] == '\\':
                i += 2
                continue
            if text[i] == separator:
                return text[:i], separator, text[i + 1:].lstrip(separator)
            i += 1
        return text, '', ''

    @staticmethod
    def _split(text: str, separator: str, quotes: bool = True) -> List[str]:
        """Split on unescaped separators, outside quoted strings when quotes is set"""
        parts = []
        current = []
        i = 0
        in_quotes = False

        while i < len(text):
            char = text[i]
            if char == '\\' and i + 1 < len(text):
                current.append(text[i:i + 2])
                i += 2
                continue
            if char == '"' and quotes:
                in_quotes = not in_quotes
            elif char == separator and not in_quotes:
                if current:
                    parts.append(''.join(current))
                    current = []
                i += 1
                continue
            current.append(char)
            i += 1

        if current:
            parts.append(''.join(current))

        return parts

    @staticmethod
    def _split_key_value(text: str) -> Tuple[str, str]:
        """Split on the first unescaped '='"""
        i = 0
        while i < len(text):
            if text[i] == '\\':
                i += 2
                continue
            if text[i] == '=':
                return text[:i], text[i + 1:]
            i += 1
        raise EncodingError(f"missing '=' in {text!r}")

    @staticmethod
    def _parse_measurement_tags(part: str) -> Tuple[str, dict]:
        components = LineProtocolParser._split(part, ',', quotes=False)

        measurement = LineProtocolParser._unescape(components[0])
        tags = {}

        for component in components[1:]:
            key, value = LineProtocolParser._split_key_value(component)
            tags[LineProtocolParser._unescape(key)] = LineProtocolParser._unescape(value)

        return measurement, tags

    @staticmethod
    def _parse_fields(part: str) -> List[Tuple[str, Value]]:
        fields = []
        for field_part in LineProtocolParser._split(part, ','):
            key, value = LineProtocolParser._split_key_value(field_part)
            fields.append((LineProtocolParser._unescape(key), LineProtocolParser._parse_field_value(value)))
        return fields

    @staticmethod
    def _parse_field_value(value: str) -> Value:
        """
        Parse a field value from its type indicator

        Type indicators:
            - Integer: ends with 'i' (e.g., 123i)
            - Unsigned: ends with 'u' (e.g., 123u)
            - Float: numeric without suffix (e.g., 123.45, 1e+21)
            - String: wrapped in quotes (e.g., "hello")
            - Boolean: t, T, true, True, TRUE, f, F, false, False, FALSE
        """
        if value in ('t', 'T', 'true', 'True', 'TRUE'):
            return Value.from_bool(True)
        if value in ('f', 'F', 'false', 'False', 'FALSE'):
            return Value.from_bool(False)

        if value.startswith('"'):
            if len(value) < 2 or not value.endswith('"'):
                raise EncodingError(f"malformed quoted string: {value}")
            return Value.from_string(LineProtocolParser._unescape(value[1:-1]))

        try:
            if value.endswith('i'):
                return Value.from_int(int(value[:-1]))
            if value.endswith('u'):
                return Value.from_uint(int(value[:-1]))
            return Value.from_float(float(value))
        except ValueError as e:
            raise EncodingError(f"invalid field value: {value}") from e

    @staticmethod
    def _unescape(s: str) -> str:
        if '\\' not in s:
            return s
        out = []
        i = 0
        while i < len(s):
            if s[i] == '\\' and i + 1 < len(s) and s[i + 1] in _UNESCAPES:
                out.append(_UNESCAPES[s[i + 1]])
                i += 2
            else:
                out.append(s[i])
                i += 1
        return ''.join(out)
