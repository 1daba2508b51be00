"""
Tests for the line protocol parser
"""

import pytest

from lineflux.exceptions import EncodingError
from lineflux.line_protocol import LineProtocolParser
from lineflux.point import Point, Precision
from lineflux.value import Value, ValueKind


def test_parse_simple_line():
    point = LineProtocolParser.parse_line("cpu,host=server01,region=us-west usage_idle=90.5,usage_user=5i 1609459200000000000")
    assert point.measurement == "cpu"
    assert point.get_tag("host") == "server01"
    assert point.get_tag("region") == "us-west"
    assert point.get_field_value("usage_idle") == Value.from_float(90.5)
    assert point.get_field_value("usage_user") == Value.from_int(5)
    assert point.timestamp == 1609459200000000000


def test_field_types():
    point = LineProtocolParser.parse_line('m a=1u,b=t,c=FALSE,d="x y",e=-1.5e3')
    assert point.get_field_value("a").kind is ValueKind.UINTEGER
    assert point.get_field("b") is True
    assert point.get_field("c") is False
    assert point.get_field("d") == "x y"
    assert point.get_field("e") == -1500.0
    assert point.timestamp is None


def test_escaped_characters():
    line = 'cpu\\ load,host\\ name=a\\ b\\,c f\\=1="say \\"hi\\", ok"'
    point = LineProtocolParser.parse_line(line)
    assert point.measurement == "cpu load"
    assert point.get_tag("host name") == "a b,c"
    assert point.get_field("f=1") == 'say "hi", ok'


def test_round_trip_through_encoder():
    original = (
        Point("weather station")
        .add_tag("location", "us,midwest")
        .add_field("temperature", 82.5)
        .add_field("count", 3)
        .add_field("note", 'a "quoted" value')
        .set_timestamp(1465839830100400200)
    )
    parsed = LineProtocolParser.parse_line(original.marshal_binary())
    assert parsed == original


def test_precision_scales_timestamp():
    point = LineProtocolParser.parse_line("m v=1 1609459200", Precision.SECOND)
    assert point.timestamp == 1609459200 * 1_000_000_000


def test_blank_and_comment_lines():
    assert LineProtocolParser.parse_line("") is None
    assert LineProtocolParser.parse_line("# comment") is None


@pytest.mark.parametrize("line", [
    "measurement_only",
    "m v=",
    "m v=1 notatime",
    'm v="unterminated',
    "m v=nan",
])
def test_malformed_lines(line):
    with pytest.raises(EncodingError):
        LineProtocolParser.parse_line(line)


def test_parse_batch_skips_invalid():
    points = LineProtocolParser.parse_batch(b"a v=1\nbroken\n\nb v=2i\n")
    assert [p.measurement for p in points] == ["a", "b"]


def test_quotes_in_tags_and_measurement():
    original = (
        Point('say"hi')
        .add_tag("t", 'a"b')
        .add_tag("quote", '"')
        .add_field("f", 1)
        .add_field("s", 'x "y" z')
    )
    encoded = original.marshal_binary()
    assert encoded == b'say"hi,quote=",t=a"b f=1i,s="x \\"y\\" z"\n'

    parsed = LineProtocolParser.parse_line(encoded)
    assert parsed == original
    assert parsed.get_tag("t") == 'a"b'


def test_invalid_utf8_line():
    with pytest.raises(EncodingError, match="invalid utf-8"):
        LineProtocolParser.parse_line(b"m,t=\xff f=2i")


def test_parse_batch_skips_invalid_utf8_line():
    points = LineProtocolParser.parse_batch(b"m f=1i\nm,t=\xff f=2i\nn f=3i\n")
    assert [(p.measurement, p.get_field("f")) for p in points] == [("m", 1), ("n", 3)]
