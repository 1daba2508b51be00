"""
Tests for the Client facade
"""

import asyncio
from dataclasses import dataclass

import pyarrow as pa
import pytest

from lineflux import Client, ClientConfig, Point, Precision, WriteOptions, WriteParams
from lineflux.encoder import lp
from lineflux.exceptions import EncodingError, LinefluxError, ServerError
from lineflux.query import PointValues


class FakeTransport:
    """Transport recording every send"""

    def __init__(self, error=None):
        self.sent = []
        self.error = error
        self.closed = False

    async def send(self, database, data, precision=None):
        self.sent.append((database, data, precision))
        if self.error is not None:
            raise self.error

    async def close(self):
        self.closed = True


def make_client(transport=None, query_fn=None, **options):
    config = ClientConfig(
        host="http://localhost:8181",
        database="metrics",
        write_options=WriteOptions(**options),
    )
    return Client(config, transport=transport or FakeTransport(), query_fn=query_fn)


@dataclass
class AirSensor:
    measurement: str = lp("measurement")
    sensor: str = lp("tag")
    temperature: float = lp("field")


def test_write_raw_line_protocol():
    transport = FakeTransport()
    client = make_client(transport)

    asyncio.run(client.write("stat,unit=temperature avg=23.2\n"))
    asyncio.run(client.write(b"stat avg=1", database="other"))

    assert transport.sent == [
        ("metrics", b"stat,unit=temperature avg=23.2\n", Precision.NANOSECOND),
        ("other", b"stat avg=1", Precision.NANOSECOND),
    ]


def test_write_points_in_one_request():
    transport = FakeTransport()
    client = make_client(transport, precision=Precision.SECOND, default_tags={"rack": "r1"})

    asyncio.run(client.write_points(
        Point("stat").add_tag("unit", "temperature").add_field("avg", 23.2).set_timestamp(5_000_000_000),
        Point("stat").add_tag("rack", "r2").add_field("max", 45),
    ))

    assert transport.sent == [(
        "metrics",
        b"stat,rack=r1,unit=temperature avg=23.2 5\nstat,rack=r2 max=45i\n",
        Precision.SECOND,
    )]


def test_write_data_records():
    transport = FakeTransport()
    client = make_client(transport)

    asyncio.run(client.write_data(AirSensor("air", "SHT31", 23.5)))

    assert transport.sent[0][1] == b"air,sensor=SHT31 temperature=23.5\n"


def test_encoding_error_sends_nothing():
    transport = FakeTransport()
    client = make_client(transport)

    with pytest.raises(EncodingError):
        asyncio.run(client.write_points(Point("ok").add_field("v", 1), Point("empty")))
    assert transport.sent == []


def test_empty_payload_not_sent():
    transport = FakeTransport()
    client = make_client(transport)

    asyncio.run(client.write(""))
    asyncio.run(client.write_points())

    assert transport.sent == []


def test_write_errors_propagate():
    error = ServerError("database not found", 404)
    client = make_client(FakeTransport(error=error))

    with pytest.raises(ServerError) as exc_info:
        asyncio.run(client.write("m v=1"))
    assert exc_info.value is error


def test_missing_database():
    client = Client(ClientConfig(), transport=FakeTransport())
    with pytest.raises(LinefluxError, match="database not specified"):
        asyncio.run(client.write("m v=1"))


def test_points_writer_uses_transport_and_closes_with_client():
    transport = FakeTransport()
    client = make_client(transport)

    async def run():
        writer = client.points_writer(params=WriteParams(precision=Precision.MILLISECOND))
        await writer.write_points(Point("m").add_field("v", 1).set_timestamp(2_000_000))
        await client.close()
        assert not writer.get_stats()["running"]

    asyncio.run(run())
    assert transport.sent == [("metrics", b"m v=1i 2\n", Precision.MILLISECOND)]
    # supplied transports are owned by the caller
    assert not transport.closed


def test_query_passes_arguments_to_query_fn():
    batch = pa.RecordBatch.from_pydict({"measurement": ["stat"], "avg": [23.2]})
    calls = []

    def query_fn(query, database, **kwargs):
        calls.append((query, database, kwargs))
        return [batch]

    client = make_client(query_fn=query_fn)
    iterator = client.query("SELECT * FROM stat", language="sql")

    assert iterator.next()
    assert iterator.value() == {"measurement": "stat", "avg": 23.2}
    assert calls == [("SELECT * FROM stat", "metrics", {"language": "sql"})]


def test_query_points():
    batch = pa.RecordBatch.from_pydict({"measurement": ["stat"], "avg": [23.2]})
    client = make_client(query_fn=lambda query, database: [batch])

    values = list(client.query_points("SELECT * FROM stat"))
    assert len(values) == 1
    assert isinstance(values[0], PointValues)
    assert values[0].as_point().marshal_binary() == b"stat avg=23.2\n"


def test_query_without_query_fn():
    client = make_client()
    with pytest.raises(LinefluxError, match="no query function configured"):
        client.query("SELECT 1")


def test_context_manager_closes_owned_transport():
    async def run():
        async with Client(ClientConfig(database="metrics")) as client:
            transport = client.transport
            await transport._get_session()
        return transport

    transport = asyncio.run(run())
    assert transport._session is None
