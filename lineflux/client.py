"""
Lineflux Client

Facade wiring encoding, writing and querying to their transports.

    async with Client(ClientConfig(host="http://localhost:8181", database="metrics")) as client:
        await client.write_points(Point("stat").add_field("avg", 23.2))

        async with client.points_writer() as writer:
            await writer.write_points(*points)

        iterator = client.query("SELECT * FROM stat")
        while iterator.next():
            print(iterator.value())

Synchronous (non-batched) writes raise errors to the caller. The
PointsWriter reports them through WriteParams.write_failed instead.
"""

import functools
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, Union

from .config import ClientConfig, WriteParams
from .encoder import encode
from .exceptions import LinefluxError, TransportError
from .logging_config import log_query_execution, log_write_operation
from .point import Point, Precision
from .query import PointValueIterator, QueryIterator
from .transport import HttpWriteTransport
from .writer import PointsWriter

logger = logging.getLogger(__name__)

# query_fn(query, database, **kwargs) -> RecordBatchReader, Flight reader or iterable of batches
QueryFunction = Callable[..., Any]


class Client:
    """
    Client for a line protocol time-series database.

    Args:
        config: Connection and write settings
        transport: Object with `async send(database, data, precision=None)`;
            defaults to HttpWriteTransport
        query_fn: Opens a record batch stream for a query; required for
            query() and query_points()
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Any] = None,
        query_fn: Optional[QueryFunction] = None
    ):
        self.config = config or ClientConfig()
        self._owns_transport = transport is None
        self.transport = transport or HttpWriteTransport(self.config, headers=self.config.headers)
        self.query_fn = query_fn
        self._writers: List[PointsWriter] = []

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _database(self, database: Optional[str]) -> str:
        database = database or self.config.database
        if not database:
            raise LinefluxError("database not specified")
        return database

    async def write(self, data: Union[bytes, str], database: Optional[str] = None):
        """
        Write line protocol record(s) as-is.

        Raises:
            TransportError: the write failed
        """
        if isinstance(data, str):
            data = data.encode('utf-8')
        await self._send(self._database(database), data)

    async def write_points(self, *points: Point, database: Optional[str] = None):
        """
        Encode and write points in one request.

        Raises:
            EncodingError: a point cannot be encoded; nothing is sent
            TransportError: the write failed
        """
        database = self._database(database)
        options = self.config.write_options
        data = b''.join(
            point.marshal_binary_with_default_tags(options.precision, options.default_tags)
            for point in points
        )
        await self._send(database, data)

    async def write_data(self, *records: Any, database: Optional[str] = None):
        """
        Encode and write annotated records (see lineflux.encoder) in one request.

        Raises:
            EncodingError: a record cannot be encoded; nothing is sent
            TransportError: the write failed
        """
        database = self._database(database)
        options = self.config.write_options
        data = b''.join(encode(record, options.precision, options.default_tags) for record in records)
        await self._send(database, data)

    async def _send(self, database: str, data: bytes):
        if not data:
            return

        line_count = data.count(b'\n') or 1
        start_time = time.perf_counter()
        try:
            await self.transport.send(database, data, precision=self.config.write_options.precision)
        except TransportError as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            log_write_operation(logger, database, line_count, len(data), duration_ms, False, error=str(e))
            raise

        duration_ms = (time.perf_counter() - start_time) * 1000
        log_write_operation(logger, database, line_count, len(data), duration_ms, True)

    def _write_fn(self, precision: Precision) -> Callable[[str, bytes], Awaitable[None]]:
        return functools.partial(self.transport.send, precision=precision)

    def points_writer(self, database: Optional[str] = None, params: Optional[WriteParams] = None) -> PointsWriter:
        """
        Create an asynchronous batching writer sharing this client's transport.

        The writer is closed (and flushed) by Client.close() if the caller
        has not closed it already.
        """
        params = params or self.config.write_params
        writer = PointsWriter(self._write_fn(params.precision), self._database(database), params)
        self._writers.append(writer)
        return writer

    def _open_stream(self, query: str, database: Optional[str], **kwargs) -> Any:
        if self.query_fn is None:
            raise LinefluxError("no query function configured")
        database = self._database(database)
        log_query_execution(logger, query, database)
        return self.query_fn(query, database, **kwargs)

    def query(self, query: str, database: Optional[str] = None, **kwargs) -> QueryIterator:
        """
        Run a query and iterate over the result rows.

        Extra keyword arguments (query language, parameters, ...) are passed
        to query_fn unchanged.
        """
        return QueryIterator(self._open_stream(query, database, **kwargs))

    def query_points(self, query: str, database: Optional[str] = None, **kwargs) -> PointValueIterator:
        """Run a query and iterate over the result rows as PointValues"""
        return PointValueIterator(self._open_stream(query, database, **kwargs))

    async def close(self):
        """Close writers created by points_writer() and the owned transport"""
        for writer in self._writers:
            await writer.close()
        self._writers.clear()

        if self._owns_transport:
            await self.transport.close()
