"""
Asynchronous Points Writer

Buffers line protocol in memory and sends it in batches from background
tasks. Designed for high-throughput producers that must not wait on the
network.

Architecture:
- Buffering task: owns the WriteBuffer, consumes lines and flush signals
- Sending task: owns the network path, consumes ready batches
- Both are connected by bounded hand-off queues (maxsize=1)

Flush triggers:
- batch_size lines accumulated
- max_batch_bytes reached
- flush_interval_seconds elapsed since the last flush
- explicit flush() / close()

Errors never propagate back to the producer: they are logged and passed to
WriteParams.write_failed(error, lines, expires).
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, NamedTuple, Optional, Union

from .config import WriteParams
from .encoder import encode
from .exceptions import (
    EncodingError,
    InvalidValueError,
    TransportError,
    WriteExpiredError,
    WriterClosedError,
)
from .point import Point

logger = logging.getLogger(__name__)

BytesWrite = Callable[[str, bytes], Awaitable[None]]

# Server messages meaning the server already made a final decision about
# the data; retrying the same batch cannot succeed.
IGNORABLE_ERROR_PATTERNS = (
    "hinted handoff queue not empty",
    "partial write",
    "points beyond retention policy",
    "unable to parse",
)

_FLUSH = object()
_STOP = object()


def is_ignorable_error(error: BaseException) -> bool:
    """Whether a transport error only reports a final server-side decision"""
    if not isinstance(error, TransportError):
        return False
    return any(pattern in error.message for pattern in IGNORABLE_ERROR_PATTERNS)


class _Batch(NamedTuple):
    lines: bytes
    expires: datetime


class WriteBuffer:
    """
    Line accumulator flushing on line count or byte size.

    Args:
        max_length: Flush after this many lines
        max_bytes: Flush before an append would exceed this many bytes
        flush_fn: Coroutine function receiving the flushed bytes
    """

    def __init__(self, max_length: int, max_bytes: int, flush_fn: Callable[[bytes], Awaitable[None]]):
        self.max_length = max_length
        self.max_bytes = max_bytes
        self.flush_fn = flush_fn
        self.length = 0
        self.lines = bytearray()

    @property
    def size(self) -> int:
        return len(self.lines)

    async def add(self, line: bytes):
        if self.lines and len(self.lines) + len(line) > self.max_bytes:
            await self.flush()
        self.lines += line
        self.length += 1
        if self.length >= self.max_length or len(self.lines) >= self.max_bytes:
            await self.flush()

    async def flush(self):
        buff = self.reset()
        if buff:
            await self.flush_fn(buff)

    def reset(self) -> bytes:
        buff = bytes(self.lines)
        self.lines.clear()
        self.length = 0
        return buff


class PointsWriter:
    """
    Asynchronous writer with automated batching.

    Usage:
        async with PointsWriter(transport.send, "telemetry", params) as writer:
            await writer.write_points(point1, point2)

    write()/write_points()/write_data() return once the data is handed to the
    buffering task; they only wait while the hand-off queue is full.
    """

    def __init__(self, write_fn: BytesWrite, database: str, params: Optional[WriteParams] = None):
        """
        Initialize writer

        Args:
            write_fn: Coroutine function (database, data) sending bytes to the server
            database: Target database
            params: Batching, timing, encoding and failure-callback settings
        """
        self.write_fn = write_fn
        self.database = database
        self.params = params or WriteParams()

        self._write_buffer = WriteBuffer(
            max_length=self.params.batch_size,
            max_bytes=self.params.max_batch_bytes,
            flush_fn=self._send_batch,
        )

        self._buffer_queue: Optional[asyncio.Queue] = None
        self._batch_queue: Optional[asyncio.Queue] = None
        self._buffer_task: Optional[asyncio.Task] = None
        self._send_task: Optional[asyncio.Task] = None
        self._running = False
        self._closed = False

        # Metrics
        self.total_lines_buffered = 0
        self.total_batches_sent = 0
        self.total_batches_expired = 0
        self.total_errors_ignored = 0
        self.total_errors = 0
        self.total_encoding_errors = 0

    async def __aenter__(self) -> "PointsWriter":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Start the buffering and sending tasks"""
        if self._closed:
            raise WriterClosedError("PointsWriter is closed")
        if self._running:
            return

        self._buffer_queue = asyncio.Queue(maxsize=1)
        self._batch_queue = asyncio.Queue(maxsize=1)
        self._buffer_task = asyncio.create_task(self._buffer_proc())
        self._send_task = asyncio.create_task(self._send_proc())
        self._running = True
        logger.info(
            f"PointsWriter started for '{self.database}' (batch_size={self.params.batch_size}, "
            f"flush_interval={self.params.flush_interval_seconds}s)"
        )

    async def write(self, line: Union[bytes, str]):
        """
        Queue line protocol record(s). Multiple records must be newline separated.

        Raises:
            WriterClosedError: writer was closed
        """
        if isinstance(line, str):
            line = line.encode('utf-8')
        if not line:
            return
        if self._closed:
            raise WriterClosedError("PointsWriter is closed")
        if not self._running:
            await self.start()
        if not line.endswith(b'\n'):
            line += b'\n'

        await self._buffer_queue.put(line)

    async def write_points(self, *points: Point):
        """Encode and queue points; a point that fails to encode is reported and skipped"""
        for point in points:
            try:
                line = point.marshal_binary_with_default_tags(self.params.precision, self.params.default_tags)
            except (EncodingError, InvalidValueError) as e:
                self._encoding_failed(e)
                continue
            await self.write(line)

    async def write_data(self, *records: Any):
        """
        Encode and queue annotated records (see lineflux.encoder).

        A record that fails to encode is reported and skipped; the rest are
        still written.
        """
        for record in records:
            try:
                line = encode(record, self.params.precision, self.params.default_tags)
            except (EncodingError, InvalidValueError) as e:
                self._encoding_failed(e)
                continue
            await self.write(line)

    async def flush(self):
        """
        Send everything buffered now and wait until it has been handed to write_fn.

        Flushing does not wait for batch_size, max_batch_bytes or the flush interval.
        """
        if not self._running:
            return
        await self._buffer_queue.put(_FLUSH)
        await self._buffer_queue.join()
        await self._batch_queue.join()

    async def close(self):
        """Flush remaining lines, stop both tasks and wait for them to finish"""
        if self._closed:
            return
        self._closed = True
        if not self._running:
            return

        await self._buffer_queue.put(_STOP)
        await self._buffer_task
        await self._batch_queue.put(_STOP)
        await self._send_task
        self._running = False

        logger.info(
            f"PointsWriter for '{self.database}' stopped. Total batches sent: {self.total_batches_sent}"
        )

    async def _buffer_proc(self):
        """Background task owning the write buffer"""
        loop = asyncio.get_running_loop()
        interval = self.params.flush_interval_seconds
        deadline = loop.time() + interval

        while True:
            try:
                item = await asyncio.wait_for(
                    self._buffer_queue.get(),
                    timeout=max(0.0, deadline - loop.time())
                )
            except asyncio.TimeoutError:
                # Flush interval elapsed
                await self._write_buffer.flush()
                deadline = loop.time() + interval
                continue

            try:
                if item is _STOP:
                    await self._write_buffer.flush()
                    break
                if item is _FLUSH:
                    await self._write_buffer.flush()
                    deadline = loop.time() + interval
                else:
                    self.total_lines_buffered += 1
                    await self._write_buffer.add(item)
            finally:
                self._buffer_queue.task_done()

    async def _send_batch(self, lines: bytes):
        expires = datetime.now(timezone.utc) + timedelta(seconds=self.params.expiration_seconds)
        await self._batch_queue.put(_Batch(lines, expires))

    async def _send_proc(self):
        """Background task owning the network path"""
        while True:
            batch = await self._batch_queue.get()
            try:
                if batch is _STOP:
                    break
                await self._write_batch(batch)
            finally:
                self._batch_queue.task_done()

    async def _write_batch(self, batch: _Batch):
        if batch.expires <= datetime.now(timezone.utc):
            error = WriteExpiredError()
            logger.warning(f"PointsWriter: {error.message}, dropping {len(batch.lines)} bytes")
            self.total_batches_expired += 1
            self._report_failure(error, batch.lines, batch.expires)
            return

        try:
            await self.write_fn(self.database, batch.lines)
        except Exception as e:
            if is_ignorable_error(e):
                logger.warning(f"PointsWriter: write to '{self.database}' returned: {e.message}")
                self.total_errors_ignored += 1
                return
            logger.error(f"PointsWriter: write to '{self.database}' failed: {e}")
            self.total_errors += 1
            self._report_failure(e, batch.lines, batch.expires)
            return

        self.total_batches_sent += 1
        logger.debug(f"PointsWriter: sent {len(batch.lines)} bytes to '{self.database}'")

    def _encoding_failed(self, error: Exception):
        logger.warning(f"PointsWriter: point encoding failed: {error}")
        self.total_encoding_errors += 1
        self._report_failure(error, None, None)

    def _report_failure(self, error: Exception, lines: Optional[bytes], expires: Optional[datetime]):
        callback = self.params.write_failed
        if callback is None:
            return
        try:
            callback(error, lines, expires)
        except Exception as e:
            logger.error(f"PointsWriter: write_failed callback raised: {e}", exc_info=True)

    def get_stats(self) -> Dict[str, Any]:
        """Get writer statistics"""
        return {
            'database': self.database,
            'running': self._running,
            'total_lines_buffered': self.total_lines_buffered,
            'total_batches_sent': self.total_batches_sent,
            'total_batches_expired': self.total_batches_expired,
            'total_errors_ignored': self.total_errors_ignored,
            'total_errors': self.total_errors,
            'total_encoding_errors': self.total_encoding_errors,
            'current_buffer_lines': self._write_buffer.length,
            'current_buffer_bytes': self._write_buffer.size,
        }
