"""
Query Result Iterators

Row-at-a-time access to a stream of Arrow record batches, as returned by
a Flight query or an Arrow IPC stream.

    iterator = QueryIterator(pa.ipc.open_stream(payload))
    while iterator.next():
        row = iterator.value()        # {'time': datetime, 'temp': 23.5, ...}
        point = iterator.as_points()  # PointValues

Both iterators read batches lazily; they never hold more than one batch.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterator, Optional, Union

import polars as pl
import pyarrow as pa

from ..exceptions import QueryCancelledError
from ..value import Value
from .arrow_values import ColumnType, get_arrow_value, timestamp_nanos, value_type
from .point_values import PointValues

logger = logging.getLogger(__name__)

MEASUREMENT_COLUMNS = ('measurement', 'iox::measurement')
TIME_COLUMN = 'time'


class RecordBatchStream:
    """
    Uniform next()/schema/err view over the record batch sources pyarrow offers.

    Accepted sources:
    - pyarrow.RecordBatchReader (e.g. pa.ipc.open_stream)
    - Flight stream readers (anything with read_chunk())
    - pyarrow.Table or a single pyarrow.RecordBatch
    - any iterable of record batches (pass schema for empty iterables)

    A read error ends the stream and is kept in `err`.
    """

    def __init__(self, source: Any, schema: Optional[pa.Schema] = None):
        self.source = source
        self.err: Optional[BaseException] = None
        self._done = False

        if isinstance(source, pa.Table):
            self._batches = iter(source.to_batches())
            self._read = self._next_batch
        elif isinstance(source, pa.RecordBatch):
            self._batches = iter([source])
            self._read = self._next_batch
        elif hasattr(source, 'read_chunk'):
            self._read = self._next_flight_chunk
        elif hasattr(source, 'read_next_batch'):
            self._read = source.read_next_batch
        else:
            self._batches = iter(source)
            self._read = self._next_batch

        self._schema = schema if schema is not None else getattr(source, 'schema', None)

    @property
    def schema(self) -> Optional[pa.Schema]:
        return self._schema

    @property
    def done(self) -> bool:
        return self._done

    def _next_batch(self) -> pa.RecordBatch:
        return next(self._batches)

    def _next_flight_chunk(self) -> pa.RecordBatch:
        while True:
            chunk = self.source.read_chunk()
            # Metadata-only chunks carry no data
            if chunk.data is not None:
                return chunk.data

    def next(self) -> Optional[pa.RecordBatch]:
        """Next record batch, or None once the stream is exhausted or failed"""
        if self._done:
            return None
        try:
            batch = self._read()
        except StopIteration:
            self._done = True
            return None
        except Exception as e:
            logger.error(f"Query stream failed: {e}")
            self.err = e
            self._done = True
            return None

        if self._schema is None:
            self._schema = batch.schema
        return batch

    def cancel(self):
        """Stop reading; also cancels the underlying source when it supports it"""
        self._done = True
        cancel = getattr(self.source, 'cancel', None)
        if callable(cancel):
            cancel()


def row_to_point_values(record: pa.RecordBatch, row: int) -> PointValues:
    """
    Map one row of a record batch to PointValues.

    - string column named `measurement` / `iox::measurement` -> measurement
    - column classified as tag / field / timestamp by metadata -> same role
    - unclassified `time` column holding a timestamp -> timestamp
    - any other unclassified column -> field
    - nulls are left out

    Raises:
        UnsupportedTypeError: a column type cannot be decoded
    """
    values = PointValues()

    for ci, field in enumerate(record.schema):
        value, role = get_arrow_value(record.column(ci), field, row)
        if value is None:
            continue

        if field.name in MEASUREMENT_COLUMNS and isinstance(value, str):
            values.set_measurement(value)
            continue

        is_time = role is ColumnType.UNKNOWN and field.name == TIME_COLUMN and isinstance(value, datetime)
        if role is ColumnType.TAG:
            values.set_tag(field.name, value)
        elif role is ColumnType.TIMESTAMP or is_time:
            # datetime stops at microseconds; keep the exact value for as_point()
            values.set_timestamp(value, timestamp_nanos(record.column(ci), row))
        else:
            if pa.types.is_unsigned_integer(value_type(field.type)):
                value = Value.from_uint(value)
            values.set_field(field.name, value)

    return values


class _RowCursor:
    """Shared cursor over the rows of a RecordBatchStream"""

    def __init__(self, stream: Union[RecordBatchStream, Any]):
        if not isinstance(stream, RecordBatchStream):
            stream = RecordBatchStream(stream)
        self._stream = stream
        self._record: Optional[pa.RecordBatch] = None
        self._index_in_record = -1
        self._index = -1
        self._done = False
        self._err: Optional[BaseException] = None

    @property
    def err(self) -> Optional[BaseException]:
        """Error that ended the iteration (stream failure or cancellation)"""
        return self._err

    def _advance(self) -> bool:
        if self._done:
            return False

        self._index_in_record += 1
        while self._record is None or self._index_in_record >= self._record.num_rows:
            record = self._stream.next()
            if record is None:
                self._done = True
                if self._err is None:
                    self._err = self._stream.err
                return False
            self._record = record
            self._index_in_record = 0

        self._index += 1
        return True

    def index(self) -> int:
        """Number of rows yielded so far minus one; -1 before the first row"""
        return self._index

    def done(self) -> bool:
        return self._done

    def raw(self) -> Any:
        """The underlying record batch source"""
        return self._stream.source

    def cancel(self):
        """Cancel iteration; later next() calls return False and err is QueryCancelledError"""
        if self._done:
            return
        self._done = True
        self._err = QueryCancelledError("query cancelled")
        self._stream.cancel()
        logger.info("Query iteration cancelled")


class QueryIterator(_RowCursor):
    """
    Iterates over query results row by row.

    next() returns False once the stream is exhausted, failed or was
    cancelled and keeps returning False afterwards; check `err` to tell the
    cases apart.
    """

    def __init__(self, stream: Union[RecordBatchStream, Any]):
        super().__init__(stream)
        self._current: Optional[Dict[str, Any]] = None

    def next(self) -> bool:
        """
        Advance to the next row.

        Raises:
            UnsupportedTypeError: a column type cannot be decoded
        """
        if not self._advance():
            return False

        record = self._record
        row = {}
        for ci, field in enumerate(record.schema):
            value, _ = get_arrow_value(record.column(ci), field, self._index_in_record)
            row[field.name] = value
        self._current = row
        return True

    def value(self) -> Optional[Dict[str, Any]]:
        """Column name to value mapping of the current row"""
        return self._current

    def as_points(self) -> Optional[PointValues]:
        """Current row as PointValues; None before the first row"""
        if self._current is None:
            return None
        return row_to_point_values(self._record, self._index_in_record)

    def to_polars(self) -> pl.DataFrame:
        """
        Read all remaining rows into a Polars DataFrame and end the iteration.

        Rows already returned by next() are not included.
        """
        batches = []
        if self._record is not None and not self._done:
            remaining = self._record.slice(self._index_in_record + 1)
            if remaining.num_rows:
                batches.append(remaining)

        while not self._done:
            record = self._stream.next()
            if record is None:
                self._done = True
                if self._err is None:
                    self._err = self._stream.err
                break
            batches.append(record)

        schema = self._stream.schema
        if not batches and schema is None:
            return pl.DataFrame()
        table = pa.Table.from_batches(batches, schema=schema)
        return pl.from_arrow(table)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        while self.next():
            yield self._current


class PointValueIterator(_RowCursor):
    """
    Python iterator of PointValues, one per row.

        for values in PointValueIterator(reader):
            await client.write_points(values.as_point("downsampled"))

    A stream failure or cancellation is raised from the iteration instead of
    StopIteration; it is also kept in `err`.
    """

    def __iter__(self) -> "PointValueIterator":
        return self

    def __next__(self) -> PointValues:
        if not self._advance():
            if self._err is not None:
                raise self._err
            raise StopIteration
        return row_to_point_values(self._record, self._index_in_record)
