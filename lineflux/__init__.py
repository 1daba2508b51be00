"""
Lineflux

Client core for line protocol time-series databases: point encoding,
batching, asynchronous batched writes and Arrow query iteration.
"""

from .batching import Batcher, LPBatcher
from .client import Client
from .config import BatchingConfig, ClientConfig, WriteOptions, WriteParams
from .config_loader import ConfigLoader
from .encoder import LineProtocolEncodable, encode, lp, to_point
from .exceptions import (
    EncodingError,
    InvalidValueError,
    LinefluxError,
    QueryCancelledError,
    ServerError,
    TransportError,
    UnsupportedTypeError,
    WriteExpiredError,
    WriterClosedError,
)
from .line_protocol import LineProtocolParser
from .point import Point, Precision
from .query import PointValueIterator, PointValues, QueryIterator, RecordBatchStream
from .transport import HttpWriteTransport
from .value import Value, ValueKind, new_value
from .version import __version__
from .writer import PointsWriter

__all__ = [
    '__version__',
    'Batcher',
    'BatchingConfig',
    'Client',
    'ClientConfig',
    'ConfigLoader',
    'EncodingError',
    'HttpWriteTransport',
    'InvalidValueError',
    'LineProtocolEncodable',
    'LineProtocolParser',
    'LinefluxError',
    'LPBatcher',
    'Point',
    'PointValueIterator',
    'PointValues',
    'PointsWriter',
    'Precision',
    'QueryCancelledError',
    'QueryIterator',
    'RecordBatchStream',
    'ServerError',
    'TransportError',
    'UnsupportedTypeError',
    'Value',
    'ValueKind',
    'WriteExpiredError',
    'WriteOptions',
    'WriteParams',
    'WriterClosedError',
    'encode',
    'lp',
    'new_value',
    'to_point',
]
