"""
Lineflux Query Module

Row iterators over Arrow record batch streams and the mapping from result
rows back to writable points.
"""

from .arrow_values import COLUMN_TYPE_METADATA_KEY, ColumnType, get_arrow_value, timestamp_nanos
from .iterator import (
    PointValueIterator,
    QueryIterator,
    RecordBatchStream,
    row_to_point_values,
)
from .point_values import PointValues

__all__ = [
    'COLUMN_TYPE_METADATA_KEY',
    'ColumnType',
    'get_arrow_value',
    'PointValueIterator',
    'PointValues',
    'QueryIterator',
    'RecordBatchStream',
    'row_to_point_values',
    'timestamp_nanos',
]
