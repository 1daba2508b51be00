"""
Lineflux Batching Module

Accumulates points or raw line protocol and emits fixed-size batches.
"""

from .batcher import DEFAULT_BATCH_SIZE, DEFAULT_CAPACITY, Batcher
from .lp_batcher import DEFAULT_BUFFER_CAPACITY, DEFAULT_BUFFER_SIZE, LPBatcher

__all__ = [
    'Batcher',
    'LPBatcher',
    'DEFAULT_BATCH_SIZE',
    'DEFAULT_CAPACITY',
    'DEFAULT_BUFFER_SIZE',
    'DEFAULT_BUFFER_CAPACITY',
]
