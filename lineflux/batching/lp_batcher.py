"""
Line Protocol Batcher

Byte-oriented batcher for raw line protocol. The batch size is a number of
bytes and is advisory: a batch never splits a record, so it holds the whole
records that fit in size bytes, or a single record when that record alone
is larger than size.
"""

import logging
from typing import Callable, Optional, Sequence, Union

from .batcher import BaseBatcher

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 100_000
DEFAULT_BUFFER_CAPACITY = DEFAULT_BUFFER_SIZE * 2


class LPBatcher(BaseBatcher[bytes]):
    """
    Batches line protocol records into newline-separated byte buffers.

    Args:
        size: Target bytes per emitted batch
        capacity: Initial buffer capacity hint in bytes
        ready_callback: Called each time a batch is ready
        emit_callback: Called with each ready batch of bytes
    """

    unit = 'bytes'

    def __init__(
        self,
        size: int = DEFAULT_BUFFER_SIZE,
        capacity: int = DEFAULT_BUFFER_CAPACITY,
        ready_callback: Optional[Callable[[], None]] = None,
        emit_callback: Optional[Callable[[bytes], None]] = None
    ):
        super().__init__(size, capacity, ready_callback, emit_callback)
        self._buffer = bytearray()

    @property
    def current_load_size(self) -> int:
        return len(self._buffer)

    def add(self, *lines: Union[str, bytes]) -> None:
        """Add line protocol record(s); empty lines are ignored"""
        self._add(lines)

    def _append(self, items: Sequence[Union[str, bytes]]) -> None:
        for line in items:
            if not line:
                continue
            if isinstance(line, str):
                line = line.encode('utf-8')
            self._buffer += line
            if not line.endswith(b'\n'):
                self._buffer += b'\n'

    def _extract(self) -> bytes:
        if not self._buffer:
            return b''

        cut = self._buffer.rfind(b'\n', 0, self.size) + 1
        if cut == 0:
            # first record alone is longer than size
            cut = self._buffer.find(b'\n') + 1

        packet = bytes(self._buffer[:cut])
        del self._buffer[:cut]
        return packet

    def _drain(self) -> bytes:
        packet = bytes(self._buffer)
        self._buffer.clear()
        return packet
