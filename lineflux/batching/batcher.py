"""
Point Batcher

Collects points and hands them out in batches of a fixed size.

Batches are pulled with emit()/flush() or pushed to an emit callback as
soon as enough points have been added. Batches are extracted while holding
the lock; callbacks run after the lock is released, so a slow consumer only
delays the producer that triggered the batch, not every producer.
"""

import logging
import threading
from typing import Callable, Generic, List, Optional, Sequence, TypeVar

from ..point import Point

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_CAPACITY = 2 * DEFAULT_BATCH_SIZE

T = TypeVar('T')


class BaseBatcher(Generic[T]):
    """
    Shared accumulate/extract loop of the point and line protocol batchers.

    Subclasses define what a unit is (a point, a byte) through _append,
    _extract, _drain and current_load_size.
    """

    unit = 'items'

    def __init__(
        self,
        size: int,
        capacity: int,
        ready_callback: Optional[Callable[[], None]] = None,
        emit_callback: Optional[Callable[[T], None]] = None
    ):
        if size < 1:
            raise ValueError(f"batch size must be positive, got {size}")
        self.size = size
        self.capacity = capacity
        self.ready_callback = ready_callback
        self.emit_callback = emit_callback
        self._lock = threading.Lock()

    @property
    def current_load_size(self) -> int:
        raise NotImplementedError

    def _append(self, items: Sequence) -> None:
        raise NotImplementedError

    def _extract(self) -> T:
        raise NotImplementedError

    def _drain(self) -> T:
        raise NotImplementedError

    def _is_ready(self) -> bool:
        return self.current_load_size >= self.size

    def _add(self, items: Sequence) -> None:
        # one entry per ready notification; None when there is no emit callback
        events: List[Optional[T]] = []

        with self._lock:
            self._append(items)

            while self._is_ready():
                if self.emit_callback is None:
                    events.append(None)
                    load = self.current_load_size
                    if load >= self.capacity - self.size:
                        logger.warning(
                            f"Batcher is ready, but no emit callback is available. "
                            f"Batcher load is {load} {self.unit} waiting to be emitted."
                        )
                    break
                events.append(self._extract())

        for batch in events:
            if self.ready_callback is not None:
                self.ready_callback()
            if batch is not None:
                self.emit_callback(batch)

    def ready(self) -> bool:
        """Whether a full batch is waiting; has no side effects"""
        with self._lock:
            return self._is_ready()

    def emit(self) -> T:
        """
        Return the next batch: up to size units, or what remains.

        Drain with emit() or flush() at the end of processing to collect the
        remainder that never filled a batch.
        """
        with self._lock:
            return self._extract()

    def flush(self) -> T:
        """Return everything buffered, even beyond size; emit callback is not called"""
        with self._lock:
            logger.info(f"Flushing all {self.unit} ({self.current_load_size}) from buffer.")
            return self._drain()


class Batcher(BaseBatcher[List[Point]]):
    """
    Batches points.

    Args:
        size: Points per emitted batch
        capacity: Initial capacity hint; also the load at which a batcher
            without an emit callback starts warning
        ready_callback: Called each time a batch is ready
        emit_callback: Called with each ready batch of points

    Callbacks run synchronously on the thread calling add(); keep them short
    and move long work to another thread or task.
    """

    unit = 'points'

    def __init__(
        self,
        size: int = DEFAULT_BATCH_SIZE,
        capacity: int = DEFAULT_CAPACITY,
        ready_callback: Optional[Callable[[], None]] = None,
        emit_callback: Optional[Callable[[List[Point]], None]] = None
    ):
        super().__init__(size, capacity, ready_callback, emit_callback)
        self._points: List[Point] = []

    @property
    def current_load_size(self) -> int:
        return len(self._points)

    def add(self, *points: Point) -> None:
        """Add point(s), emitting every batch that becomes ready"""
        self._add(points)

    def _append(self, items: Sequence[Point]) -> None:
        self._points.extend(items)

    def _extract(self) -> List[Point]:
        count = min(self.size, len(self._points))
        batch = self._points[:count]
        self._points = self._points[count:]
        return batch

    def _drain(self) -> List[Point]:
        points = self._points
        self._points = []
        return points
