"""
Tests for the line protocol LPBatcher
"""

import pytest

from lineflux.batching import DEFAULT_BUFFER_CAPACITY, DEFAULT_BUFFER_SIZE, LPBatcher


def test_defaults():
    batcher = LPBatcher()
    assert batcher.size == DEFAULT_BUFFER_SIZE
    assert batcher.capacity == DEFAULT_BUFFER_CAPACITY


def test_invalid_size():
    with pytest.raises(ValueError):
        LPBatcher(size=-1)


def test_newline_appended():
    batcher = LPBatcher(size=1000)
    batcher.add("m v=1", b"m v=2\n", "")
    assert batcher.current_load_size == len(b"m v=1\nm v=2\n")
    assert batcher.flush() == b"m v=1\nm v=2\n"


def test_emit_returns_whole_lines_within_size():
    """Cumulative size above size: only the whole lines that fit are emitted"""
    batcher = LPBatcher(size=15)
    batcher.add("m v=1i", "m v=2i", "m v=3i")  # 7 bytes each with newline

    assert batcher.ready()
    assert batcher.emit() == b"m v=1i\nm v=2i\n"
    assert batcher.current_load_size == 7
    assert batcher.emit() == b"m v=3i\n"
    assert batcher.emit() == b""


def test_line_ending_exactly_at_size():
    batcher = LPBatcher(size=14)
    batcher.add("m v=1i", "m v=2i", "m v=3i")
    assert batcher.emit() == b"m v=1i\nm v=2i\n"


def test_oversize_line_emitted_whole():
    """A single line larger than size is never truncated"""
    long_line = "m " + ",".join(f"f{i}={i}i" for i in range(20))
    batcher = LPBatcher(size=10)
    batcher.add(long_line, "m v=1i")

    assert batcher.emit() == (long_line + "\n").encode()
    assert batcher.emit() == b"m v=1i\n"


def test_emit_callback_drains_ready_batches():
    emitted = []
    ready_calls = []
    batcher = LPBatcher(
        size=15,
        ready_callback=lambda: ready_calls.append(True),
        emit_callback=emitted.append
    )

    batcher.add(*[f"m v={i}i" for i in range(5)])

    assert emitted == [b"m v=0i\nm v=1i\n", b"m v=2i\nm v=3i\n"]
    assert len(ready_calls) == 2
    assert batcher.flush() == b"m v=4i\n"


def test_oversize_line_with_emit_callback():
    emitted = []
    batcher = LPBatcher(size=4, emit_callback=emitted.append)
    batcher.add("m v=1i", "m v=22i")
    assert emitted == [b"m v=1i\n", b"m v=22i\n"]
    assert batcher.current_load_size == 0


def test_every_emitted_batch_holds_whole_lines():
    emitted = []
    batcher = LPBatcher(size=50, emit_callback=emitted.append)
    for i in range(200):
        batcher.add(f"cpu,host=server{i % 7} usage={i}.5")
    remainder = batcher.flush()

    for batch in emitted:
        assert batch.endswith(b"\n")
        assert len(batch) <= 50
    assert b"".join(emitted + [remainder]).count(b"\n") == 200
