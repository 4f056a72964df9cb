from __future__ import annotations

from scriptexec.executor.capture import TRUNCATION_MARKER, CaptureBuffer, truncate_bytes


def test_lines_keep_emission_order():
    buffer = CaptureBuffer()
    for line in ["first", "second", "third"]:
        assert buffer.append(line) is True
    assert buffer.lines == ("first", "second", "third")
    assert len(buffer) == 3


def test_freeze_drops_later_writes():
    buffer = CaptureBuffer()
    buffer.append("kept")
    snapshot = buffer.freeze()
    assert buffer.append("after the kill") is False
    assert snapshot == ("kept",)
    assert buffer.freeze() == snapshot
    assert buffer.frozen


def test_line_cap_appends_single_marker():
    buffer = CaptureBuffer(max_lines=2)
    for i in range(5):
        buffer.append(str(i))
    assert buffer.lines == ("0", "1", TRUNCATION_MARKER)
    assert buffer.truncated


def test_byte_cap():
    buffer = CaptureBuffer(max_bytes=10)
    buffer.append("12345")
    buffer.append("678901")
    assert buffer.lines == ("12345", TRUNCATION_MARKER)


def test_truncate_bytes():
    assert truncate_bytes(b"short", 100) == "short"
    long_output = truncate_bytes(b"a" * 200, 64)
    assert long_output.endswith(TRUNCATION_MARKER)
    assert len(long_output) < 200
