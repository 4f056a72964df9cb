"""
Ordered, size‑capped accumulator for everything a sandbox prints.

One :class:`CaptureBuffer` belongs to one backend instance.  Lines are
kept in emission order.  Once :meth:`CaptureBuffer.freeze` is called the
buffer becomes read‑only and later writes (for example from a sandbox
that is still unwinding after a forced termination) are dropped.
"""

from __future__ import annotations

import threading
from typing import List, Tuple


TRUNCATION_MARKER = "...[truncated]"

DEFAULT_MAX_LINES = 1000
DEFAULT_MAX_BYTES = 1024 * 1024


class CaptureBuffer:
    """Append‑only list of output lines with a line and byte cap."""

    def __init__(self, max_lines: int = DEFAULT_MAX_LINES, max_bytes: int = DEFAULT_MAX_BYTES) -> None:
        self.max_lines = max_lines
        self.max_bytes = max_bytes
        self._lines: List[str] = []
        self._size = 0
        self._truncated = False
        self._frozen = False
        self._lock = threading.Lock()

    def append(self, line: str) -> bool:
        """Record one line.  Returns ``False`` when the line was dropped."""
        encoded_size = len(line.encode("utf-8", errors="replace"))
        with self._lock:
            if self._frozen or self._truncated:
                return False
            if len(self._lines) >= self.max_lines or self._size + encoded_size > self.max_bytes:
                self._lines.append(TRUNCATION_MARKER)
                self._truncated = True
                return False
            self._lines.append(line)
            self._size += encoded_size
            return True

    def freeze(self) -> Tuple[str, ...]:
        """Stop accepting writes and return a snapshot of the lines."""
        with self._lock:
            self._frozen = True
            return tuple(self._lines)

    @property
    def lines(self) -> Tuple[str, ...]:
        with self._lock:
            return tuple(self._lines)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def truncated(self) -> bool:
        return self._truncated

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)


def truncate_bytes(data: bytes, max_bytes: int) -> str:
    """Decode process output, cutting it at ``max_bytes`` with a marker."""
    if len(data) <= max_bytes:
        return data.decode("utf-8", errors="replace")
    head = data[: max(0, max_bytes - 32)]
    return (head + b"\n" + TRUNCATION_MARKER.encode("ascii")).decode("utf-8", errors="replace")
