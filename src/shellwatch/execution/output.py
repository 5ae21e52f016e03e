"""Output buffers that accumulate a process stream.

A buffer has exactly one writer (the reader thread pumping a pipe) and any
number of readers. Readers either look at the whole content with
:meth:`OutputBuffer.text` / :meth:`OutputBuffer.lines`, or consume it
incrementally through an :class:`OutputCursor`.
"""

from __future__ import annotations

import threading
from bisect import bisect_right


def split_lines(text: str) -> list[str]:
    """Split text on newline boundaries.

    Empty text yields an empty list and a single trailing newline does not
    produce a trailing empty line.
    """

    if not text:
        return []
    normalized = text.replace("\r\n", "\n")
    if normalized.endswith("\n"):
        normalized = normalized[:-1]
    return normalized.split("\n")


class OutputCursor:
    """Independent read position over an :class:`OutputBuffer`.

    Each read returns only what was appended since the previous read through
    this cursor. The position only ever moves forward.
    """

    def __init__(self, buffer: OutputBuffer) -> None:
        self._buffer = buffer
        self._position = 0
        self._lock = threading.Lock()

    @property
    def position(self) -> int:
        """Number of characters consumed so far."""

        return self._position

    def read(self) -> str:
        """Return all text appended since the last read."""

        with self._lock:
            chunk = self._buffer._slice(self._position)
            self._position += len(chunk)
            return chunk

    def read_lines(self) -> list[str]:
        """Return the complete lines appended since the last read.

        A trailing partial line is held back until its newline arrives or the
        buffer is closed.
        """

        with self._lock:
            closed = self._buffer.closed
            chunk = self._buffer._slice(self._position)
            if not closed:
                end = chunk.rfind("\n")
                if end < 0:
                    return []
                chunk = chunk[: end + 1]
            self._position += len(chunk)
            return split_lines(chunk)


class OutputBuffer:
    """Append-only text accumulator for one process stream.

    Text is kept as a list of chunks with their start offsets, so a cursor
    read only touches the chunks appended after its position.
    """

    def __init__(self) -> None:
        self._chunks: list[str] = []
        self._offsets: list[int] = []
        self._size = 0
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._default_cursor = OutputCursor(self)

    def write(self, text: str) -> None:
        """Append text to the buffer."""

        if not text:
            return
        with self._lock:
            self._chunks.append(text)
            self._offsets.append(self._size)
            self._size += len(text)

    def close(self) -> None:
        """Mark the stream as finished. Further writes are still accepted."""

        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def wait_closed(self, timeout: float | None = None) -> bool:
        """Block until the writer closed the buffer or the timeout elapsed."""

        return self._closed.wait(timeout)

    @property
    def empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def __str__(self) -> str:
        return self.text()

    def text(self, strip: bool = False) -> str:
        """Return the full accumulated content.

        Args:
            strip: Remove leading and trailing whitespace.
        """

        with self._lock:
            value = "".join(self._chunks)
            if len(self._chunks) > 1:
                self._chunks = [value]
                self._offsets = [0]
        return value.strip() if strip else value

    def lines(self) -> list[str]:
        """Return the full content split into lines."""

        return split_lines(self.text())

    def cursor(self) -> OutputCursor:
        """Create a new cursor starting at the beginning of the buffer."""

        return OutputCursor(self)

    def read(self) -> str:
        """Consume new text through the buffer's default cursor."""

        return self._default_cursor.read()

    def read_lines(self) -> list[str]:
        """Consume new complete lines through the buffer's default cursor."""

        return self._default_cursor.read_lines()

    def _slice(self, start: int) -> str:
        with self._lock:
            if start >= self._size:
                return ""
            index = bisect_right(self._offsets, start) - 1
            head = self._chunks[index][start - self._offsets[index] :]
            return head + "".join(self._chunks[index + 1 :])
