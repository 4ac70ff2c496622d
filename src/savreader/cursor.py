"""
Byte cursor over an in-memory system file.

The cursor is the only mutable state shared by the readers. It never copies
the buffer and never returns bytes past the end: every read is bounds checked.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from savreader.errors import CursorBoundsError, UnexpectedEndOfFile


Buffer = Union[bytes, bytearray, memoryview]


class ByteCursor:
    """
    Wraps a byte buffer and hands out consecutive slices of it.

    Operations are not undoable. Callers that need to peek record the offset
    with position() and restore it with seek(), or use preserved().
    """

    def __init__(self, buffer: Buffer):
        self._buffer = buffer
        self._length = len(buffer)
        self._offset = 0

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "ByteCursor":
        """Load a whole file into memory and wrap it."""
        return cls(Path(path).read_bytes())

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"ByteCursor(position={self._offset}, length={self._length})"

    def seek(self, position: int) -> None:
        if position < 0 or position > self._length:
            raise CursorBoundsError(
                f"Seek to out-of-bounds position. "
                f"Expected: 0..{self._length} Actual: {position}"
            )
        self._offset = position

    def take(self, size: int) -> bytes:
        """Return the next `size` bytes and advance past them."""
        if size < 0 or self._offset + size > self._length:
            raise UnexpectedEndOfFile(
                f"Unexpected end of file. "
                f"Expected: {size} bytes at offset {self._offset} "
                f"Actual: {self._length - self._offset} remaining"
            )
        start = self._offset
        self._offset += size
        return bytes(self._buffer[start:self._offset])

    def position(self) -> int:
        return self._offset

    def exhausted(self) -> bool:
        return self._offset == self._length

    @contextmanager
    def preserved(self) -> Iterator["ByteCursor"]:
        """Restore the current offset when the block exits, even on error."""
        position = self._offset
        try:
            yield self
        finally:
            self._offset = position


__all__ = ["ByteCursor", "Buffer"]
