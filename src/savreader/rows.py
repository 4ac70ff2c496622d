"""
Case data decoder.

Case data is a sequence of rows, each the concatenation of every field's
cell in declaration order. Uncompressed, a numeric cell is one 8-byte float
and a string cell is ceil(width / 8) 8-byte text segments.

Compressed, cells are driven by instruction codes packed eight to a block:

    0       filler, skipped
    1..251  numeric value code - bias
    252     end of data (never valid inside a cell)
    253     next raw 8 bytes hold the value (float or text segment)
    254     empty (all blank) text segment
    255     system-missing value
"""

import logging
import struct
from typing import Iterator, List, Optional

from savreader.cursor import ByteCursor
from savreader.errors import InstructionError
from savreader.model import CellValue, Field, Row, Schema, SEGMENT_SIZE
from savreader.tracing import Tracer


logger = logging.getLogger(__name__)

CODE_FILLER = 0
CODE_END = 252
CODE_LITERAL = 253
CODE_BLANK = 254
CODE_MISSING = 255

_LITTLE_DOUBLE = struct.Struct("<d")
_BIG_DOUBLE = struct.Struct(">d")


class InstructionStream:
    """
    Serves compression codes from consecutive 8-byte blocks of the cursor.

    A literal (code 253) is not part of the block it was read from: its
    value is the next 8 bytes of the cursor, read after the block.
    """

    def __init__(self, cursor: ByteCursor):
        self.cursor = cursor
        self._block = b""
        self._index = SEGMENT_SIZE

    def _skip_filler(self) -> bool:
        """Advance past filler codes; False if the data ran out."""
        while True:
            while self._index < len(self._block):
                if self._block[self._index] != CODE_FILLER:
                    return True
                self._index += 1
            if self.cursor.exhausted():
                return False
            self._block = self.cursor.take(SEGMENT_SIZE)
            self._index = 0

    def next_code(self) -> int:
        if not self._skip_filler():
            # reading the next block is what reports the end of file
            self.cursor.take(SEGMENT_SIZE)
        code = self._block[self._index]
        self._index += 1
        return code

    def literal(self) -> bytes:
        return self.cursor.take(SEGMENT_SIZE)

    def at_end(self) -> bool:
        """True when no more codes remain or an end code is next."""
        if not self._skip_filler():
            return True
        return self._block[self._index] == CODE_END


class RowDecoder:
    """
    Decodes the case data region of a buffer against a schema.

    Usage:
        rows = RowDecoder(schema, cursor).read()

    The cursor is restored to its entry position afterwards.
    """

    def __init__(
        self,
        schema: Schema,
        cursor: ByteCursor,
        trace: Optional[Tracer] = None,
        encoding: str = "utf-8",
    ):
        self.schema = schema
        self.cursor = cursor
        self.trace = trace or Tracer(log=logger)
        self.encoding = encoding
        self.compressed = schema.meta.compressed
        self.bias = schema.meta.bias
        encoding_info = schema.internal.encoding
        little = encoding_info is None or encoding_info.little_endian
        self._double = _LITTLE_DOUBLE if little else _BIG_DOUBLE
        self._stream = InstructionStream(cursor)

    # -------------------------------------------------------------------------
    # Cells
    # -------------------------------------------------------------------------

    def _text(self, raw: bytes) -> str:
        # decoded once per cell so multibyte characters may cross segments
        return raw.decode(self.encoding, errors="replace").rstrip("\x00 ")

    def _uncompressed_number(self) -> float:
        return self._double.unpack(self.cursor.take(SEGMENT_SIZE))[0]

    def _uncompressed_string(self, segments: int) -> bytes:
        return b"".join(self.cursor.take(SEGMENT_SIZE) for _ in range(segments))

    def _compressed_number(self) -> Optional[float]:
        code = self._stream.next_code()
        if code == CODE_END:
            raise InstructionError("Unexpected end of records. Expected: a numeric cell code Actual: 252")
        if code == CODE_LITERAL:
            # literal values are always little-endian
            return _LITTLE_DOUBLE.unpack(self._stream.literal())[0]
        if code == CODE_BLANK:
            raise InstructionError(
                "Cell code type mismatch. Expected: 1..253 or 255 for a numeric cell Actual: 254"
            )
        if code == CODE_MISSING:
            return None
        return code - self.bias

    def _compressed_string(self, segments: int) -> Optional[bytes]:
        pieces: List[bytes] = []
        for _ in range(segments):
            code = self._stream.next_code()
            if code == CODE_LITERAL:
                pieces.append(self._stream.literal())
            elif code == CODE_BLANK:
                pieces.append(b"")
            elif code == CODE_MISSING:
                return None
            elif code == CODE_END:
                raise InstructionError(
                    "Unexpected end of records. Expected: a string cell code Actual: 252"
                )
            else:
                raise InstructionError(
                    f"Default code not supported for strings. Expected: [253, 254, 255] Actual: {code}"
                )
        return b"".join(pieces)

    def read_cell(self, field: Field) -> CellValue:
        self.trace(f"Cell: {field.name}")
        if field.is_string:
            if self.compressed:
                raw = self._compressed_string(field.segments)
            else:
                raw = self._uncompressed_string(field.segments)
            return None if raw is None else self._text(raw)
        if self.compressed:
            return self._compressed_number()
        return self._uncompressed_number()

    def read_row(self) -> Row:
        return {field.name: self.read_cell(field) for field in self.schema.fields}

    # -------------------------------------------------------------------------
    # Rows
    # -------------------------------------------------------------------------

    def _at_end(self) -> bool:
        if self.compressed:
            return self._stream.at_end()
        return self.cursor.exhausted()

    def iter_rows(self) -> Iterator[Row]:
        """
        Yield decoded rows, starting at the schema's data offset.

        A negative case count means the writer did not record it; rows are
        then decoded until the data runs out. The cursor is restored once the
        generator is exhausted or closed.
        """
        with self.cursor.preserved():
            self.cursor.seek(self.schema.internal.data_offset)
            self._stream = InstructionStream(self.cursor)
            cases = self.schema.meta.cases
            index = 0
            while index < cases or (cases < 0 and not self._at_end()):
                self.trace(f"Row: {index}")
                yield self.read_row()
                index += 1

    def read(self) -> List[Row]:
        rows = list(self.iter_rows())
        logger.debug("decoded %d rows", len(rows))
        return rows


__all__ = ["RowDecoder", "InstructionStream"]
