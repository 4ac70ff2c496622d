"""
Tests for the case data decoder.

Schemas are built directly from model objects so each test controls the
exact bytes of the data region (which starts at offset 0 here).
"""

import struct

import pytest

from savreader.cursor import ByteCursor
from savreader.errors import InstructionError, UnexpectedEndOfFile
from savreader.model import (
    EncodingInfo,
    Field,
    FileMeta,
    InternalRecords,
    Schema,
)
from savreader.rows import InstructionStream, RowDecoder
from savreader.tracing import Tracer

from sav_factory import double, instructions


def make_schema(fields, cases=1, compression=0, bias=100.0, endianness=None, data_offset=0):
    meta = FileMeta(
        product="",
        layout=2,
        variables=sum(f.width for f in fields),
        compression=compression,
        weight_index=0,
        cases=cases,
        bias=bias,
        created_date="",
        created_time="",
        label="",
    )
    encoding = None
    if endianness is not None:
        encoding = EncodingInfo(20, 0, 0, -1, 1, compression, endianness, 65001)
    internal = InternalRecords(data_offset=data_offset, encoding=encoding)
    return Schema(meta=meta, fields=tuple(fields), internal=internal)


def num(name):
    return Field(start=0, code=0, name=name)


def text(name, width):
    return Field(start=0, code=width, name=name, trailers=-(-width // 8) - 1)


def decode(schema, data):
    return RowDecoder(schema, ByteCursor(data)).read()


class TestInstructionStream:
    """Code blocks."""

    def test_codes_left_to_right(self):
        stream = InstructionStream(ByteCursor(instructions(1, 2, 3, 4, 5, 6, 7, 8)))
        assert [stream.next_code() for _ in range(8)] == [1, 2, 3, 4, 5, 6, 7, 8]

    def test_zero_codes_skipped(self):
        stream = InstructionStream(ByteCursor(instructions(0, 101, 0, 0, 102) + instructions(0, 103)))
        assert [stream.next_code() for _ in range(3)] == [101, 102, 103]

    def test_literal_comes_after_block(self):
        cursor = ByteCursor(instructions(253, 105) + double(2.5))
        stream = InstructionStream(cursor)
        assert stream.next_code() == 253
        assert struct.unpack("<d", stream.literal())[0] == 2.5
        assert stream.next_code() == 105

    def test_end_of_data(self):
        stream = InstructionStream(ByteCursor(instructions(101)))
        assert stream.next_code() == 101
        assert stream.at_end()
        with pytest.raises(UnexpectedEndOfFile):
            stream.next_code()

    def test_end_code(self):
        stream = InstructionStream(ByteCursor(instructions(101, 252)))
        stream.next_code()
        assert stream.at_end()


class TestUncompressed:
    """Raw 8-byte cells."""

    def test_numeric(self):
        rows = decode(make_schema([num("X")], cases=2), double(1.5) + double(-3.0))
        assert rows == [{"X": 1.5}, {"X": -3.0}]

    def test_big_endian_numeric(self):
        schema = make_schema([num("X")], endianness=1)
        rows = decode(schema, struct.pack(">d", 42.0))
        assert rows == [{"X": 42.0}]

    def test_little_endian_numeric(self):
        schema = make_schema([num("X")], endianness=2)
        assert decode(schema, double(42.0)) == [{"X": 42.0}]

    def test_string_segments(self):
        schema = make_schema([text("NAME", 10), num("AGE")])
        data = b"HELLO WO" + b"RLD     " + double(30.0)
        assert decode(schema, data) == [{"NAME": "HELLO WORLD", "AGE": 30.0}]

    def test_string_consumes_all_segments(self):
        schema = make_schema([text("S", 17)], cases=2)
        data = b"A" * 24 + b"B" * 24
        rows = decode(schema, data)
        assert rows == [{"S": "A" * 24}, {"S": "B" * 24}]

    def test_truncated_data(self):
        with pytest.raises(UnexpectedEndOfFile):
            decode(make_schema([num("X")], cases=2), double(1.0))


class TestCompressedNumbers:
    """Instruction codes for numeric cells."""

    def test_bias(self):
        schema = make_schema([num("A"), num("B"), num("C")], compression=1, bias=100.0)
        rows = decode(schema, instructions(1, 100, 251))
        assert rows == [{"A": -99.0, "B": 0.0, "C": 151.0}]

    @pytest.mark.parametrize("code", [1, 50, 137, 251])
    def test_code_minus_bias(self, code):
        schema = make_schema([num("A")], compression=1, bias=100.0)
        assert decode(schema, instructions(code))[0]["A"] == code - 100.0

    def test_literal(self):
        schema = make_schema([num("A"), num("B")], compression=1)
        rows = decode(schema, instructions(253, 110) + double(1234.5))
        assert rows == [{"A": 1234.5, "B": 10.0}]

    def test_literal_is_little_endian_even_on_big_endian_files(self):
        schema = make_schema([num("A")], compression=1, endianness=1)
        assert decode(schema, instructions(253) + double(7.25)) == [{"A": 7.25}]

    def test_missing(self):
        schema = make_schema([num("A")], compression=1)
        assert decode(schema, instructions(255)) == [{"A": None}]

    def test_end_code_in_cell(self):
        schema = make_schema([num("A")], compression=1)
        with pytest.raises(InstructionError) as excinfo:
            decode(schema, instructions(252))
        assert "252" in str(excinfo.value)

    def test_blank_code_in_numeric_cell(self):
        schema = make_schema([num("A")], compression=1)
        with pytest.raises(InstructionError) as excinfo:
            decode(schema, instructions(254))
        assert "254" in str(excinfo.value)

    def test_secondary_compression_mode(self):
        schema = make_schema([num("A"), num("B")], compression=2)
        assert decode(schema, instructions(105, 255)) == [{"A": 5.0, "B": None}]

    def test_codes_span_rows_and_blocks(self):
        schema = make_schema([num("A"), num("B"), num("C")], cases=3, compression=1)
        data = instructions(101, 102, 103, 104, 105, 106, 107, 108) + instructions(109)
        rows = decode(schema, data)
        assert [list(r.values()) for r in rows] == [[1.0, 2.0, 3.0], [4.0, 5.0, 6.0], [7.0, 8.0, 9.0]]


class TestCompressedStrings:
    """Instruction codes for string cells."""

    def test_literal_then_blank(self):
        schema = make_schema([text("S", 10)], compression=1)
        rows = decode(schema, instructions(253, 254) + b"HELLO\x00\x00\x00")
        assert rows == [{"S": "HELLO"}]

    def test_literal_segments(self):
        schema = make_schema([text("S", 16)], compression=1)
        rows = decode(schema, instructions(253, 253) + b"abcdefgh" + b"ijkl    ")
        assert rows == [{"S": "abcdefghijkl"}]

    def test_all_blank(self):
        schema = make_schema([text("S", 8)], compression=1)
        assert decode(schema, instructions(254)) == [{"S": ""}]

    def test_missing_short_circuits(self):
        schema = make_schema([text("S", 24), num("N")], compression=1)
        # 255 ends the string cell at once; the next code belongs to N
        rows = decode(schema, instructions(255, 107))
        assert rows == [{"S": None, "N": 7.0}]

    def test_numeric_code_in_string_cell(self):
        schema = make_schema([text("S", 8)], compression=1)
        with pytest.raises(InstructionError) as excinfo:
            decode(schema, instructions(101))
        message = str(excinfo.value)
        assert "101" in message
        assert "253" in message

    def test_end_code_in_string_cell(self):
        schema = make_schema([text("S", 8)], compression=1)
        with pytest.raises(InstructionError):
            decode(schema, instructions(252))


class TestRowCount:
    """Rows produced vs declared cases."""

    @pytest.mark.parametrize("cases", [0, 1, 5])
    def test_rows_equal_cases(self, cases):
        schema = make_schema([num("A")], cases=cases)
        data = b"".join(double(float(i)) for i in range(cases))
        assert len(decode(schema, data)) == cases

    def test_extra_data_ignored(self):
        schema = make_schema([num("A")], cases=1)
        assert decode(schema, double(1.0) + double(2.0)) == [{"A": 1.0}]

    def test_unknown_case_count_uncompressed(self):
        schema = make_schema([num("A")], cases=-1)
        assert decode(schema, double(1.0) + double(2.0)) == [{"A": 1.0}, {"A": 2.0}]

    def test_unknown_case_count_compressed(self):
        schema = make_schema([num("A")], cases=-1, compression=1)
        assert decode(schema, instructions(101, 102, 252)) == [{"A": 1.0}, {"A": 2.0}]


class TestCursor:
    """Position handling."""

    def test_starts_at_data_offset_and_restores(self):
        prefix = b"\xff" * 16
        schema = make_schema([num("A")], data_offset=16)
        cursor = ByteCursor(prefix + double(9.0))
        cursor.seek(3)
        rows = RowDecoder(schema, cursor).read()
        assert rows == [{"A": 9.0}]
        assert cursor.position() == 3

    def test_restores_on_error(self):
        schema = make_schema([num("A")], compression=1)
        cursor = ByteCursor(instructions(252))
        with pytest.raises(InstructionError):
            RowDecoder(schema, cursor).read()
        assert cursor.position() == 0

    def test_trace(self):
        lines = []
        schema = make_schema([num("A")], cases=1)
        RowDecoder(schema, ByteCursor(double(1.0)), Tracer(lines)).read()
        assert lines == ["Row: 0", "Cell: A"]


class TestMultibyteText:
    """Characters whose bytes cross a segment boundary."""

    # "ü" is encoded as bytes 7 and 8, one in each segment
    RAW = "ABCDEFGü".encode("utf-8").ljust(16, b" ")

    def test_uncompressed(self):
        schema = make_schema([text("S", 16)])
        assert decode(schema, self.RAW) == [{"S": "ABCDEFGü"}]

    def test_compressed(self):
        schema = make_schema([text("S", 16)], compression=1)
        rows = decode(schema, instructions(253, 253) + self.RAW)
        assert rows == [{"S": "ABCDEFGü"}]

    def test_single_byte_codec(self):
        schema = make_schema([text("S", 8)])
        rows = RowDecoder(schema, ByteCursor(b"caf\xe9    "), encoding="latin-1").read()
        assert rows == [{"S": "café"}]


class TestIterRows:
    """Lazy row iteration."""

    def test_cursor_restored_when_closed_early(self):
        schema = make_schema([num("A")], cases=3)
        cursor = ByteCursor(double(1.0) + double(2.0) + double(3.0))
        cursor.seek(5)
        rows = RowDecoder(schema, cursor).iter_rows()
        assert next(rows) == {"A": 1.0}
        assert cursor.position() == 8
        rows.close()
        assert cursor.position() == 5

    def test_cursor_restored_when_exhausted(self):
        schema = make_schema([num("A")], cases=2)
        cursor = ByteCursor(double(1.0) + double(2.0))
        assert list(RowDecoder(schema, cursor).iter_rows()) == [{"A": 1.0}, {"A": 2.0}]
        assert cursor.position() == 0
