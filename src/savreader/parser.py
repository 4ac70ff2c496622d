"""
System file parser (entry points).

Combines the header, dictionary and row readers:

    bytes -> read_file_meta        -> FileMeta
    bytes -> read_fields           -> Fields           (from offset 176)
          -> read_internal_records -> InternalRecords  (incl. data offset)
    {FileMeta, Fields, InternalRecords} -> Schema
    Schema + bytes -> RowDecoder -> rows

Every entry point restores the cursor on exit, so several calls can share
one cursor as long as they do not run at the same time.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

from savreader.cursor import Buffer, ByteCursor
from savreader.dictionary import read_fields, read_internal_records
from savreader.header import read_file_meta
from savreader.model import HEADER_SIZE, Field, FileMeta, ParsedFile, Schema
from savreader.rows import RowDecoder
from savreader.tracing import Tracer, TraceSink


logger = logging.getLogger(__name__)


class SavParser:
    """
    Parser for system files.

    Args:
        log: Optional trace sink (anything with append(str), usually a list).
            Each public call clears it first when it supports clear().
        encoding: Codec for names, labels and string cells
    """

    def __init__(self, log: Optional[TraceSink] = None, encoding: str = "utf-8"):
        self.encoding = encoding
        self._trace = Tracer(log, logger)

    def _begin(self) -> Tracer:
        self._trace.reset()
        return self._trace

    def _schema(self, cursor: ByteCursor, trace: Tracer) -> Schema:
        meta = read_file_meta(cursor, trace, self.encoding)
        cursor.seek(HEADER_SIZE)
        fields = read_fields(cursor, trace, self.encoding)
        internal = read_internal_records(cursor, trace, self.encoding)
        return Schema(meta=meta, fields=fields, internal=internal)

    def meta(self, cursor: ByteCursor) -> FileMeta:
        """Read the file header only."""
        trace = self._begin()
        with cursor.preserved():
            return read_file_meta(cursor, trace, self.encoding)

    def fields(self, cursor: ByteCursor) -> Tuple[Field, ...]:
        """Read the variable records only (the header is not validated)."""
        trace = self._begin()
        with cursor.preserved():
            cursor.seek(HEADER_SIZE)
            return read_fields(cursor, trace, self.encoding)

    def schema(self, cursor: ByteCursor) -> Schema:
        """Read everything except the case data."""
        trace = self._begin()
        with cursor.preserved():
            schema = self._schema(cursor, trace)
        logger.info(
            "parsed schema: %d fields, data at offset %d",
            len(schema.fields),
            schema.internal.data_offset,
        )
        return schema

    def read(self, cursor: ByteCursor) -> ParsedFile:
        """Read the schema and decode every case."""
        trace = self._begin()
        with cursor.preserved():
            schema = self._schema(cursor, trace)
            rows = RowDecoder(schema, cursor, trace, self.encoding).read()
        logger.info("parsed %d fields, %d rows", len(schema.fields), len(rows))
        return ParsedFile(schema=schema, rows=tuple(rows))


def _cursor(data: Union[Buffer, ByteCursor]) -> ByteCursor:
    if isinstance(data, ByteCursor):
        return data
    return ByteCursor(data)


def read_sav(
    data: Union[Buffer, ByteCursor],
    log: Optional[List[str]] = None,
    encoding: str = "utf-8",
) -> ParsedFile:
    """
    Parse a system file held in memory.

    Args:
        data: Raw bytes or an existing cursor
        log: Optional list collecting trace lines
        encoding: Text codec

    Returns:
        ParsedFile with schema and rows

    Raises:
        SavError: If the buffer is not a valid system file
    """
    return SavParser(log, encoding).read(_cursor(data))


def read_sav_schema(
    data: Union[Buffer, ByteCursor],
    log: Optional[List[str]] = None,
    encoding: str = "utf-8",
) -> Schema:
    """Parse only the schema of a system file held in memory."""
    return SavParser(log, encoding).schema(_cursor(data))


def read_sav_file(
    filepath: Union[str, Path],
    log: Optional[List[str]] = None,
    encoding: str = "utf-8",
) -> ParsedFile:
    """
    Parse a system file from disk.

    Raises:
        FileNotFoundError: If the file doesn't exist
        SavError: If the file is not a valid system file
    """
    try:
        cursor = ByteCursor.from_path(filepath)
    except FileNotFoundError:
        raise FileNotFoundError(f"System file not found: {filepath}")
    return read_sav(cursor, log=log, encoding=encoding)


__all__ = ["SavParser", "read_sav", "read_sav_schema", "read_sav_file"]
