"""
Dictionary reader: variable records and the auxiliary record stream.

The dictionary starts right after the 176-byte header:

    1. Field loop
       Records tagged 2, one per slot. String continuation records (code -1)
       are folded into the field they extend. The first tag that is not 2
       ends the loop and is left in place for step 2.

    2. Internal-record loop
       Records tagged 3 (value labels), 6 (documents), 7 (extension record,
       dispatched by subtype) until the 999 terminator, whose position
       reveals where case data begins.

Any tag outside these sets is fatal.
"""

import logging
import struct
from typing import Dict, List, Optional, Tuple

from savreader.cursor import ByteCursor
from savreader.errors import (
    FormatError,
    MagicMismatchError,
    RecordSizeError,
    UnknownRecordError,
)
from savreader.header import decode_text
from savreader.model import (
    DisplayFormat,
    EncodingInfo,
    ExtensionBlock,
    Field,
    FloatInfo,
    InternalRecords,
    InternalRecordsBuilder,
    MissingValues,
    ValueLabelTable,
    frozen_map,
)
from savreader.tracing import Tracer


logger = logging.getLogger(__name__)

FIELD_RECORD = 2
VALUE_LABEL_RECORD = 3
VALUE_LABEL_INDEX_RECORD = 4
DOCUMENT_RECORD = 6
EXTENSION_RECORD = 7
TERMINATOR_RECORD = 999

INTERNAL_RECORDS = (VALUE_LABEL_RECORD, DOCUMENT_RECORD, EXTENSION_RECORD, TERMINATOR_RECORD)

SUBTYPE_INTEGER_INFO = 3
SUBTYPE_FLOAT_INFO = 4
SUBTYPE_DISPLAY = 11
SUBTYPE_LONG_NAMES = 13
SUBTYPE_LONG_WIDTHS = 14
SUBTYPE_LONG_NAME_EXTRA = 21

DOCUMENT_LINE = 80

_MISSING_COUNTS = (-3, -2, 1, 2, 3)

_INT = struct.Struct("<i")
_FIELD = struct.Struct("<iiii4x8s")
_LEVEL = struct.Struct("<dB")
_PAIR = struct.Struct("<ii")
_SUBHEADER = struct.Struct("<iii")
_INTEGER_INFO = struct.Struct("<8i")
_FLOAT_INFO = struct.Struct("<3d")
_DISPLAY = struct.Struct("<3i")


def _read_int(cursor: ByteCursor) -> int:
    return _INT.unpack(cursor.take(4))[0]


def _doubles(chunk: bytes, count: int) -> Tuple[float, ...]:
    return struct.unpack_from(f"<{count}d", chunk)


# =========================================================================
# FIELD LOOP
# =========================================================================

def _read_label(cursor: ByteCursor, encoding: str) -> str:
    length = _read_int(cursor)
    if length < 0:
        raise FormatError(f"Invalid label length. Expected: >= 0 Actual: {length}")
    size = length + (4 - length % 4) % 4
    return decode_text(cursor.take(size)[:length], encoding)


def _read_missing(cursor: ByteCursor, numeric: bool, count: int, encoding: str) -> MissingValues:
    """
    Read a missing-value block of 8 * abs(count) bytes.

    Numeric: count > 0 discrete codes, -2 a range, -3 a range plus one code.
    String: count > 0 discrete 8-byte strings.
    """
    if count not in _MISSING_COUNTS:
        raise FormatError(
            f"Invalid missing value count. Expected: [-3, -2, 1, 2, 3] Actual: {count}"
        )
    chunk = cursor.take(8 * abs(count))
    if not numeric:
        if count < 0:
            raise FormatError(
                f"String missing values cannot be a range. "
                f"Expected: 1..3 Actual: {count}"
            )
        strings = tuple(
            chunk[8 * idx:8 * idx + 8].decode(encoding, errors="replace").rstrip("\x00 ")
            for idx in range(count)
        )
        return MissingValues(strings=strings)

    if count > 0:
        return MissingValues(codes=_doubles(chunk, count))
    values = _doubles(chunk, abs(count))
    return MissingValues(codes=values[2:], range=(values[0], values[1]))


def _read_field(cursor: ByteCursor, trace: Tracer, encoding: str) -> Field:
    start = cursor.position()
    trace(f"Reading Field at {start}")
    code, labeled, missings, _, raw_name = _FIELD.unpack(cursor.take(_FIELD.size))
    name = decode_text(raw_name, encoding)
    label = _read_label(cursor, encoding) if labeled else ""
    missing = _read_missing(cursor, code == 0, missings, encoding) if missings else None
    return Field(start=start, code=code, name=name, label=label, missing=missing)


def read_fields(
    cursor: ByteCursor,
    trace: Optional[Tracer] = None,
    encoding: str = "utf-8",
) -> Tuple[Field, ...]:
    """
    Read field records from the current position until a non-field tag.

    The cursor is left on the tag that ended the loop.

    Raises:
        FormatError: If a continuation record has no field to extend
    """
    trace = trace or Tracer(log=logger)
    fields: List[Field] = []
    while True:
        tag = _read_int(cursor)
        if tag != FIELD_RECORD:
            cursor.seek(cursor.position() - 4)
            break
        field = _read_field(cursor, trace, encoding)
        if field.code > -1:
            fields.append(field)
        elif fields:
            previous = fields[-1]
            fields[-1] = Field(
                start=previous.start,
                code=previous.code,
                name=previous.name,
                label=previous.label,
                missing=previous.missing,
                trailers=previous.trailers + 1,
            )
        else:
            raise FormatError(
                f"Continuation record without a preceding field at {field.start}. "
                f"Expected: a field record Actual: code {field.code}"
            )
    logger.debug("read %d fields", len(fields))
    return tuple(fields)


# =========================================================================
# INTERNAL RECORDS
# =========================================================================

def _read_level(cursor: ByteCursor, trace: Tracer, encoding: str) -> Tuple[float, str]:
    trace(f"Scale level at {cursor.position()}")
    value, length = _LEVEL.unpack(cursor.take(_LEVEL.size))
    # label plus its length byte fill a multiple of 8
    size = length + (8 - (length + 1) % 8) % 8
    return value, decode_text(cursor.take(size)[:length], encoding)


def read_value_labels(cursor: ByteCursor, trace: Tracer, encoding: str) -> ValueLabelTable:
    """
    Read a value-label table and the index record that must follow it.

    Raises:
        MagicMismatchError: If the index record is not tagged 4
    """
    trace(f"Scale definition at {cursor.position()}")
    count = _read_int(cursor)
    levels: Dict[float, str] = {}
    for _ in range(count):
        value, label = _read_level(cursor, trace, encoding)
        levels[value] = label

    magic, icount = _PAIR.unpack(cursor.take(_PAIR.size))
    if magic != VALUE_LABEL_INDEX_RECORD:
        raise MagicMismatchError(
            f"Levels read error. Magic value Expected: {VALUE_LABEL_INDEX_RECORD} Actual: {magic}"
        )
    indices = struct.unpack(f"<{icount}i", cursor.take(4 * icount))
    return ValueLabelTable(labels=frozen_map(levels), indices=frozenset(indices))


def read_documents(cursor: ByteCursor, trace: Tracer, encoding: str) -> List[str]:
    trace(f"Sys Document at {cursor.position()}")
    count = _read_int(cursor)
    chunk = cursor.take(count * DOCUMENT_LINE)
    return [
        chunk[idx * DOCUMENT_LINE:(idx + 1) * DOCUMENT_LINE].decode(encoding, errors="replace").rstrip()
        for idx in range(count)
    ]


def _check_size(subtype: int, expected: int, actual: int) -> None:
    if expected != actual:
        raise RecordSizeError(
            f"Special code {subtype} Expected: {expected} bytes Actual: {actual}"
        )


def _split_pairs(raw: str) -> List[Tuple[str, str]]:
    pairs = []
    for piece in raw.split("\t"):
        piece = piece.strip("\x00")
        if not piece:
            continue
        name, _, value = piece.partition("=")
        pairs.append((name, value))
    return pairs


def read_long_names(cursor: ByteCursor, size: int, encoding: str) -> Dict[str, str]:
    """Decode "NAME=LongName" pairs separated by tabs."""
    raw = cursor.take(size).decode(encoding, errors="replace")
    return dict(_split_pairs(raw))


def read_long_widths(cursor: ByteCursor, size: int, encoding: str) -> Dict[str, int]:
    """Decode "NAME=00300" pairs separated by tabs; values are widths."""
    raw = cursor.take(size).decode(encoding, errors="replace")
    widths = {}
    for name, value in _split_pairs(raw):
        try:
            widths[name] = int(value)
        except ValueError:
            raise FormatError(
                f"Invalid long string width for {name}. Expected: integer Actual: {value!r}"
            )
    return widths


def _read_extension(
    cursor: ByteCursor,
    builder: InternalRecordsBuilder,
    trace: Tracer,
    encoding: str,
) -> None:
    subtype, length, count = _SUBHEADER.unpack(cursor.take(_SUBHEADER.size))
    size = length * count
    trace(f"Subcode {subtype}")

    if subtype == SUBTYPE_INTEGER_INFO:
        _check_size(subtype, _INTEGER_INFO.size, size)
        trace(f"Sys Integer at {cursor.position()}")
        builder.encoding = EncodingInfo(*_INTEGER_INFO.unpack(cursor.take(size)))

    elif subtype == SUBTYPE_FLOAT_INFO:
        _check_size(subtype, _FLOAT_INFO.size, size)
        trace(f"Sys Float at {cursor.position()}")
        builder.floats = FloatInfo(*_FLOAT_INFO.unpack(cursor.take(size)))

    elif subtype == SUBTYPE_DISPLAY:
        if length != 4:
            raise RecordSizeError(
                f"Special code {subtype} Expected: 4 bytes Actual: {length}"
            )
        if count % 3:
            raise RecordSizeError(
                f"Special code {subtype} Expected: count multiple of 3 Actual: {count}"
            )
        trace(f"Sys Display at {cursor.position()}")
        chunk = cursor.take(size)
        builder.display.extend(
            DisplayFormat(*_DISPLAY.unpack_from(chunk, offset))
            for offset in range(0, size, _DISPLAY.size)
        )

    elif subtype == SUBTYPE_LONG_NAMES:
        trace(f"Names at {cursor.position()}")
        builder.long_names.update(read_long_names(cursor, size, encoding))

    elif subtype == SUBTYPE_LONG_WIDTHS:
        trace(f"Long Widths at {cursor.position()}")
        builder.long_widths.update(read_long_widths(cursor, size, encoding))

    elif subtype == SUBTYPE_LONG_NAME_EXTRA:
        # layout of this record is not decoded; kept as is
        trace(f"Long Names at {cursor.position()}")
        builder.extra.append(cursor.take(size))

    else:
        trace(f"Unrecognized Subcode {subtype} at {cursor.position()}")
        chunk = cursor.take(size)
        records = tuple(chunk[idx * length:(idx + 1) * length] for idx in range(count))
        builder.extensions.append(ExtensionBlock(subtype=subtype, records=records))


def read_internal_records(
    cursor: ByteCursor,
    trace: Optional[Tracer] = None,
    encoding: str = "utf-8",
) -> InternalRecords:
    """
    Read auxiliary records from the current position through the terminator.

    Raises:
        UnknownRecordError: If a tag other than 3, 6, 7 or 999 is found
        MagicMismatchError: If a value-label table is malformed
        RecordSizeError: If a known extension record has the wrong size
    """
    trace = trace or Tracer(log=logger)
    trace("Reading Internal")
    builder = InternalRecordsBuilder()

    while not builder.finished:
        tag = _read_int(cursor)
        if tag == VALUE_LABEL_RECORD:
            builder.value_labels.append(read_value_labels(cursor, trace, encoding))
        elif tag == DOCUMENT_RECORD:
            builder.documents.extend(read_documents(cursor, trace, encoding))
        elif tag == EXTENSION_RECORD:
            _read_extension(cursor, builder, trace, encoding)
        elif tag == TERMINATOR_RECORD:
            cursor.take(4)
            builder.data_offset = cursor.position()
        else:
            raise UnknownRecordError(
                f"Internal Code Expected: {list(INTERNAL_RECORDS)} Actual: {tag}"
            )

    internal = builder.build()
    logger.debug(
        "internal records: %d value label tables, %d documents, %d extensions, data at %d",
        len(internal.value_labels),
        len(internal.documents),
        len(internal.extensions),
        internal.data_offset,
    )
    return internal


__all__ = [
    "read_fields",
    "read_internal_records",
    "read_value_labels",
    "read_documents",
    "read_long_names",
    "read_long_widths",
    "INTERNAL_RECORDS",
]
