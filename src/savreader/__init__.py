"""
savreader Package

Decoder for binary statistical system files (".sav", signature "$FL2").

Recovers:
    - the file header (FileMeta)
    - the variable dictionary (Field, continuation records folded in)
    - the auxiliary records (value labels, documents, display formats,
      long names, long string widths, opaque extension records)
    - the case data, raw or byte-code compressed

The package reads from an in-memory buffer only and never writes the format.
Every inconsistency is a fatal SavError.
"""

from savreader.cursor import ByteCursor
from savreader.errors import (
    CursorBoundsError,
    CursorError,
    FormatError,
    InstructionError,
    MagicMismatchError,
    RecordSizeError,
    SavError,
    SignatureError,
    UnexpectedEndOfFile,
    UnknownRecordError,
)
from savreader.model import (
    DisplayFormat,
    EncodingInfo,
    ExtensionBlock,
    Field,
    FileMeta,
    FloatInfo,
    InternalRecords,
    MissingValues,
    ParsedFile,
    Schema,
    ValueLabelTable,
)
from savreader.parser import SavParser, read_sav, read_sav_file, read_sav_schema

__version__ = "0.1.0"

__all__ = [
    "ByteCursor",
    "SavParser",
    "read_sav",
    "read_sav_file",
    "read_sav_schema",
    "FileMeta",
    "Field",
    "MissingValues",
    "EncodingInfo",
    "FloatInfo",
    "DisplayFormat",
    "ValueLabelTable",
    "ExtensionBlock",
    "InternalRecords",
    "Schema",
    "ParsedFile",
    "SavError",
    "CursorError",
    "CursorBoundsError",
    "UnexpectedEndOfFile",
    "FormatError",
    "SignatureError",
    "MagicMismatchError",
    "RecordSizeError",
    "InstructionError",
    "UnknownRecordError",
]
