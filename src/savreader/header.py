"""
Reader for the fixed 176-byte file header.

Layout (all integers little-endian):

    0   4   signature "$FL2"
    4   60  product string
    64  4   layout code
    68  4   variable (slot) count
    72  4   compression flag
    76  4   weight variable index
    80  4   case count
    84  8   compression bias (float64)
    92  9   creation date
    101 8   creation time
    109 64  file label
    173 3   padding
"""

import logging
import struct
from typing import Optional

from savreader.cursor import ByteCursor
from savreader.errors import SignatureError
from savreader.model import FileMeta, HEADER_SIZE
from savreader.tracing import Tracer


logger = logging.getLogger(__name__)

SIGNATURE = "$FL2"

_COUNTS = struct.Struct("<5i")
_BIAS = struct.Struct("<d")


def decode_text(raw: bytes, encoding: str = "utf-8") -> str:
    """Decode a fixed-width text slot and strip its space/NUL padding."""
    return raw.decode(encoding, errors="replace").strip("\x00 ")


def read_file_meta(
    cursor: ByteCursor,
    trace: Optional[Tracer] = None,
    encoding: str = "utf-8",
) -> FileMeta:
    """
    Read the file header.

    The cursor is restored to where it was on entry, whether or not the
    header is valid.

    Raises:
        SignatureError: If the buffer does not start with "$FL2"
        UnexpectedEndOfFile: If the buffer is shorter than the header
    """
    trace = trace or Tracer(log=logger)
    with cursor.preserved():
        cursor.seek(0)
        trace("Reading Meta at 0")
        chunk = cursor.take(HEADER_SIZE)

        magic = chunk[0:4].decode("latin-1")
        if magic != SIGNATURE:
            raise SignatureError(
                f"File is not a sav. "
                f'Magic key Expected: "{SIGNATURE}" Actual: "{magic}"'
            )

        layout, variables, compression, weight_index, cases = _COUNTS.unpack_from(chunk, 64)
        (bias,) = _BIAS.unpack_from(chunk, 84)

        return FileMeta(
            product=decode_text(chunk[4:64], encoding),
            layout=layout,
            variables=variables,
            compression=compression,
            weight_index=weight_index,
            cases=cases,
            bias=bias,
            created_date=decode_text(chunk[92:101], encoding),
            created_time=decode_text(chunk[101:109], encoding),
            label=decode_text(chunk[109:173], encoding),
        )


__all__ = ["SIGNATURE", "read_file_meta", "decode_text"]
