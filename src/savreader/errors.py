"""
Exception hierarchy for system-file decoding.

Every inconsistency found while decoding is fatal. There is no best-effort
mode: the first error aborts the whole parse and propagates to the caller.

Messages always name the expected value (or set of values) and the value
actually observed in the buffer.
"""


class SavError(Exception):
    """Base class for all decoding failures."""
    pass


class CursorError(SavError):
    """Raised when a read or seek falls outside the buffer."""
    pass


class CursorBoundsError(CursorError):
    """Raised when seeking to a position outside [0, length]."""
    pass


class UnexpectedEndOfFile(CursorError):
    """Raised when a read requests more bytes than remain."""
    pass


class FormatError(SavError):
    """Raised when the buffer does not follow the system-file layout."""
    pass


class SignatureError(FormatError):
    """Raised when the leading 4-byte container signature is wrong."""
    pass


class MagicMismatchError(FormatError):
    """Raised when a value-label table is not followed by its index record."""
    pass


class RecordSizeError(FormatError):
    """Raised when a known extension record declares the wrong size."""
    pass


class InstructionError(FormatError):
    """Raised when a compression code is invalid for the cell being decoded."""
    pass


class UnknownRecordError(FormatError):
    """Raised when the dictionary contains a record tag outside the known set."""
    pass


__all__ = [
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
