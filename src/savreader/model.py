"""
Core System File Model Objects

Defines the immutable values produced by the readers:
    - FileMeta (fixed 176-byte header)
    - Field (one declared variable, continuation records folded in)
    - InternalRecords (auxiliary dictionary records)
    - Schema (everything except the case data)
    - ParsedFile (schema plus decoded rows)

ARCHITECTURAL RULE:
    These objects:
        - Know nothing about byte offsets of their own sub-fields
        - Are frozen once built
        - Are fully serializable
        - Represent decoded content, not decoding behavior

The only mutable object here is InternalRecordsBuilder, which exists so the
internal-record loop can fill values incrementally without a half-built
InternalRecords ever escaping the reader.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from savreader.errors import FormatError


CellValue = Union[float, str, None]
Row = Dict[str, CellValue]

SEGMENT_SIZE = 8
HEADER_SIZE = 176


def frozen_map(items=None) -> Mapping:
    return MappingProxyType(dict(items or {}))


@dataclass(frozen=True)
class FileMeta:
    """
    File-level metadata read from the fixed leading header.

    Properties:
        product: Product string of the writing application (trimmed)
        layout: Layout code (2 or 3 in practice, passed through)
        variables: Declared number of 8-byte slots per case
        compression:
            0 = uncompressed
            1 = byte-code compression
            2 = secondary compression mode (decoded exactly like 1)
        weight_index: 1-based slot of the weighting variable, 0 = none
        cases: Declared case count (-1 when the writer did not know it)
        bias: Offset subtracted from compressed integer codes
        created_date: Creation date text, e.g. "01 Jan 24"
        created_time: Creation time text, e.g. "10:15:00"
        label: File label (trimmed)
    """

    product: str
    layout: int
    variables: int
    compression: int
    weight_index: int
    cases: int
    bias: float
    created_date: str
    created_time: str
    label: str

    @property
    def compressed(self) -> bool:
        return self.compression != 0


@dataclass(frozen=True)
class MissingValues:
    """
    User-missing value specification of a single field.

    Numeric fields carry either discrete codes or a [low, high] range, or a
    range plus one discrete code. String fields carry up to three 8-byte
    strings.

    Properties:
        codes: Discrete numeric missing codes
        range: (low, high) inclusive missing range, or None
        strings: Discrete string missing values
    """

    codes: Tuple[float, ...] = ()
    range: Optional[Tuple[float, float]] = None
    strings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Field:
    """
    One declared variable of the dictionary, in declaration order.

    A string wider than one slot is stored as one field record followed by
    continuation records. Continuations are never materialized: they only
    bump `trailers` on the field they extend.

    Properties:
        start: Byte offset of the field record body
        code: 0 for numeric, N > 0 for a string of N characters
        name: Short variable name (8-byte slot, trimmed)
        label: Variable label, "" when the record carries none
        missing: Missing value specification, None when absent
        trailers: Number of continuation records that follow this field
    """

    start: int
    code: int
    name: str
    label: str = ""
    missing: Optional[MissingValues] = None
    trailers: int = 0

    @property
    def is_numeric(self) -> bool:
        return self.code == 0

    @property
    def is_string(self) -> bool:
        return self.code > 0

    @property
    def segments(self) -> int:
        """Number of 8-byte segments a cell of this field occupies."""
        if self.is_numeric:
            return 1
        return math.ceil(self.code / SEGMENT_SIZE)

    @property
    def width(self) -> int:
        """Number of dictionary slots, continuation records included."""
        return 1 + self.trailers


@dataclass(frozen=True)
class EncodingInfo:
    """Machine integer info (extension subtype 3)."""

    major: int
    minor: int
    revision: int
    machine: int
    float_format: int
    compression: int
    endianness: int
    character_code: int

    @property
    def little_endian(self) -> bool:
        # 1 = big-endian, 2 = little-endian
        return self.endianness != 1


@dataclass(frozen=True)
class FloatInfo:
    """Machine floating-point info (extension subtype 4)."""

    sysmis: float
    highest: float
    lowest: float


@dataclass(frozen=True)
class DisplayFormat:
    """Display format triple for one variable (extension subtype 11)."""

    type: int
    width: int
    align: int


@dataclass(frozen=True)
class ValueLabelTable:
    """
    Value labels shared by one or more variables.

    Properties:
        labels: Ordered mapping of stored value to label text
        indices: 1-based dictionary slot indices the table applies to
    """

    labels: Mapping[float, str]
    indices: frozenset = frozenset()


@dataclass(frozen=True)
class ExtensionBlock:
    """
    An extension record whose subtype is not decoded.

    Kept verbatim, split into its declared fixed-size elements, so the content
    survives a read untouched.
    """

    subtype: int
    records: Tuple[bytes, ...] = ()


@dataclass(frozen=True)
class InternalRecords:
    """
    Aggregate of the auxiliary dictionary records.

    Order between record kinds is not kept; order within each kind is.

    Properties:
        encoding: Machine integer info, None if the file has none
        floats: Machine floating-point info, None if the file has none
        display: Display formats, one per field
        value_labels: Value-label tables in file order
        documents: Document lines (80-character slots)
        long_names: Short name -> long name
        long_widths: Short name -> true string width
        extra: Opaque subtype 21 payloads
        extensions: Unrecognized extension records
        data_offset: Absolute byte offset where case data begins
    """

    data_offset: int
    encoding: Optional[EncodingInfo] = None
    floats: Optional[FloatInfo] = None
    display: Tuple[DisplayFormat, ...] = ()
    value_labels: Tuple[ValueLabelTable, ...] = ()
    documents: Tuple[str, ...] = ()
    long_names: Mapping[str, str] = field(default_factory=frozen_map)
    long_widths: Mapping[str, int] = field(default_factory=frozen_map)
    extra: Tuple[bytes, ...] = ()
    extensions: Tuple[ExtensionBlock, ...] = ()


@dataclass
class InternalRecordsBuilder:
    """Mutable accumulator for InternalRecords, filled record by record."""

    encoding: Optional[EncodingInfo] = None
    floats: Optional[FloatInfo] = None
    display: List[DisplayFormat] = field(default_factory=list)
    value_labels: List[ValueLabelTable] = field(default_factory=list)
    documents: List[str] = field(default_factory=list)
    long_names: Dict[str, str] = field(default_factory=dict)
    long_widths: Dict[str, int] = field(default_factory=dict)
    extra: List[bytes] = field(default_factory=list)
    extensions: List[ExtensionBlock] = field(default_factory=list)
    data_offset: Optional[int] = None

    @property
    def finished(self) -> bool:
        return self.data_offset is not None

    def build(self) -> InternalRecords:
        if self.data_offset is None:
            raise FormatError(
                "Internal records are not terminated. "
                "Expected: record 999 Actual: none"
            )
        return InternalRecords(
            data_offset=self.data_offset,
            encoding=self.encoding,
            floats=self.floats,
            display=tuple(self.display),
            value_labels=tuple(self.value_labels),
            documents=tuple(self.documents),
            long_names=frozen_map(self.long_names),
            long_widths=frozen_map(self.long_widths),
            extra=tuple(self.extra),
            extensions=tuple(self.extensions),
        )


@dataclass(frozen=True)
class Schema:
    """
    Everything in a system file except the case data.

    INVARIANTS:
        - fields are in declaration order
        - no field has a negative code
        - internal.data_offset points past the dictionary
    """

    meta: FileMeta
    fields: Tuple[Field, ...]
    internal: InternalRecords

    @property
    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def get_field(self, name: str) -> Optional[Field]:
        """
        Retrieve a field by short name.

        Returns:
            Field object or None if not found
        """
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def long_name(self, name: str) -> str:
        """Long variable name for `name`, falling back to the short name."""
        return self.internal.long_names.get(name, name)


@dataclass(frozen=True)
class ParsedFile:
    """Schema plus one row per declared case."""

    schema: Schema
    rows: Tuple[Row, ...] = ()
