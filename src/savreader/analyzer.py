"""
Schema Analyzer: read-only diagnostics of a decoded system file dictionary.

This module provides lightweight checks of Schema objects:
    - Field inventory (numeric / string, labels, missing values)
    - Slot accounting against the header's declared variable count
    - Cross-reference checks of auxiliary records against the fields

IMPORTANT: Nothing here is fatal. Decoding errors are raised by the readers;
the analyzer only reports things that decoded fine but look inconsistent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Set

from savreader.model import Schema


@dataclass
class SchemaReport:
    """Analysis report for a schema."""

    file_label: str
    total_fields: int = 0
    numeric_fields: int = 0
    string_fields: int = 0
    total_slots: int = 0
    declared_slots: int = 0

    labelled_fields: int = 0
    fields_with_missing: int = 0
    value_label_tables: int = 0
    documents: int = 0
    extension_subtypes: Set[int] = field(default_factory=set)
    long_names: Dict[str, str] = field(default_factory=dict)

    warnings: List[str] = field(default_factory=list)

    def add_warning(self, msg: str) -> None:
        """Add a warning to the report."""
        if msg not in self.warnings:
            self.warnings.append(msg)


def analyze_schema(schema: Schema) -> SchemaReport:
    """
    Inspect a schema for internal inconsistencies.

    Checks for:
    - Slot count vs header variable count
    - Weight variable index in range
    - Value-label tables pointing at existing slots
    - Long names / long widths naming existing fields
    - One display format per field

    Returns a SchemaReport with counts and warnings.
    """
    meta = schema.meta
    internal = schema.internal
    report = SchemaReport(file_label=meta.label)

    report.total_fields = len(schema.fields)
    report.numeric_fields = sum(1 for f in schema.fields if f.is_numeric)
    report.string_fields = sum(1 for f in schema.fields if f.is_string)
    report.total_slots = sum(f.width for f in schema.fields)
    report.declared_slots = meta.variables
    report.labelled_fields = sum(1 for f in schema.fields if f.label)
    report.fields_with_missing = sum(1 for f in schema.fields if f.missing is not None)
    report.value_label_tables = len(internal.value_labels)
    report.documents = len(internal.documents)
    report.extension_subtypes = {e.subtype for e in internal.extensions}
    report.long_names = dict(internal.long_names)

    if meta.variables >= 0 and report.total_slots != meta.variables:
        report.add_warning(
            f"Slot count mismatch: header declares {meta.variables}, dictionary has {report.total_slots}"
        )

    if meta.weight_index and not 1 <= meta.weight_index <= report.total_slots:
        report.add_warning(
            f"Weight variable index {meta.weight_index} outside 1..{report.total_slots}"
        )

    for number, table in enumerate(internal.value_labels, start=1):
        outside = sorted(i for i in table.indices if not 1 <= i <= report.total_slots)
        if outside:
            report.add_warning(
                f"Value label table {number} applies to unknown slots: {', '.join(map(str, outside))}"
            )

    names = set(schema.field_names)
    unknown_long = sorted(set(internal.long_names) - names)
    if unknown_long:
        report.add_warning(f"Long names for unknown fields: {', '.join(unknown_long)}")

    unknown_widths = sorted(set(internal.long_widths) - names)
    if unknown_widths:
        report.add_warning(f"Long string widths for unknown fields: {', '.join(unknown_widths)}")

    if internal.display and len(internal.display) != report.total_fields:
        report.add_warning(
            f"Display format count {len(internal.display)} does not match {report.total_fields} fields"
        )

    return report
