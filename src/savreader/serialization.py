"""
Serialization helpers for decoded system files (Schema, rows, ParsedFile).

Schemas round-trip losslessly through an intermediate dict representation,
so they can be cached as JSON or YAML and rebuilt without the source file.
Opaque byte payloads are written as hex strings; value labels as
[value, label] pairs so numeric keys survive JSON.
"""
from __future__ import annotations

import json
import math
from typing import Any, Dict, Iterable, List

import yaml

from savreader.model import (
    CellValue,
    DisplayFormat,
    EncodingInfo,
    ExtensionBlock,
    Field,
    FileMeta,
    FloatInfo,
    InternalRecords,
    MissingValues,
    ParsedFile,
    Row,
    Schema,
    ValueLabelTable,
    frozen_map,
)


def meta_to_dict(m: FileMeta) -> Dict[str, Any]:
    return {
        "product": m.product,
        "layout": m.layout,
        "variables": m.variables,
        "compression": m.compression,
        "weight_index": m.weight_index,
        "cases": m.cases,
        "bias": m.bias,
        "created_date": m.created_date,
        "created_time": m.created_time,
        "label": m.label,
    }


def meta_from_dict(d: Dict[str, Any]) -> FileMeta:
    return FileMeta(
        product=d.get("product", ""),
        layout=d["layout"],
        variables=d["variables"],
        compression=d["compression"],
        weight_index=d.get("weight_index", 0),
        cases=d["cases"],
        bias=d["bias"],
        created_date=d.get("created_date", ""),
        created_time=d.get("created_time", ""),
        label=d.get("label", ""),
    )


def missing_to_dict(m: MissingValues | None) -> Dict[str, Any] | None:
    if m is None:
        return None
    return {
        "codes": list(m.codes),
        "range": list(m.range) if m.range is not None else None,
        "strings": list(m.strings),
    }


def missing_from_dict(d: Dict[str, Any] | None) -> MissingValues | None:
    if d is None:
        return None
    return MissingValues(
        codes=tuple(d.get("codes", [])),
        range=tuple(d["range"]) if d.get("range") is not None else None,
        strings=tuple(d.get("strings", [])),
    )


def field_to_dict(f: Field) -> Dict[str, Any]:
    return {
        "start": f.start,
        "code": f.code,
        "name": f.name,
        "label": f.label,
        "missing": missing_to_dict(f.missing),
        "trailers": f.trailers,
    }


def field_from_dict(d: Dict[str, Any]) -> Field:
    return Field(
        start=d["start"],
        code=d["code"],
        name=d["name"],
        label=d.get("label", ""),
        missing=missing_from_dict(d.get("missing")),
        trailers=d.get("trailers", 0),
    )


def value_labels_to_dict(t: ValueLabelTable) -> Dict[str, Any]:
    return {
        "labels": [[value, label] for value, label in t.labels.items()],
        "indices": sorted(t.indices),
    }


def value_labels_from_dict(d: Dict[str, Any]) -> ValueLabelTable:
    return ValueLabelTable(
        labels=frozen_map((float(value), label) for value, label in d.get("labels", [])),
        indices=frozenset(d.get("indices", [])),
    )


def encoding_to_dict(e: EncodingInfo | None) -> Dict[str, Any] | None:
    if e is None:
        return None
    return {
        "major": e.major,
        "minor": e.minor,
        "revision": e.revision,
        "machine": e.machine,
        "float_format": e.float_format,
        "compression": e.compression,
        "endianness": e.endianness,
        "character_code": e.character_code,
    }


def floats_to_dict(f: FloatInfo | None) -> Dict[str, Any] | None:
    if f is None:
        return None
    return {"sysmis": f.sysmis, "highest": f.highest, "lowest": f.lowest}


def display_to_dict(d: DisplayFormat) -> Dict[str, Any]:
    return {"type": d.type, "width": d.width, "align": d.align}


def extension_to_dict(e: ExtensionBlock) -> Dict[str, Any]:
    return {"subtype": e.subtype, "records": [r.hex() for r in e.records]}


def extension_from_dict(d: Dict[str, Any]) -> ExtensionBlock:
    return ExtensionBlock(
        subtype=d["subtype"],
        records=tuple(bytes.fromhex(r) for r in d.get("records", [])),
    )


def internal_to_dict(i: InternalRecords) -> Dict[str, Any]:
    return {
        "data_offset": i.data_offset,
        "encoding": encoding_to_dict(i.encoding),
        "floats": floats_to_dict(i.floats),
        "display": [display_to_dict(d) for d in i.display],
        "value_labels": [value_labels_to_dict(t) for t in i.value_labels],
        "documents": list(i.documents),
        "long_names": dict(i.long_names),
        "long_widths": dict(i.long_widths),
        "extra": [blob.hex() for blob in i.extra],
        "extensions": [extension_to_dict(e) for e in i.extensions],
    }


def internal_from_dict(d: Dict[str, Any]) -> InternalRecords:
    encoding = d.get("encoding")
    floats = d.get("floats")
    return InternalRecords(
        data_offset=d["data_offset"],
        encoding=EncodingInfo(**encoding) if encoding is not None else None,
        floats=FloatInfo(**floats) if floats is not None else None,
        display=tuple(DisplayFormat(**x) for x in d.get("display", [])),
        value_labels=tuple(value_labels_from_dict(t) for t in d.get("value_labels", [])),
        documents=tuple(d.get("documents", [])),
        long_names=frozen_map(d.get("long_names")),
        long_widths=frozen_map(d.get("long_widths")),
        extra=tuple(bytes.fromhex(blob) for blob in d.get("extra", [])),
        extensions=tuple(extension_from_dict(e) for e in d.get("extensions", [])),
    )


def schema_to_dict(s: Schema) -> Dict[str, Any]:
    return {
        "meta": meta_to_dict(s.meta),
        "fields": [field_to_dict(f) for f in s.fields],
        "internal": internal_to_dict(s.internal),
    }


def schema_from_dict(d: Dict[str, Any]) -> Schema:
    return Schema(
        meta=meta_from_dict(d["meta"]),
        fields=tuple(field_from_dict(f) for f in d.get("fields", [])),
        internal=internal_from_dict(d["internal"]),
    )


def _cell(value: CellValue) -> CellValue:
    # NaN and infinities have no JSON form; they read as missing
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def rows_to_list(rows: Iterable[Row]) -> List[Dict[str, Any]]:
    """Rows as plain dicts, with non-finite numeric cells mapped to None."""
    return [{name: _cell(value) for name, value in row.items()} for row in rows]


def parsed_to_dict(p: ParsedFile) -> Dict[str, Any]:
    return {"schema": schema_to_dict(p.schema), "rows": rows_to_list(p.rows)}


def schema_to_json(s: Schema) -> str:
    return json.dumps(schema_to_dict(s), sort_keys=True, allow_nan=False)


def schema_from_json(s: str) -> Schema:
    d = json.loads(s)
    return schema_from_dict(d)


def schema_to_yaml(s: Schema) -> str:
    return yaml.safe_dump(schema_to_dict(s))


def schema_from_yaml(s: str) -> Schema:
    d = yaml.safe_load(s)
    return schema_from_dict(d)


def rows_to_json(rows: Iterable[Row]) -> str:
    return json.dumps(rows_to_list(rows), indent=2, allow_nan=False)


def parsed_to_json(p: ParsedFile) -> str:
    return json.dumps(parsed_to_dict(p), indent=2, allow_nan=False)


def parsed_to_yaml(p: ParsedFile) -> str:
    return yaml.safe_dump(parsed_to_dict(p), sort_keys=False)
