"""
Command line entry point: print the decoded content of a system file.

    savreader data.sav                      # schema and rows as JSON
    savreader data.sav --part meta          # header only
    savreader data.sav --format yaml --trace
    savreader data.sav --report             # analyzer warnings
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import yaml

from savreader.analyzer import analyze_schema
from savreader.cursor import ByteCursor
from savreader.errors import SavError
from savreader.parser import SavParser
from savreader.serialization import field_to_dict, meta_to_dict, parsed_to_dict, schema_to_dict


PARTS = ("meta", "fields", "schema", "all")
FORMATS = ("json", "yaml")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="savreader", description="Decode a system (.sav) file")
    parser.add_argument("path", help="Path to the .sav file")
    parser.add_argument("--part", choices=PARTS, default="all", help="What to decode (default: all)")
    parser.add_argument("--format", choices=FORMATS, default="json", help="Output format (default: json)")
    parser.add_argument("--encoding", default="utf-8", help="Text codec for names, labels and strings")
    parser.add_argument("--trace", action="store_true", help="Print parser trace lines to stderr")
    parser.add_argument("--report", action="store_true", help="Print schema diagnostics instead of content")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-vv for debug)")
    return parser


def _decode(parser: SavParser, cursor: ByteCursor, part: str):
    if part == "meta":
        return meta_to_dict(parser.meta(cursor))
    if part == "fields":
        return [field_to_dict(f) for f in parser.fields(cursor)]
    if part == "schema":
        return schema_to_dict(parser.schema(cursor))
    return parsed_to_dict(parser.read(cursor))


def _report(parser: SavParser, cursor: ByteCursor) -> dict:
    report = analyze_schema(parser.schema(cursor))
    return {
        "file_label": report.file_label,
        "fields": report.total_fields,
        "numeric_fields": report.numeric_fields,
        "string_fields": report.string_fields,
        "slots": report.total_slots,
        "declared_slots": report.declared_slots,
        "labelled_fields": report.labelled_fields,
        "fields_with_missing": report.fields_with_missing,
        "value_label_tables": report.value_label_tables,
        "documents": report.documents,
        "extension_subtypes": sorted(report.extension_subtypes),
        "warnings": report.warnings,
    }


def _dump(data, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False)
    return json.dumps(data, indent=2, allow_nan=False)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    trace: List[str] = []
    parser = SavParser(log=trace, encoding=args.encoding)
    try:
        cursor = ByteCursor.from_path(args.path)
        if args.report:
            data = _report(parser, cursor)
        else:
            data = _decode(parser, cursor, args.part)
        output = _dump(data, args.format)
    except (OSError, SavError, ValueError) as e:
        print(f"savreader: {e}", file=sys.stderr)
        return 1
    finally:
        if args.trace:
            for line in trace:
                print(line, file=sys.stderr)

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
