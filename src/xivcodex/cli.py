# src/xivcodex/cli.py
from __future__ import annotations

"""
XIV Codex CLI

Commands:
  parse      Parse a sheet; print a summary, or one record as JSON (--show ID).
  issues     List the decode issues absorbed while parsing a sheet.
  snapshot   Parse a sheet and store its records in the snapshot database.

Directories default to XIVCODEX_SCHEMA_DIR / XIVCODEX_CSV_DIR.

date: 2026-10-18
version: 0.1.0
"""

import argparse
import json
import sys
from dataclasses import replace
from typing import Optional, Sequence

from . import logging as xlog
from .config import ENV_CSV_DIR, ENV_SCHEMA_DIR, ParserOptions, env_path, log_level
from .parsers import CSVParser, ParserError
from .values import IssueKind, to_plain


# ------------------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------------------

def _make_parser(args) -> CSVParser:
    schema_dir = args.schema_dir or env_path(ENV_SCHEMA_DIR)
    csv_dir = args.csv_dir or env_path(ENV_CSV_DIR)
    if schema_dir is None or csv_dir is None:
        raise ParserError(f"Pass --schema-dir/--csv-dir or set {ENV_SCHEMA_DIR}/{ENV_CSV_DIR}.")

    options = ParserOptions.from_env()
    if args.no_resolve:
        options = replace(options, resolve_foreign_keys=False)
    if args.from_header:
        options = replace(options, schema_from_header=True)
    return CSVParser(schema_dir, csv_dir, options)


def _print_summary(parsed) -> None:
    print(f"{parsed.sheet_name}: {len(parsed)} rows")
    if parsed.issues:
        counts = {}
        for issue in parsed.issues:
            counts[issue.kind] = counts.get(issue.kind, 0) + 1
        for kind in IssueKind:
            if kind in counts:
                print(f"  {kind.value:<14} {counts[kind]}")
    ids = list(parsed)
    if ids:
        print(f"  ids: {min(ids)} .. {max(ids)}")


# ------------------------------------------------------------------------------
# Command implementations
# ------------------------------------------------------------------------------

def cmd_parse(args) -> int:
    parsed = _make_parser(args).parse_sheet(args.sheet)
    if args.show is None:
        _print_summary(parsed)
        return 0

    record = parsed.get(args.show)
    if record is None:
        print(f"{args.sheet} has no row {args.show}.", file=sys.stderr)
        return 1
    print(json.dumps(to_plain(record), ensure_ascii=False, indent=2))
    return 0


def cmd_issues(args) -> int:
    parsed = _make_parser(args).parse_sheet(args.sheet)
    shown = [i for i in parsed.issues if args.kind is None or i.kind.value == args.kind]
    for issue in shown[: args.limit]:
        print(issue)
    if not shown:
        print("No issues.")
    elif len(shown) > args.limit:
        print(f"... {len(shown) - args.limit} more")
    return 0


def cmd_snapshot(args) -> int:
    from . import db
    from .repos import SheetRowRepository

    parsed = _make_parser(args).parse_sheet(args.sheet)
    db.init_db()
    count = SheetRowRepository().replace_sheet(parsed)
    print(f"Stored {count} row{'' if count == 1 else 's'} of {parsed.sheet_name}.")
    return 0


# ------------------------------------------------------------------------------
# argparse wiring
# ------------------------------------------------------------------------------

def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("sheet", help="Sheet name, e.g. Quest.")
    sp.add_argument("--schema-dir", default=None, help="Directory of <Sheet>.json schemas.")
    sp.add_argument("--csv-dir", default=None, help="Directory of <Sheet>.csv exports.")
    sp.add_argument("--no-resolve", action="store_true",
                    help="Leave foreign keys unresolved.")
    sp.add_argument("--from-header", action="store_true",
                    help="Derive missing schemas from the CSV header rows.")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="xivcodex",
        description="XIV Codex CLI - parse game-data CSV sheets with JSON schemas."
    )
    p.add_argument("--log-level", default=None, help="Logging level (default from XIVCODEX_LOG_LEVEL).")
    sub = p.add_subparsers(dest="command", required=True)

    # parse
    sp = sub.add_parser("parse", help="Parse a sheet and print a summary or one record.")
    _add_common(sp)
    sp.add_argument("--show", type=int, default=None, help="Row id to print as JSON.")
    sp.set_defaults(func=cmd_parse)

    # issues
    sp = sub.add_parser("issues", help="List decode issues for a sheet.")
    _add_common(sp)
    sp.add_argument("--kind", default=None, choices=[k.value for k in IssueKind])
    sp.add_argument("--limit", type=int, default=50)
    sp.set_defaults(func=cmd_issues)

    # snapshot
    sp = sub.add_parser("snapshot", help="Parse a sheet and store it in the snapshot database.")
    _add_common(sp)
    sp.set_defaults(func=cmd_snapshot)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    xlog.setup(args.log_level or log_level())
    try:
        return args.func(args)
    except ParserError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
