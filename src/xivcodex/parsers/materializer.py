"""
Sheet materializer: CSV file + ColumnLayout -> ParsedSheet.

CSV convention (three header rows, then data):
  row 0   column index row ("key,0,1,2,...")       ignored
  row 1   field name row ("#,Name,...")             width check / header schemas
  row 2   type annotation row ("int32,str,...")     compatibility warnings only
  row 3+  data rows, column 0 is the integer key

Data rows are decoded one at a time as they are read. Rows with a bad or
duplicate key are dropped and reported; bad cells become None and are reported.

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Sequence

from ..config import DEFAULT_ENCODINGS
from ..logging import get_logger
from ..values import DecodeIssue, IssueKind, ParsedSheet, Record
from .base import RowKeyDecodeFailure, SheetDataNotFound, SheetMalformed
from .binder import ColumnLayout
from .decoder import decode_row
from .schema import ColumnType, header_type_family

log = get_logger("parsers.materializer")

HEADER_ROWS = 3


# ---------------------------------------------------------------------------
# Header
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SheetHeader:
    indices: tuple[str, ...]
    names: tuple[str, ...]
    types: tuple[str, ...]


def _is_blank(row: Sequence[str]) -> bool:
    return not row or all(c.strip() == "" for c in row)


def _rows(reader) -> Iterator[list[str]]:
    for row in reader:
        if _is_blank(row):
            continue
        yield row


def _take_header(sheet: str, rows: Iterator[list[str]]) -> SheetHeader:
    header = []
    for _ in range(HEADER_ROWS):
        row = next(rows, None)
        if row is None:
            raise SheetMalformed(sheet, f"expected {HEADER_ROWS} header rows, found {len(header)}")
        header.append(tuple(row))
    return SheetHeader(*header)


def _check_path(sheet: str, csv_path: str | Path) -> Path:
    p = Path(csv_path)
    if not p.is_file():
        raise SheetDataNotFound(sheet, str(p))
    return p


def read_header(
    sheet: str,
    csv_path: str | Path,
    *,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
) -> SheetHeader:
    """Read only the three header rows."""
    p = _check_path(sheet, csv_path)
    last_decode_err: Optional[UnicodeDecodeError] = None
    for enc in encodings:
        try:
            with p.open("r", encoding=enc, newline="") as f:
                return _take_header(sheet, _rows(csv.reader(f)))
        except UnicodeDecodeError as e:
            last_decode_err = e
            continue
        except csv.Error as e:
            raise SheetMalformed(sheet, f"CSV parsing error: {e}") from e
    raise SheetMalformed(
        sheet, f"encoding error (tried {', '.join(encodings)}): {last_decode_err}"
    ) from last_decode_err


# ---------------------------------------------------------------------------
# Type-row check
# ---------------------------------------------------------------------------

def _compatible(declared: ColumnType, token: str) -> bool:
    family, _ = header_type_family(token)
    if family is None or family is declared:
        return True
    integral = {ColumnType.INT, ColumnType.REF}
    return declared in integral and family in integral


def check_types(layout: ColumnLayout, header: SheetHeader) -> list[DecodeIssue]:
    """Warn (never fail) where the CSV's type row disagrees with the schema."""
    issues: list[DecodeIssue] = []
    for binding in layout.bindings:
        col = binding.physical_index
        if col >= len(header.types):
            continue
        token = header.types[col]
        if _compatible(binding.type, token):
            continue
        msg = f"schema declares {binding.type.value}, CSV type row says {token!r}"
        log.warning("sheet %s column %d (%s): %s", layout.sheet, col, binding.source_name, msg)
        issues.append(DecodeIssue(
            kind=IssueKind.TYPE_MISMATCH,
            sheet=layout.sheet,
            message=msg,
            column=col,
            field=binding.source_name,
            raw=token,
        ))
    return issues


# ---------------------------------------------------------------------------
# materialize
# ---------------------------------------------------------------------------

def _materialize_stream(f, layout: ColumnLayout) -> ParsedSheet:
    sheet = layout.sheet
    reader = csv.reader(f)
    rows = _rows(reader)
    header = _take_header(sheet, rows)

    if len(header.names) < layout.width:
        log.warning(
            "sheet %s: CSV has %d columns, schema expects %d; missing cells read as empty",
            sheet, len(header.names), layout.width,
        )
    issues = check_types(layout, header)

    records: dict[int, Record] = {}
    dropped = 0
    for raw in rows:
        line = reader.line_num
        try:
            record, cell_issues = decode_row(raw, layout, line=line)
        except RowKeyDecodeFailure as e:
            dropped += 1
            issues.append(DecodeIssue(
                kind=IssueKind.ROW_KEY, sheet=sheet, message=str(e),
                line=line, column=layout.key_index, raw=e.raw,
            ))
            continue

        if record.id in records:
            dropped += 1
            issues.append(DecodeIssue(
                kind=IssueKind.DUPLICATE_KEY, sheet=sheet,
                message=f"duplicate key {record.id}; first occurrence kept",
                row_id=record.id, line=line, column=layout.key_index,
                raw=raw[layout.key_index] if raw else None,
            ))
            continue

        records[record.id] = record
        issues.extend(cell_issues)

    for issue in issues:
        log.debug("%s", issue)
    cells = sum(1 for i in issues if i.kind is IssueKind.CELL)
    log.info("materialized %s: %d rows (%d dropped, %d bad cells)", sheet, len(records), dropped, cells)
    return ParsedSheet(sheet, records, issues=tuple(issues))


def materialize(
    csv_path: str | Path,
    layout: ColumnLayout,
    *,
    encodings: Sequence[str] = DEFAULT_ENCODINGS,
) -> ParsedSheet:
    """
    Read and decode one sheet.

    - Tries encodings in order; a UnicodeDecodeError restarts with the next.
    - Structural CSV errors raise SheetMalformed.
    """
    sheet = layout.sheet
    p = _check_path(sheet, csv_path)

    last_decode_err: Optional[UnicodeDecodeError] = None
    for enc in encodings:
        try:
            with p.open("r", encoding=enc, newline="") as f:
                return _materialize_stream(f, layout)
        except UnicodeDecodeError as e:
            # Could not decode with this encoding; start over with the next.
            log.debug("sheet %s: %s failed (%s), retrying", sheet, enc, e)
            last_decode_err = e
            continue
        except csv.Error as e:
            raise SheetMalformed(sheet, f"CSV parsing error: {e}") from e

    raise SheetMalformed(
        sheet, f"encoding error (tried {', '.join(encodings)}): {last_decode_err}"
    ) from last_decode_err


__all__ = ["SheetHeader", "read_header", "check_types", "materialize", "HEADER_ROWS"]
