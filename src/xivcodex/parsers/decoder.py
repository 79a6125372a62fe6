"""
Row decoder: one raw CSV row + ColumnLayout -> Record.

Per-type coercion:
- int:    signed integer; empty -> None
- bool:   True/true/1 -> True; False/false/0/empty -> False
- string: verbatim; empty stays ""
- float:  decimal; empty -> None
- ref:    positive integer -> unresolved ForeignKeyRef; empty or <= 0 -> None

A bad cell becomes None and is reported as a DecodeIssue (the row survives).
A bad primary key raises RowKeyDecodeFailure (the row cannot be indexed).
"""

from __future__ import annotations

import re
from typing import Any, Optional, Sequence

from ..values import DecodeIssue, ForeignKeyRef, IssueKind, Record, make_group
from .base import CellDecodeFailure, RowKeyDecodeFailure
from .binder import ArrayNode, ColumnBinding, ColumnLayout, GroupNode, Leaf, PlanNode
from .schema import ColumnType

_INT = re.compile(r"[+-]?[0-9]+")
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")

TRUE_TOKENS = {"True", "true", "1"}
FALSE_TOKENS = {"False", "false", "0", ""}


# ---------------------------------------------------------------------------
# Cell coercion
# ---------------------------------------------------------------------------

def _parse_int(raw: str, expected: str) -> Optional[int]:
    s = raw.strip()
    if s == "":
        return None
    if not _INT.fullmatch(s):
        raise CellDecodeFailure(raw, expected)
    return int(s)


def coerce_cell(raw: str, binding: ColumnBinding) -> Any:
    """Decode one cell per its binding type; raises CellDecodeFailure."""
    ctype = binding.type

    if ctype is ColumnType.STRING:
        return raw

    if ctype is ColumnType.INT:
        return _parse_int(raw, "int")

    if ctype is ColumnType.BOOL:
        s = raw.strip()
        if s in TRUE_TOKENS:
            return True
        if s in FALSE_TOKENS:
            return False
        raise CellDecodeFailure(raw, "bool")

    if ctype is ColumnType.FLOAT:
        s = raw.strip()
        if s == "":
            return None
        if not _DECIMAL.fullmatch(s):
            raise CellDecodeFailure(raw, "float")
        return float(s)

    if ctype is ColumnType.REF:
        target_id = _parse_int(raw, f"reference into {binding.target}")
        if target_id is None or target_id <= 0:
            return None
        return ForeignKeyRef(binding.target, target_id)

    # UNUSED never gets a binding
    return None


def decode_key(raw: Optional[str]) -> int:
    s = (raw or "").strip()
    if s == "":
        raise RowKeyDecodeFailure(raw or "", "primary key is empty")
    if not _INT.fullmatch(s):
        raise RowKeyDecodeFailure(s)
    return int(s)


# ---------------------------------------------------------------------------
# Row decoding
# ---------------------------------------------------------------------------

def _assemble(node: PlanNode, cells: Sequence[Any]) -> Any:
    if isinstance(node, Leaf):
        return cells[node.index]
    if isinstance(node, ArrayNode):
        return tuple(_assemble(item, cells) for item in node.items)
    if isinstance(node, GroupNode):
        return make_group({name: _assemble(child, cells) for name, child in node.members})
    raise TypeError(f"unknown plan node {node!r}")


def decode_row(
    raw_row: Sequence[str],
    layout: ColumnLayout,
    *,
    line: Optional[int] = None,
) -> tuple[Record, list[DecodeIssue]]:
    """
    Decode a row. Returns (record, cell issues).
    Raises RowKeyDecodeFailure when the key column cannot be decoded.
    """
    key_raw = raw_row[layout.key_index] if len(raw_row) > layout.key_index else ""
    row_id = decode_key(key_raw)

    issues: list[DecodeIssue] = []
    cells: list[Any] = [None] * layout.width
    for binding in layout.slots:
        if binding is None:
            continue
        col = binding.physical_index
        raw = raw_row[col] if col < len(raw_row) else ""
        try:
            cells[col] = coerce_cell(raw, binding)
        except CellDecodeFailure as e:
            issues.append(DecodeIssue(
                kind=IssueKind.CELL,
                sheet=layout.sheet,
                message=str(e),
                row_id=row_id,
                line=line,
                column=col,
                field=binding.source_name,
                raw=raw,
            ))

    fields = {name: _assemble(node, cells) for name, node in layout.plan}
    return Record(row_id, fields), issues


__all__ = ["coerce_cell", "decode_key", "decode_row"]
