# xivcodex/values.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterator, Optional, Union


"""
Value model for decoded sheets.

A cell decodes to one of:
    int | bool | str | float | ForeignKeyRef | tuple (array) | Group | None

- Record: read-only mapping of logical field name -> value, plus the row id
- ForeignKeyRef: reference into another sheet, unresolved/resolved/cycle
- ParsedSheet: read-only mapping of row id -> Record, plus absorbed DecodeIssues
- to_plain(): JSON-safe projection used by the CLI and the snapshot store

date: 2026-10-18
version: 0.1.0
"""


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------

def make_group(members: dict[str, Any]) -> Mapping[str, Any]:
    """Read-only view used for {Member} sub-structures."""
    return MappingProxyType(dict(members))


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------

class Record(Mapping):
    """
    One decoded row. Keys are logical field names (arrays and groups already
    collapsed). The primary key is not a field; it is `record.id`.
    """

    __slots__ = ("_id", "_fields")

    def __init__(self, id: int, fields: dict[str, Any]):
        self._id = int(id)
        self._fields = dict(fields)

    @property
    def id(self) -> int:
        return self._id

    def __getitem__(self, key: str) -> Any:
        return self._fields[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Record) and other.id != self.id:
            return False
        return Mapping.__eq__(self, other)

    __hash__ = None  # type: ignore[assignment]

    def replace(self, fields: dict[str, Any]) -> "Record":
        """New record with the same id and the given fields."""
        return Record(self._id, fields)

    def __repr__(self) -> str:
        return f"Record(id={self._id}, {self._fields!r})"


# ---------------------------------------------------------------------------
# ForeignKeyRef
# ---------------------------------------------------------------------------

class RefState(str, Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    CYCLE = "cycle"


@dataclass(frozen=True)
class ForeignKeyRef:
    """
    Integer id into another sheet. Never owns the target record; a resolved
    ref holds the record built from the target sheet's raw record.
    """
    target_sheet: str
    target_id: int
    resolved: Optional[Record] = field(default=None, hash=False)
    state: RefState = RefState.UNRESOLVED

    @property
    def is_resolved(self) -> bool:
        return self.state is RefState.RESOLVED

    @property
    def is_cycle(self) -> bool:
        return self.state is RefState.CYCLE

    def resolve_to(self, record: Record) -> "ForeignKeyRef":
        return ForeignKeyRef(self.target_sheet, self.target_id, record, RefState.RESOLVED)

    def as_cycle(self) -> "ForeignKeyRef":
        return ForeignKeyRef(self.target_sheet, self.target_id, None, RefState.CYCLE)

    def __repr__(self) -> str:
        tail = "" if self.state is RefState.UNRESOLVED else f", {self.state.value}"
        return f"Ref({self.target_sheet}#{self.target_id}{tail})"


Value = Union[int, bool, str, float, ForeignKeyRef, tuple, Mapping, None]


# ---------------------------------------------------------------------------
# Issues
# ---------------------------------------------------------------------------

class IssueKind(str, Enum):
    ROW_KEY = "row-key"
    CELL = "cell"
    DUPLICATE_KEY = "duplicate-key"
    TYPE_MISMATCH = "type-mismatch"
    CYCLE = "cycle"
    TARGET_MISSING = "target-missing"


@dataclass(frozen=True)
class DecodeIssue:
    """A data-quality problem that was absorbed instead of raised."""
    kind: IssueKind
    sheet: str
    message: str
    row_id: Optional[int] = None
    line: Optional[int] = None
    column: Optional[int] = None
    field: Optional[str] = None
    raw: Optional[str] = None

    def __str__(self) -> str:
        where = []
        if self.line is not None:
            where.append(f"line {self.line}")
        if self.row_id is not None:
            where.append(f"row {self.row_id}")
        if self.field:
            where.append(self.field)
        loc = ", ".join(where)
        return f"[{self.kind.value}] {self.sheet}" + (f" ({loc})" if loc else "") + f": {self.message}"


# ---------------------------------------------------------------------------
# ParsedSheet
# ---------------------------------------------------------------------------

class ParsedSheet(Mapping):
    """
    Read-only id -> Record mapping for one sheet.

    `resolved` tells whether foreign keys were resolved eagerly.
    `issues` lists every row/cell/reference problem absorbed during the parse.
    """

    def __init__(
        self,
        sheet_name: str,
        records_by_id: dict[int, Record],
        *,
        issues: tuple[DecodeIssue, ...] = (),
        resolved: bool = False,
    ):
        self.sheet_name = sheet_name
        self.records_by_id: Mapping[int, Record] = MappingProxyType(dict(records_by_id))
        self.issues: tuple[DecodeIssue, ...] = tuple(issues)
        self.resolved = resolved

    def __getitem__(self, key: int) -> Record:
        return self.records_by_id[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self.records_by_id)

    def __len__(self) -> int:
        return len(self.records_by_id)

    def issues_of(self, kind: IssueKind) -> list[DecodeIssue]:
        return [i for i in self.issues if i.kind is kind]

    def __repr__(self) -> str:
        return (
            f"<ParsedSheet({self.sheet_name!r}, rows={len(self)}, "
            f"issues={len(self.issues)}, resolved={self.resolved})>"
        )


# ---------------------------------------------------------------------------
# Plain projection
# ---------------------------------------------------------------------------

def to_plain(value: Any) -> Any:
    """
    JSON-safe projection of a decoded value.

      Record        -> {"id": ..., <fields>}
      ForeignKeyRef -> {"sheet": ..., "id": ..., "state": ..., ["record": ...]}
      tuple         -> list
      Group         -> dict
    """
    if isinstance(value, Record):
        out = {"id": value.id}
        out.update({k: to_plain(v) for k, v in value.items()})
        return out
    if isinstance(value, ForeignKeyRef):
        ref: dict[str, Any] = {
            "sheet": value.target_sheet,
            "id": value.target_id,
            "state": value.state.value,
        }
        if value.resolved is not None:
            ref["record"] = to_plain(value.resolved)
        return ref
    if isinstance(value, Mapping):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (tuple, list)):
        return [to_plain(v) for v in value]
    return value


__all__ = [
    "Record",
    "RefState",
    "ForeignKeyRef",
    "Value",
    "IssueKind",
    "DecodeIssue",
    "ParsedSheet",
    "make_group",
    "to_plain",
]
