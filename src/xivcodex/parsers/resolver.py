"""
Foreign key resolver.

Replaces every unresolved ForeignKeyRef in a sheet's records with a resolved
ref whose `resolved` record has its own references resolved too (depth-first).

Per reference:
    unresolved -> resolving -> resolved
    unresolved -> resolving -> cycle      (reference-only placeholder)

A visiting set of (sheet, id) pairs is carried along the current path; meeting
a pair that is already on the path marks only that edge as a cycle. The walk
uses an explicit frame stack instead of Python recursion, so long reference
chains (quest -> previous quest -> ...) do not hit the recursion limit.

Targets that cannot be found (no schema/CSV for the sheet, or no such id)
resolve to None and are reported as target-missing issues.

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Optional

from ..logging import get_logger
from ..values import DecodeIssue, ForeignKeyRef, IssueKind, ParsedSheet, Record, make_group
from .base import SchemaNotFound, SheetDataNotFound, TargetSheetMissing
from .cache import SheetCache

log = get_logger("parsers.resolver")

RefKey = tuple[str, int]


# ---------------------------------------------------------------------------
# Value walking
# ---------------------------------------------------------------------------

def _key(ref: ForeignKeyRef) -> RefKey:
    return (ref.target_sheet, ref.target_id)


def collect_refs(value: Any, out: Optional[dict[RefKey, ForeignKeyRef]] = None) -> dict[RefKey, ForeignKeyRef]:
    """Unresolved refs inside a value, first occurrence order, one per target."""
    if out is None:
        out = {}
    if isinstance(value, ForeignKeyRef):
        if not value.is_resolved and not value.is_cycle:
            out.setdefault(_key(value), value)
    elif isinstance(value, Mapping):
        for v in value.values():
            collect_refs(v, out)
    elif isinstance(value, tuple):
        for v in value:
            collect_refs(v, out)
    return out


def substitute(value: Any, results: dict[RefKey, Any]) -> Any:
    if isinstance(value, ForeignKeyRef):
        key = _key(value)
        return results[key] if key in results else value
    if isinstance(value, Record):
        return value.replace({k: substitute(v, results) for k, v in value.items()})
    if isinstance(value, Mapping):
        return make_group({k: substitute(v, results) for k, v in value.items()})
    if isinstance(value, tuple):
        return tuple(substitute(v, results) for v in value)
    return value


# ---------------------------------------------------------------------------
# Resolution frames
# ---------------------------------------------------------------------------

class _Frame:
    __slots__ = ("key", "record", "pending", "pos", "results", "issues", "tainted")

    def __init__(self, key: RefKey, record: Record):
        self.key = key
        self.record = record
        self.pending = list(collect_refs(record).values())
        self.pos = 0
        self.results: dict[RefKey, Any] = {}
        # issues of this frame and everything below it, each reported once
        self.issues: dict[DecodeIssue, None] = {}
        # result depends on the walk: a cycle was cut or a target sheet was missing below
        self.tainted = False

    @property
    def current(self) -> ForeignKeyRef:
        return self.pending[self.pos]

    def settle(self, value: Any) -> None:
        self.results[_key(self.current)] = value
        self.pos += 1

    def report(self, issues) -> None:
        for issue in issues:
            self.issues.setdefault(issue, None)


class ForeignKeyResolver:
    """
    Resolves references against the raw (unresolved) sheets held in `sheets`.

    Results that met no cycle and no missing sheet are memoised per (sheet, id)
    together with the issues found while building them, since neither depends
    on the path that reached them. A memo hit reports those issues again, so a
    sheet's issues never depend on what was parsed before it.
    """

    def __init__(self, sheets: SheetCache):
        self._sheets = sheets
        self._memo: dict[RefKey, tuple[Record, tuple[DecodeIssue, ...]]] = {}

    # -- lookups ----------------------------------------------------------------

    def _target_sheet(self, sheet: str) -> ParsedSheet:
        try:
            return self._sheets.get_or_parse(sheet)
        except (SchemaNotFound, SheetDataNotFound) as e:
            raise TargetSheetMissing(sheet, e) from e

    def deref(self, ref: ForeignKeyRef) -> Optional[Record]:
        """Raw target record for a reference, or None if it cannot be found."""
        try:
            return self._target_sheet(ref.target_sheet).get(ref.target_id)
        except TargetSheetMissing as e:
            log.debug("%s", e)
            return None

    def _lookup(
        self,
        frame: _Frame,
        ref: ForeignKeyRef,
        missing: dict[str, TargetSheetMissing],
    ) -> Optional[Record]:
        err = missing.get(ref.target_sheet)
        target: Optional[Record] = None
        if err is None:
            try:
                target = self._target_sheet(ref.target_sheet).get(ref.target_id)
            except TargetSheetMissing as e:
                missing[ref.target_sheet] = err = e
                log.warning("%s", e)
        if err is not None:
            # the sheet may still appear on disk; keep this result out of the memo
            frame.tainted = True
        if target is None:
            reason = str(err) if err is not None else f"{ref.target_sheet} has no row {ref.target_id}"
            frame.report((DecodeIssue(
                kind=IssueKind.TARGET_MISSING,
                sheet=frame.key[0],
                message=reason,
                row_id=frame.key[1],
                raw=str(ref.target_id),
            ),))
        return target

    # -- resolution -------------------------------------------------------------

    def resolve_record(
        self,
        sheet: str,
        record: Record,
        issues: list[DecodeIssue],
        missing: Optional[dict[str, TargetSheetMissing]] = None,
    ) -> Record:
        """
        Resolve one record depth-first. Issues found anywhere below it are
        appended to `issues`, one per (row, target) edge.
        """
        root_key: RefKey = (sheet, record.id)
        memo = self._memo.get(root_key)
        if memo is not None:
            issues.extend(memo[1])
            return memo[0]
        if missing is None:
            missing = {}

        visiting: set[RefKey] = {root_key}
        stack = [_Frame(root_key, record)]
        root = stack[0]
        built: Optional[Record] = None

        while stack:
            frame = stack[-1]

            if frame.pos < len(frame.pending):
                ref = frame.current
                key = _key(ref)
                if key in visiting:
                    frame.tainted = True
                    frame.report((DecodeIssue(
                        kind=IssueKind.CYCLE,
                        sheet=frame.key[0],
                        message=f"reference to {key[0]}#{key[1]} closes a cycle",
                        row_id=frame.key[1],
                        raw=str(key[1]),
                    ),))
                    frame.settle(ref.as_cycle())
                    continue
                known = self._memo.get(key)
                if known is not None:
                    frame.report(known[1])
                    frame.settle(ref.resolve_to(known[0]))
                    continue
                target = self._lookup(frame, ref, missing)
                if target is None:
                    frame.settle(None)
                    continue
                visiting.add(key)
                stack.append(_Frame(key, target))
                continue

            # every reference of this frame is settled
            stack.pop()
            visiting.discard(frame.key)
            built = substitute(frame.record, frame.results)
            if not frame.tainted:
                self._memo[frame.key] = (built, tuple(frame.issues))
            if stack:
                parent = stack[-1]
                parent.tainted = parent.tainted or frame.tainted
                parent.report(frame.issues)
                parent.settle(parent.current.resolve_to(built))

        assert built is not None
        issues.extend(root.issues)
        return built

    def resolve_sheet(self, sheet: ParsedSheet) -> ParsedSheet:
        found: list[DecodeIssue] = []
        missing: dict[str, TargetSheetMissing] = {}
        records = {
            row_id: self.resolve_record(sheet.sheet_name, record, found, missing)
            for row_id, record in sheet.items()
        }
        # rows sharing a target report its issues once
        issues = list(dict.fromkeys(found))
        cycles = sum(1 for i in issues if i.kind is IssueKind.CYCLE)
        log.info(
            "resolved %s: %d rows, %d cycle edges, %d missing targets",
            sheet.sheet_name, len(records), cycles, len(issues) - cycles,
        )
        return ParsedSheet(
            sheet.sheet_name,
            records,
            issues=sheet.issues + tuple(issues),
            resolved=True,
        )


__all__ = ["ForeignKeyResolver", "collect_refs", "substitute"]
