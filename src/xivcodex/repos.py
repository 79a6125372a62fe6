# xivcodex/repos.py
from __future__ import annotations

import json
from contextlib import contextmanager
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from .db import SessionLocal
from .logging import get_logger
from .models import SheetRow, SheetSnapshot
from .values import ParsedSheet, to_plain

log = get_logger("repos")


# --- Session scope -------------------------------------------------------------

@contextmanager
def session_scope(session_factory=SessionLocal):
    s: Session = session_factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


def _dumps(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


# --- SheetRow Repository -------------------------------------------------------

class SheetRowRepository:
    """
    Data-access boundary for stored sheets.
    - replace_sheet() swaps a sheet's rows atomically (delete + insert in one session).
    - Payloads are JSON; get() hands back plain dicts.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory

    def replace_sheet(self, parsed: ParsedSheet) -> int:
        name = parsed.sheet_name
        with session_scope(self._session_factory) as s:
            s.execute(delete(SheetRow).where(SheetRow.sheet == name))
            s.add_all(
                SheetRow(sheet=name, row_id=row_id, payload_json=_dumps(to_plain(record)))
                for row_id, record in parsed.items()
            )

            snap = s.execute(
                select(SheetSnapshot).where(SheetSnapshot.sheet == name)
            ).scalar_one_or_none()
            if snap is None:
                snap = SheetSnapshot(sheet=name)
                s.add(snap)
            snap.row_count = len(parsed)
            snap.issue_count = len(parsed.issues)
            snap.resolved = bool(parsed.resolved)

        log.info("stored %s: %d rows", name, len(parsed))
        return len(parsed)

    def get(self, sheet: str, row_id: int) -> Optional[dict[str, Any]]:
        with session_scope(self._session_factory) as s:
            row = s.execute(
                select(SheetRow).where(SheetRow.sheet == sheet, SheetRow.row_id == int(row_id))
            ).scalar_one_or_none()
            return json.loads(row.payload_json) if row else None

    def list_ids(self, sheet: str) -> list[int]:
        with session_scope(self._session_factory) as s:
            return list(
                s.execute(
                    select(SheetRow.row_id).where(SheetRow.sheet == sheet).order_by(SheetRow.row_id)
                ).scalars()
            )

    def count(self, sheet: str) -> int:
        with session_scope(self._session_factory) as s:
            return int(
                s.execute(select(func.count(SheetRow.id)).where(SheetRow.sheet == sheet)).scalar_one()
            )

    def snapshot(self, sheet: str) -> Optional[SheetSnapshot]:
        with session_scope(self._session_factory) as s:
            return s.execute(
                select(SheetSnapshot).where(SheetSnapshot.sheet == sheet)
            ).scalar_one_or_none()

    def delete_sheet(self, sheet: str) -> int:
        with session_scope(self._session_factory) as s:
            res = s.execute(delete(SheetRow).where(SheetRow.sheet == sheet))
            s.execute(delete(SheetSnapshot).where(SheetSnapshot.sheet == sheet))
            return int(res.rowcount or 0)


__all__ = ["session_scope", "SheetRowRepository"]
