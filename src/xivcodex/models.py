from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    String,
    Text,
    Boolean,
    DateTime,
    func,
    UniqueConstraint,
    Integer,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

"""
Snapshot tables for parsed sheets.

Parsed records are stored generically, one JSON payload per row, so any sheet
can be persisted without a per-sheet table design:

- SheetSnapshot: one row per stored sheet (counts, resolution mode, timestamps)
- SheetRow: one row per record

date: 2026-10-18
version: 0.1.0
"""


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# SheetSnapshot
# ---------------------------------------------------------------------------

class SheetSnapshot(Base):
    __tablename__ = "sheet_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sheet: Mapped[str] = mapped_column(String, nullable=False, unique=True, index=True)
    row_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    issue_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resolved: Mapped[bool] = mapped_column(Boolean, default=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SheetSnapshot(sheet={self.sheet!r}, rows={self.row_count})>"


# ---------------------------------------------------------------------------
# SheetRow
# ---------------------------------------------------------------------------

class SheetRow(Base):
    """
    One parsed record. `payload_json` holds xivcodex.values.to_plain(record).
    """
    __tablename__ = "sheet_rows"
    __table_args__ = (
        UniqueConstraint("sheet", "row_id", name="uq_sheet_row"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    sheet: Mapped[str] = mapped_column(String, nullable=False, index=True)
    row_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<SheetRow(sheet={self.sheet!r}, row_id={self.row_id})>"
