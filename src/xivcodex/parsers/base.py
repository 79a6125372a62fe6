"""
Error taxonomy for the sheet parsers.

Structural errors (raised to the caller, abort the whole parse):
- SchemaNotFound, SchemaMalformed, FieldBindingError, AmbiguousFieldBinding
- SheetDataNotFound, SheetMalformed

Data-quality errors (raised inside the engine and absorbed into DecodeIssue
records on the ParsedSheet):
- RowKeyDecodeFailure: the row is dropped
- CellDecodeFailure: the cell becomes None
- TargetSheetMissing: the reference becomes None

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

from typing import Optional


# ---- Root ----------------------------------------------------------------------

class ParserError(Exception):
    """Raised when a parser encounters an unrecoverable problem."""


# ---- Structural ----------------------------------------------------------------

class SchemaNotFound(ParserError):
    def __init__(self, sheet: str, path: Optional[str] = None):
        self.sheet = sheet
        self.path = path
        where = f" (looked for {path})" if path else ""
        super().__init__(f"No schema for sheet {sheet!r}{where}")


class SchemaMalformed(ParserError):
    def __init__(self, sheet: str, reason: str):
        self.sheet = sheet
        self.reason = reason
        super().__init__(f"Malformed schema for sheet {sheet!r}: {reason}")


class FieldBindingError(SchemaMalformed):
    """Field names that cannot be bound: collisions, gaps, bad grammar."""


class AmbiguousFieldBinding(SchemaMalformed):
    """The same base is used both as an array ([n]) and as a group ({Member})."""


class SheetDataNotFound(ParserError):
    def __init__(self, sheet: str, path: Optional[str] = None):
        self.sheet = sheet
        self.path = path
        where = f" (looked for {path})" if path else ""
        super().__init__(f"No CSV data for sheet {sheet!r}{where}")


class SheetMalformed(ParserError):
    def __init__(self, sheet: str, reason: str):
        self.sheet = sheet
        self.reason = reason
        super().__init__(f"Malformed CSV for sheet {sheet!r}: {reason}")


# ---- Data quality (absorbed) ---------------------------------------------------

class RowKeyDecodeFailure(ParserError):
    def __init__(self, raw: str, reason: str = "primary key is not an integer"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"{reason}: {raw!r}")


class CellDecodeFailure(ParserError):
    def __init__(self, raw: str, expected: str):
        self.raw = raw
        self.expected = expected
        super().__init__(f"cannot decode {raw!r} as {expected}")


class TargetSheetMissing(ParserError):
    def __init__(self, sheet: str, cause: Optional[Exception] = None):
        self.sheet = sheet
        self.cause = cause
        super().__init__(f"reference target sheet {sheet!r} is not available")


__all__ = [
    "ParserError",
    "SchemaNotFound",
    "SchemaMalformed",
    "FieldBindingError",
    "AmbiguousFieldBinding",
    "SheetDataNotFound",
    "SheetMalformed",
    "RowKeyDecodeFailure",
    "CellDecodeFailure",
    "TargetSheetMissing",
]
