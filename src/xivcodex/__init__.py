"""
XIV Codex package initializer.

Exposes the sheet parser and the value model for convenience imports.

date: 2026-10-18
version: 0.1.0
"""

from .config import ParserOptions
from .parsers import (
    CSVParser,
    ParserError,
    SchemaNotFound,
    SchemaMalformed,
    FieldBindingError,
    AmbiguousFieldBinding,
    SheetDataNotFound,
    SheetMalformed,
)
from .values import (
    DecodeIssue,
    ForeignKeyRef,
    IssueKind,
    ParsedSheet,
    Record,
    RefState,
    to_plain,
)

__version__ = "0.1.0"

__all__ = [
    # Engine
    "CSVParser",
    "ParserOptions",
    # Values
    "Record",
    "ForeignKeyRef",
    "RefState",
    "ParsedSheet",
    "DecodeIssue",
    "IssueKind",
    "to_plain",
    # Errors
    "ParserError",
    "SchemaNotFound",
    "SchemaMalformed",
    "FieldBindingError",
    "AmbiguousFieldBinding",
    "SheetDataNotFound",
    "SheetMalformed",
]
