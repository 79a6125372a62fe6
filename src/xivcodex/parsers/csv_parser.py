"""
CSV parser for XIV Codex.

Turns game-data CSV exports into typed records using one JSON schema per sheet:

- loads and validates the schema (SchemaLoader)
- binds schema fields to physical columns (bind)
- reads the three header rows and decodes every data row (materialize)
- optionally resolves foreign keys into the referenced records (ForeignKeyResolver)
- keeps every parsed sheet for the lifetime of the parser (SheetCache)

Each CSVParser instance owns its caches, so two parsers over different
directories never share state.

Usage:
    parser = CSVParser("data/game-schemas", "data/game-csv",
                       ParserOptions(resolve_foreign_keys=False))
    quests = parser.parse_sheet("Quest")
    quests[65782]["Name"]

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..config import ENV_CSV_DIR, ENV_SCHEMA_DIR, ParserOptions, env_path
from ..logging import get_logger
from ..values import ForeignKeyRef, ParsedSheet, Record
from .base import ParserError, SchemaNotFound
from .binder import ColumnLayout, bind
from .cache import SheetCache
from .materializer import materialize, read_header
from .resolver import ForeignKeyResolver
from .schema import SchemaDefinition, SchemaLoader, schema_from_header

log = get_logger("parsers.csv_parser")


class CSVParser:
    """
    Schema-driven sheet parser.

    parse_sheet(name) is the only operation downstream code needs; it either
    returns a complete ParsedSheet (with None marking undecodable cells and
    issues listing what was absorbed) or raises a structural ParserError.
    """

    def __init__(
        self,
        schema_dir: str | Path,
        csv_dir: str | Path,
        options: Optional[ParserOptions] = None,
    ):
        self.schema_dir = Path(schema_dir)
        self.csv_dir = Path(csv_dir)
        if not self.schema_dir.is_dir():
            raise ParserError(f"Schema directory not found: {self.schema_dir}")
        if not self.csv_dir.is_dir():
            raise ParserError(f"CSV directory not found: {self.csv_dir}")

        self.options = options or ParserOptions()
        self.schemas = SchemaLoader(self.schema_dir)
        self._layouts: dict[str, ColumnLayout] = {}

        # raw: materialized, references unresolved; sheets: what parse_sheet returns
        self._raw = SheetCache(self._materialize, label="raw sheet")
        self._sheets = SheetCache(self._parse, label="sheet")
        self._resolver = ForeignKeyResolver(self._raw)

    @classmethod
    def from_env(cls, options: Optional[ParserOptions] = None) -> "CSVParser":
        """Build a parser from XIVCODEX_SCHEMA_DIR / XIVCODEX_CSV_DIR."""
        schema_dir = env_path(ENV_SCHEMA_DIR)
        csv_dir = env_path(ENV_CSV_DIR)
        if schema_dir is None or csv_dir is None:
            raise ParserError(f"Set {ENV_SCHEMA_DIR} and {ENV_CSV_DIR} to build a parser from the environment.")
        return cls(schema_dir, csv_dir, options or ParserOptions.from_env())

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def parse_sheet(self, sheet: str) -> ParsedSheet:
        """Parse (or return the cached) sheet `sheet`."""
        return self._sheets.get_or_parse(sheet)

    def schema(self, sheet: str) -> SchemaDefinition:
        try:
            return self.schemas.load(sheet)
        except SchemaNotFound:
            if not self.options.schema_from_header:
                raise
            csv_path = self.csv_path(sheet)
            if not csv_path.is_file():
                raise
        header = read_header(sheet, csv_path, encodings=self.options.encodings)
        log.info("no schema file for %s; using its CSV header rows", sheet)
        return self.schemas.register(schema_from_header(sheet, header.names, header.types))

    def layout(self, sheet: str) -> ColumnLayout:
        cached = self._layouts.get(sheet)
        if cached is None:
            cached = self._layouts[sheet] = bind(self.schema(sheet))
        return cached

    def deref(self, ref: ForeignKeyRef) -> Optional[Record]:
        """
        Lazy lookup of a reference's target (raw, references unresolved).
        Returns None when the target sheet or row does not exist.
        """
        if ref.resolved is not None:
            return ref.resolved
        return self._resolver.deref(ref)

    def csv_path(self, sheet: str) -> Path:
        return self.csv_dir / f"{sheet}.csv"

    @property
    def cached_sheets(self) -> list[str]:
        return list(self._sheets)

    # -----------------------------------------------------------------------
    # Cache factories
    # -----------------------------------------------------------------------

    def _materialize(self, sheet: str) -> ParsedSheet:
        layout = self.layout(sheet)
        return materialize(self.csv_path(sheet), layout, encodings=self.options.encodings)

    def _parse(self, sheet: str) -> ParsedSheet:
        raw = self._raw.get_or_parse(sheet)
        if not self.options.resolve_foreign_keys:
            return raw
        return self._resolver.resolve_sheet(raw)


__all__ = ["CSVParser"]
