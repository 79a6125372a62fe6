"""
Schema loader for sheet definitions.

Reads <schema_dir>/<Sheet>.json (SaintCoinach-style definitions) and produces an
immutable SchemaDefinition: an ordered tuple of FieldSpecs, each claiming one or
more physical CSV columns. Physical column 0 is always the row key.

    {"sheet": "Quest",
     "definitions": [
        {"index": 0, "name": "Name", "type": "str"},
        {"name": "Issuer{Start}", "converter": {"type": "link", "target": "ENpcResident"}},
        {"type": "repeat", "count": 3, "definition": {"name": "PreviousQuest", ...}},
        {"type": "group", "members": [...]}
     ]}

- `index` counts data columns after the key (physical column = index + 1);
  without it a definition starts where the previous one ended.
- `repeat` expands its definition `count` times, suffixing names with [i].
- `group` lays its members out one after another.
- `count` on a plain definition makes it an array field spanning that many columns.

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Sequence

from ..logging import get_logger
from .base import SchemaMalformed, SchemaNotFound

log = get_logger("parsers.schema")


# ---------------------------------------------------------------------------
# Column types
# ---------------------------------------------------------------------------

class ColumnType(str, Enum):
    INT = "int"
    BOOL = "bool"
    STRING = "string"
    FLOAT = "float"
    REF = "enum-ref"
    UNUSED = "unused"


INT_TOKENS = {
    "int", "int8", "int16", "int32", "int64",
    "uint8", "uint16", "uint32", "uint64",
    "byte", "sbyte",
}
FLOAT_TOKENS = {"single", "double", "float", "floating-point"}
STRING_TOKENS = {"str", "string"}
BOOL_TOKENS = {"bool"}
REF_TOKENS = {"enum-ref", "link"}
UNUSED_TOKENS = {"unused", "placeholder"}

# Integer-valued columns as they appear in a CSV type row
HEADER_INT_TOKENS = {"image", "color"}

_BIT_FLAG = re.compile(r"^bit&[0-9a-fA-F]+$")


def parse_type_token(token: Optional[str]) -> Optional[ColumnType]:
    """Map a schema type token to a ColumnType; None if unknown."""
    if token is None:
        return ColumnType.STRING
    t = token.strip().lower()
    if t in INT_TOKENS:
        return ColumnType.INT
    if t in BOOL_TOKENS or _BIT_FLAG.match(t):
        return ColumnType.BOOL
    if t in STRING_TOKENS:
        return ColumnType.STRING
    if t in FLOAT_TOKENS:
        return ColumnType.FLOAT
    if t in REF_TOKENS:
        return ColumnType.REF
    if t in UNUSED_TOKENS:
        return ColumnType.UNUSED
    return None


def header_type_family(token: str) -> tuple[Optional[ColumnType], Optional[str]]:
    """
    Classify a token from a CSV type-annotation row.

    Returns (type, link_target). A capitalised token that is not a primitive
    names another sheet, e.g. "ENpcResident" -> (REF, "ENpcResident").
    Unknown/blank tokens give (None, None).
    """
    t = (token or "").strip()
    if not t:
        return None, None
    if t.lower() in HEADER_INT_TOKENS:
        return ColumnType.INT, None
    known = parse_type_token(t)
    if known is not None:
        return known, None
    if t[0].isupper() and t.isidentifier():
        return ColumnType.REF, t
    return None, None


# ---------------------------------------------------------------------------
# FieldSpec / SchemaDefinition
# ---------------------------------------------------------------------------

KEY_FIELD = "key"


@dataclass(frozen=True)
class FieldSpec:
    """
    One declared field.

    name:        raw schema name, may carry [n] / {Member} qualifiers
    type:        declared ColumnType
    start:       first physical column claimed
    column_span: number of consecutive columns (>1 makes an array field)
    target:      target sheet for REF fields
    """
    name: str
    type: ColumnType
    start: int
    column_span: int = 1
    target: Optional[str] = None

    @property
    def end(self) -> int:
        return self.start + self.column_span

    def columns(self) -> range:
        return range(self.start, self.end)


@dataclass(frozen=True)
class SchemaDefinition:
    """Immutable, validated list of FieldSpecs for one sheet."""
    sheet: str
    fields: tuple[FieldSpec, ...]
    default_column: Optional[str] = None
    source: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", tuple(self.fields))
        _validate(self)

    @property
    def width(self) -> int:
        """Number of physical columns the schema accounts for."""
        return max((f.end for f in self.fields), default=0)


def _validate(schema: SchemaDefinition) -> None:
    claimed: dict[int, str] = {}
    for spec in schema.fields:
        if not isinstance(spec.name, str):
            raise SchemaMalformed(schema.sheet, f"field name must be a string, got {spec.name!r}")
        if not isinstance(spec.type, ColumnType):
            raise SchemaMalformed(schema.sheet, f"field {spec.name!r} has unknown type {spec.type!r}")
        if spec.column_span < 1:
            raise SchemaMalformed(
                schema.sheet, f"field {spec.name!r} has invalid column span {spec.column_span}"
            )
        if spec.start < 0:
            raise SchemaMalformed(schema.sheet, f"field {spec.name!r} starts at negative column {spec.start}")
        if spec.type is ColumnType.REF and not spec.target:
            raise SchemaMalformed(schema.sheet, f"reference field {spec.name!r} declares no target sheet")
        for col in spec.columns():
            if col in claimed:
                raise SchemaMalformed(
                    schema.sheet,
                    f"fields {claimed[col]!r} and {spec.name!r} both claim column {col}",
                )
            claimed[col] = spec.name


# ---------------------------------------------------------------------------
# JSON definitions -> FieldSpecs
# ---------------------------------------------------------------------------

def _positive_int(sheet: str, value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise SchemaMalformed(sheet, f"{what} must be a positive integer, got {value!r}")
    return value


def _column_type(sheet: str, defn: dict) -> tuple[ColumnType, Optional[str]]:
    converter = defn.get("converter")
    if converter is not None:
        if not isinstance(converter, dict):
            raise SchemaMalformed(sheet, f"converter must be an object, got {converter!r}")
        if converter.get("type") == "link":
            target = converter.get("target")
            if not isinstance(target, str) or not target.strip():
                raise SchemaMalformed(sheet, f"link converter on {defn.get('name')!r} has no target")
            return ColumnType.REF, target.strip()
        # icon / color / multiref / complexlink keep the raw integer
        log.debug("sheet %s: %s converter on %r decoded as int", sheet, converter.get("type"), defn.get("name"))
        return ColumnType.INT, None

    token = defn.get("type")
    ctype = parse_type_token(token)
    if ctype is None:
        raise SchemaMalformed(sheet, f"unknown type {token!r} on field {defn.get('name')!r}")
    target = defn.get("target")
    if ctype is ColumnType.REF and not (isinstance(target, str) and target.strip()):
        raise SchemaMalformed(sheet, f"reference field {defn.get('name')!r} declares no target sheet")
    return ctype, (target.strip() if ctype is ColumnType.REF else None)


def _expand(sheet: str, defn: Any, start: int, suffix: str = "") -> list[FieldSpec]:
    """Expand one definition (plain / repeat / group) into FieldSpecs from `start`."""
    if not isinstance(defn, dict):
        raise SchemaMalformed(sheet, f"definition must be an object, got {defn!r}")

    kind = defn.get("type")
    if kind == "repeat":
        count = _positive_int(sheet, defn.get("count"), "repeat count")
        inner = defn.get("definition")
        if inner is None:
            raise SchemaMalformed(sheet, "repeat definition is missing 'definition'")
        out: list[FieldSpec] = []
        cur = start
        for i in range(count):
            specs = _expand(sheet, inner, cur, f"[{i}]" + suffix)
            out.extend(specs)
            cur = max(s.end for s in specs) if specs else cur
        return out

    if kind == "group":
        members = defn.get("members")
        if not isinstance(members, list) or not members:
            raise SchemaMalformed(sheet, "group definition needs a non-empty 'members' list")
        out = []
        cur = start
        for member in members:
            specs = _expand(sheet, member, cur, suffix)
            out.extend(specs)
            cur = max(s.end for s in specs)
        return out

    name = defn.get("name")
    if not isinstance(name, str):
        raise SchemaMalformed(sheet, f"definition at column {start} has no name")
    ctype, target = _column_type(sheet, defn)
    span = defn.get("count", 1)
    if isinstance(span, bool) or not isinstance(span, int):
        raise SchemaMalformed(sheet, f"count on {name!r} must be an integer, got {span!r}")
    return [FieldSpec(name + suffix, ctype, start, span, target)]


def schema_from_json(sheet: str, doc: Any, *, source: Optional[str] = None) -> SchemaDefinition:
    """Build a SchemaDefinition from a parsed JSON document."""
    if not isinstance(doc, dict):
        raise SchemaMalformed(sheet, "top level must be an object")
    declared = doc.get("sheet")
    if declared is not None and declared != sheet:
        log.warning("schema file for %s declares sheet %r", sheet, declared)
    definitions = doc.get("definitions", [])
    if not isinstance(definitions, list):
        raise SchemaMalformed(sheet, "'definitions' must be a list")

    fields: list[FieldSpec] = [FieldSpec(KEY_FIELD, ColumnType.INT, 0)]
    cursor = 1
    for defn in definitions:
        if isinstance(defn, dict) and "index" in defn:
            index = defn["index"]
            if isinstance(index, bool) or not isinstance(index, int) or index < 0:
                raise SchemaMalformed(sheet, f"index must be a non-negative integer, got {index!r}")
            cursor = index + 1
        specs = _expand(sheet, defn, cursor)
        fields.extend(specs)
        cursor = max(s.end for s in specs)

    default_column = doc.get("defaultColumn")
    return SchemaDefinition(sheet, tuple(fields), default_column, source)


def schema_from_header(sheet: str, names: Sequence[str], types: Sequence[str]) -> SchemaDefinition:
    """
    Derive a schema from the CSV's name row and type row.
    Column 0 is the key; capitalised non-primitive type tokens become links.
    """
    fields: list[FieldSpec] = [FieldSpec(KEY_FIELD, ColumnType.INT, 0)]
    for col in range(1, len(names)):
        token = types[col] if col < len(types) else ""
        ctype, target = header_type_family(token)
        fields.append(FieldSpec((names[col] or "").strip(), ctype or ColumnType.STRING, col, 1, target))
    return SchemaDefinition(sheet, tuple(fields), source="csv-header")


# ---------------------------------------------------------------------------
# SchemaLoader
# ---------------------------------------------------------------------------

class SchemaLoader:
    """
    Loads and caches one SchemaDefinition per sheet name.

    Repeated loads of the same sheet return the cached object without
    touching the filesystem again.
    """

    def __init__(self, schema_dir: str | Path):
        self.schema_dir = Path(schema_dir)
        self._schemas: dict[str, SchemaDefinition] = {}

    def path_for(self, sheet: str) -> Path:
        return self.schema_dir / f"{sheet}.json"

    def register(self, schema: SchemaDefinition) -> SchemaDefinition:
        """Cache a schema built elsewhere (e.g. from CSV headers)."""
        self._schemas[schema.sheet] = schema
        return schema

    def is_loaded(self, sheet: str) -> bool:
        return sheet in self._schemas

    def load(self, sheet: str) -> SchemaDefinition:
        cached = self._schemas.get(sheet)
        if cached is not None:
            return cached

        if not sheet or "/" in sheet or "\\" in sheet or sheet in {".", ".."}:
            raise SchemaNotFound(sheet)
        p = self.path_for(sheet)
        if not p.is_file():
            raise SchemaNotFound(sheet, str(p))

        try:
            doc = json.loads(p.read_text(encoding="utf-8-sig"))
        except json.JSONDecodeError as e:
            raise SchemaMalformed(sheet, f"invalid JSON: {e}") from e

        schema = schema_from_json(sheet, doc, source=str(p))
        log.debug("loaded schema %s: %d fields, %d columns", sheet, len(schema.fields), schema.width)
        return self.register(schema)


__all__ = [
    "ColumnType",
    "FieldSpec",
    "SchemaDefinition",
    "SchemaLoader",
    "KEY_FIELD",
    "parse_type_token",
    "header_type_family",
    "schema_from_json",
    "schema_from_header",
]
