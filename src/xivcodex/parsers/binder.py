"""
Column binder: SchemaDefinition -> ColumnLayout.

Expands every FieldSpec into per-column bindings and parses the field-name
grammar once, so row decoding never looks at names again:

    Base           scalar field
    Base[n]        element n of array field Base
    Base{Member}   member of group field Base
    Base{A}[2]     qualifiers nest in any order

Rules:
- array elements under one parent must be exactly 0..n-1 (ordered by declared
  index, not by physical column)
- [n] and {Member} under the same parent -> AmbiguousFieldBinding
- duplicate paths and scalar/structure clashes -> FieldBindingError
- "", "key", "#..." and unused/placeholder fields are dropped, but keep their
  physical slot so indices stay aligned with the raw row

date: 2026-10-18
version: 0.1.0
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from .base import AmbiguousFieldBinding, FieldBindingError
from .schema import ColumnType, SchemaDefinition, KEY_FIELD

PathSegment = Union[str, int]

_BASE = re.compile(r"[^\[\]{}]+")
_QUALIFIER = re.compile(r"\[(\d+)\]|\{([^\[\]{}]+)\}")


# ---------------------------------------------------------------------------
# Bindings & decode plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnBinding:
    physical_index: int
    field_path: tuple[PathSegment, ...]
    type: ColumnType
    target: Optional[str] = None
    source_name: str = ""

    @property
    def field_name(self) -> str:
        return str(self.field_path[0])


@dataclass(frozen=True)
class Leaf:
    index: int


@dataclass(frozen=True)
class ArrayNode:
    items: tuple["PlanNode", ...]


@dataclass(frozen=True)
class GroupNode:
    members: tuple[tuple[str, "PlanNode"], ...]


PlanNode = Union[Leaf, ArrayNode, GroupNode]


@dataclass(frozen=True)
class ColumnLayout:
    """
    Result of binding one schema.

    slots[i] is the binding for physical column i, or None for a reserved
    (dropped / unclaimed) column. `plan` describes how decoded cells collapse
    into the record's top-level fields.
    """
    sheet: str
    slots: tuple[Optional[ColumnBinding], ...]
    plan: tuple[tuple[str, PlanNode], ...]
    key_index: int = 0

    @property
    def width(self) -> int:
        return len(self.slots)

    @property
    def bindings(self) -> tuple[ColumnBinding, ...]:
        return tuple(b for b in self.slots if b is not None)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.plan)


# ---------------------------------------------------------------------------
# Field-name grammar
# ---------------------------------------------------------------------------

def is_dropped_name(name: str) -> bool:
    n = (name or "").strip()
    return n == "" or n == KEY_FIELD or n.startswith("#")


def parse_field_name(sheet: str, name: str) -> tuple[PathSegment, ...]:
    """'Script{Instruction}[0]' -> ('Script', 'Instruction', 0)"""
    text = name.strip()
    m = _BASE.match(text)
    if not m or not m.group(0).strip():
        raise FieldBindingError(sheet, f"field name {name!r} has no base name")
    path: list[PathSegment] = [m.group(0).strip()]
    pos = m.end()
    while pos < len(text):
        q = _QUALIFIER.match(text, pos)
        if not q:
            raise FieldBindingError(sheet, f"cannot parse qualifier in field name {name!r}")
        if q.group(1) is not None:
            path.append(int(q.group(1)))
        else:
            member = q.group(2).strip()
            if not member:
                raise FieldBindingError(sheet, f"empty group member in field name {name!r}")
            path.append(member)
        pos = q.end()
    return tuple(path)


# ---------------------------------------------------------------------------
# Path tree
# ---------------------------------------------------------------------------

class _Tree:
    """Mutable build-time tree; kind is 'array' or 'group'."""

    def __init__(self, kind: str, label: str):
        self.kind = kind
        self.label = label
        self.children: dict = {}


def _describe(path: tuple[PathSegment, ...]) -> str:
    out = str(path[0])
    for seg in path[1:]:
        out += f"[{seg}]" if isinstance(seg, int) else f"{{{seg}}}"
    return out


def _insert(sheet: str, root: _Tree, binding: ColumnBinding) -> None:
    node = root
    path = binding.field_path
    for depth, seg in enumerate(path):
        last = depth == len(path) - 1
        here = _describe(path[: depth + 1])
        if last:
            if seg in node.children:
                prior = node.children[seg]
                if isinstance(prior, ColumnBinding):
                    raise FieldBindingError(
                        sheet,
                        f"{here} is bound to both column {prior.physical_index} "
                        f"and column {binding.physical_index}",
                    )
                raise FieldBindingError(sheet, f"{here} is used both as a scalar and as a structure")
            node.children[seg] = binding
            return

        nxt = path[depth + 1]
        want = "array" if isinstance(nxt, int) else "group"
        child = node.children.get(seg)
        if child is None:
            child = _Tree(want, here)
            node.children[seg] = child
        elif isinstance(child, ColumnBinding):
            raise FieldBindingError(sheet, f"{here} is used both as a scalar and as a structure")
        elif child.kind != want:
            raise AmbiguousFieldBinding(sheet, f"{here} is used both as an array and as a group")
        node = child


def _compile(sheet: str, node) -> PlanNode:
    if isinstance(node, ColumnBinding):
        return Leaf(node.physical_index)
    if node.kind == "array":
        indices = sorted(node.children)
        if indices != list(range(len(indices))):
            missing = sorted(set(range(indices[-1] + 1)) - set(indices))
            raise FieldBindingError(
                sheet, f"array {node.label} has indices {indices}; missing {missing}"
            )
        return ArrayNode(tuple(_compile(sheet, node.children[i]) for i in indices))
    return GroupNode(tuple((k, _compile(sheet, v)) for k, v in node.children.items()))


# ---------------------------------------------------------------------------
# bind
# ---------------------------------------------------------------------------

def bind(schema: SchemaDefinition) -> ColumnLayout:
    """Pure function of the schema; deterministic column order."""
    sheet = schema.sheet
    slots: list[Optional[ColumnBinding]] = [None] * schema.width
    root = _Tree("group", sheet)

    for spec in schema.fields:
        if spec.type is ColumnType.UNUSED or is_dropped_name(spec.name):
            continue
        base = parse_field_name(sheet, spec.name)
        for offset, col in enumerate(spec.columns()):
            path = base + (offset,) if spec.column_span > 1 else base
            binding = ColumnBinding(col, path, spec.type, spec.target, spec.name)
            slots[col] = binding
            _insert(sheet, root, binding)

    plan = tuple((str(k), _compile(sheet, v)) for k, v in root.children.items())
    return ColumnLayout(sheet, tuple(slots), plan)


__all__ = [
    "ColumnBinding",
    "ColumnLayout",
    "Leaf",
    "ArrayNode",
    "GroupNode",
    "PlanNode",
    "bind",
    "parse_field_name",
    "is_dropped_name",
]
