"""
Per-engine sheet cache.

The first successful parse of a sheet is kept for the lifetime of the cache and
returned (same object) to every later caller. A failed parse is not cached, so
the next request tries again from scratch.
"""

from __future__ import annotations

from typing import Callable, Iterator, Optional

from ..logging import get_logger
from ..values import ParsedSheet

log = get_logger("parsers.cache")


class SheetCache:
    def __init__(self, factory: Callable[[str], ParsedSheet], *, label: str = "sheets"):
        self._factory = factory
        self._label = label
        self._sheets: dict[str, ParsedSheet] = {}

    def get_or_parse(self, sheet: str) -> ParsedSheet:
        cached = self._sheets.get(sheet)
        if cached is not None:
            return cached
        parsed = self._factory(sheet)  # exceptions propagate; nothing is stored
        self._sheets[sheet] = parsed
        log.debug("cached %s %s (%d rows)", self._label, sheet, len(parsed))
        return parsed

    def get(self, sheet: str) -> Optional[ParsedSheet]:
        return self._sheets.get(sheet)

    def __contains__(self, sheet: object) -> bool:
        return sheet in self._sheets

    def __len__(self) -> int:
        return len(self._sheets)

    def __iter__(self) -> Iterator[str]:
        return iter(self._sheets)

    def clear(self) -> None:
        self._sheets.clear()


__all__ = ["SheetCache"]
