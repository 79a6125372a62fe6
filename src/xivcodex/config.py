from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


"""
Configuration for XIV Codex.

Values come from the environment (a .env file is loaded if present):

  XIVCODEX_SCHEMA_DIR            directory of <Sheet>.json schema files
  XIVCODEX_CSV_DIR               directory of <Sheet>.csv exports
  XIVCODEX_RESOLVE_FOREIGN_KEYS  "true"/"false" (default true)
  XIVCODEX_SCHEMA_FROM_HEADER    "true"/"false" (default false)
  XIVCODEX_LOG_LEVEL             logging level name (default INFO)
  DATABASE_URL                   snapshot store URL (see db.py)

date: 2026-10-18
version: 0.1.0
"""

# Load .env file if present
load_dotenv()

ENV_SCHEMA_DIR = "XIVCODEX_SCHEMA_DIR"
ENV_CSV_DIR = "XIVCODEX_CSV_DIR"
ENV_RESOLVE_FKS = "XIVCODEX_RESOLVE_FOREIGN_KEYS"
ENV_SCHEMA_FROM_HEADER = "XIVCODEX_SCHEMA_FROM_HEADER"
ENV_LOG_LEVEL = "XIVCODEX_LOG_LEVEL"

DEFAULT_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "utf-8", "cp1252")


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_path(name: str) -> Optional[Path]:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return None
    return Path(raw.strip()).expanduser()


def log_level() -> str:
    return (os.getenv(ENV_LOG_LEVEL) or "INFO").strip().upper()


# ---------------------------------------------------------------------------
# ParserOptions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParserOptions:
    """
    Engine options.

    resolve_foreign_keys:
        Run foreign-key resolution eagerly after each sheet is materialized.
        Off leaves every ForeignKeyRef unresolved (see CSVParser.deref).
    schema_from_header:
        When a sheet has no JSON schema, derive one from the CSV's name and
        type header rows instead of failing with SchemaNotFound.
    encodings:
        Encodings tried, in order, when reading a CSV file.
    """
    resolve_foreign_keys: bool = True
    schema_from_header: bool = False
    encodings: tuple[str, ...] = DEFAULT_ENCODINGS

    @classmethod
    def from_env(cls) -> "ParserOptions":
        return cls(
            resolve_foreign_keys=_env_flag(ENV_RESOLVE_FKS, True),
            schema_from_header=_env_flag(ENV_SCHEMA_FROM_HEADER, False),
        )
