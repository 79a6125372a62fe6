# tests/test_config.py
import logging
from pathlib import Path

import pytest

import xivcodex.logging as xlog
from xivcodex.config import DEFAULT_ENCODINGS, ParserOptions, env_path, log_level


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "XIVCODEX_RESOLVE_FOREIGN_KEYS",
        "XIVCODEX_SCHEMA_FROM_HEADER",
        "XIVCODEX_LOG_LEVEL",
        "XIVCODEX_CSV_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    opts = ParserOptions.from_env()
    assert opts == ParserOptions()
    assert opts.resolve_foreign_keys is True
    assert opts.schema_from_header is False
    assert opts.encodings == DEFAULT_ENCODINGS


@pytest.mark.parametrize("raw,expected", [
    ("false", False), ("0", False), ("no", False),
    ("true", True), ("1", True), ("YES", True), ("  ", True),
])
def test_resolve_flag_from_env(monkeypatch, raw, expected):
    monkeypatch.setenv("XIVCODEX_RESOLVE_FOREIGN_KEYS", raw)
    assert ParserOptions.from_env().resolve_foreign_keys is expected


def test_schema_from_header_flag(monkeypatch):
    monkeypatch.setenv("XIVCODEX_SCHEMA_FROM_HEADER", "on")
    assert ParserOptions.from_env().schema_from_header is True


def test_env_path(monkeypatch, tmp_path):
    assert env_path("XIVCODEX_CSV_DIR") is None
    monkeypatch.setenv("XIVCODEX_CSV_DIR", f" {tmp_path} ")
    assert env_path("XIVCODEX_CSV_DIR") == Path(str(tmp_path))


def test_log_level(monkeypatch):
    assert log_level() == "INFO"
    monkeypatch.setenv("XIVCODEX_LOG_LEVEL", "debug")
    assert log_level() == "DEBUG"


def test_logging_setup_installs_one_handler(monkeypatch):
    monkeypatch.setattr(xlog.logger, "handlers", [])
    monkeypatch.setattr(xlog.logger, "propagate", True)
    try:
        xlog.setup("debug")
        xlog.setup("warning")
        assert len(xlog.logger.handlers) == 1
        assert xlog.logger.level == logging.DEBUG
        assert xlog.logger.propagate is False
        assert xlog.get_logger("parsers.schema").name == "xivcodex.parsers.schema"
    finally:
        xlog.logger.setLevel(logging.NOTSET)
