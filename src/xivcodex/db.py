from __future__ import annotations
import os
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from .models import Base

# ---------------------------------------------------------------------------
# Database Path (always absolute, in src/data)
# ---------------------------------------------------------------------------
# This resolves to: <project_root>/src/data/xivcodex.db
# Override via DATABASE_URL env if needed (e.g., for tests).
# ---------------------------------------------------------------------------

PKG_DIR = Path(__file__).resolve().parent            # src/xivcodex
SRC_DIR = PKG_DIR.parent                             # src
DATA_DIR = SRC_DIR / "data"
DB_PATH = DATA_DIR / "xivcodex.db"

# DATABASE_URL is the URL of the snapshot database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH.as_posix()}")

# engine is the database engine
engine = create_engine(
    DATABASE_URL,
    echo=False,
    future=True,
)

# SessionLocal is a factory for creating new database sessions
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)

def init_db() -> None:
    """Create all tables defined in models.py (idempotent)."""
    if DATABASE_URL == f"sqlite:///{DB_PATH.as_posix()}":
        DATA_DIR.mkdir(exist_ok=True)
    Base.metadata.create_all(bind=engine)
