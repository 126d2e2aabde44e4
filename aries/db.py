"""Database initialisation for Aries.

Creates the SQLite database that backs the service registry.  Without an
explicit path the database lives in ``ARIES_DATA_DIR`` (default: ``./data``).

Usage::

    from aries.db import init_db
    conn = init_db("data/aries.db")   # idempotent, safe to call multiple times
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path


def _default_path() -> Path:
    return Path(os.environ.get("ARIES_DATA_DIR", "./data")) / "aries.db"


def init_db(path: str | Path | None = None) -> sqlite3.Connection:
    """Open the registry database (WAL mode) and create its tables."""
    db_path = Path(path) if path else _default_path()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # the app's lifespan and request handlers may run on different threads
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.executescript(_SCHEMA_SQL)
    conn.commit()
    return conn


# AUTOINCREMENT keeps ids from ever being reused, even after row deletion.
_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS services (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    name          TEXT NOT NULL UNIQUE,
    url           TEXT NOT NULL,
    status        TEXT NOT NULL DEFAULT 'unknown',
    last_checked  TIMESTAMP,
    created_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at    TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""
