"""
SQLite connection handling for the transfer snapshot store.

DB_DIR / DB_PATH come from the environment so tests and deployments can
point the store somewhere writable.
"""

import os
import sqlite3
from pathlib import Path
from typing import Generator, Optional

APP_DIR = Path(__file__).resolve().parent
DB_DIR = Path(os.environ.get("DB_DIR", str(APP_DIR / "data")))
DB_PATH = Path(os.environ.get("DB_PATH", str(DB_DIR / "transfers.db")))


def connect_db(db_path: Optional[Path] = None) -> sqlite3.Connection:
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA busy_timeout=30000;")
    return conn


def init_db(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open the store and bring its schema up to date."""
    from db_migrations import apply_migrations

    conn = connect_db(db_path)
    apply_migrations(conn)
    conn.commit()
    return conn


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """FastAPI dependency: one connection per request, closed afterwards."""
    conn = connect_db()
    try:
        yield conn
    finally:
        conn.close()
