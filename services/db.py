"""Local SQLite file holding the signed-in Parse session between restarts."""

import logging
import sqlite3
from contextlib import contextmanager
from threading import Lock
from typing import Optional

from config import APP_DB_PATH

logger = logging.getLogger(__name__)

# login, logout and the startup hook may write the session row concurrently
_write_lock = Lock()
BUSY_TIMEOUT_SECONDS = 10

KV_TABLE_DDL = """
CREATE TABLE IF NOT EXISTS app_kv_store (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


@contextmanager
def get_db_connection():
    """Open APP_DB_PATH in WAL mode so request threads can read the session while it is rewritten."""
    conn = sqlite3.connect(APP_DB_PATH, timeout=BUSY_TIMEOUT_SECONDS)
    try:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        yield conn
    except sqlite3.DatabaseError:
        logger.error("[DB] error on %s", APP_DB_PATH, exc_info=True)
        raise
    finally:
        conn.close()


def execute_write(sql: str, params: tuple = ()) -> None:
    """Run one statement on its own connection and commit it, one writer at a time."""
    with _write_lock, get_db_connection() as conn:
        conn.execute(sql, params)
        conn.commit()


def ensure_app_kv_table() -> None:
    """Create app_kv_store, the table whose "session" row stores token, user id, name and role."""
    try:
        execute_write(KV_TABLE_DDL)
    except sqlite3.Error:
        logger.error("[DB] could not create app_kv_store in %s", APP_DB_PATH, exc_info=True)
        raise


def get_app_kv(conn, key: str) -> Optional[str]:
    row = conn.execute("SELECT value FROM app_kv_store WHERE key = ?", (key,)).fetchone()
    return row[0] if row else None


def set_app_kv(conn, key: str, value: str) -> None:
    """Upsert a row; login stores the serialized session this way."""
    with _write_lock:
        conn.execute(
            "INSERT INTO app_kv_store (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )
        conn.commit()
    logger.debug("[DB] stored %s (%d bytes)", key, len(value))


def delete_app_kv(conn, key: str) -> None:
    with _write_lock:
        conn.execute("DELETE FROM app_kv_store WHERE key = ?", (key,))
        conn.commit()
    logger.debug("[DB] removed %s", key)
