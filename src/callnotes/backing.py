from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Protocol

from callnotes.config import DB_PATH

SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""


class KeyValueBacking(Protocol):
    """Durable string-keyed storage. No transactions across keys."""

    def get(self, key: str) -> str | None:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def close(self) -> None:
        ...


# Whole collections are rewritten on every mutation; wait out a concurrent
# writer (another CLI invocation) instead of failing with "database is locked".
BUSY_TIMEOUT_SECONDS = 5.0


def _connect(db_path: Path | None = None) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path or DB_PATH), timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Path | None = None) -> None:
    """Create the kv table (and its directory). WAL mode persists in the file."""
    target = db_path or DB_PATH
    target.parent.mkdir(parents=True, exist_ok=True)
    with get_db(target) as db:
        db.execute("PRAGMA journal_mode=WAL")
        db.executescript(SCHEMA)


@contextmanager
def get_db(db_path: Path | None = None) -> Generator[sqlite3.Connection, None, None]:
    conn = _connect(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


class SqliteBacking:
    """Key-value backing on a single SQLite table."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path or DB_PATH
        init_db(self.db_path)

    def get(self, key: str) -> str | None:
        with get_db(self.db_path) as db:
            row = db.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str) -> None:
        with get_db(self.db_path) as db:
            db.execute(
                """INSERT INTO kv (key, value) VALUES (?, ?)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                   updated_at = datetime('now')""",
                (key, value),
            )

    def remove(self, key: str) -> None:
        with get_db(self.db_path) as db:
            db.execute("DELETE FROM kv WHERE key = ?", (key,))

    def keys(self) -> list[str]:
        with get_db(self.db_path) as db:
            rows = db.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [r["key"] for r in rows]

    def close(self) -> None:
        # Connections are per-call; nothing is held open.
        pass


class MemoryBacking:
    """In-process backing, used for tests and throwaway sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self.data)

    def close(self) -> None:
        pass
