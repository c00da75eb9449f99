from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


def _now_ts() -> int:
    return int(time.time())


class DocumentCache(Protocol):
    """
    Process-wide store for serialized documents.

    Concurrent first requests may each compute and store; every computation
    yields the same bytes, so no locking is needed.
    """

    def get(self, key: str) -> Optional[bytes]:
        ...

    def put_if_first(self, key: str, value: bytes) -> bytes:
        ...

    def erase(self, key: str) -> None:
        ...


class InMemoryDocumentCache:
    def __init__(self) -> None:
        self._entries: dict[str, bytes] = {}

    def get(self, key: str) -> Optional[bytes]:
        return self._entries.get(key)

    def put_if_first(self, key: str, value: bytes) -> bytes:
        stored = self._entries.setdefault(key, value)
        logger.debug("document cache: stored %s (%d bytes)", key, len(stored))
        return stored

    def erase(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("document cache: erased %s", key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


class SQLiteDocumentCache:
    """SQLite-backed document cache, shared by every process pointing at the same file."""

    SCHEMA_VERSION = "1.0"

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    @staticmethod
    def db_path_for_dir(root: Path) -> Path:
        return Path(root) / ".spectype" / "documents.db"

    # ----------------------------
    # Connection / schema
    # ----------------------------

    def _connect(self) -> sqlite3.Connection:
        con = sqlite3.connect(str(self.db_path))
        con.row_factory = sqlite3.Row
        return con

    def _init_db(self) -> None:
        with self._connect() as con:
            con.execute("PRAGMA journal_mode=WAL;")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    key TEXT PRIMARY KEY,
                    body BLOB NOT NULL,
                    stored_at INTEGER NOT NULL
                );
                """
            )
            row = con.execute("SELECT value FROM meta WHERE key='schema_version'").fetchone()
            if row is None:
                con.execute(
                    "INSERT INTO meta(key, value) VALUES('schema_version', ?)",
                    (self.SCHEMA_VERSION,),
                )

    # ----------------------------
    # Entries
    # ----------------------------

    def get(self, key: str) -> Optional[bytes]:
        with self._connect() as con:
            row = con.execute("SELECT body FROM documents WHERE key=?", (key,)).fetchone()
            return bytes(row["body"]) if row else None

    def put_if_first(self, key: str, value: bytes) -> bytes:
        with self._connect() as con:
            con.execute(
                "INSERT OR IGNORE INTO documents(key, body, stored_at) VALUES(?,?,?)",
                (key, sqlite3.Binary(value), _now_ts()),
            )
            row = con.execute("SELECT body FROM documents WHERE key=?", (key,)).fetchone()
        logger.debug("document cache: stored %s in %s", key, self.db_path)
        return bytes(row["body"])

    def erase(self, key: str) -> None:
        with self._connect() as con:
            con.execute("DELETE FROM documents WHERE key=?", (key,))
        logger.debug("document cache: erased %s from %s", key, self.db_path)

    def list_keys(self) -> list[str]:
        with self._connect() as con:
            rows = con.execute("SELECT key FROM documents ORDER BY key").fetchall()
            return [r["key"] for r in rows]
