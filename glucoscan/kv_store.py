# -*- coding: utf-8 -*-
"""Key-value persistence adapter: JSON values in a single SQLite table.

This is the only module that touches the storage medium. Every read that fails
to decode is treated as absent.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .config import settings
from .errors import PersistedDataCorrupt

logger = logging.getLogger(__name__)

ACCOUNTS_KEY = "accounts-directory"
SESSION_KEY = "current-session"
GUEST_HISTORY_KEY = "guest-history"
LANGUAGE_KEY = "preferred-language"
PLAN_CACHE_PREFIX = "plan-cache:"


def plan_cache_key(email_key: str) -> str:
    return f"{PLAN_CACHE_PREFIX}{email_key}"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def connect(db_path: Path) -> sqlite3.Connection:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def db_conn(db_path: Path) -> Iterator[sqlite3.Connection]:
    conn = connect(db_path)
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


class KeyValueStore:
    """Synchronous get/set/remove over string keys with JSON-serializable values."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or settings.db_path)
        self._init_table()

    def _init_table(self) -> None:
        with db_conn(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )

    def get_raw(self, key: str) -> str | None:
        with db_conn(self.db_path) as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def get(self, key: str, default: Any = None) -> Any:
        raw = self.get_raw(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.warning("%s", PersistedDataCorrupt(key, str(exc)))
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        self.set_raw(key, payload)

    def set_raw(self, key: str, payload: str) -> None:
        with db_conn(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, payload, _utc_now()),
            )

    def remove(self, key: str) -> None:
        with db_conn(self.db_path) as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def has(self, key: str) -> bool:
        return self.get_raw(key) is not None
