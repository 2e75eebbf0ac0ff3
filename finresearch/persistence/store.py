"""Settings and run-log store.

A small sqlite-backed key/value store holding persisted configuration
(provider keys, LLM endpoint and model) and an append-only list of past
research/Q&A runs.
"""

import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import get_config
from ..utils.logger import get_logger

logger = get_logger(__name__)

SETTINGS_KEY = "agentic_settings"


class SettingsStore:
    """Key/value settings plus run logs in one sqlite file."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the store.

        Args:
            db_path: Path to the sqlite database (default: from config)
        """
        if db_path is None:
            db_path = get_config().system.settings_db
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self.db_path))

    def _init_db(self):
        """Initialize store schema."""
        conn = self._connect()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS run_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                created_at DATETIME NOT NULL,
                kind TEXT NOT NULL,
                payload TEXT NOT NULL
            )
        """)
        conn.commit()
        conn.close()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a JSON-decoded value, or default when the key is absent."""
        with self._lock:
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()

        if row is None:
            return default
        return json.loads(row[0])

    def set(self, key: str, value: Any):
        """Store a JSON-encodable value under key."""
        encoded = json.dumps(value, default=str)
        with self._lock:
            conn = self._connect()
            try:
                conn.execute(
                    """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                      updated_at = excluded.updated_at""",
                    (key, encoded, datetime.now(timezone.utc).isoformat())
                )
                conn.commit()
            finally:
                conn.close()

    def load_settings(self) -> Dict[str, Any]:
        return self.get(SETTINGS_KEY, {}) or {}

    def update_settings(self, **values) -> Dict[str, Any]:
        """Merge non-None values into the persisted settings and return the result."""
        settings = self.load_settings()
        settings.update({k: v for k, v in values.items() if v is not None})
        self.set(SETTINGS_KEY, settings)
        logger.info(f"Saved settings: {', '.join(sorted(values))}")
        return settings

    def append_run_log(self, kind: str, payload: Dict[str, Any]) -> int:
        """Append a run record; returns its id."""
        with self._lock:
            conn = self._connect()
            try:
                cursor = conn.execute(
                    "INSERT INTO run_logs (created_at, kind, payload) VALUES (?, ?, ?)",
                    (datetime.now(timezone.utc).isoformat(), kind, json.dumps(payload, default=str))
                )
                conn.commit()
                return cursor.lastrowid
            finally:
                conn.close()

    def get_run_logs(self, limit: Optional[int] = 25) -> List[Dict[str, Any]]:
        """Most recent runs first."""
        query = "SELECT id, created_at, kind, payload FROM run_logs ORDER BY id DESC"
        params: tuple = ()
        if limit is not None:
            query += " LIMIT ?"
            params = (limit,)

        with self._lock:
            conn = self._connect()
            try:
                rows = conn.execute(query, params).fetchall()
            finally:
                conn.close()

        return [
            {
                "id": row[0],
                "created_at": datetime.fromisoformat(row[1]),
                "kind": row[2],
                "payload": json.loads(row[3])
            }
            for row in rows
        ]

    def clear_run_logs(self):
        with self._lock:
            conn = self._connect()
            try:
                conn.execute("DELETE FROM run_logs")
                conn.commit()
            finally:
                conn.close()
