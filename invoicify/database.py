"""
SQLite-backed local store for Invoicify.
Holds one JSON array per collection key plus the settings blob, fronted by an
in-memory cache. The sync layer treats this as the best-effort durability tier.
"""

import sqlite3
import json
import logging
import shutil
import threading
from copy import deepcopy
from datetime import datetime, date
from pathlib import Path
from typing import Optional

from . import config

log = logging.getLogger("invoicify.db")

# ──────────────────────────────────────────────────────────────────
# Schema version: bump this when adding migrations
# ──────────────────────────────────────────────────────────────────
SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- ─── Collections and settings (one JSON document per key) ──────
CREATE TABLE IF NOT EXISTS kv_store (
    key             TEXT PRIMARY KEY,
    value           TEXT NOT NULL DEFAULT '[]',
    updated_at      TEXT DEFAULT ''
);

-- ─── Sync Log ──────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS sync_log (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    table_name      TEXT DEFAULT '',
    direction       TEXT DEFAULT '',
    records_affected INTEGER DEFAULT 0,
    status          TEXT DEFAULT 'success',
    error_message   TEXT DEFAULT '',
    timestamp       TEXT DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_sync_log_table ON sync_log(table_name);
CREATE INDEX IF NOT EXISTS idx_sync_log_time ON sync_log(timestamp);
"""


class SerializationError(ValueError):
    """Raised when a persisted JSON document cannot be decoded."""
    pass


class Database:
    """SQLite key-value store with a read-through in-memory cache.

    Thread-safe: all execute/commit operations are protected by an RLock
    so repository calls made from worker threads do not interleave.
    """

    def __init__(self, db_path: Path = None, backup_dir: Path = None):
        self.db_path = Path(db_path or config.DB_PATH)
        self.backup_dir = Path(backup_dir or config.BACKUP_DIR)
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._cache: dict[str, list] = {}

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def connect(self):
        """Open the database connection and apply settings."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(
            str(self.db_path),
            timeout=10,
            check_same_thread=False,
        )
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA busy_timeout=5000")
        log.info(f"Database opened: {self.db_path}")

    def close(self):
        """Close the database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            log.info("Database closed")

    def initialize(self):
        """Create tables."""
        self._ensure_connected()
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()
        log.info(f"Database schema initialized (v{SCHEMA_VERSION})")

    # ------------------------------------------------------------------
    # Generic SQL helpers
    # ------------------------------------------------------------------
    def _ensure_connected(self):
        """Auto-reconnect if the database connection was lost."""
        if self.conn is None:
            log.warning("Database connection lost — reconnecting...")
            self.connect()
            self.conn.executescript(SCHEMA_SQL)

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        with self._lock:
            self._ensure_connected()
            return self.conn.execute(sql, params)

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        with self._lock:
            self._ensure_connected()
            cursor = self.conn.execute(sql, params)
            return [dict(row) for row in cursor.fetchall()]

    def fetchone(self, sql: str, params: tuple = ()) -> Optional[dict]:
        with self._lock:
            self._ensure_connected()
            cursor = self.conn.execute(sql, params)
            row = cursor.fetchone()
            return dict(row) if row else None

    def commit(self):
        with self._lock:
            self.conn.commit()

    # ------------------------------------------------------------------
    # Collections
    # ------------------------------------------------------------------
    def read(self, key: str) -> list[dict]:
        """Return the collection stored under key, or [] if never written.

        The returned list is the cached object; callers copy before mutating.
        """
        with self._lock:
            if key in self._cache:
                return self._cache[key]
            row = self.fetchone("SELECT value FROM kv_store WHERE key = ?", (key,))
            items = self._decode(key, row["value"]) if row else []
            if not isinstance(items, list):
                raise SerializationError(f"Stored value for {key} is not a list")
            self._cache[key] = items
            return items

    def write(self, key: str, items: list[dict]):
        """Replace the collection under key, in cache and on disk."""
        items = list(items)
        with self._lock:
            self._cache[key] = items
            self._put(key, items)

    def invalidate(self, key: str = None):
        """Drop cached collections so the next read goes to disk."""
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)

    def _put(self, key: str, value):
        self.execute(
            "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
            (key, json.dumps(value), datetime.now().isoformat()),
        )
        self.commit()

    @staticmethod
    def _decode(key: str, raw: str):
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            raise SerializationError(f"Corrupt data under {key}: {e}") from e

    # ------------------------------------------------------------------
    # App Settings
    # ------------------------------------------------------------------
    def get_settings(self) -> dict:
        """Stored settings merged over the defaults."""
        row = self.fetchone(
            "SELECT value FROM kv_store WHERE key = ?", (config.SETTINGS_KEY,)
        )
        stored = self._decode(config.SETTINGS_KEY, row["value"]) if row else {}
        if not isinstance(stored, dict):
            stored = {}

        settings = deepcopy(config.DEFAULT_SETTINGS)
        settings.update(stored)
        for field in config.SETTINGS_FALLBACK_FIELDS:
            if not stored.get(field):
                settings[field] = deepcopy(config.DEFAULT_SETTINGS[field])
        return settings

    def save_settings(self, settings: dict):
        with self._lock:
            self._put(config.SETTINGS_KEY, settings)
        log.info("Settings saved")

    # ------------------------------------------------------------------
    # Sync Log
    # ------------------------------------------------------------------
    def log_sync(self, table_name: str, direction: str, records: int,
                 status: str = "success", error: str = ""):
        self.execute(
            """INSERT INTO sync_log (table_name, direction, records_affected,
               status, error_message, timestamp) VALUES (?, ?, ?, ?, ?, ?)""",
            (table_name, direction, records, status, error, datetime.now().isoformat())
        )
        self.commit()

    def get_last_sync(self, table_name: str = None) -> Optional[str]:
        if table_name:
            row = self.fetchone(
                "SELECT timestamp FROM sync_log WHERE table_name = ? AND status = 'success' "
                "ORDER BY id DESC LIMIT 1",
                (table_name,)
            )
        else:
            row = self.fetchone(
                "SELECT timestamp FROM sync_log WHERE status = 'success' ORDER BY id DESC LIMIT 1"
            )
        return row["timestamp"] if row else None

    def get_sync_log(self, table_name: str = None, limit: int = 50) -> list[dict]:
        if table_name:
            return self.fetchall(
                "SELECT * FROM sync_log WHERE table_name = ? ORDER BY id DESC LIMIT ?",
                (table_name, limit),
            )
        return self.fetchall("SELECT * FROM sync_log ORDER BY id DESC LIMIT ?", (limit,))

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------
    def backup(self, keep: int = 7):
        """Create a daily backup of the database. Returns backup path or None."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        today = date.today().isoformat()
        backup_path = self.backup_dir / f"invoicify_{today}.db"
        if backup_path.exists():
            return None

        try:
            dst = sqlite3.connect(str(backup_path))
            with self._lock:
                self._ensure_connected()
                self.conn.backup(dst)
            dst.close()
        except sqlite3.Error:
            shutil.copy2(str(self.db_path), str(backup_path))
        log.info(f"Backup created: {backup_path.name}")

        backups = sorted(self.backup_dir.glob("invoicify_*.db"))
        for old in backups[:-keep]:
            old.unlink()
            log.info(f"Old backup removed: {old.name}")
        return str(backup_path)
