"""Key/value backends for persisting session snapshots."""
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional

from loguru import logger

from companion.api.errors import PersistenceError


class KeyValueStorage:
    """Minimal string key/value store, the shape of a browser's localStorage."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class InMemoryStorage(KeyValueStorage):
    """Process-local storage. Used by tests and throwaway sessions."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SQLiteStorage(KeyValueStorage):
    """Durable storage backed by a single SQLite table."""

    def __init__(self, db_path: Path = Path("./data/companion.db")):
        """Open (or create) the database.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._create_tables()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Unable to open storage at {self.db_path}: {e}") from e
        logger.info(f"Session storage opened at {self.db_path}")

    def _create_tables(self):
        cursor = self.conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            )
        """)
        self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        try:
            with self._lock:
                row = self.conn.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Unable to read '{key}': {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Unable to write '{key}': {e}") from e

    def close(self) -> None:
        with self._lock:
            self.conn.close()
