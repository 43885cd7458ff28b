"""SQLite-backed local store for focussync.

One ``kv`` table holds every collection as a JSON string, mirroring the
key layout a mobile key-value store would use. Connections are opened per
operation and closed by ``_connect``.
"""

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Callable, Optional, Union

from focussync.types import now_ms, utc_now

from .base import KeyValueLocalStore

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".focussync" / "local.db"

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
)
"""


class SQLiteLocalStore(KeyValueLocalStore):
    """LocalStore persisted in a single SQLite file.

    Args:
        db_path: Database file; parent directories are created.
        clock: Returns the current time in epoch milliseconds.
    """

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        clock: Callable[[], int] = now_ms,
    ):
        super().__init__(clock=clock)
        self.db_path = Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.execute(SCHEMA)
        logger.debug(f"Local store ready at {self.db_path}")

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that handles transactions AND closes connection."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    def _read(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def _write(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, utc_now()),
            )

    def _remove(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def close(self):
        """Exists for API symmetry; connections are per-operation."""
        pass
