"""
SQLite access helper.

Provides BaseRepository for thread-safe SQLite access, shared by the
local lookup caches. Each cache creates its own tables on first use.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


class BaseRepository:
    """
    Base class for thread-safe SQLite repositories.

    Provides common functionality for:
    - Thread-local connection pooling
    - Transaction context management
    - WAL mode for concurrent access
    """

    def __init__(self, db_path: Optional[str] = None, use_wal: bool = True):
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database. Defaults to Config.geocode_cache_path()
            use_wal: Enable WAL mode for better concurrent access
        """
        if db_path is None:
            from .config import Config
            db_path = Config.geocode_cache_path()

        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._local = threading.local()
        self._use_wal = use_wal
        self._connections: list[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'connection') or self._local.connection is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if self._use_wal:
                # WAL mode lets worker threads read while one writes
                conn.execute("PRAGMA journal_mode = WAL")
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return self._local.connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Context manager for transactions with automatic commit/rollback."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def close(self) -> None:
        """Close every connection opened by this repository."""
        with self._connections_lock:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()
        logger.debug(f"Closed connections to {self.db_path}")
