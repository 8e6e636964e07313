"""
Cache backends for report status values and the negative-result flag.

MemoryCache is shared by everything in one process. SqliteCache keeps entries
in a SQLite file so several worker processes see the same state.
"""

import json
import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

# Fixed cache keys
CONNECT_FAILURE_KEY = "connectFailure"
LICENSE_KEY_STATUS_KEY = "licenseKeyStatus"
LICENSED_EDITION_KEY = "licensedEdition"
LICENSED_DOMAIN_KEY = "licensedDomain"
EDITION_TESTABLE_DOMAIN_PREFIX = "editionTestableDomain@"

CONNECT_FAILURE_TTL = 300


def edition_testable_key(host_name: str) -> str:
    return f"{EDITION_TESTABLE_DOMAIN_PREFIX}{host_name}"


class Cache(Protocol):
    """Cache collaborator. A ``ttl`` of 0 means no expiry."""

    def get(self, key: str) -> Optional[Any]: ...

    def set(self, key: str, value: Any, ttl: int = 0) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCache:
    """In-process cache with per-entry expiry."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int = 0) -> None:
        expires_at = self._clock() + ttl if ttl > 0 else None
        with self._lock:
            self._entries[key] = (value, expires_at)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class SqliteCache:
    """
    Cache persisted to a SQLite database.

    Values are stored JSON-encoded; anything json.dumps accepts can be cached.
    """

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time):
        """
        Initialize the cache.

        Args:
            db_path: Database file, created along with its directory if missing
            clock: Time source returning epoch seconds
        """
        self.db_path = str(db_path)
        self._clock = clock
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL
                )
            """)
            conn.commit()
        logger.debug(f"Cache table initialized in {self.db_path}")

    def get(self, key: str) -> Optional[Any]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            value, expires_at = row
            if expires_at is not None and self._clock() >= expires_at:
                conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                conn.commit()
                return None
        return json.loads(value)

    def set(self, key: str, value: Any, ttl: int = 0) -> None:
        expires_at = self._clock() + ttl if ttl > 0 else None
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                (key, json.dumps(value), expires_at),
            )
            conn.commit()

    def delete(self, key: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            conn.commit()

    def clear(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM cache_entries")
            conn.commit()
