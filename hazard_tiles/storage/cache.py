"""Expiring byte caches for hazard snapshots and rendered tiles.

Both backends expose the same two operations, `get(key)` and
`set(key, value, ttl_seconds)`. Every `set` replaces the whole value, so
concurrent writers can race but never leave a partial entry behind.
"""

import logging
import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path

from hazard_tiles.config.schema import CacheBackendKind, CacheConfig
from hazard_tiles.storage.database import connect, run_migrations

logger = logging.getLogger(__name__)


class CacheBackendUnavailable(Exception):
    """Raised when the cache store cannot be read or written."""


class CacheBackend:
    name = "base"

    def get(self, key: str) -> bytes | None:
        raise NotImplementedError

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        raise NotImplementedError

    def ping(self) -> bool:
        try:
            self.get("__ping__")
            return True
        except CacheBackendUnavailable:
            return False


class MemoryCache(CacheBackend):
    """Process-local cache guarded by a single lock. Expired keys are evicted lazily."""

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 256):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[bytes, float]] = {}
        self._sweep_every = sweep_every
        self._writes = 0

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)
            self._writes += 1
            if self._writes % self._sweep_every == 0:
                self._sweep()

    def _sweep(self) -> None:
        now = self._clock()
        expired = [k for k, (_, exp) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
        if expired:
            logger.debug("Evicted %d expired cache entries", len(expired))

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class SqliteCache(CacheBackend):
    """Cache shared between processes on one host via a WAL-mode SQLite file.

    A connection is opened per call, so instances are safe to share across threads.
    """

    name = "sqlite"

    def __init__(self, db_path: str | Path, clock: Callable[[], float] = time.time):
        self.db_path = Path(db_path)
        self._clock = clock
        try:
            conn = connect(self.db_path)
            try:
                run_migrations(conn)
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise CacheBackendUnavailable(f"Cannot open cache at {self.db_path}: {e}") from e
        purged = self.purge_expired()
        if purged:
            logger.info("Purged %d expired cache rows from %s", purged, self.db_path)

    def get(self, key: str) -> bytes | None:
        try:
            conn = connect(self.db_path)
            try:
                row = conn.execute(
                    "SELECT value FROM cache_entries WHERE key = ? AND expires_at > ?",
                    (key, self._clock()),
                ).fetchone()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise CacheBackendUnavailable(str(e)) from e
        if row is None:
            return None
        return bytes(row[0])

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        try:
            conn = connect(self.db_path)
            try:
                conn.execute(
                    "INSERT INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, "
                    "expires_at = excluded.expires_at, stored_at = CURRENT_TIMESTAMP",
                    (key, sqlite3.Binary(value), self._clock() + ttl_seconds),
                )
                conn.commit()
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise CacheBackendUnavailable(str(e)) from e

    def purge_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        try:
            conn = connect(self.db_path)
            try:
                cursor = conn.execute(
                    "DELETE FROM cache_entries WHERE expires_at <= ?", (self._clock(),)
                )
                conn.commit()
                return cursor.rowcount
            finally:
                conn.close()
        except (sqlite3.Error, OSError) as e:
            raise CacheBackendUnavailable(str(e)) from e


def build_cache(config: CacheConfig) -> CacheBackend:
    if config.backend == CacheBackendKind.SQLITE:
        return SqliteCache(config.sqlite_path)
    return MemoryCache()
