from __future__ import annotations

import logging
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path

from core.settings import Settings

log = logging.getLogger(__name__)


class StoreError(Exception):
    """The backing store could not complete a read or write."""


class KeyValueStore(ABC):
    """Durable string-keyed storage shared by every service and invocation.

    Only single-key get/set is assumed; there are no transactions and no
    compare-and-swap. Everything that needs idempotence builds it on top.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""


class MemoryStore(KeyValueStore):
    """Process-local store. State does not survive a restart."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)


class SqliteStore(KeyValueStore):
    """Single-table SQLite store, safe to share between overlapping processes."""

    def __init__(self, path: str) -> None:
        p = str(path or "").strip()
        if not p:
            raise StoreError("Missing store path")
        self._path = p
        self._lock = threading.Lock()
        try:
            if p != ":memory:":
                Path(p).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(p, timeout=30, isolation_level=None, check_same_thread=False)
            self._conn.execute("PRAGMA busy_timeout = 5000;")
            try:
                self._conn.execute("PRAGMA journal_mode = WAL;")
            except sqlite3.DatabaseError:
                log.debug("WAL journal mode unavailable for %s", p)
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS kv ("
                " key TEXT PRIMARY KEY,"
                " value TEXT NOT NULL,"
                " updated_at INTEGER NOT NULL)"
            )
        except (sqlite3.Error, OSError) as exc:
            raise StoreError(f"Cannot open store at {p}: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            with self._lock:
                row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"get {key!r} failed: {exc}") from exc
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                    (key, str(value), int(time.time() * 1000)),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"set {key!r} failed: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()


class FallbackStore(KeyValueStore):
    """Wraps a durable store and serves from memory whenever it fails.

    Cross-restart dedupe is lost for whatever lands in the memory side, but a
    cycle never fails because the store is down.
    """

    def __init__(self, primary: KeyValueStore, fallback: KeyValueStore | None = None) -> None:
        self._primary = primary
        self._fallback = fallback or MemoryStore()

    def get(self, key: str) -> str | None:
        try:
            return self._primary.get(key)
        except StoreError as exc:
            log.warning("Store read failed, using in-memory fallback: %s", exc)
            return self._fallback.get(key)

    def set(self, key: str, value: str) -> None:
        try:
            self._primary.set(key, value)
        except StoreError as exc:
            log.warning("Store write failed, using in-memory fallback: %s", exc)
            self._fallback.set(key, value)


def open_store(settings: Settings) -> KeyValueStore:
    """Build the configured store, degrading to memory if it cannot be opened."""
    if settings.store_backend == "memory":
        log.warning("Using in-memory store; notification dedupe will not survive restarts")
        return MemoryStore()
    if settings.store_backend != "sqlite":
        log.warning("Unknown store backend %r, using sqlite", settings.store_backend)
    try:
        primary = SqliteStore(settings.store_path)
    except StoreError as exc:
        log.error("Durable store unavailable (%s); falling back to memory", exc)
        return MemoryStore()
    log.info("Using sqlite store at %s", settings.store_path)
    return FallbackStore(primary)
