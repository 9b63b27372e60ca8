"""Cache stores - in-process and DuckDB-backed query result storage."""

import copy
import json
import threading
import time
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from atomic_tables.repositories.base import MISS, CacheStore
from atomic_tables.repositories.db import Database
from atomic_tables.settings import CACHE_MAX_ENTRIES, CACHE_TABLE, CACHE_TTL, EPOCH_TABLE

CACHE_DDL = f"""
CREATE TABLE IF NOT EXISTS {CACHE_TABLE} (
    grp VARCHAR NOT NULL,
    key VARCHAR NOT NULL,
    data JSON NOT NULL,
    computed_at TIMESTAMP NOT NULL,
    PRIMARY KEY (grp, key)
)
"""

EPOCH_DDL = f"""
CREATE TABLE IF NOT EXISTS {EPOCH_TABLE} (
    name VARCHAR PRIMARY KEY,
    epoch VARCHAR NOT NULL,
    changed_at TIMESTAMP NOT NULL
)
"""


class MemoryCacheStore(CacheStore):
    """Thread-safe in-process store with per-entry TTL and a size bound.

    Values are deep-copied in and out so callers never share state with the
    cache.
    """

    def __init__(self, ttl: float = CACHE_TTL, max_entries: int = CACHE_MAX_ENTRIES, clock=time.monotonic):
        self._ttl = ttl
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str], tuple[float, Any]] = OrderedDict()
        self._epochs: dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, slot: tuple[str, str]) -> tuple[float, Any] | None:
        entry = self._entries.get(slot)
        if entry is None:
            return None
        if entry[0] <= self._clock():
            del self._entries[slot]
            return None
        return entry

    def get(self, key: str, group: str) -> Any:
        with self._lock:
            entry = self._live((group, key))
            if entry is None:
                return MISS
            return copy.deepcopy(entry[1])

    def add(self, key: str, value: Any, group: str) -> bool:
        slot = (group, key)
        expires = self._clock() + self._ttl if self._ttl > 0 else float("inf")
        with self._lock:
            if self._live(slot) is not None:
                return False
            self._entries[slot] = (expires, copy.deepcopy(value))
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
            return True

    def get_epoch(self, name: str) -> str | None:
        with self._lock:
            return self._epochs.get(name)

    def set_epoch(self, name: str, value: str) -> None:
        with self._lock:
            self._epochs[name] = value

    def add_epoch(self, name: str, value: str) -> str:
        with self._lock:
            return self._epochs.setdefault(name, value)

    def clear(self, group: str | None = None) -> None:
        """Drop cached entries for a group or all of them (epochs are kept)."""
        with self._lock:
            if group is None:
                self._entries.clear()
            else:
                for slot in [s for s in self._entries if s[0] == group]:
                    del self._entries[slot]
        logger.debug("Memory cache cleared (group={})", group)


class DuckDBCacheStore(CacheStore):
    """Store for cached query results in DuckDB tables.

    Payloads are JSON encoded. Errors from DuckDB propagate; the cache
    coordinator turns them into misses.
    """

    def __init__(self, database: Database, ttl: float = CACHE_TTL):
        self.db = database
        self._ttl = ttl
        self._init_tables()

    def _init_tables(self) -> None:
        conn = self.db.cursor()
        conn.execute(CACHE_DDL)
        conn.execute(EPOCH_DDL)
        logger.debug("Cache tables initialized")

    def get(self, key: str, group: str) -> Any:
        query = f"SELECT data FROM {CACHE_TABLE} WHERE grp = ? AND key = ?"
        params: list = [group, key]
        if self._ttl > 0:
            query += " AND computed_at >= ?"
            params.append(datetime.now() - timedelta(seconds=self._ttl))
        row = self.db.cursor().execute(query, params).fetchone()
        if row is None:
            return MISS
        logger.debug("Cache hit: group={}, key={}", group, key)
        return json.loads(row[0])

    def add(self, key: str, value: Any, group: str) -> bool:
        conn = self.db.cursor()
        if self._ttl > 0:
            # an expired row would otherwise block the insert below
            conn.execute(
                f"DELETE FROM {CACHE_TABLE} WHERE grp = ? AND key = ? AND computed_at < ?",
                [group, key, datetime.now() - timedelta(seconds=self._ttl)],
            )
        row = conn.execute(
            f"""
            INSERT OR IGNORE INTO {CACHE_TABLE} (grp, key, data, computed_at)
            VALUES (?, ?, ?, ?)
            """,
            [group, key, json.dumps(value, default=str), datetime.now()],
        ).fetchone()
        added = bool(row and row[0])
        if added:
            logger.debug("Cache saved: group={}, key={}", group, key)
        return added

    def get_epoch(self, name: str) -> str | None:
        row = self.db.cursor().execute(f"SELECT epoch FROM {EPOCH_TABLE} WHERE name = ?", [name]).fetchone()
        return row[0] if row else None

    def set_epoch(self, name: str, value: str) -> None:
        self.db.cursor().execute(
            f"INSERT OR REPLACE INTO {EPOCH_TABLE} (name, epoch, changed_at) VALUES (?, ?, ?)",
            [name, value, datetime.now()],
        )

    def add_epoch(self, name: str, value: str) -> str:
        conn = self.db.cursor()
        conn.execute(
            f"INSERT OR IGNORE INTO {EPOCH_TABLE} (name, epoch, changed_at) VALUES (?, ?, ?)",
            [name, value, datetime.now()],
        )
        return conn.execute(f"SELECT epoch FROM {EPOCH_TABLE} WHERE name = ?", [name]).fetchone()[0]

    def purge(self, older_than: timedelta | None = None) -> None:
        """Delete entries older than ``older_than`` (default: the TTL) or all."""
        conn = self.db.cursor()
        if older_than is None and self._ttl > 0:
            older_than = timedelta(seconds=self._ttl)
        if older_than is None:
            conn.execute(f"DELETE FROM {CACHE_TABLE}")
            logger.info("All cache cleared")
        else:
            conn.execute(f"DELETE FROM {CACHE_TABLE} WHERE computed_at < ?", [datetime.now() - older_than])
            logger.info("Cache entries older than {} cleared", older_than)
