"""Epoch-based cache coordination for one table.

Every cache key embeds the table's current epoch. A write replaces the epoch,
so keys built before it are never addressed again and age out of the store
on their own; nothing is enumerated or deleted on invalidation.
"""

import hashlib
import itertools
import json
import time
from collections.abc import Callable, Sequence
from typing import Any

from loguru import logger

from atomic_tables.repositories.base import MISS, CacheStore

# (key, fingerprint) -> replacement key or None
KeyHook = Callable[[str, str], str | None]

_sequence = itertools.count(1)


def new_epoch() -> str:
    """Fresh epoch stamp, unique within the process."""
    return f"{time.time_ns()}.{next(_sequence)}"


def fingerprint(sql: str, params: Sequence[Any] | None = None) -> str:
    """Canonical text of a bound query."""
    return json.dumps([sql, list(params or [])], default=str, separators=(",", ":"))


class CacheCoordinator:
    """Cache keys, reads and writes for a table; no-op when ``cache_group`` is empty."""

    def __init__(
        self,
        table_name: str,
        cache_group: str,
        store: CacheStore | None,
        key_hook: KeyHook | None = None,
    ):
        self.table_name = table_name
        self.cache_group = cache_group
        self.store = store
        self.key_hook = key_hook

    @property
    def enabled(self) -> bool:
        return bool(self.cache_group) and self.store is not None

    @property
    def epoch_name(self) -> str:
        return f"{self.cache_group}:{self.table_name}"

    def bump_epoch(self) -> bool:
        """Replace the epoch; best effort, never raises."""
        if not self.enabled:
            return False
        epoch = new_epoch()
        try:
            self.store.set_epoch(self.epoch_name, epoch)
        except Exception as exc:
            logger.warning("Epoch bump failed for {}: {}", self.epoch_name, exc)
            return False
        logger.debug("Epoch bumped: {} -> {}", self.epoch_name, epoch)
        return True

    def get_epoch(self) -> str | None:
        """Current epoch, initialized on first read; None if caching is off or the store failed."""
        if not self.enabled:
            return None
        try:
            epoch = self.store.get_epoch(self.epoch_name)
            if epoch is None:
                epoch = self.store.add_epoch(self.epoch_name, new_epoch())
        except Exception as exc:
            logger.warning("Epoch read failed for {}: {}", self.epoch_name, exc)
            return None
        return epoch

    def make_cache_key(self, query_fingerprint: str) -> str | None:
        epoch = self.get_epoch()
        if not epoch:
            return None
        digest = hashlib.md5(query_fingerprint.encode("utf-8")).hexdigest()
        key = f"{self.table_name}:{digest}:{epoch}"
        if self.key_hook is not None:
            key = self.key_hook(key, query_fingerprint) or key
        return key

    def read(self, key: str | None) -> Any:
        if not key or not self.enabled:
            return MISS
        try:
            value = self.store.get(key, self.cache_group)
        except Exception as exc:
            logger.warning("Cache read failed for {}: {}", key, exc)
            return MISS
        logger.debug("Cache {}: {}", "miss" if value is MISS else "hit", key)
        return value

    def write(self, key: str | None, value: Any) -> bool:
        """Add-if-absent; a concurrent writer's value for the same key wins."""
        if not key or not self.enabled:
            return False
        try:
            return self.store.add(key, value, self.cache_group)
        except Exception as exc:
            logger.warning("Cache write failed for {}: {}", key, exc)
            return False
