"""Tests for cache stores and the epoch coordinator."""

import hashlib
from datetime import timedelta

import pytest

from atomic_tables import CacheCoordinator, DuckDBCacheStore, MemoryCacheStore
from atomic_tables.repositories.base import MISS, CacheStore
from atomic_tables.services.cache import fingerprint, new_epoch


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class BrokenStore(CacheStore):
    """Every operation fails."""

    def get(self, key, group):
        raise ConnectionError("store down")

    def add(self, key, value, group):
        raise ConnectionError("store down")

    def get_epoch(self, name):
        raise ConnectionError("store down")

    def set_epoch(self, name, value):
        raise ConnectionError("store down")

    def add_epoch(self, name, value):
        raise ConnectionError("store down")


class BumpDuringInit(MemoryCacheStore):
    """A writer bumps the epoch right after the first epoch read misses."""

    def get_epoch(self, name):
        epoch = super().get_epoch(name)
        if epoch is None:
            self.set_epoch(name, "bumped")
        return epoch


class TestMemoryCacheStore:
    def test_miss(self):
        assert MemoryCacheStore().get("k", "g") is MISS

    def test_add_epoch_keeps_existing(self):
        store = MemoryCacheStore()
        assert store.add_epoch("g:people", "1") == "1"
        assert store.add_epoch("g:people", "2") == "1"

    def test_cached_none_is_hit(self):
        store = MemoryCacheStore()
        store.add("k", None, "g")
        assert store.get("k", "g") is None

    def test_first_write_wins(self):
        store = MemoryCacheStore()
        assert store.add("k", {"v": 1}, "g")
        assert not store.add("k", {"v": 2}, "g")
        assert store.get("k", "g") == {"v": 1}

    def test_groups_are_separate(self):
        store = MemoryCacheStore()
        store.add("k", 1, "a")
        assert store.get("k", "b") is MISS

    def test_ttl(self):
        clock = FakeClock()
        store = MemoryCacheStore(ttl=10, clock=clock)
        store.add("k", 1, "g")
        clock.now += 11
        assert store.get("k", "g") is MISS
        assert store.add("k", 2, "g")

    def test_size_bound(self):
        store = MemoryCacheStore(max_entries=2)
        for i in range(3):
            store.add(f"k{i}", i, "g")
        assert len(store) == 2
        assert store.get("k0", "g") is MISS

    def test_values_are_copied(self):
        store = MemoryCacheStore()
        row = {"name": "Ann"}
        store.add("k", row, "g")
        row["name"] = "changed"
        store.get("k", "g")["name"] = "changed again"
        assert store.get("k", "g") == {"name": "Ann"}

    def test_clear_group(self):
        store = MemoryCacheStore()
        store.add("k", 1, "a")
        store.add("k", 1, "b")
        store.clear("a")
        assert store.get("k", "a") is MISS
        assert store.get("k", "b") == 1


class TestDuckDBCacheStore:
    @pytest.fixture
    def duck_store(self, database):
        return DuckDBCacheStore(database, ttl=0)

    def test_roundtrip(self, duck_store):
        duck_store.add("k", {"id": 1, "score": 2.5}, "g")
        assert duck_store.get("k", "g") == {"id": 1, "score": 2.5}

    def test_miss(self, duck_store):
        assert duck_store.get("nope", "g") is MISS

    def test_first_write_wins(self, duck_store):
        duck_store.add("k", {"v": 1}, "g")
        duck_store.add("k", {"v": 2}, "g")
        assert duck_store.get("k", "g") == {"v": 1}

    def test_epochs_replaced(self, duck_store):
        assert duck_store.get_epoch("g:people") is None
        duck_store.set_epoch("g:people", "1")
        duck_store.set_epoch("g:people", "2")
        assert duck_store.get_epoch("g:people") == "2"

    def test_add_epoch_keeps_existing(self, duck_store):
        assert duck_store.add_epoch("g:people", "1") == "1"
        assert duck_store.add_epoch("g:people", "2") == "1"
        assert duck_store.get_epoch("g:people") == "1"

    def test_purge(self, duck_store):
        duck_store.add("k", 1, "g")
        duck_store.purge()
        assert duck_store.get("k", "g") is MISS

    def test_purge_keeps_recent(self, duck_store):
        duck_store.add("k", 1, "g")
        duck_store.purge(older_than=timedelta(hours=1))
        assert duck_store.get("k", "g") == 1


class TestCacheCoordinator:
    def test_disabled_without_group(self):
        coordinator = CacheCoordinator("people", "", MemoryCacheStore())
        assert not coordinator.enabled
        assert coordinator.get_epoch() is None
        assert coordinator.make_cache_key("q") is None
        assert not coordinator.bump_epoch()
        assert coordinator.read("k") is MISS
        assert not coordinator.write("k", 1)

    def test_disabled_without_store(self):
        assert CacheCoordinator("people", "people", None).make_cache_key("q") is None

    def test_epoch_initialized_on_first_read(self):
        store = MemoryCacheStore()
        coordinator = CacheCoordinator("people", "grp", store)
        epoch = coordinator.get_epoch()
        assert epoch
        assert store.get_epoch("grp:people") == epoch
        assert coordinator.get_epoch() == epoch

    def test_lazy_init_never_overwrites_a_bump(self):
        store = BumpDuringInit()
        coordinator = CacheCoordinator("people", "grp", store)
        assert coordinator.get_epoch() == "bumped"
        assert store.get_epoch("grp:people") == "bumped"

    def test_key_format(self):
        coordinator = CacheCoordinator("people", "grp", MemoryCacheStore())
        epoch = coordinator.get_epoch()
        digest = hashlib.md5(b"SELECT 1").hexdigest()
        assert coordinator.make_cache_key("SELECT 1") == f"people:{digest}:{epoch}"

    def test_bump_changes_keys(self):
        coordinator = CacheCoordinator("people", "grp", MemoryCacheStore())
        before = coordinator.make_cache_key("q")
        assert coordinator.bump_epoch()
        after = coordinator.make_cache_key("q")
        assert before != after

    def test_old_key_never_served_after_bump(self):
        coordinator = CacheCoordinator("people", "grp", MemoryCacheStore())
        old_key = coordinator.make_cache_key("q")
        coordinator.write(old_key, {"stale": True})
        coordinator.bump_epoch()
        assert coordinator.read(coordinator.make_cache_key("q")) is MISS

    def test_store_failures_are_misses(self):
        coordinator = CacheCoordinator("people", "grp", BrokenStore())
        assert coordinator.get_epoch() is None
        assert coordinator.make_cache_key("q") is None
        assert not coordinator.bump_epoch()
        assert coordinator.read("k") is MISS
        assert not coordinator.write("k", 1)

    def test_key_hook(self):
        coordinator = CacheCoordinator("people", "grp", MemoryCacheStore(), key_hook=lambda key, fp: "custom:" + key)
        assert coordinator.make_cache_key("q").startswith("custom:people:")

    def test_fingerprint_includes_params(self):
        assert fingerprint("SELECT ?", [1]) != fingerprint("SELECT ?", [2])

    def test_epochs_unique(self):
        assert len({new_epoch() for _ in range(1000)}) == 1000
