"""Tests for the DuckDB executor."""

import threading

import pytest

from atomic_tables.repositories.base import ReadShape, WriteKind


@pytest.fixture
def items(executor):
    assert executor.execute_ddl("CREATE TABLE items (id BIGINT PRIMARY KEY, label VARCHAR)")
    executor.execute_write(WriteKind.INSERT, "items", {"id": 1, "label": "one"})
    executor.execute_write(WriteKind.INSERT, "items", {"id": 2, "label": "two"})
    return executor


class TestReads:
    def test_row(self, items):
        assert items.execute_read("SELECT * FROM items WHERE id = ?", [1]) == {"id": 1, "label": "one"}

    def test_no_row(self, items):
        assert items.execute_read("SELECT * FROM items WHERE id = ?", [9]) is None
        assert items.last_error() is None

    def test_rows(self, items):
        rows = items.execute_read("SELECT id FROM items ORDER BY id", shape=ReadShape.ROWS)
        assert rows == [{"id": 1}, {"id": 2}]

    def test_scalar(self, items):
        assert items.execute_read("SELECT COUNT(*) FROM items", shape=ReadShape.SCALAR) == 2

    def test_error_recorded_and_reset(self, items):
        assert items.execute_read("SELECT * FROM missing_table") is None
        assert items.last_error()
        items.execute_read("SELECT 1", shape=ReadShape.SCALAR)
        assert items.last_error() is None


class TestWrites:
    def test_update_count(self, items):
        assert items.execute_write(WriteKind.UPDATE, "items", {"label": "uno"}, {"id": 1}) == 1
        assert items.execute_write(WriteKind.UPDATE, "items", {"label": "x"}, {"id": 99}) == 0

    def test_delete_count(self, items):
        assert items.execute_write(WriteKind.DELETE, "items", predicate={"id": 2}) == 1

    def test_insert_returning(self, items):
        assert items.execute_write(WriteKind.INSERT, "items", {"id": 7, "label": "x"}, returning="id") == 1
        assert items.insert_id() == 7

    def test_duplicate_key_is_error(self, items):
        assert items.execute_write(WriteKind.INSERT, "items", {"id": 1, "label": "dup"}) is None
        assert items.last_error()

    def test_unconditional_delete_refused(self, items):
        assert items.execute_write(WriteKind.DELETE, "items") is None
        assert "predicate" in items.last_error()
        assert items.execute_read("SELECT COUNT(*) FROM items", shape=ReadShape.SCALAR) == 2

    def test_values_are_bound(self, items):
        label = "'); DROP TABLE items; --"
        items.execute_write(WriteKind.UPDATE, "items", {"label": label}, {"id": 1})
        assert items.execute_read("SELECT label FROM items WHERE id = 1", shape=ReadShape.SCALAR) == label
        assert items.table_exists("items")


class TestMetadata:
    def test_quote_identifier(self, executor):
        assert executor.quote_identifier('we"ird') == '"we""ird"'

    def test_table_exists(self, items):
        assert items.table_exists("items")
        assert not items.table_exists("nope")

    def test_column_names(self, items):
        assert items.column_names("items") == ["id", "label"]


class TestThreads:
    def test_cursor_per_thread(self, database):
        cursors = []

        def grab():
            cursors.append(database.cursor())

        threads = [threading.Thread(target=grab) for _ in range(3)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len({id(c) for c in cursors}) == 3
        assert database.cursor() is database.cursor()

    def test_errors_are_per_thread(self, items):
        items.execute_read("SELECT * FROM missing_table")
        seen = []
        thread = threading.Thread(target=lambda: seen.append(items.last_error()))
        thread.start()
        thread.join()
        assert seen == [None]
        assert items.last_error()
