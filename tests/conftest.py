"""Shared fixtures: in-memory DuckDB, a people schema and repositories."""

from unittest.mock import MagicMock

import pytest
from loguru import logger

from atomic_tables import (
    ColumnType,
    Database,
    DuckDBExecutor,
    MemoryCacheStore,
    TableRepository,
    TableSchema,
)


def people_schema(**overrides) -> TableSchema:
    fields = {
        "table_name": "people",
        "columns": {"id": ColumnType.INTEGER, "name": ColumnType.TEXT, "score": ColumnType.FLOAT},
        "primary_key": "id",
        "defaults": {"score": 0.0},
        "version": "1.0.0",
        "cache_group": "people",
    }
    fields.update(overrides)
    return TableSchema(**fields)


@pytest.fixture
def schema():
    return people_schema()


@pytest.fixture
def database():
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def executor(database):
    return DuckDBExecutor(database)


@pytest.fixture
def store():
    return MemoryCacheStore(ttl=0)


@pytest.fixture
def spy(executor):
    """Executor test double that records every call."""
    return MagicMock(wraps=executor)


@pytest.fixture
def table(schema, spy, store):
    repo = TableRepository(spy, store, schema)
    assert repo.create_table().ok
    spy.reset_mock()
    return repo


@pytest.fixture
def log_records():
    """Capture loguru records as (level, message)."""
    records = []
    sink_id = logger.add(lambda m: records.append((m.record["level"].name, m.record["message"])), level="DEBUG")
    yield records
    logger.remove(sink_id)
