"""Integration test fixtures for the SQLAlchemy workflow store."""

from __future__ import annotations

import os
from collections.abc import Generator

import pytest

from venture.core.models.store import StoreConfig
from venture.core.models.workflow_pg import Base
from venture.core.stores.sql import SqlAlchemyWorkflowStore


def _database_urls() -> list[str]:
    urls = ['sqlite://']
    postgres_url = os.environ.get('VENTURE_TEST_DATABASE_URL')
    if postgres_url:
        urls.append(postgres_url)
    return urls


@pytest.fixture(params=_database_urls(), ids=lambda url: url.split(':')[0])
def store_config(request: pytest.FixtureRequest) -> StoreConfig:
    """Store configuration: in-memory SQLite always, PostgreSQL when configured."""
    return StoreConfig(database_url=request.param)


@pytest.fixture
def store(store_config: StoreConfig) -> Generator[SqlAlchemyWorkflowStore, None, None]:
    """SqlAlchemyWorkflowStore with a fresh schema."""
    sql_store = SqlAlchemyWorkflowStore(store_config)
    Base.metadata.drop_all(sql_store.engine)
    sql_store.ensure_schema()
    yield sql_store
    Base.metadata.drop_all(sql_store.engine)
    sql_store.dispose()
