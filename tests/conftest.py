from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine

from keybatch.adapters.memory import InMemoryRecordStore
from keybatch.adapters.sqlalchemy.mappings import create_all_tables
from keybatch.domain import EntityTranslator, Loader, LoadEngine, MetadataRegistry, Session
from tests.helpers.library import build_registry, seed_library

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def registry() -> MetadataRegistry:
    return build_registry()


@pytest.fixture
def store() -> InMemoryRecordStore:
    records = InMemoryRecordStore()
    seed_library(records)
    return records


@pytest.fixture
def session() -> Session:
    return Session()


@pytest.fixture
def make_engine(
    store: InMemoryRecordStore,
    registry: MetadataRegistry,
    session: Session,
) -> Callable[..., LoadEngine]:
    def factory(*groups: str, max_batch_size: int | None = None) -> LoadEngine:
        return LoadEngine(
            session=session,
            fetcher=store,
            translator=EntityTranslator(registry),
            metadata=registry,
            load_groups=groups,
            max_batch_size=max_batch_size,
        )

    return factory


@pytest.fixture
def loader(store: InMemoryRecordStore, registry: MetadataRegistry) -> Loader:
    return Loader(store, registry=registry)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()
