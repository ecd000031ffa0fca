from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from catalogist.adapters.sqlalchemy.migrations import upgrade_head
from catalogist.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    shutdown,
    startup,
)
from catalogist.config import IngestConfig
from catalogist.domain.ingest_pipeline import (
    InlineScheduler,
    IngestServices,
    LearnedStateCache,
)
from tests.support.catalog import FakeOracle

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    # one shared connection so every unit of work sees the same in-memory database
    engine = create_engine(
        "sqlite+pysqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        future=True,
    )
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session = Session(sqlite_engine)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def uow_factory(sqlite_engine: Engine) -> Iterator[Callable[[], SqlAlchemyIngestUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield SqlAlchemyIngestUnitOfWork
    finally:
        shutdown()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def scheduler() -> InlineScheduler:
    return InlineScheduler()


@pytest.fixture
def ingest_config() -> IngestConfig:
    return IngestConfig()


@pytest.fixture
def services(
    uow_factory: Callable[[], SqlAlchemyIngestUnitOfWork],
    oracle: FakeOracle,
    scheduler: InlineScheduler,
    ingest_config: IngestConfig,
) -> IngestServices:
    return IngestServices(
        uow_factory=uow_factory,
        oracle=oracle,
        config=ingest_config,
        caches=LearnedStateCache.with_ttl(60.0),
        scheduler=scheduler,
    )
