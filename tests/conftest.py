"""Shared pytest fixtures for registry test suites."""

from collections.abc import Generator
import os
from pathlib import Path
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

os.environ.setdefault("REGISTRY_DATABASE_URL", "sqlite://")
os.environ.pop("REGISTRY_FAULT_REPORT_URL", None)

from registry.core.reporting import InMemoryFaultReporter  # noqa: E402


@pytest.fixture
def reporter() -> InMemoryFaultReporter:
    return InMemoryFaultReporter()


@pytest.fixture
def db_engine() -> Generator[Engine, None, None]:
    """Private in-memory database shared by every connection of one test."""
    from registry.db.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def app(db_engine: Engine, reporter: InMemoryFaultReporter) -> FastAPI:
    """Registry application bound to the test database and reporter."""
    from registry.db.base import get_db_session
    from registry.main import create_app

    factory = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False, class_=Session)

    def _session() -> Generator[Session, None, None]:
        session = factory()
        try:
            yield session
        finally:
            session.close()

    application = create_app(reporter=reporter)
    application.dependency_overrides[get_db_session] = _session
    return application


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Provide an API test client for contract and integration suites."""
    with TestClient(app) as test_client:
        yield test_client
