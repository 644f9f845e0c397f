"""Pytest fixtures for testing"""

import os

# Point the app at SQLite before billing_engine builds its engine
TEST_DATABASE_URL = "sqlite:///./test.db"
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from billing_engine.api.main import create_app
from billing_engine.domain.status import OverduePolicy
from billing_engine.infrastructure.cache import SummaryCache, summary_cache
from billing_engine.infrastructure.database.models import Base
from billing_engine.infrastructure.database.repositories import SqlLedgerStore
from billing_engine.infrastructure.database.session import get_db
from billing_engine.services.billing import BillingOrchestrator
from billing_engine.services.scheduler import DailyBillingJob


# Test database
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()
    summary_cache.clear()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def store(db: Session) -> SqlLedgerStore:
    return SqlLedgerStore(db)


@pytest.fixture
def cache() -> SummaryCache:
    return SummaryCache(ttl_seconds=60)


@pytest.fixture
def orchestrator(store: SqlLedgerStore, cache: SummaryCache) -> BillingOrchestrator:
    return BillingOrchestrator(store, policy=OverduePolicy(installment_days=5, recurring_days=10), cache=cache)


@pytest.fixture
def daily_job(store: SqlLedgerStore, cache: SummaryCache) -> DailyBillingJob:
    return DailyBillingJob(
        store,
        policy=OverduePolicy(installment_days=5, recurring_days=10),
        cache=cache,
        job_name="test-daily",
        billing_cycle_day=1,
        sweep_start_day=5,
        due_day=5,
    )
