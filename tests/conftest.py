"""Shared test fixtures."""
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from marketos.models.integration import Marketplace, MarketplaceIntegration
from marketos.models.product import MarketplaceProduct, MarketplaceSale  # noqa: F401
from marketos.models.sync import SyncLog  # noqa: F401
from marketos.config import Settings


class FakeClock:
    """Manually advanced aware-UTC clock."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    """Provides a DB session connected to in-memory SQLite."""
    with Session(engine) as session:
        yield session


@pytest.fixture(name="clock")
def clock_fixture() -> FakeClock:
    return FakeClock()


@pytest.fixture(name="settings")
def settings_fixture() -> Settings:
    """Settings with the tick job disabled, so tests drive tick() themselves."""
    return Settings(
        _env_file=None,
        auto_sync_enabled=False,
        sync_shutdown_grace_seconds=0.5,
        http_retries=0,
    )


@pytest.fixture(name="wb_integration")
def wb_integration_fixture(test_session: Session) -> MarketplaceIntegration:
    """A persisted, active Wildberries integration."""
    integration = MarketplaceIntegration(
        id="wb-main",
        marketplace=Marketplace.WB,
        name="WB main",
        api_key="wb-token",
        interval_minutes=5,
    )
    test_session.add(integration)
    test_session.commit()
    test_session.refresh(integration)
    return integration
