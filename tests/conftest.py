"""Pytest configuration and shared fixtures."""

import threading
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from app.core.config import EngineConfig
from app.crud.onboarding import InMemorySessionStore
from app.database import Base
from app.models import AmenityDefinition, OnboardingSession  # noqa: F401  (register tables)
from app.services.onboarding import OnboardingService
from app.services.quality_engine import AmenityRuleValidator, default_catalog


class FakeClock:
    """Deterministic clock; tests move time explicitly."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingPublisher:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def publish(self, event) -> None:
        with self._lock:
            self.events.append(event)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def amenity_validator(catalog):
    return AmenityRuleValidator(catalog.list_amenities())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def service(store, catalog, config, publisher, clock):
    return OnboardingService(store, catalog, config, publisher=publisher, clock=clock)


@pytest.fixture
def db_session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
