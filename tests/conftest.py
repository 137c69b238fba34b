from collections.abc import AsyncGenerator, Generator
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from pulse.config.settings import Settings
from pulse.infra.database import Database
from pulse.main import create_app
from pulse.v1.core.clock import FrozenClock
from pulse.v1.jobs.repository import JobRepository
from pulse.v1.notifications.ledger import DedupLedger
from pulse.v1.notifications.notifier import NotificationQueue, Notifier
from pulse.v1.reminders.repository import ReminderRepository

# Monday morning, far from any day boundary
T0 = datetime(2025, 3, 3, 9, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> FrozenClock:
    """Clock frozen at T0; tests move it explicitly."""
    return FrozenClock(T0)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file with the engine idle."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pulse.db'}",
        engine_enabled=False,
        subjects=["alice"],
        github_token=None,
        public_base_url=None,
        tunnel_api_url=None,
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings)
    await db.create_all()
    yield db
    await db.close()


@pytest.fixture
def session_factory(database: Database):
    return database.SessionLocal


@pytest.fixture
def job_repository(session_factory, clock) -> JobRepository:
    return JobRepository(session_factory, clock)


@pytest.fixture
def reminder_repository(session_factory, clock) -> ReminderRepository:
    return ReminderRepository(session_factory, clock)


@pytest.fixture
def ledger(session_factory, clock) -> DedupLedger:
    return DedupLedger(session_factory, clock)


@pytest.fixture
def queue() -> NotificationQueue:
    return NotificationQueue()


@pytest.fixture
def notifier(ledger, queue, clock) -> Notifier:
    return Notifier(ledger, queue, clock)


@pytest.fixture
def client(settings: Settings, clock: FrozenClock) -> Generator[TestClient, None, None]:
    """Test client with the app lifespan (database, engine) running."""
    app = create_app(settings, clock=clock)
    with TestClient(app) as test_client:
        yield test_client
