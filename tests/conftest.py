"""
Pytest configuration and shared fixtures for all tests.
"""
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Generator, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings
from app.core.errors import TransientDeliveryError
from app.db.models import Base, BuddyLink, CheckIn, CommunityMembership, HealthData, User
from app.main import create_app
from app.services.classifier import Classification
from app.services.clock import FrozenClock
from app.services.container import build_container
from app.services.notification_tracker import MemoryFlagStore


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakePushGateway:
    """Records pushes and registrations; fails registration a set number of times."""

    def __init__(self, enabled: bool = True, register_failures: int = 0, send_error: Optional[Exception] = None):
        self.enabled = enabled
        self.register_failures = register_failures
        self.send_error = send_error
        self.register_calls = 0
        self.sent: list[dict] = []

    async def register(self, token, platform, device_id):
        self.register_calls += 1
        if self.register_calls <= self.register_failures:
            raise TransientDeliveryError("gateway down")

    async def send(self, tokens, title, body, data):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append({"tokens": list(tokens), "title": title, "body": body, "data": data})


class StubClassifier:
    """Returns a fixed classification and remembers what it was asked."""

    name = "stub"

    def __init__(self, status: str = "stable", confidence: float = 0.8, needs_support: bool = False,
                 changes: Optional[list] = None, error: Optional[Exception] = None):
        self.status = status
        self.confidence = confidence
        self.needs_support = needs_support
        self.changes = changes or []
        self.error = error
        self.calls: list[tuple] = []

    async def classify(self, window, baseline=None):
        self.calls.append((window, baseline))
        if self.error is not None:
            raise self.error
        return Classification(
            status=self.status,
            confidence=self.confidence,
            needs_support=self.needs_support,
            significant_changes=list(self.changes),
            reasoning={"checkInMood": 2.0, "sleepQuality": "poor", "activityLevel": "low"},
            model=self.name,
        )


class Factory:
    def __init__(self, db: Session):
        self.db = db

    def user(self, username: str, user_id: Optional[uuid.UUID] = None, display_name: Optional[str] = None) -> User:
        u = User(id=user_id or uuid.uuid4(), username=username, display_name=display_name)
        self.db.add(u); self.db.commit()
        return u

    def buddies(self, a: uuid.UUID, b: uuid.UUID) -> None:
        self.db.add(BuddyLink(user_id=a, buddy_id=b)); self.db.commit()

    def community(self, *members: uuid.UUID) -> uuid.UUID:
        cid = uuid.uuid4()
        for m in members:
            self.db.add(CommunityMembership(community_id=cid, user_id=m))
        self.db.commit()
        return cid

    def checkin(self, user_id: uuid.UUID, at: datetime, score: int = 3, label: str = "Neutral",
                notes: Optional[str] = None) -> CheckIn:
        ci = CheckIn(user_id=user_id, timestamp=at, mood_score=score, mood_label=label, activities=[], notes=notes)
        self.db.add(ci); self.db.commit()
        return ci

    def health(self, user_id: uuid.UUID, day: date, *, sleep_hours: Optional[float] = None,
               quality: Optional[str] = None, steps: Optional[int] = None, exercise_minutes: int = 0) -> HealthData:
        h = HealthData(
            user_id=user_id,
            day=day,
            sleep_seconds=int(sleep_hours * 3600) if sleep_hours is not None else None,
            sleep_quality=quality,
            total_steps=steps,
            exercise_seconds=exercise_minutes * 60,
            exercise_count=1 if exercise_minutes else 0,
        )
        self.db.add(h); self.db.commit()
        return h


@pytest.fixture
def test_engine():
    """In-memory SQLite engine shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(test_engine, expire_on_commit=False, class_=Session)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Create a new database session for a test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


@pytest.fixture
def test_user_id() -> uuid.UUID:
    """Generate a test user ID."""
    return uuid.UUID("123e4567-e89b-12d3-a456-426614174000")


@pytest.fixture
def another_user_id() -> uuid.UUID:
    """Generate another test user ID for multi-user tests."""
    return uuid.UUID("223e4567-e89b-12d3-a456-426614174001")


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def sleeper(sleeps):
    """Records backoff delays instead of sleeping."""
    async def _sleep(seconds):
        sleeps.append(seconds)
    return _sleep


@pytest.fixture
def push() -> FakePushGateway:
    return FakePushGateway()


@pytest.fixture
def classifier() -> StubClassifier:
    return StubClassifier()


@pytest.fixture
def flag_store() -> MemoryFlagStore:
    return MemoryFlagStore()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(SCHEDULER_ENABLED=False, ADMIN_ROUTES_ENABLED=True)


@pytest.fixture
def container(session_factory, clock, classifier, push, flag_store, sleeper, test_settings):
    return build_container(
        session_factory=session_factory,
        clock=clock,
        classifier=classifier,
        push=push,
        flag_store=flag_store,
        sleeper=sleeper,
        cfg=test_settings,
    )


@pytest.fixture
def mock_auth_user(test_user_id):
    """Mock authenticated user."""
    return {"user_id": str(test_user_id), "role": "admin", "email": "test@example.com"}


@pytest.fixture
def app(container, db_session, mock_auth_user):
    """Application wired to the test container with auth and database overridden."""
    from app.db.session import get_db
    from app.core.security import get_current_user

    application = create_app(services=container, init_database=False)

    def override_get_db():
        yield db_session

    async def override_auth():
        return mock_auth_user

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_current_user] = override_auth
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def sync_client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def days_back():
    """Date `n` days before the frozen now."""
    return lambda n: (NOW - timedelta(days=n)).date()
