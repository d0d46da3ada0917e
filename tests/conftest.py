import os

# Must be set before anything imports core.config
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("SECRET_KEY", "test-access-secret")
os.environ.setdefault("REFRESH_SECRET_KEY", "test-refresh-secret")
os.environ.setdefault("LOG_DIR", "logs/test")
os.environ.setdefault("KAFKA_BOOTSTRAP_SERVERS", "")

import pytest
from datetime import datetime, timedelta, timezone
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import app
from core.database import Base
from services.auth_service import AuthService
from services.event_publisher import LoggingEventPublisher
from services.token_service import TokenCodec, TokenConfig
from services.token_store import RefreshTokenStore
from services.user_service import UserService
from utils.deps import get_db
from utils.hashing import get_password_hash

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)

TEST_PASSWORD = "TestPassword123!"


class FrozenClock:
    """Deterministic clock for the codec and the token store."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingPublisher(LoggingEventPublisher):
    """Keeps published events in memory for assertions."""

    def __init__(self):
        self.events = []

    def publish(self, topic, payload):
        self.events.append((topic, payload))


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def codec(clock) -> TokenCodec:
    config = TokenConfig(
        access_secret="unit-access-secret",
        refresh_secret="unit-refresh-secret",
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7)
    )
    return TokenCodec(config, clock=clock)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def token_store(session, clock) -> RefreshTokenStore:
    return RefreshTokenStore(session, clock=clock)


@pytest.fixture
def auth_service(session, token_store, codec, publisher) -> AuthService:
    return AuthService(
        users=UserService(session),
        tokens=token_store,
        codec=codec,
        publisher=publisher
    )


@pytest.fixture
def registered_user(session):
    """A user created straight through the directory, password TEST_PASSWORD."""
    return UserService(session).create(
        "testuser", "testuser@example.com", get_password_hash(TEST_PASSWORD)
    )


@pytest.fixture
async def client(session: Session):
    """
    Yields an HTTP client that talks to the app using the test database.
    The client is async (for FastAPI), but the DB session is sync.
    """
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"User-Agent": "pytest-agent"}
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def auth_headers(client, registered_user):
    response = await client.post("/auth/login", json={
        "email": registered_user.email,
        "password": TEST_PASSWORD
    })
    access_token = response.json()["tokens"]["access_token"]
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
def session_factory(session):
    """Independent sessions on the test database, e.g. one per thread."""
    return TestingSessionLocal
