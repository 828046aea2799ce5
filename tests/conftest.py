"""Pytest configuration and fixtures."""

import json
from typing import AsyncGenerator, Callable, Dict, List

import httpx
import pytest
import pytest_asyncio
from cryptography.fernet import Fernet
from httpx import ASGITransport, AsyncClient
from rideway.main import app
from rideway.models import Base
from rideway.models.motorcycle import Motorcycle
from rideway.models.user import User
from rideway.routes.deps import get_debouncer, get_dispatcher, get_rate_limiter
from rideway.services.database import get_db
from rideway.services.integration_dispatcher import IntegrationDispatcher
from rideway.utils.encryption import ConfigEncryption
from rideway.utils.notification_tracker import DueCheckRateLimiter, NotificationDebouncer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

TEST_DATABASE_URL = "sqlite+aiosqlite://"


class FakeClock:
    """Manually advanced clock for cooldown tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingHandler:
    """
    httpx.MockTransport handler that records every request.

    Responses default to 200 with a JSON body; `responses` maps a host to a
    status code or a callable raising an httpx error.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responses: Dict[str, object] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.responses.get(request.url.host, 200)
        if callable(outcome):
            return outcome(request)
        return httpx.Response(outcome, json={"ok": outcome < 400})

    def bodies(self) -> List[dict]:
        return [json.loads(r.content) if r.content else None for r in self.requests]

    def for_host(self, host: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create in-memory test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def debouncer(clock) -> NotificationDebouncer:
    return NotificationDebouncer(cooldown_seconds=300, clock=clock)


@pytest.fixture
def rate_limiter(clock) -> DueCheckRateLimiter:
    return DueCheckRateLimiter(min_interval_seconds=3600, clock=clock)


@pytest.fixture
def encryption() -> ConfigEncryption:
    return ConfigEncryption(key=Fernet.generate_key().decode())


@pytest.fixture
def http_handler() -> RecordingHandler:
    return RecordingHandler()


@pytest_asyncio.fixture
async def http_client(http_handler) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(transport=httpx.MockTransport(http_handler)) as client:
        yield client


@pytest.fixture
def dispatcher(db_session, http_client, encryption) -> IntegrationDispatcher:
    return IntegrationDispatcher(db_session, client=http_client, encryption=encryption, timeout=5.0)


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create test user."""
    user = User(name="Jane Rider", email="jane@example.com")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest_asyncio.fixture
async def test_motorcycle(db_session: AsyncSession, test_user: User) -> Motorcycle:
    """Create test motorcycle at 5900 on the odometer."""
    motorcycle = Motorcycle(
        user_id=test_user.id,
        name="My Ducati",
        make="Ducati",
        model="Monster 937",
        year=2022,
        current_mileage=5900,
        is_default=True,
    )
    db_session.add(motorcycle)
    await db_session.commit()
    await db_session.refresh(motorcycle)
    return motorcycle


@pytest.fixture
def make_integration(db_session, test_user, encryption) -> Callable:
    """Factory creating an integration through the service layer."""
    from rideway.services.integration_service import create_integration

    async def factory(integration_type: str, config: dict, events=None, active=True, name=None):
        return await create_integration(
            db_session,
            test_user.id,
            name=name or f"{integration_type} integration",
            integration_type=integration_type,
            config=config,
            active=active,
            events=events if events is not None else [],
            encryption=encryption,
        )

    return factory


def subscribe(*event_types: str, **extra) -> List[dict]:
    return [{"event_type": event_type, "enabled": True, **extra} for event_type in event_types]


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession, debouncer, rate_limiter, dispatcher
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_debouncer] = lambda: debouncer
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
