"""
Shared test fixtures.

Uses a throw-away SQLite file database (via aiosqlite) so tests run
without Docker / PostgreSQL / Redis.  ``NullPool`` gives every session a
fresh connection, which lets concurrent sessions contend for the same row
the way separate API workers would, and lets the WebSocket tests drive
the app from Starlette's own event loop.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

from dataclasses import dataclass  # noqa: E402
from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402

from dispatch.domain.enums import UserRole  # noqa: E402
from dispatch.infrastructure.database import Base  # noqa: E402
from dispatch.infrastructure.models import UserModel  # noqa: E402
from dispatch.infrastructure.notifier import Notifier  # noqa: E402
from dispatch.infrastructure.security import create_access_token  # noqa: E402

# MG Road, Bengaluru
PICKUP = (12.9716, 77.5946)
RIDER_TOKEN = "rider-device-token"


class RecordingNotifier(Notifier):
    """Collects push notifications instead of delivering them."""

    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, token: str, title: str, body: str) -> None:
        self.sent.append((token, title, body))

    @property
    def bodies(self) -> list[str]:
        return [body for _, _, body in self.sent]


@dataclass
class Users:
    rider: int
    other_rider: int
    driver: int
    other_driver: int
    third_driver: int


def token_for(user_id: int, role: UserRole) -> str:
    return create_access_token(user_id, role)


def auth_header(user_id: int, role: UserRole) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user_id, role)}"}


def make_engine(path):
    return create_async_engine(f"sqlite+aiosqlite:///{path}", poolclass=NullPool)


async def create_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def seed_users(factory: async_sessionmaker[AsyncSession]) -> Users:
    async with factory() as session:
        rows = [
            UserModel(name="Asha Rao", email="asha@example.com", phone="+911111",
                      role=UserRole.RIDER, fcm_token=RIDER_TOKEN),
            UserModel(name="Ben Das", email="ben@example.com", phone="+912222",
                      role=UserRole.RIDER),
            UserModel(name="Dev Menon", email="dev@example.com", phone="+913333",
                      role=UserRole.DRIVER, is_available=True,
                      current_lat=12.9750, current_lng=77.6000),
            UserModel(name="Farah Khan", email="farah@example.com", phone="+914444",
                      role=UserRole.DRIVER, is_available=True),
            UserModel(name="Gopal Iyer", email="gopal@example.com", phone="+915555",
                      role=UserRole.DRIVER),
        ]
        session.add_all(rows)
        await session.commit()
        return Users(*(r.id for r in rows))


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    engine = make_engine(tmp_path / "test.db")
    await create_schema(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def users(session_factory) -> Users:
    return await seed_users(session_factory)


@pytest_asyncio.fixture
async def db_session(session_factory, users) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


def build_app(factory: async_sessionmaker[AsyncSession], notifier: Notifier):
    """App wired to the test database and a recording notifier."""
    from dispatch.api.app import create_app
    from dispatch.api.dependencies import get_db, get_session_factory

    async def _test_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_session_factory] = lambda: factory
    app.state.dispatcher.notifier = notifier
    return app


@pytest_asyncio.fixture
async def app(session_factory, users, notifier):
    return build_app(session_factory, notifier)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
