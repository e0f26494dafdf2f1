"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch.domain.entities import Identity
from dispatch.domain.enums import UserRole
from dispatch.infrastructure.database import async_session_factory
from dispatch.infrastructure.repositories import UserRepository
from dispatch.infrastructure.security import authenticate, require_role
from dispatch.services.dispatcher import EffectDispatcher

_bearer = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for long-lived connections (one session per message)."""
    return async_session_factory


def get_dispatcher(request: Request) -> EffectDispatcher:
    return request.app.state.dispatcher


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    db: AsyncSession = Depends(get_db),
) -> Identity:
    token = credentials.credentials if credentials else None
    return await authenticate(token, UserRepository(db))


async def require_rider(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    require_role(identity, UserRole.RIDER)
    return identity


async def require_driver(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    require_role(identity, UserRole.DRIVER)
    return identity
