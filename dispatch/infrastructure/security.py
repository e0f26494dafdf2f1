"""
Identity & role gate.

Bearer credentials are HS256 JWTs carrying the user id in ``sub`` and the
role in ``role``.  A token is only accepted when its subject still resolves
to a user record; the role used for authorization is the stored one, not
the claim.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import jwt

from dispatch.config import settings
from dispatch.domain.entities import Identity
from dispatch.domain.enums import UserRole
from dispatch.domain.errors import Forbidden, Unauthorized
from dispatch.infrastructure.repositories import UserRepository


def create_access_token(
    user_id: int, role: UserRole, *, expires_days: Optional[int] = None
) -> str:
    now = datetime.now(timezone.utc)
    days = settings.jwt_expires_days if expires_days is None else expires_days
    claims = {
        "sub": str(user_id),
        "role": UserRole(role).value,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthorized("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise Unauthorized() from exc


def _subject_id(claims: dict[str, Any]) -> int:
    subject = claims.get("sub", claims.get("id"))
    try:
        return int(subject)
    except (TypeError, ValueError) as exc:
        raise Unauthorized() from exc


async def authenticate(
    credential: Optional[str], users: UserRepository
) -> Identity:
    """Resolve a bearer credential to a live identity or raise Unauthorized."""
    if not credential:
        raise Unauthorized("No token, authorization denied")

    claims = decode_token(credential)
    user = await users.get_by_id(_subject_id(claims))
    if user is None:
        raise Unauthorized("User not found")

    return Identity(
        user_id=user.id,
        role=UserRole(user.role),
        name=user.name,
        phone=user.phone,
    )


def require_role(identity: Identity, role: UserRole) -> None:
    if identity.role != role:
        raise Forbidden(f"Access denied. {role.value.capitalize()} role required.")
