"""
User endpoints
==============

GET  /api/v1/users/me         -- the caller's profile and presence
POST /api/v1/users/fcm-token  -- register (or clear) the push device token
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_current_identity, get_db
from dispatch.api.middleware import limiter
from dispatch.api.schemas import FcmTokenRequest, MessageResponse, UserResponse
from dispatch.config import settings
from dispatch.domain.entities import Identity
from dispatch.infrastructure.repositories import UserRepository

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse, summary="Current user")
@limiter.limit(settings.rate_limit)
async def get_me(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get_by_id(identity.user_id, fresh=True)
    return UserResponse.from_model(user)


@router.post(
    "/fcm-token",
    response_model=MessageResponse,
    summary="Register the device token used for push notifications",
)
@limiter.limit(settings.rate_limit)
async def update_fcm_token(
    request: Request,
    body: FcmTokenRequest,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    await UserRepository(db).set_fcm_token(identity.user_id, body.fcm_token)
    return MessageResponse(message="FCM token updated successfully")
