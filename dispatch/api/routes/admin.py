"""
Admin / observability endpoints
===============================

GET /api/v1/admin/realtime -- live connection and scope statistics
GET /api/v1/admin/health   -- simple health check
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import get_db
from dispatch.api.middleware import limiter
from dispatch.api.schemas import HealthResponse, RealtimeStatsResponse
from dispatch.config import settings
from dispatch.infrastructure.repositories import UserRepository
from dispatch.services.presence import PresenceRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/realtime",
    response_model=RealtimeStatsResponse,
    summary="Live connection and scope statistics for this process",
)
@limiter.limit(settings.rate_limit)
async def realtime_stats(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    available = await PresenceRegistry(UserRepository(db)).available_driver_ids()
    return RealtimeStatsResponse(
        **request.app.state.scopes.stats(),
        available_drivers=len(available),
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
