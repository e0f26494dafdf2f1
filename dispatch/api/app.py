"""
FastAPI application factory.

* Registers routes for bookings, users, admin and the real-time channel.
* Wires the scope manager, notifier and effect dispatcher into app state.
* Starts / stops the Redis broadcast relay via lifespan events when
  ``BROADCAST_BACKEND=redis``.
* Maps domain errors to HTTP responses; unexpected errors become a
  generic 500 and are logged with their traceback.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from dispatch.api.middleware import limiter
from dispatch.api.routes import admin, bookings, realtime, users
from dispatch.config import settings
from dispatch.domain.errors import DispatchError
from dispatch.infrastructure.notifier import build_notifier
from dispatch.infrastructure.redis_client import close_redis, get_redis
from dispatch.realtime.relay import RedisBroadcastRelay
from dispatch.realtime.scopes import ScopeManager
from dispatch.services.dispatcher import EffectDispatcher

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the broadcast relay on startup; stop on shutdown."""
    relay = None
    if settings.broadcast_backend == "redis":
        relay = RedisBroadcastRelay(
            await get_redis(), app.state.scopes, settings.broadcast_channel
        )
        await relay.start()
        app.state.dispatcher.broadcaster = relay
    yield
    if relay is not None:
        await relay.stop()
        await close_redis()


async def dispatch_error_handler(request: Request, exc: DispatchError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Server error"})


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)

    app = FastAPI(
        title="Ambulance Dispatch API",
        description=(
            "Riders request an ambulance, available drivers are alerted in "
            "real time and the first to accept is assigned.  Both parties "
            "follow status and driver location live until completion."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Real-time fan-out + push notifications
    app.state.scopes = ScopeManager()
    app.state.dispatcher = EffectDispatcher(app.state.scopes, build_notifier())

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Errors
    app.add_exception_handler(DispatchError, dispatch_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1")
    app.include_router(users.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")
    app.include_router(realtime.router, prefix="/api/v1")

    return app
