"""
Booking endpoints
=================

POST  /api/v1/bookings                 -- rider requests an ambulance (201)
GET   /api/v1/bookings/driver/active   -- driver's non-terminal bookings
GET   /api/v1/bookings/rider/history   -- rider's bookings, newest first
GET   /api/v1/bookings/{booking_id}    -- booking with rider / driver profiles
PATCH /api/v1/bookings/{booking_id}/status -- driver advances the lifecycle
PATCH /api/v1/bookings/{booking_id}/cancel -- rider cancels

Mutating endpoints commit before dispatching broadcasts / push
notifications, so subscribers never observe an uncommitted state.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.api.dependencies import (
    get_current_identity,
    get_db,
    get_dispatcher,
    require_driver,
    require_rider,
)
from dispatch.api.middleware import limiter
from dispatch.api.schemas import (
    BookingCreateRequest,
    BookingEnvelope,
    BookingListResponse,
    BookingResponse,
    StatusUpdateRequest,
)
from dispatch.config import settings
from dispatch.domain.entities import Identity, Location
from dispatch.services.dispatcher import EffectDispatcher
from dispatch.services.lifecycle import BookingLifecycle

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingEnvelope,
    summary="Request an ambulance",
    responses={201: {"description": "Booking created; available drivers notified."}},
)
@limiter.limit(settings.rate_limit)
async def create_booking(
    request: Request,
    body: BookingCreateRequest,
    rider: Identity = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    pickup = body.pickup_location
    outcome = await BookingLifecycle(db).create(
        rider.user_id,
        Location(pickup.latitude, pickup.longitude),
        address=pickup.address,
        notes=body.notes,
    )
    await db.commit()
    await dispatcher.dispatch(outcome.effects)
    return BookingEnvelope(booking=BookingResponse.from_view(outcome.booking))


@router.get(
    "/driver/active",
    response_model=BookingListResponse,
    summary="List the driver's active bookings",
)
@limiter.limit(settings.rate_limit)
async def list_driver_active(
    request: Request,
    driver: Identity = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
):
    views = await BookingLifecycle(db).list_driver_active(driver.user_id)
    return BookingListResponse(bookings=[BookingResponse.from_view(v) for v in views])


@router.get(
    "/rider/history",
    response_model=BookingListResponse,
    summary="List the rider's bookings, newest first",
)
@limiter.limit(settings.rate_limit)
async def list_rider_history(
    request: Request,
    rider: Identity = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
):
    views = await BookingLifecycle(db).list_rider_history(rider.user_id)
    return BookingListResponse(bookings=[BookingResponse.from_view(v) for v in views])


@router.get(
    "/{booking_id}",
    response_model=BookingEnvelope,
    summary="Get a booking (rider or assigned driver only)",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_id: int,
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    view = await BookingLifecycle(db).get_by_id(booking_id, identity.user_id)
    return BookingEnvelope(booking=BookingResponse.from_view(view))


@router.patch(
    "/{booking_id}/status",
    response_model=BookingEnvelope,
    summary="Advance the booking lifecycle",
    description=(
        "pending -> assigned -> en-route -> arrived -> completed; an assigned "
        "booking may also be cancelled.  Only the assigned driver may update "
        "a booking; a driver may claim an unassigned pending booking by "
        "moving it to assigned."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_booking_status(
    request: Request,
    booking_id: int,
    body: StatusUpdateRequest,
    driver: Identity = Depends(require_driver),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await BookingLifecycle(db).update_status(
        booking_id, driver.user_id, body.status
    )
    await db.commit()
    await dispatcher.dispatch(outcome.effects)
    return BookingEnvelope(booking=BookingResponse.from_view(outcome.booking))


@router.patch(
    "/{booking_id}/cancel",
    response_model=BookingEnvelope,
    summary="Cancel a booking",
    description="Transitions a pending or assigned booking to cancelled.",
)
@limiter.limit(settings.rate_limit)
async def cancel_booking(
    request: Request,
    booking_id: int,
    rider: Identity = Depends(require_rider),
    db: AsyncSession = Depends(get_db),
    dispatcher: EffectDispatcher = Depends(get_dispatcher),
):
    outcome = await BookingLifecycle(db).cancel(booking_id, rider.user_id)
    await db.commit()
    await dispatcher.dispatch(outcome.effects)
    return BookingEnvelope(booking=BookingResponse.from_view(outcome.booking))
