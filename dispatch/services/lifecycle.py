"""
Booking Lifecycle Engine
========================

Owns every mutation of a booking.  Each operation runs inside the caller's
unit-of-work (``AsyncSession``), validates against the state machine in
``dispatch.domain``, writes through ``BookingRepository`` and returns an
``Outcome``: the resulting booking plus the broadcasts / push
notifications to emit.  Effects are executed by ``EffectDispatcher`` only
after the caller commits, so a failing socket or push service can never
undo a status change.

Concurrency
-----------
Driver assignment (``accept`` and the direct-assignment path of
``update_status``) is a single conditional UPDATE
``WHERE status = 'pending' AND driver_id IS NULL``.  Of two drivers racing
for the same booking exactly one write matches; the other gets
``Conflict``.  Every other status write is conditioned on the status and
driver observed when the request was validated, so a concurrent change
surfaces as ``Conflict`` rather than a lost update.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from dispatch.config import settings
from dispatch.domain.distance import distance_km
from dispatch.domain.effects import (
    AVAILABLE_DRIVERS_SCOPE,
    Broadcast,
    Effect,
    Notification,
    Outcome,
    booking_scope,
)
from dispatch.domain.entities import Booking, Location
from dispatch.domain.enums import (
    BOOKING_TRANSITIONS,
    PROXIMITY_NOTIFICATION_BODY,
    STATUS_NOTIFICATION_BODIES,
    BookingStatus,
)
from dispatch.domain.errors import (
    Conflict,
    Forbidden,
    InvalidStateTransition,
    NotFound,
)
from dispatch.infrastructure.models import BookingModel, UserModel
from dispatch.infrastructure.repositories import BookingRepository, UserRepository
from dispatch.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


@dataclass
class BookingView:
    """A booking together with the public profiles of its parties."""

    booking: BookingModel
    rider: Optional[UserModel] = None
    driver: Optional[UserModel] = None


# ── Payload helpers ───────────────────────────────────────────────────


def user_profile(user: Optional[UserModel]) -> Optional[dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "phone": user.phone}


def driver_profile(user: Optional[UserModel]) -> Optional[dict[str, Any]]:
    profile = user_profile(user)
    if profile is None:
        return None
    location = None
    if user.current_lat is not None and user.current_lng is not None:
        location = {"latitude": user.current_lat, "longitude": user.current_lng}
    profile["currentLocation"] = location
    return profile


def _to_entity(row: BookingModel) -> Booking:
    return Booking(
        id=row.id,
        rider_id=row.rider_id,
        driver_id=row.driver_id,
        pickup=Location(row.pickup_lat, row.pickup_lng),
        pickup_address=row.pickup_address,
        notes=row.notes,
        status=BookingStatus(row.status),
        created_at=row.created_at,
    )


# ── Engine ────────────────────────────────────────────────────────────


class BookingLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        *,
        proximity_alert_km: float | None = None,
        notification_title: str | None = None,
    ):
        self.bookings = BookingRepository(session)
        self.users = UserRepository(session)
        self.presence = PresenceRegistry(self.users)
        self.proximity_alert_km = (
            settings.proximity_alert_km
            if proximity_alert_km is None
            else proximity_alert_km
        )
        self.notification_title = notification_title or settings.notification_title

    # ── Commands ──────────────────────────────────────────────────

    async def create(
        self,
        rider_id: int,
        pickup: Location,
        *,
        address: str = "",
        notes: str = "",
    ) -> Outcome:
        """Persist a pending booking and announce it to available drivers."""
        row = await self.bookings.create_booking(
            rider_id=rider_id,
            pickup_lat=pickup.latitude,
            pickup_lng=pickup.longitude,
            pickup_address=address or "",
            notes=notes or "",
        )
        rider = await self.users.get_by_id(rider_id)

        payload = {
            "booking": {
                "id": row.id,
                "pickupLocation": {
                    "latitude": row.pickup_lat,
                    "longitude": row.pickup_lng,
                    "address": row.pickup_address,
                },
                "user": user_profile(rider),
                "status": BookingStatus(row.status).value,
                "createdAt": row.created_at.isoformat() if row.created_at else None,
            }
        }
        logger.info("Booking %s created by rider %s", row.id, rider_id)
        return Outcome(
            booking=BookingView(row, rider=rider),
            effects=[Broadcast(AVAILABLE_DRIVERS_SCOPE, "new-booking", payload)],
        )

    async def accept(self, booking_id: int, driver_id: int) -> Outcome:
        """First-come driver assignment.  Losers (and unknown ids) get Conflict."""
        won = await self.bookings.update_conditional(
            booking_id,
            expected={"status": BookingStatus.PENDING, "driver_id": None},
            values={"status": BookingStatus.ASSIGNED, "driver_id": driver_id},
        )
        if not won:
            logger.info("Driver %s lost booking %s", driver_id, booking_id)
            raise Conflict()

        await self.presence.set_availability(driver_id, False)
        view = await self._view(booking_id)

        effects: list[Effect] = [
            Broadcast(
                booking_scope(booking_id),
                "booking-assigned",
                {"bookingId": booking_id, "driver": driver_profile(view.driver)},
            )
        ]
        effects += self._rider_notification(
            view.rider, STATUS_NOTIFICATION_BODIES[BookingStatus.ASSIGNED]
        )
        logger.info("Booking %s assigned to driver %s", booking_id, driver_id)
        return Outcome(booking=view, effects=effects)

    async def update_status(
        self, booking_id: int, requester_id: int, new_status: BookingStatus
    ) -> Outcome:
        new_status = BookingStatus(new_status)
        row = await self.bookings.get_by_id(booking_id, fresh=True)
        if row is None:
            raise NotFound()

        booking = _to_entity(row)
        observed = {"status": booking.status, "driver_id": booking.driver_id}

        if booking.driver_id is not None:
            if booking.driver_id != requester_id:
                raise Forbidden()
            booking.transition_to(new_status)
        elif new_status == BookingStatus.ASSIGNED:
            # Direct assignment: the requester claims an unassigned booking.
            if new_status not in BOOKING_TRANSITIONS[booking.status]:
                raise InvalidStateTransition(
                    f"Cannot transition from {booking.status.value} to {new_status.value}"
                )
            booking.assign(requester_id)
        else:
            raise Forbidden("Only the assigned driver can update this booking")

        written = await self.bookings.update_conditional(
            booking_id,
            expected=observed,
            values={"status": booking.status, "driver_id": booking.driver_id},
        )
        if not written:
            raise Conflict("Booking was modified concurrently")

        if observed["driver_id"] is None:
            await self.presence.set_availability(requester_id, False)

        view = await self._view(booking_id)
        effects: list[Effect] = [self._status_broadcast(booking_id, new_status)]
        body = STATUS_NOTIFICATION_BODIES.get(new_status)
        if body:
            effects += self._rider_notification(view.rider, body)

        logger.info(
            "Booking %s: %s -> %s by %s",
            booking_id,
            observed["status"].value,
            new_status.value,
            requester_id,
        )
        return Outcome(booking=view, effects=effects)

    async def cancel(self, booking_id: int, rider_id: int) -> Outcome:
        """Rider-side cancellation of a pending or assigned booking."""
        row = await self.bookings.get_by_id(booking_id, fresh=True)
        if row is None:
            raise NotFound()
        if row.rider_id != rider_id:
            raise Forbidden()

        booking = _to_entity(row)
        observed = {"status": booking.status, "driver_id": booking.driver_id}
        booking.transition_to(BookingStatus.CANCELLED)

        if not await self.bookings.update_conditional(
            booking_id,
            expected=observed,
            values={"status": booking.status, "driver_id": None},
        ):
            raise Conflict("Booking was modified concurrently")

        logger.info("Booking %s cancelled by rider %s", booking_id, rider_id)
        return Outcome(
            booking=await self._view(booking_id),
            effects=[self._status_broadcast(booking_id, BookingStatus.CANCELLED)],
        )

    async def report_location(
        self,
        driver_id: int,
        location: Location,
        booking_id: Optional[int] = None,
    ) -> Outcome:
        """Record a driver position; relay it to the booking and alert on approach.

        The position is stored before the booking is looked at, so it is
        kept even when the booking check fails.  The proximity alert fires
        on every qualifying report while the booking is en-route; there is
        no de-duplication.
        """
        await self.presence.update_location(driver_id, location)
        if booking_id is None:
            return Outcome(booking=None)

        row = await self.bookings.get_by_id(booking_id, fresh=True)
        if row is None:
            raise NotFound()
        if row.driver_id != driver_id:
            raise Forbidden()

        effects: list[Effect] = [
            Broadcast(
                booking_scope(booking_id),
                "location-update",
                {"driverId": driver_id, "location": location.as_dict()},
            )
        ]
        if BookingStatus(row.status) == BookingStatus.EN_ROUTE:
            rider = await self.users.get_by_id(row.rider_id)
            pickup = Location(row.pickup_lat, row.pickup_lng)
            if rider and rider.fcm_token:
                distance = distance_km(pickup, location)
                if distance <= self.proximity_alert_km:
                    logger.debug(
                        "Driver %s is %.3f km from pickup of booking %s",
                        driver_id,
                        distance,
                        booking_id,
                    )
                    effects += self._rider_notification(
                        rider, PROXIMITY_NOTIFICATION_BODY
                    )
        return Outcome(booking=BookingView(row), effects=effects)

    # ── Queries ───────────────────────────────────────────────────

    async def get_by_id(self, booking_id: int, requester_id: int) -> BookingView:
        row = await self.bookings.get_by_id(booking_id, fresh=True)
        if row is None:
            raise NotFound()
        if not _to_entity(row).is_party(requester_id):
            raise Forbidden()
        return await self._view(booking_id, row)

    async def list_driver_active(self, driver_id: int) -> list[BookingView]:
        return await self._views(await self.bookings.list_active_for_driver(driver_id))

    async def list_rider_history(self, rider_id: int) -> list[BookingView]:
        return await self._views(await self.bookings.list_for_rider(rider_id))

    # ── Internals ─────────────────────────────────────────────────

    async def _view(
        self, booking_id: int, row: Optional[BookingModel] = None
    ) -> BookingView:
        if row is None:
            row = await self.bookings.get_by_id(booking_id, fresh=True)
        return (await self._views([row]))[0]

    async def _views(self, rows: list[BookingModel]) -> list[BookingView]:
        users = await self.users.get_many(
            [r.rider_id for r in rows] + [r.driver_id for r in rows]
        )
        return [
            BookingView(r, rider=users.get(r.rider_id), driver=users.get(r.driver_id))
            for r in rows
        ]

    def _status_broadcast(self, booking_id: int, status: BookingStatus) -> Broadcast:
        return Broadcast(
            booking_scope(booking_id),
            "status-update",
            {"bookingId": booking_id, "status": status.value},
        )

    def _rider_notification(
        self, rider: Optional[UserModel], body: str
    ) -> list[Notification]:
        if rider is None or not rider.fcm_token:
            return []
        return [Notification(rider.fcm_token, self.notification_title, body)]
