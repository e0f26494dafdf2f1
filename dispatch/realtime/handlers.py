"""
Per-connection handling of inbound real-time messages.

Every message runs in its own database session: validate, mutate through
the presence registry / lifecycle engine, commit, then adjust scope
membership and dispatch effects.  Failures are reported to the sending
connection only, as ``booking-error`` (domain errors) or ``error``
(malformed messages).
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dispatch.api.schemas import BookingResponse
from dispatch.domain.effects import AVAILABLE_DRIVERS_SCOPE, booking_scope
from dispatch.domain.entities import Identity, Location
from dispatch.domain.enums import UserRole
from dispatch.domain.errors import DispatchError
from dispatch.infrastructure.repositories import UserRepository
from dispatch.infrastructure.security import require_role
from dispatch.realtime.messages import (
    AcceptBookingData,
    AvailabilityData,
    ClientMessage,
    JoinBookingData,
    LocationData,
)
from dispatch.realtime.scopes import ScopeManager
from dispatch.services.dispatcher import EffectDispatcher
from dispatch.services.lifecycle import BookingLifecycle
from dispatch.services.presence import PresenceRegistry

logger = logging.getLogger(__name__)


class RealtimeSession:
    def __init__(
        self,
        connection_id: str,
        identity: Identity,
        scopes: ScopeManager,
        dispatcher: EffectDispatcher,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.connection_id = connection_id
        self.identity = identity
        self.scopes = scopes
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self._handlers: dict[str, Callable[[dict[str, Any]], Awaitable[None]]] = {
            "driver-availability": self.on_availability,
            "join-booking": self.on_join_booking,
            "accept-booking": self.on_accept_booking,
            "update-location": self.on_update_location,
        }

    async def handle(self, raw: Any) -> None:
        try:
            message = ClientMessage.model_validate(raw)
        except ValidationError:
            await self.reply("error", {"message": "Malformed message"})
            return

        handler = self._handlers.get(message.event)
        if handler is None:
            await self.reply("error", {"message": f"Unknown event: {message.event}"})
            return

        try:
            await handler(message.data)
        except ValidationError:
            await self.reply("error", {"message": f"Invalid {message.event} payload"})
        except DispatchError as exc:
            await self.reply("booking-error", {"message": exc.message})
        except Exception:
            logger.exception(
                "Error handling %s from user %s", message.event, self.identity.user_id
            )
            await self.reply("booking-error", {"message": "Server error"})

    async def reply(self, event: str, payload: dict[str, Any]) -> None:
        await self.scopes.send(self.connection_id, event, payload)

    # ── Events ────────────────────────────────────────────────────

    async def on_availability(self, data: dict[str, Any]) -> None:
        require_role(self.identity, UserRole.DRIVER)
        body = AvailabilityData.model_validate(data)

        async with self.session_factory() as session:
            presence = PresenceRegistry(UserRepository(session))
            await presence.set_availability(self.identity.user_id, body.is_available)
            await session.commit()

        if body.is_available:
            await self.scopes.join(self.connection_id, AVAILABLE_DRIVERS_SCOPE)
        else:
            await self.scopes.leave(self.connection_id, AVAILABLE_DRIVERS_SCOPE)
        await self.reply("availability-updated", {"isAvailable": body.is_available})

    async def on_join_booking(self, data: dict[str, Any]) -> None:
        body = JoinBookingData.model_validate(data)

        async with self.session_factory() as session:
            # Only the rider and the assigned driver may follow a booking.
            await BookingLifecycle(session).get_by_id(
                body.booking_id, self.identity.user_id
            )

        await self.scopes.join(self.connection_id, booking_scope(body.booking_id))
        await self.reply("joined-booking", {"bookingId": body.booking_id})

    async def on_accept_booking(self, data: dict[str, Any]) -> None:
        require_role(self.identity, UserRole.DRIVER)
        body = AcceptBookingData.model_validate(data)

        async with self.session_factory() as session:
            outcome = await BookingLifecycle(session).accept(
                body.booking_id, self.identity.user_id
            )
            await session.commit()

        await self.scopes.leave(self.connection_id, AVAILABLE_DRIVERS_SCOPE)
        await self.scopes.join(self.connection_id, booking_scope(body.booking_id))
        await self.reply(
            "booking-accepted",
            {"booking": BookingResponse.from_view(outcome.booking).model_dump(mode="json")},
        )
        await self.dispatcher.dispatch(outcome.effects)

    async def on_update_location(self, data: dict[str, Any]) -> None:
        require_role(self.identity, UserRole.DRIVER)
        body = LocationData.model_validate(data)

        async with self.session_factory() as session:
            try:
                outcome = await BookingLifecycle(session).report_location(
                    self.identity.user_id,
                    Location(body.location.latitude, body.location.longitude),
                    body.booking_id,
                )
            except DispatchError:
                # The position was stored before the booking check failed.
                await session.commit()
                raise
            await session.commit()

        await self.dispatcher.dispatch(outcome.effects)
