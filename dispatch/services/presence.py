"""
Driver presence registry.

Presence lives on the driver's ``users`` row: an availability flag and the
last reported coordinate.  Entries are upserted on every announcement and
never expire; a driver that drops without announcing unavailability stays
available until it reconnects and says otherwise.
"""

from __future__ import annotations

import logging
from typing import Optional

from dispatch.domain.entities import Location, PresenceEntry
from dispatch.domain.enums import UserRole
from dispatch.domain.errors import NotFound
from dispatch.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


class PresenceRegistry:
    def __init__(self, users: UserRepository):
        self.users = users

    async def set_availability(self, driver_id: int, available: bool) -> PresenceEntry:
        if not await self.users.set_availability(driver_id, available):
            raise NotFound("Driver not found")
        logger.info(
            "Driver %s is now %s", driver_id, "available" if available else "unavailable"
        )
        return await self.get(driver_id)

    async def update_location(self, driver_id: int, location: Location) -> None:
        if not await self.users.set_location(
            driver_id, location.latitude, location.longitude
        ):
            raise NotFound("Driver not found")

    async def get(self, driver_id: int) -> Optional[PresenceEntry]:
        user = await self.users.get_by_id(driver_id, fresh=True)
        if user is None or UserRole(user.role) != UserRole.DRIVER:
            return None
        location = None
        if user.current_lat is not None and user.current_lng is not None:
            location = Location(user.current_lat, user.current_lng)
        return PresenceEntry(
            driver_id=user.id, is_available=user.is_available, location=location
        )

    async def available_driver_ids(self) -> list[int]:
        return [u.id for u in await self.users.list_available_drivers()]
