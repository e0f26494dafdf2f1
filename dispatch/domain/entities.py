"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Booking``: enforces valid lifecycle transitions
  (pending -> assigned -> en-route -> arrived -> completed, with
  cancelled reachable from pending / assigned) and keeps the driver
  reference consistent with the status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    BOOKING_TRANSITIONS,
    DRIVER_BOUND_STATUSES,
    BookingStatus,
    UserRole,
)
from .errors import Conflict, InvalidStateTransition


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def as_dict(self) -> dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@dataclass(frozen=True)
class Identity:
    """An authenticated caller, as resolved by the identity gate."""

    user_id: int
    role: UserRole
    name: str = ""
    phone: str = ""


@dataclass(frozen=True)
class PresenceEntry:
    driver_id: int
    is_available: bool
    location: Optional[Location] = None


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: Optional[int] = None
    rider_id: int = 0
    driver_id: Optional[int] = None
    pickup: Location = field(default_factory=lambda: Location(0, 0))
    pickup_address: str = ""
    notes: str = ""
    status: BookingStatus = BookingStatus.PENDING
    created_at: Optional[datetime] = None

    def transition_to(self, new_status: BookingStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise.

        Leaving the driver-bound statuses (i.e. cancelling) releases the
        driver, so a cancelled booking never carries one.
        """
        allowed = BOOKING_TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status.value} to {new_status.value}"
            )
        if new_status in DRIVER_BOUND_STATUSES and self.driver_id is None:
            raise InvalidStateTransition(
                f"Cannot move to {new_status.value} without an assigned driver"
            )
        if new_status not in DRIVER_BOUND_STATUSES:
            self.driver_id = None
        self.status = new_status

    def assign(self, driver_id: int) -> None:
        """Bind *driver_id* to a pending, unassigned booking."""
        if self.status != BookingStatus.PENDING or self.driver_id is not None:
            raise Conflict()
        self.driver_id = driver_id
        self.transition_to(BookingStatus.ASSIGNED)

    def is_party(self, user_id: int) -> bool:
        return user_id == self.rider_id or (
            self.driver_id is not None and user_id == self.driver_id
        )
