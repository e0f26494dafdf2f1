"""
Inbound real-time message schemas.

Clients send ``{"event": <name>, "data": {...}}``; field names inside
``data`` are camelCase, as the mobile clients emit them.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from dispatch.api.schemas import Coordinates


class ClientMessage(BaseModel):
    event: str
    data: dict[str, Any] = Field(default_factory=dict)


class _CamelData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AvailabilityData(_CamelData):
    is_available: bool = Field(..., alias="isAvailable")


class JoinBookingData(_CamelData):
    booking_id: int = Field(..., alias="bookingId")


class AcceptBookingData(_CamelData):
    booking_id: int = Field(..., alias="bookingId")


class LocationData(_CamelData):
    location: Coordinates
    booking_id: Optional[int] = Field(None, alias="bookingId")
