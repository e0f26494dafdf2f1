"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field

from dispatch.domain.enums import BookingStatus, UserRole

if TYPE_CHECKING:
    from dispatch.infrastructure.models import UserModel
    from dispatch.services.lifecycle import BookingView


# ── Shared ────────────────────────────────────────────────────────────


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class PickupLocation(Coordinates):
    address: str = Field("", max_length=255)


# ── Requests ──────────────────────────────────────────────────────────


class BookingCreateRequest(BaseModel):
    pickup_location: PickupLocation
    notes: str = Field("", max_length=2000)


class StatusUpdateRequest(BaseModel):
    status: BookingStatus


class FcmTokenRequest(BaseModel):
    fcm_token: Optional[str] = Field(None, max_length=512)


# ── Responses ─────────────────────────────────────────────────────────


class UserProfile(BaseModel):
    id: int
    name: str
    phone: str


class DriverProfile(UserProfile):
    current_location: Optional[Coordinates] = None


def _coordinates(user: UserModel) -> Optional[Coordinates]:
    if user.current_lat is None or user.current_lng is None:
        return None
    return Coordinates(latitude=user.current_lat, longitude=user.current_lng)


class BookingResponse(BaseModel):
    id: int
    rider_id: int
    driver_id: Optional[int] = None
    pickup_location: PickupLocation
    notes: str = ""
    status: BookingStatus
    created_at: Optional[datetime] = None
    rider: Optional[UserProfile] = None
    driver: Optional[DriverProfile] = None

    @classmethod
    def from_view(cls, view: BookingView) -> "BookingResponse":
        b = view.booking
        rider = driver = None
        if view.rider is not None:
            rider = UserProfile(id=view.rider.id, name=view.rider.name, phone=view.rider.phone)
        if view.driver is not None:
            driver = DriverProfile(
                id=view.driver.id,
                name=view.driver.name,
                phone=view.driver.phone,
                current_location=_coordinates(view.driver),
            )
        return cls(
            id=b.id,
            rider_id=b.rider_id,
            driver_id=b.driver_id,
            pickup_location=PickupLocation(
                latitude=b.pickup_lat,
                longitude=b.pickup_lng,
                address=b.pickup_address or "",
            ),
            notes=b.notes or "",
            status=BookingStatus(b.status),
            created_at=b.created_at,
            rider=rider,
            driver=driver,
        )


class BookingEnvelope(BaseModel):
    booking: BookingResponse


class BookingListResponse(BaseModel):
    bookings: list[BookingResponse] = []


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    is_available: bool = False
    current_location: Optional[Coordinates] = None
    has_device_token: bool = False

    @classmethod
    def from_model(cls, user: UserModel) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            phone=user.phone,
            role=UserRole(user.role),
            is_available=bool(user.is_available),
            current_location=_coordinates(user),
            has_device_token=bool(user.fcm_token),
        )


class MessageResponse(BaseModel):
    message: str


class RealtimeStatsResponse(BaseModel):
    active_connections: int
    total_scopes: int
    total_connections_ever: int
    total_messages_sent: int
    scope_sizes: dict[str, int]
    available_drivers: int


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
