"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  ``BookingRepository.update_conditional``
is the compare-and-set primitive that makes driver assignment atomic:
one ``UPDATE ... WHERE <expected state>`` statement, never a separate
read followed by a write.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import BookingModel, UserModel
from dispatch.domain.enums import TERMINAL_STATUSES, BookingStatus, UserRole


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(
        self,
        *,
        rider_id: int,
        pickup_lat: float,
        pickup_lng: float,
        pickup_address: str = "",
        notes: str = "",
    ) -> BookingModel:
        booking = BookingModel(
            rider_id=rider_id,
            driver_id=None,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            pickup_address=pickup_address,
            notes=notes,
            status=BookingStatus.PENDING,
        )
        self.session.add(booking)
        await self.session.flush()
        await self.session.refresh(booking)
        return booking

    async def get_by_id(
        self, booking_id: int, *, fresh: bool = False
    ) -> Optional[BookingModel]:
        """Load a booking.  ``fresh`` bypasses the identity map."""
        return await self.session.get(
            BookingModel, booking_id, populate_existing=fresh
        )

    async def list_active_for_driver(self, driver_id: int) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.driver_id == driver_id)
            .where(BookingModel.status.notin_(list(TERMINAL_STATUSES)))
            .order_by(BookingModel.created_at, BookingModel.id)
        )
        return list(result.scalars().all())

    async def list_for_rider(self, rider_id: int) -> list[BookingModel]:
        """All bookings of a rider, newest first."""
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.rider_id == rider_id)
            .order_by(BookingModel.created_at.desc(), BookingModel.id.desc())
        )
        return list(result.scalars().all())

    async def update_conditional(
        self,
        booking_id: int,
        expected: dict[str, Any],
        values: dict[str, Any],
    ) -> bool:
        """Apply *values* only if the row still matches *expected*.

        ``None`` in *expected* means ``IS NULL``.  Returns True when exactly
        one row was written.
        """
        stmt = update(BookingModel).where(BookingModel.id == booking_id)
        for name, value in expected.items():
            column = getattr(BookingModel, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def update(self, booking_id: int, values: dict[str, Any]) -> None:
        await self.session.execute(
            update(BookingModel)
            .where(BookingModel.id == booking_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(
        self, user_id: int, *, fresh: bool = False
    ) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id, populate_existing=fresh)

    async def get_many(self, user_ids: Iterable[int]) -> dict[int, UserModel]:
        ids = {uid for uid in user_ids if uid is not None}
        if not ids:
            return {}
        result = await self.session.execute(
            select(UserModel)
            .where(UserModel.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return {u.id: u for u in result.scalars().all()}

    async def set_availability(self, driver_id: int, available: bool) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == driver_id, UserModel.role == UserRole.DRIVER)
            .values(is_available=available)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_location(self, driver_id: int, lat: float, lng: float) -> bool:
        result = await self.session.execute(
            update(UserModel)
            .where(UserModel.id == driver_id, UserModel.role == UserRole.DRIVER)
            .values(current_lat=lat, current_lng=lng)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_fcm_token(self, user_id: int, token: Optional[str]) -> None:
        await self.session.execute(
            update(UserModel)
            .where(UserModel.id == user_id)
            .values(fcm_token=token)
            .execution_options(synchronize_session=False)
        )

    async def list_available_drivers(self) -> list[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(
                UserModel.role == UserRole.DRIVER,
                UserModel.is_available.is_(True),
            )
        )
        return list(result.scalars().all())
