"""
Concurrency safety tests.

Demonstrates:
1. Two drivers accepting the same booking at once: exactly one wins, the
   other gets ``Conflict`` and the stored booking names the winner.
2. A status write based on a stale read is rejected instead of silently
   overwriting a concurrent change.
3. The database refuses a row whose driver reference contradicts its
   status, whatever path wrote it.
"""

import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from dispatch.domain.entities import Location
from dispatch.domain.enums import BookingStatus
from dispatch.domain.errors import Conflict
from dispatch.infrastructure.models import BookingModel
from dispatch.infrastructure.repositories import BookingRepository
from dispatch.services.lifecycle import BookingLifecycle
from tests.conftest import PICKUP


async def _pending_booking(session_factory, rider_id) -> int:
    async with session_factory() as session:
        outcome = await BookingLifecycle(session).create(rider_id, Location(*PICKUP))
        await session.commit()
        return outcome.booking.booking.id


async def _accept(session_factory, booking_id, driver_id):
    async with session_factory() as session:
        outcome = await BookingLifecycle(session).accept(booking_id, driver_id)
        await session.commit()
        return outcome


class TestConcurrentAccept:
    @pytest.mark.asyncio
    async def test_exactly_one_driver_wins(self, session_factory, users):
        booking_id = await _pending_booking(session_factory, users.rider)

        results = await asyncio.gather(
            _accept(session_factory, booking_id, users.driver),
            _accept(session_factory, booking_id, users.other_driver),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], Conflict)

        winner_id = winners[0].booking.booking.driver_id
        assert winner_id in (users.driver, users.other_driver)
        assert len(winners[0].broadcasts) == 1

        async with session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)
            assert row.status == BookingStatus.ASSIGNED
            assert row.driver_id == winner_id

    @pytest.mark.asyncio
    async def test_three_way_race(self, session_factory, users):
        booking_id = await _pending_booking(session_factory, users.rider)
        drivers = [users.driver, users.other_driver, users.third_driver]

        results = await asyncio.gather(
            *(_accept(session_factory, booking_id, d) for d in drivers),
            return_exceptions=True,
        )

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert all(isinstance(r, Conflict) for r in results if isinstance(r, Exception))


class TestStaleWrites:
    @pytest.mark.asyncio
    async def test_conditional_update_rejects_stale_expectation(
        self, session_factory, users
    ):
        booking_id = await _pending_booking(session_factory, users.rider)
        await _accept(session_factory, booking_id, users.driver)

        async with session_factory() as session:
            written = await BookingRepository(session).update_conditional(
                booking_id,
                expected={"status": BookingStatus.PENDING, "driver_id": None},
                values={"status": BookingStatus.CANCELLED},
            )
            await session.commit()

        assert written is False
        async with session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)
            assert row.status == BookingStatus.ASSIGNED

    @pytest.mark.asyncio
    async def test_cancel_racing_accept(self, session_factory, users):
        booking_id = await _pending_booking(session_factory, users.rider)

        async def cancel():
            async with session_factory() as session:
                outcome = await BookingLifecycle(session).cancel(booking_id, users.rider)
                await session.commit()
                return outcome

        results = await asyncio.gather(
            cancel(),
            _accept(session_factory, booking_id, users.driver),
            return_exceptions=True,
        )

        async with session_factory() as session:
            row = await BookingRepository(session).get_by_id(booking_id)

        # An accept that commits before the cancel reads is cancelled over.
        assert sum(not isinstance(r, Exception) for r in results) >= 1
        if row.status == BookingStatus.CANCELLED:
            assert row.driver_id is None
        else:
            assert row.status == BookingStatus.ASSIGNED
            assert row.driver_id == users.driver


class TestStoredInvariant:
    @pytest.mark.asyncio
    async def test_pending_booking_with_driver_is_rejected(
        self, session_factory, users
    ):
        async with session_factory() as session:
            session.add(
                BookingModel(
                    rider_id=users.rider,
                    driver_id=users.driver,
                    pickup_lat=PICKUP[0],
                    pickup_lng=PICKUP[1],
                    status=BookingStatus.PENDING,
                )
            )
            with pytest.raises(IntegrityError):
                await session.commit()

    @pytest.mark.asyncio
    async def test_assigned_booking_without_driver_is_rejected(
        self, session_factory, users
    ):
        async with session_factory() as session:
            session.add(
                BookingModel(
                    rider_id=users.rider,
                    driver_id=None,
                    pickup_lat=PICKUP[0],
                    pickup_lng=PICKUP[1],
                    status=BookingStatus.ASSIGNED,
                )
            )
            with pytest.raises(IntegrityError):
                await session.commit()
