"""Unit tests for booking entity state transitions (State Pattern)."""

import pytest

from dispatch.domain.entities import Booking
from dispatch.domain.enums import (
    BOOKING_TRANSITIONS,
    DRIVER_BOUND_STATUSES,
    BookingStatus,
)
from dispatch.domain.errors import Conflict, InvalidStateTransition


class TestBookingStateMachine:
    def test_initial_status_is_pending(self):
        booking = Booking()
        assert booking.status == BookingStatus.PENDING
        assert booking.driver_id is None

    # ── Valid transitions ─────────────────────────────────────────

    def test_assigned_to_en_route(self):
        booking = Booking(status=BookingStatus.ASSIGNED, driver_id=7)
        booking.transition_to(BookingStatus.EN_ROUTE)
        assert booking.status == BookingStatus.EN_ROUTE
        assert booking.driver_id == 7

    def test_en_route_to_arrived(self):
        booking = Booking(status=BookingStatus.EN_ROUTE, driver_id=7)
        booking.transition_to(BookingStatus.ARRIVED)
        assert booking.status == BookingStatus.ARRIVED

    def test_arrived_to_completed(self):
        booking = Booking(status=BookingStatus.ARRIVED, driver_id=7)
        booking.transition_to(BookingStatus.COMPLETED)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.driver_id == 7

    def test_pending_to_cancelled(self):
        booking = Booking(status=BookingStatus.PENDING)
        booking.transition_to(BookingStatus.CANCELLED)
        assert booking.status == BookingStatus.CANCELLED

    def test_assigned_to_cancelled_releases_driver(self):
        booking = Booking(status=BookingStatus.ASSIGNED, driver_id=7)
        booking.transition_to(BookingStatus.CANCELLED)
        assert booking.status == BookingStatus.CANCELLED
        assert booking.driver_id is None

    # ── Invalid transitions ───────────────────────────────────────

    def test_pending_to_en_route_fails(self):
        booking = Booking(status=BookingStatus.PENDING)
        with pytest.raises(InvalidStateTransition):
            booking.transition_to(BookingStatus.EN_ROUTE)

    def test_arrived_to_en_route_fails(self):
        booking = Booking(status=BookingStatus.ARRIVED, driver_id=7)
        with pytest.raises(InvalidStateTransition):
            booking.transition_to(BookingStatus.EN_ROUTE)

    def test_en_route_cannot_be_cancelled(self):
        booking = Booking(status=BookingStatus.EN_ROUTE, driver_id=7)
        with pytest.raises(InvalidStateTransition):
            booking.transition_to(BookingStatus.CANCELLED)

    @pytest.mark.parametrize(
        "terminal", [BookingStatus.COMPLETED, BookingStatus.CANCELLED]
    )
    def test_terminal_states_are_final(self, terminal):
        booking = Booking(
            status=terminal,
            driver_id=7 if terminal == BookingStatus.COMPLETED else None,
        )
        for target in BookingStatus:
            with pytest.raises(InvalidStateTransition):
                booking.transition_to(target)

    def test_assigned_without_driver_fails(self):
        booking = Booking(status=BookingStatus.PENDING)
        with pytest.raises(InvalidStateTransition):
            booking.transition_to(BookingStatus.ASSIGNED)

    def test_failed_transition_leaves_booking_untouched(self):
        booking = Booking(status=BookingStatus.ASSIGNED, driver_id=7)
        with pytest.raises(InvalidStateTransition):
            booking.transition_to(BookingStatus.COMPLETED)
        assert booking.status == BookingStatus.ASSIGNED
        assert booking.driver_id == 7

    # ── Transition table ──────────────────────────────────────────

    def test_every_status_has_an_entry(self):
        assert set(BOOKING_TRANSITIONS) == set(BookingStatus)

    def test_driver_bound_statuses_exclude_pending_and_cancelled(self):
        assert BookingStatus.PENDING not in DRIVER_BOUND_STATUSES
        assert BookingStatus.CANCELLED not in DRIVER_BOUND_STATUSES


class TestBookingAssignment:
    def test_assign_binds_driver(self):
        booking = Booking(status=BookingStatus.PENDING)
        booking.assign(42)
        assert booking.status == BookingStatus.ASSIGNED
        assert booking.driver_id == 42

    def test_assign_taken_booking_conflicts(self):
        booking = Booking(status=BookingStatus.ASSIGNED, driver_id=7)
        with pytest.raises(Conflict):
            booking.assign(42)
        assert booking.driver_id == 7

    def test_assign_cancelled_booking_conflicts(self):
        booking = Booking(status=BookingStatus.CANCELLED)
        with pytest.raises(Conflict):
            booking.assign(42)

    def test_is_party(self):
        booking = Booking(rider_id=1, driver_id=2, status=BookingStatus.ASSIGNED)
        assert booking.is_party(1)
        assert booking.is_party(2)
        assert not booking.is_party(3)

    def test_unassigned_booking_has_only_the_rider_as_party(self):
        booking = Booking(rider_id=1)
        assert booking.is_party(1)
        assert not booking.is_party(2)
