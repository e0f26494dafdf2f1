"""Domain enumerations and state-transition rules."""

import enum


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    EN_ROUTE = "en-route"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(str, enum.Enum):
    RIDER = "rider"
    DRIVER = "driver"


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, set[BookingStatus]] = {
    BookingStatus.PENDING: {BookingStatus.ASSIGNED, BookingStatus.CANCELLED},
    BookingStatus.ASSIGNED: {BookingStatus.EN_ROUTE, BookingStatus.CANCELLED},
    BookingStatus.EN_ROUTE: {BookingStatus.ARRIVED},
    BookingStatus.ARRIVED: {BookingStatus.COMPLETED},
    BookingStatus.COMPLETED: set(),
    BookingStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

# A booking carries a driver exactly while in one of these statuses
DRIVER_BOUND_STATUSES = frozenset(
    {
        BookingStatus.ASSIGNED,
        BookingStatus.EN_ROUTE,
        BookingStatus.ARRIVED,
        BookingStatus.COMPLETED,
    }
)

# Rider push-notification body per status reached (none for the rest)
STATUS_NOTIFICATION_BODIES: dict[BookingStatus, str] = {
    BookingStatus.ASSIGNED: "An ambulance has been assigned to you",
    BookingStatus.EN_ROUTE: "The ambulance is on its way",
    BookingStatus.ARRIVED: "The ambulance has arrived at your location",
    BookingStatus.COMPLETED: "Your booking has been completed",
}

PROXIMITY_NOTIFICATION_BODY = "The ambulance is almost at your location"
