"""
SQLAlchemy ORM models.

Tables
------
* ``users``     -- riders and drivers; drivers also carry presence
                   (availability + last reported location)
* ``bookings``  -- ambulance requests and their lifecycle

Indexes
-------
* **B-Tree** on ``bookings.status``, ``rider_id``, ``driver_id`` for the
  driver-active / rider-history queries, and on ``users.is_available``.

Constraints
-----------
* ``ck_bookings_driver_matches_status``: a booking has a driver exactly
  while it is assigned, en-route, arrived or completed.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from dispatch.domain.enums import BookingStatus, UserRole


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(32), nullable=False, default="")
    role = Column(
        Enum(UserRole, name="userrole", values_callable=_enum_values),
        nullable=False,
        default=UserRole.RIDER,
    )
    fcm_token = Column(String(512), nullable=True)

    # Presence (drivers only)
    is_available = Column(Boolean, nullable=False, default=False)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_users_available", "is_available"),)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_address = Column(String(255), nullable=False, default="")
    notes = Column(Text, nullable=False, default="")

    status = Column(
        Enum(BookingStatus, name="bookingstatus", values_callable=_enum_values),
        default=BookingStatus.PENDING,
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "(driver_id IS NULL) = (status IN ('pending', 'cancelled'))",
            name="ck_bookings_driver_matches_status",
        ),
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_rider", "rider_id"),
        Index("idx_bookings_driver", "driver_id"),
    )
