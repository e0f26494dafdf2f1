"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 5 sample riders and 6 sample drivers (Bengaluru city centre)
  - 5 sample bookings (mix of pending, assigned, en-route, completed,
    cancelled)

Prints a bearer token per user so the API and the real-time channel can
be exercised straight away.
"""

import asyncio

from sqlalchemy import text

from dispatch.infrastructure.database import async_session_factory, engine
from dispatch.infrastructure.models import UserModel
from dispatch.infrastructure.repositories import BookingRepository
from dispatch.infrastructure.security import create_access_token
from dispatch.domain.enums import BookingStatus, UserRole

# MG Road, Bengaluru (approx)
CITY_LAT, CITY_LNG = 12.9716, 77.5946


RIDERS = [
    {"name": "Aarav Sharma", "email": "aarav@example.com", "phone": "+919800000001"},
    {"name": "Priya Patel", "email": "priya@example.com", "phone": "+919800000002"},
    {"name": "Rohan Mehta", "email": "rohan@example.com", "phone": "+919800000003"},
    {"name": "Sneha Gupta", "email": "sneha@example.com", "phone": "+919800000004"},
    {"name": "Ananya Reddy", "email": "ananya@example.com", "phone": "+919800000005"},
]

DRIVERS = [
    {"name": "Vikram Singh", "email": "vikram@example.com", "phone": "+919900000001", "lat": 12.9750, "lng": 77.6000, "available": True},
    {"name": "Karan Joshi", "email": "karan@example.com", "phone": "+919900000002", "lat": 12.9650, "lng": 77.5900, "available": True},
    {"name": "Meera Nair", "email": "meera@example.com", "phone": "+919900000003", "lat": 12.9800, "lng": 77.5850, "available": True},
    {"name": "Arjun Kumar", "email": "arjun@example.com", "phone": "+919900000004", "lat": 12.9600, "lng": 77.6050, "available": False},
    {"name": "Diya Iyer", "email": "diya@example.com", "phone": "+919900000005", "lat": 12.9700, "lng": 77.6100, "available": False},
    {"name": "Rahul Verma", "email": "rahul@example.com", "phone": "+919900000006", "lat": None, "lng": None, "available": False},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        riders = []
        for r in RIDERS:
            m = UserModel(
                name=r["name"], email=r["email"], phone=r["phone"], role=UserRole.RIDER
            )
            session.add(m)
            riders.append(m)

        drivers = []
        for d in DRIVERS:
            m = UserModel(
                name=d["name"],
                email=d["email"],
                phone=d["phone"],
                role=UserRole.DRIVER,
                is_available=d["available"],
                current_lat=d["lat"],
                current_lng=d["lng"],
            )
            session.add(m)
            drivers.append(m)
        await session.flush()
        print(f"  Created {len(riders)} riders and {len(drivers)} drivers")

        # ── Bookings ──────────────────────────────────────────────────
        bookings_data = [
            {
                "rider": riders[0], "driver": None,
                "pickup": (CITY_LAT, CITY_LNG), "address": "MG Road Metro",
                "status": BookingStatus.PENDING, "notes": "Elderly patient, breathing difficulty",
            },
            {
                "rider": riders[1], "driver": drivers[3],
                "pickup": (12.9352, 77.6245), "address": "Koramangala 5th Block",
                "status": BookingStatus.ASSIGNED, "notes": "",
            },
            {
                "rider": riders[2], "driver": drivers[4],
                "pickup": (12.9719, 77.6412), "address": "Indiranagar 100ft Road",
                "status": BookingStatus.EN_ROUTE, "notes": "Fracture, conscious",
            },
            {
                "rider": riders[3], "driver": drivers[0],
                "pickup": (12.9279, 77.6271), "address": "",
                "status": BookingStatus.COMPLETED, "notes": "",
            },
            {
                "rider": riders[4], "driver": None,
                "pickup": (12.9165, 77.6101), "address": "BTM Layout",
                "status": BookingStatus.CANCELLED, "notes": "",
            },
        ]

        repo = BookingRepository(session)
        for b in bookings_data:
            booking = await repo.create_booking(
                rider_id=b["rider"].id,
                pickup_lat=b["pickup"][0],
                pickup_lng=b["pickup"][1],
                pickup_address=b["address"],
                notes=b["notes"],
            )
            if b["status"] != BookingStatus.PENDING:
                # Sample history: status and driver are written together.
                await repo.update(
                    booking.id,
                    {
                        "status": b["status"],
                        "driver_id": b["driver"].id if b["driver"] else None,
                    },
                )
        print(f"  Created {len(bookings_data)} bookings")

        await session.commit()

        print("\nBearer tokens:")
        for u in riders + drivers:
            print(f"  {u.role.value:<6} {u.email:<22} {create_access_token(u.id, u.role)}")
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
