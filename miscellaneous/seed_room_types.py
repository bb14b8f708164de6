#!/usr/bin/env python3
"""
Seed the room-type catalogue and, optionally, a block of rooms per type.

Existing room types (matched by slug) and rooms (matched by number) are
left untouched, so the script can be re-run safely.
"""

import asyncio
import os
import sys
from decimal import Decimal

from sqlalchemy import select

# Add the project root to the Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hotel_booking_platform.database import DatabaseManager
from hotel_booking_platform.models.room import Room, RoomType

ROOM_TYPES = [
    {
        "slug": "standard",
        "name": "Standard Room",
        "description": "Comfortable accommodation with all essential amenities for a pleasant stay",
        "capacity": 2,
        "bed_type": "Single or Double",
        "size": "20 sqm",
        "prices": ("3000", "3500", "40", "45"),
        "amenities": [
            "Free High-Speed WiFi",
            "Flat-Screen Smart TV",
            "Air Conditioning",
            "Coffee/Tea Facilities",
            "En-suite Bathroom",
            "Work Desk",
            "Bed & Breakfast Included",
        ],
        "floor": 1,
    },
    {
        "slug": "superior-pool",
        "name": "Superior Room (Pool View)",
        "description": "Enhanced comfort with stunning views of our swimming pool",
        "capacity": 2,
        "bed_type": "Single or Double",
        "size": "28 sqm",
        "prices": ("5000", "5500", "55", "65"),
        "amenities": [
            "Free High-Speed WiFi",
            "Flat-Screen Smart TV",
            "Air Conditioning",
            "Mini Refrigerator",
            "Balcony/Terrace",
            "Pool View",
            "Bed & Breakfast Included",
        ],
        "floor": 2,
    },
    {
        "slug": "superior-garden",
        "name": "Superior Room (Garden View)",
        "description": "Premium luxury with serene views of our landscaped gardens",
        "capacity": 2,
        "bed_type": "Single or Double",
        "size": "32 sqm",
        "prices": ("6500", "7500", "75", "110"),
        "amenities": [
            "Free High-Speed WiFi",
            "Premium Smart TV with Channels",
            "Air Conditioning",
            "Luxury Bathroom with Bathtub",
            "In-Room Safe",
            "Private Balcony",
            "Garden View",
            "Bed & Breakfast Included",
        ],
        "floor": 3,
    },
]


async def seed(db: DatabaseManager, rooms_per_type: int):
    async with db.session() as session:
        for spec in ROOM_TYPES:
            result = await session.execute(select(RoomType).where(RoomType.slug == spec["slug"]))
            room_type = result.scalar_one_or_none()

            if room_type is None:
                single_ea, double_ea, single_intl, double_intl = (Decimal(p) for p in spec["prices"])
                room_type = RoomType(
                    slug=spec["slug"],
                    name=spec["name"],
                    description=spec["description"],
                    capacity=spec["capacity"],
                    bed_type=spec["bed_type"],
                    size=spec["size"],
                    amenities=spec["amenities"],
                    single_price_ea=single_ea,
                    double_price_ea=double_ea,
                    single_price_intl=single_intl,
                    double_price_intl=double_intl,
                )
                session.add(room_type)
                await session.flush()
                print(f"Created room type {room_type.name}")
            else:
                print(f"Room type {room_type.name} already exists")

            for index in range(1, rooms_per_type + 1):
                number = f"{spec['floor']}{index:02d}"
                exists = await session.execute(select(Room.id).where(Room.room_number == number))
                if exists.first() is None:
                    session.add(Room(room_number=number, floor=spec["floor"], room_type=room_type))
                    print(f"   Created room {number}")


async def main():
    rooms_per_type = int(sys.argv[1]) if len(sys.argv) > 1 else 0

    db = DatabaseManager()
    await db.initialize()
    try:
        await seed(db, rooms_per_type)
    finally:
        await db.close()


if __name__ == "__main__":
    print("Usage: python miscellaneous/seed_room_types.py [rooms_per_type]")
    asyncio.run(main())
