"""
Shared fixtures: an in-memory database, seeded inventory, staff accounts and
an HTTP client bound to the application.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENABLE_CACHE", "false")
os.environ.setdefault("ENABLE_RATE_LIMITING", "false")
os.environ.setdefault("ENABLE_REQUEST_LOGGING", "false")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("MPESA_CONSUMER_KEY", "test-consumer-key")
os.environ.setdefault("MPESA_CONSUMER_SECRET", "test-consumer-secret")
os.environ.setdefault("MPESA_PASSKEY", "test-passkey")

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, List

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from hotel_booking_platform.database import DatabaseManager
from hotel_booking_platform.main import create_app
from hotel_booking_platform.models.room import Room, RoomStatus, RoomType
from hotel_booking_platform.models.user import User, UserRole
from hotel_booking_platform.schemas.booking import BookingCreateRequest
from hotel_booking_platform.services.booking_service import BookingService
from hotel_booking_platform.utils.auth import create_access_token

# Mid-morning in Nairobi; every service-level test runs against this clock
NOW = datetime(2030, 3, 10, 6, 0, tzinfo=timezone.utc)

PASSWORD = "correct-horse-battery"


@pytest.fixture
async def db_manager():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    manager = DatabaseManager(engine=engine)
    await manager.initialize(create_tables=True)
    yield manager
    await manager.close()


@pytest.fixture
async def session(db_manager):
    async with db_manager.session_factory() as session:
        yield session


@pytest.fixture
async def room_type(db_manager) -> RoomType:
    async with db_manager.session() as session:
        standard = RoomType(
            name="Standard",
            slug="standard",
            description="Garden-facing room",
            capacity=2,
            bed_type="Double",
            amenities=["wifi", "tv"],
            single_price_ea=Decimal("3000.00"),
            double_price_ea=Decimal("3500.00"),
            single_price_intl=Decimal("40.00"),
            double_price_intl=Decimal("45.00"),
        )
        session.add(standard)
    return standard


@pytest.fixture
async def rooms(db_manager, room_type) -> List[Room]:
    async with db_manager.session() as session:
        created = [
            Room(room_number=number, floor=1, status=RoomStatus.AVAILABLE, room_type_id=room_type.id)
            for number in ("101", "102", "103")
        ]
        session.add_all(created)
    return created


@pytest.fixture
async def users(db_manager) -> Dict[UserRole, User]:
    created = {}
    async with db_manager.session() as session:
        for role in UserRole:
            user = User(
                email=f"{role.value.lower()}@hotel-hippo.example.com",
                first_name=role.value.title(),
                last_name="User",
                role=role,
                is_active=True,
            )
            user.set_password(PASSWORD)
            session.add(user)
            created[role] = user
    return created


@pytest.fixture
def tokens(users) -> Dict[UserRole, str]:
    return {
        role: create_access_token({"sub": str(user.id), "email": user.email, "role": role.value})
        for role, user in users.items()
    }


@pytest.fixture
def auth_headers(tokens):
    def headers(role: UserRole = UserRole.STAFF) -> Dict[str, str]:
        return {"Authorization": f"Bearer {tokens[role]}"}

    return headers


@pytest.fixture
def app(db_manager):
    return create_app(db_manager=db_manager)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def booking_request(rooms: List[Room], check_in: datetime, nights: int = 2, **overrides) -> BookingCreateRequest:
    data = {
        "guest_first_name": "Amina",
        "guest_last_name": "Otieno",
        "guest_email": "amina@example.com",
        "guest_phone": "+254712345678",
        "guest_country": "Kenya",
        "check_in_date": check_in,
        "check_out_date": check_in + timedelta(days=nights),
        "number_of_adults": 1,
        "room_ids": [room.id for room in rooms],
    }
    data.update(overrides)
    return BookingCreateRequest(**data)


@pytest.fixture
def make_booking(db_manager):
    """Create a booking in its own session, as a request would."""

    async def make(rooms, check_in=None, nights=2, created_by=None, now=NOW, **overrides):
        check_in = check_in or NOW + timedelta(hours=8)
        async with db_manager.session() as session:
            return await BookingService(session).create_booking(
                booking_request(rooms, check_in, nights, **overrides),
                created_by=created_by,
                now=now,
            )

    return make


@pytest.fixture
def in_session(db_manager):
    """Run ``fn(session)`` in a fresh committed session and return its result."""

    async def run(fn):
        async with db_manager.session() as session:
            return await fn(session)

    return run
