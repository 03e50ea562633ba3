"""Test configuration and fixtures."""

import os

# Settings are read at import time; point the application at SQLite before importing it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BEARER_TOKEN_SECRET", "test-secret")

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from booking_engine.core.clock import FixedClock
from booking_engine.core.config import PricingConfig, settings
from booking_engine.core.database import Base, build_engine, build_session_factory
from booking_engine.models import (
    Booking,
    BookingStatus,
    DiscountType,
    InventoryRecord,
    Promotion,
    PromotionTarget,
    RatePlan,
    SeasonalRate,
)
from booking_engine.repositories.memory import InMemoryStore, InMemoryUnitOfWork
from booking_engine.repositories.sql import SqlAlchemyUnitOfWork
from booking_engine.services.booking_orchestrator import BookingOrchestrator, generate_booking_reference

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2025, 6, 1, 12, 0, 0)
RESORT_ID = UUID("5f0c6a4e-0000-4000-8000-000000000001")
ROOM_TYPE_ID = UUID("5f0c6a4e-0000-4000-8000-000000000002")

# Thursday 10 July 2025 to Sunday 13 July 2025
CHECK_IN = date(2025, 7, 10)
CHECK_OUT = date(2025, 7, 13)


class Seeder:
    """Writes catalog and inventory rows directly through a fresh unit of work."""

    def __init__(self, uow_factory, clock: FixedClock):
        self.uow_factory = uow_factory
        self.clock = clock

    async def rate_plan(
        self,
        total_rooms: int = 5,
        max_occupancy: int = 2,
        refundable: bool = True,
        name: str = "Garden King",
        resort_id: UUID = RESORT_ID,
        active: bool = True,
    ) -> RatePlan:
        now = self.clock()
        plan = RatePlan(
            id=uuid4(),
            resort_id=resort_id,
            room_type_id=ROOM_TYPE_ID,
            name=name,
            total_rooms=total_rooms,
            max_occupancy=max_occupancy,
            refundable=refundable,
            breakfast_included=False,
            deposit_required=False,
            active=active,
            created_at=now,
            updated_at=now,
        )
        async with self.uow_factory() as uow:
            await uow.rate_plans.add(plan)
        return plan

    async def rate(
        self,
        rate_plan_id: UUID,
        start: date,
        end: date,
        price: str,
        name: str = "Summer",
        min_stay: int = 1,
        max_stay: Optional[int] = None,
    ) -> SeasonalRate:
        now = self.clock()
        rate = SeasonalRate(
            id=uuid4(),
            rate_plan_id=rate_plan_id,
            name=name,
            start_date=start,
            end_date=end,
            nightly_price=Decimal(price),
            min_stay=min_stay,
            max_stay=max_stay,
            created_at=now,
            updated_at=now,
        )
        async with self.uow_factory() as uow:
            await uow.rates.add(rate)
        return rate

    async def stay_rates(self, rate_plan_id: UUID) -> None:
        """Nightly prices 100, 120 and 110 for the three nights from CHECK_IN."""
        await self.rate(rate_plan_id, date(2025, 7, 1), date(2025, 7, 10), "100.00", name="Early July")
        await self.rate(rate_plan_id, date(2025, 7, 11), date(2025, 7, 11), "120.00", name="Festival")
        await self.rate(rate_plan_id, date(2025, 7, 12), date(2025, 7, 31), "110.00", name="Late July")

    async def inventory(
        self,
        rate_plan_id: UUID,
        night: date,
        total_rooms: int,
        reserved: int = 0,
        booked: int = 0,
    ) -> InventoryRecord:
        now = self.clock()
        record = InventoryRecord(
            id=uuid4(),
            rate_plan_id=rate_plan_id,
            date=night,
            total_rooms=total_rooms,
            available_rooms=total_rooms - reserved - booked,
            reserved_rooms=reserved,
            booked_rooms=booked,
            version=1,
            created_at=now,
            updated_at=now,
        )
        async with self.uow_factory() as uow:
            await uow.inventory.add(record)
        return record

    async def promotion(
        self,
        code: str = "SUMMER10",
        discount_type: DiscountType = DiscountType.PERCENTAGE,
        discount_value: str = "10",
        applies_to: PromotionTarget = PromotionTarget.TOTAL,
        **overrides,
    ) -> Promotion:
        now = self.clock()
        values = dict(
            id=uuid4(),
            code=code,
            name=f"{code} promotion",
            description=None,
            discount_type=discount_type.value,
            discount_value=Decimal(discount_value),
            applies_to=applies_to.value,
            valid_from=now - timedelta(days=30),
            valid_until=now + timedelta(days=120),
            valid_days=[],
            blackout_dates=[],
            min_nights=1,
            min_booking_amount=None,
            max_discount_amount=None,
            max_uses=None,
            max_uses_per_customer=None,
            current_uses=0,
            applicable_resorts=[],
            applicable_room_types=[],
            applicable_rate_plans=[],
            active=True,
            created_at=now,
            updated_at=now,
        )
        values.update(overrides)
        promotion = Promotion(**values)
        async with self.uow_factory() as uow:
            await uow.promotions.add(promotion)
        return promotion

    async def booking(
        self,
        rate_plan_id: UUID,
        check_in: date = CHECK_IN,
        check_out: date = CHECK_OUT,
        rooms: int = 1,
        guest_ref: str = "guest-1",
        created_at: Optional[datetime] = None,
    ) -> Booking:
        """Pending booking row without inventory, for exercising the ledger directly."""
        created_at = created_at or self.clock()
        booking = Booking(
            id=uuid4(),
            reference=generate_booking_reference(),
            guest_ref=guest_ref,
            rate_plan_id=rate_plan_id,
            check_in=check_in,
            check_out=check_out,
            nights=(check_out - check_in).days,
            adults=1,
            children=0,
            rooms=rooms,
            base_price=Decimal("0.00"),
            discount_amount=Decimal("0.00"),
            subtotal=Decimal("0.00"),
            taxes=Decimal("0.00"),
            fees=Decimal("0.00"),
            total=Decimal("0.00"),
            currency="USD",
            promotion_id=None,
            promotion_code=None,
            price_breakdown=[],
            status=BookingStatus.PENDING.value,
            refund_due=False,
            cancellation_reason=None,
            created_at=created_at,
            updated_at=created_at,
            version=1,
        )
        async with self.uow_factory() as uow:
            await uow.bookings.add(booking)
        return booking

    async def record(self, rate_plan_id: UUID, night: date) -> Optional[InventoryRecord]:
        async with self.uow_factory() as uow:
            return await uow.inventory.get(rate_plan_id, night)


@pytest.fixture(scope="session")
def now():
    return NOW


@pytest.fixture(scope="session")
def check_in():
    """Thursday arrival of the standard three-night stay."""
    return CHECK_IN


@pytest.fixture(scope="session")
def check_out():
    return CHECK_OUT


@pytest.fixture(scope="session")
def make_seeder():
    """Seeder constructor, for tests that build their own store and clock."""
    return Seeder


@pytest.fixture
def clock():
    """Clock frozen at NOW."""
    return FixedClock(NOW)


@pytest.fixture
def pricing_config():
    """Default pricing: 12% tax, 5% service fee, 25.00 booking fee."""
    return PricingConfig(
        exchange_rates={
            "EUR_TO_USD": Decimal("1.10"),
            "USD_TO_GBP": Decimal("0.80"),
        }
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture(params=["memory", "sql"])
def uow_factory(request, store, session_factory):
    """Unit of work factory over the in-memory store and over SQLite."""
    if request.param == "memory":
        return lambda: InMemoryUnitOfWork(store)
    return lambda: SqlAlchemyUnitOfWork(session_factory)


@pytest.fixture
def memory_uow_factory(store):
    return lambda: InMemoryUnitOfWork(store)


@pytest.fixture
def seed(uow_factory, clock):
    return Seeder(uow_factory, clock)


@pytest.fixture
def orchestrator(uow_factory, pricing_config, clock):
    return BookingOrchestrator(uow_factory(), pricing_config, clock, max_retries=2, backoff_seconds=0)


@pytest.fixture
def auth_headers():
    """Bearer token signed with the configured secret."""
    token = jwt.encode(
        {"sub": "revenue-manager", "exp": datetime.now(timezone.utc) + timedelta(hours=1)},
        settings.bearer_token_secret,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def test_app(session_factory, clock, pricing_config):
    """Application wired to the SQLite test database, the fixed clock and test pricing."""
    from booking_engine.core.dependencies import get_clock, get_pricing_config, get_unit_of_work
    from booking_engine.main import create_app

    app = create_app()

    async def override_get_unit_of_work():
        yield SqlAlchemyUnitOfWork(session_factory)

    app.dependency_overrides[get_unit_of_work] = override_get_unit_of_work
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_pricing_config] = lambda: pricing_config

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def api_seed(session_factory, clock):
    """Seeder writing to the database the test application reads."""
    return Seeder(lambda: SqlAlchemyUnitOfWork(session_factory), clock)
