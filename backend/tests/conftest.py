"""
Pytest configuration and shared fixtures for the back office tests.

Provides an in-memory SQLite DB per test, an HTTP client bound to the app,
and factories for users, admins, orders and bookings.
"""
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# Test-only settings; must be in place before config is imported
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("MAIL_API_KEY", "")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")

import pytest
from datetime import datetime, timedelta
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from services.realtime_service import manager
from services.scheduler_metrics import reset_scheduler_metrics
from utils.clock import utcnow


# ── Database Fixtures ────────────────────────────────────────────────


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory over a fresh in-memory SQLite database.

    Uses StaticPool so every session shares the one in-memory connection.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(db_session: AsyncSession):
    """
    HTTP client for route-level tests.

    Overrides get_db with the test session. ASGITransport does not run the
    lifespan, so no scheduler or on-disk database is started.
    """
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ── Isolation ────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clean_globals():
    """Realtime rooms and scheduler metrics are process-wide singletons."""
    manager.rooms.clear()
    reset_scheduler_metrics()
    yield
    manager.rooms.clear()
    reset_scheduler_metrics()


# ── Test Data Fixtures ────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return utcnow()


@pytest.fixture
async def sample_user(db_session: AsyncSession):
    from db_models import User

    user = User(user_id="u-100", email="customer@example.com", first_name="Asha", last_name="Rao")
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def sample_admins(db_session: AsyncSession):
    """Two active admins and one inactive admin."""
    from db_models import Admin

    admins = [
        Admin(admin_id="a-1", email="ops@example.com", is_active=True),
        Admin(admin_id="a-2", email="support@example.com", is_active=True),
        Admin(admin_id="a-3", email="former@example.com", is_active=False),
    ]
    db_session.add_all(admins)
    await db_session.commit()
    return admins


@pytest.fixture
def make_order(db_session: AsyncSession):
    """Factory: await make_order(order_id, **overrides) -> Order."""
    from db_models import Order, OrderItem

    async def _make(order_id: int, **overrides):
        fields = {
            "order_id": order_id,
            "user_id": "u-100",
            "transaction_id": f"txn-{order_id}",
            "transaction_status": "pending",
            "order_status": "pending",
            "sub_total": 500.0,
            "total_discount": 50.0,
            "grand_total": 450.0,
            "created_at": utcnow(),
        }
        fields.update(overrides)
        order = Order(**fields)
        order.items = [
            OrderItem(
                product_id=7,
                name="Rose Quartz Bracelet",
                price=500.0,
                discounted_price=450.0,
                quantity=1,
                total=450.0,
                discount_value=10.0,
                discount_type="percentage",
            )
        ]
        db_session.add(order)
        await db_session.commit()
        await db_session.refresh(order)
        return order

    return _make


@pytest.fixture
def make_booking(db_session: AsyncSession):
    """Factory: await make_booking(time_slot_id, **overrides) -> ConsultationBooking (slot held)."""
    from db_models import ConsultationBooking, ConsultationTimeSlot

    async def _make(time_slot_id: int, **overrides):
        slot = ConsultationTimeSlot(
            time_slot_id=time_slot_id,
            start_time="10:00",
            end_time="10:30",
            label="Morning",
            is_available=False,
        )
        fields = {
            "user_id": "u-100",
            "consultation_plan_id": 1,
            "time_slot_id": time_slot_id,
            "date": utcnow() + timedelta(days=2),
            "status": "pending",
            "transaction_status": "pending",
            "payment_expires_at": utcnow() - timedelta(minutes=1),
        }
        fields.update(overrides)
        booking = ConsultationBooking(**fields)
        db_session.add_all([slot, booking])
        await db_session.commit()
        await db_session.refresh(booking)
        return booking

    return _make


@pytest.fixture
async def webhook_subscriptions(db_session: AsyncSession):
    """Two active subscriptions for notification.created and one inactive."""
    from db_models import WebhookSubscription

    subs = [
        WebhookSubscription(event="notification.created", url="https://hooks.example.com/slow", secret="s3cret"),
        WebhookSubscription(event="notification.created", url="https://hooks.example.com/ok", secret=None),
        WebhookSubscription(
            event="notification.created", url="https://hooks.example.com/off", secret="x", is_active=False
        ),
    ]
    db_session.add_all(subs)
    await db_session.commit()
    return subs
