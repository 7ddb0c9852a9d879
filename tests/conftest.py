import itertools
import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["VALIDATE_CONFIG_ON_IMPORT"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_FORMAT"] = "text"
os.environ.pop("PAYMENT_WEBHOOK_SECRET", None)

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Optional

import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from gymapp.core.database import Base, get_session
from gymapp.core.exceptions import UpstreamError
from gymapp.core import config
from gymapp.core.logging_utils import error_tracker
from gymapp.bookings.models import GymBooking, TrainerBooking
from gymapp.trainers.models import Trainer
from gymapp.payments.schemas.payments import GatewayInitiation, GatewayLookup
from gymapp.payments.services.gateway import get_payment_gateway
from gymapp.main import app


_trainer_seq = itertools.count(1)


class FakeGateway:
    """In-memory gateway: references are pidx-1, pidx-2, ... and start Pending"""

    def __init__(self):
        self.statuses: Dict[str, str] = {}
        self.initiated = []
        self.lookup_error: Optional[UpstreamError] = None

    async def initiate(self, request):
        self.initiated.append(request)
        reference = f"pidx-{len(self.initiated)}"
        self.statuses.setdefault(reference, "Pending")
        return GatewayInitiation(
            gateway_reference=reference,
            payment_url=f"https://pay.test/{reference}",
            expires_at="2030-01-01T00:00:00+05:45",
        )

    async def lookup(self, gateway_reference: str):
        if self.lookup_error:
            raise self.lookup_error
        status = self.statuses.get(gateway_reference, "Pending")
        return GatewayLookup(
            gateway_reference=gateway_reference,
            status=status,
            transaction_id=f"txn-{gateway_reference}",
            raw={"pidx": gateway_reference, "status": status},
        )


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fetch(session_factory):
    """Read a row through a fresh session, bypassing any stale identity map"""

    async def _fetch(model, row_id):
        async with session_factory() as fresh:
            return await fresh.get(model, row_id)

    return _fetch


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture(autouse=True)
def reset_error_tracker():
    error_tracker.reset_stats()
    yield
    error_tracker.reset_stats()


@pytest.fixture
async def client(session_factory, fake_gateway):
    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_payment_gateway] = lambda: fake_gateway

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


def make_token(user_id: str, role: str = "user", expires_minutes: int = 60) -> str:
    """Token with the claims the identity service issues"""
    now = datetime.now(timezone.utc)
    payload = {
        "id": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def auth_headers(user_id: str = "user-1", role: str = "user") -> Dict[str, str]:
    token = make_token(user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def headers_for():
    return auth_headers


@pytest.fixture
def user_headers():
    return auth_headers("user-1")


@pytest.fixture
def other_headers():
    return auth_headers("user-2")


@pytest.fixture
def admin_headers():
    return auth_headers("admin-1", role="admin")


@pytest.fixture
def make_trainer(session):
    async def _make_trainer(**overrides) -> Trainer:
        data = {
            "name": "Alex Morgan",
            "first_name": "Alex",
            "last_name": "Morgan",
            "email": f"trainer{next(_trainer_seq)}@example.com",
            "specialization": "Strength",
            "rate": Decimal("500"),
            "working_hours_start": 9,
            "working_hours_end": 17,
        }
        data.update(overrides)
        trainer = Trainer(**data)
        session.add(trainer)
        await session.commit()
        await session.refresh(trainer)
        return trainer

    return _make_trainer


@pytest.fixture
def make_gym_booking(session):
    async def _make_gym_booking(**overrides) -> GymBooking:
        data = {
            "user_id": "user-1",
            "booking_date": date(2024, 5, 1),
            "start_time": "09:00",
            "end_time": "10:00",
            "duration": 1,
            "workout_type": "Cardio",
            "amount": Decimal("150"),
        }
        data.update(overrides)
        booking = GymBooking(**data)
        session.add(booking)
        await session.commit()
        await session.refresh(booking)
        return booking

    return _make_gym_booking


@pytest.fixture
def make_trainer_booking(session):
    async def _make_trainer_booking(trainer: Optional[Trainer] = None, **overrides) -> TrainerBooking:
        data = {
            "user_id": "user-1",
            "trainer_id": trainer.id if trainer else None,
            "trainer_name_snapshot": trainer.display_name if trainer else None,
            "session_date": date(2024, 6, 1),
            "start_hour": 13,
            "duration": 1,
            "time": "13:00 - 14:00",
            "amount": Decimal("500"),
        }
        data.update(overrides)
        booking = TrainerBooking(**data)
        session.add(booking)
        await session.commit()
        await session.refresh(booking)
        return booking

    return _make_trainer_booking
