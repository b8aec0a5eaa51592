import os

# app.main builds a module-level app from the environment on import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx
import pytest

from app.config import Settings
from app.core.security import create_access_token
from app.database import build_engine, build_session_factory, init_db
from app.main import create_app
from app.models.order import Order, RefundRequest
from app.models.user import User
from tests.utils import API_KEY


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        SECRET_KEY="test-secret-key",
        AUTO_DELIVERY_API_KEY=API_KEY,
        SCHEDULER_ENABLED=False,
    )


@pytest.fixture
async def engine(settings):
    engine = build_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def app(settings, engine):
    # Share the test database with the fixtures below
    return create_app(settings, engine=engine)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_user(session_factory):
    async def _make_user(
        email: str,
        role: str = "customer",
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        async with session_factory() as session:
            user = User(
                email=email,
                role=role,
                first_name=first_name,
                last_name=last_name,
                is_active=is_active,
            )
            session.add(user)
            await session.commit()
            return user

    return _make_user


@pytest.fixture
def make_order(session_factory):
    async def _make_order(
        order_number: str,
        status: str = "shipped",
        shipped_at: Optional[datetime] = None,
        user: Optional[User] = None,
        delivered_at: Optional[datetime] = None,
        refund_status: Optional[str] = None,
        order_id: Optional[int] = None,
    ) -> Order:
        async with session_factory() as session:
            order = Order(
                order_number=order_number,
                status=status,
                shipped_at=shipped_at,
                delivered_at=delivered_at,
                user_id=user.id if user else None,
                customer_email=user.email if user else f"{order_number.lower()}@example.com",
                total_amount=Decimal("49.90"),
            )
            if order_id is not None:
                order.id = order_id
            session.add(order)
            await session.flush()
            if refund_status:
                session.add(RefundRequest(order_id=order.id, status=refund_status, reason="Damaged"))
            await session.commit()
            return order

    return _make_order


@pytest.fixture
def token_for(settings):
    def _token_for(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(settings, user.id)}"}

    return _token_for

