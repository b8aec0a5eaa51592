from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from app.models.notifications import DeliveryNotification
from app.models.order import Order, OrderStatusHistory

API_KEY = "cron-secret"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float, now: datetime = NOW) -> datetime:
    return now - timedelta(days=days)


async def get_order(session_factory, order_id: int) -> Order:
    async with session_factory() as session:
        return await session.get(Order, order_id)


async def count_rows(session_factory, model, **filters) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(model)
        for name, value in filters.items():
            stmt = stmt.where(getattr(model, name) == value)
        result = await session.execute(stmt)
        return result.scalar()


async def history_for(session_factory, order_id: int) -> list:
    async with session_factory() as session:
        result = await session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.id)
        )
        return list(result.scalars().all())


async def notifications_for(session_factory, order_id: int) -> list:
    async with session_factory() as session:
        result = await session.execute(
            select(DeliveryNotification)
            .where(DeliveryNotification.order_id == order_id)
            .order_by(DeliveryNotification.id)
        )
        return list(result.scalars().all())
