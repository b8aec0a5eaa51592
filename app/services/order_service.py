"""Customer-facing order delivery operations."""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notifications import DeliveryNotification, DeliveryNotificationType
from app.models.order import (
    Actor,
    DeliveryConfirmation,
    Order,
    OrderStatus,
    OrderStatusHistory,
)
from app.models.user import User

logger = logging.getLogger(__name__)


class OrderNotEligibleError(Exception):
    """Order doesn't exist, isn't the caller's, or isn't shipped."""


class OrderAlreadyDeliveredError(Exception):
    """Another transition delivered the order first."""


@dataclass
class ClientInfo:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class OrderService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_order_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.db.execute(select(Order).where(Order.id == order_id))
        return result.scalar_one_or_none()

    async def confirm_delivery(
        self,
        order_id: int,
        user: User,
        client: Optional[ClientInfo] = None,
        now: Optional[datetime] = None,
    ) -> Order:
        """
        Customer confirms they received a shipped order.

        Status change, confirmation record, admin notification and audit
        row are committed together.
        """
        now = now or datetime.now(timezone.utc)
        client = client or ClientInfo()

        result = await self.db.execute(
            select(Order).where(
                Order.id == order_id,
                Order.user_id == user.id,
                Order.status == OrderStatus.SHIPPED.value,
            )
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise OrderNotEligibleError("Order not found or not eligible for delivery confirmation")

        try:
            updated = await self.db.execute(
                update(Order)
                .where(
                    Order.id == order.id,
                    Order.status == OrderStatus.SHIPPED.value,
                    Order.delivered_at.is_(None),
                )
                .values(
                    status=OrderStatus.DELIVERED.value,
                    delivered_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if updated.rowcount == 0:
                raise OrderAlreadyDeliveredError(f"Order {order.order_number} is already delivered")

            self.db.add(
                DeliveryConfirmation(
                    order_id=order.id,
                    user_id=user.id,
                    confirmed_at=now,
                    confirmation_method="customer_portal",
                    ip_address=client.ip_address or "unknown",
                    user_agent=client.user_agent or "unknown",
                )
            )
            self.db.add(
                DeliveryNotification(
                    order_id=order.id,
                    user_id=user.id,
                    notification_type=DeliveryNotificationType.DELIVERED.value,
                    title="Order Delivered",
                    message=f"Order #{order.order_number} has been confirmed as delivered by the customer.",
                    is_read=False,
                    email_sent=False,
                    created_at=now,
                )
            )

            actor = Actor.user(user.email)
            self.db.add(
                OrderStatusHistory(
                    order_id=order.id,
                    old_status=OrderStatus.SHIPPED.value,
                    new_status=OrderStatus.DELIVERED.value,
                    actor_type=actor.kind.value,
                    changed_by=actor.changed_by,
                    change_reason="Delivery confirmed by customer",
                    created_at=now,
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(order)
        logger.info(f"Order {order.order_number} confirmed as delivered by {user.email}")
        return order

    async def get_status_history(self, order_id: int) -> List[OrderStatusHistory]:
        result = await self.db.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at.asc(), OrderStatusHistory.id.asc())
        )
        return list(result.scalars().all())
