"""
Order Auto-Delivery Service

Confirms delivery on behalf of customers who never do it themselves:
orders that have been shipped for AUTO_DELIVERY_DAYS calendar days,
are still undelivered and have no open refund request are moved to
'delivered'.

Usage:
1. POST /api/v1/admin/auto-delivery (admins or cron callers with API key)
2. The daily APScheduler job in app.jobs.order_jobs
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.models.notifications import DeliveryNotification, DeliveryNotificationType
from app.models.order import (
    Actor,
    Order,
    OrderStatus,
    OrderStatusHistory,
    RefundRequest,
    OPEN_REFUND_STATUSES,
)

logger = logging.getLogger(__name__)


AUTO_DELIVERY_TITLE = "Order Automatically Confirmed as Delivered"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(now: datetime, then: datetime) -> int:
    """Calendar-day difference, matching SQL DATEDIFF(now, then)."""
    return (as_utc(now).date() - as_utc(then).date()).days


def eligibility_cutoff(now: datetime, days: int) -> datetime:
    """
    Latest shipped_at (exclusive) that is at least `days` calendar days before now.

    An order shipped any time on (today - days) qualifies; one shipped on
    (today - days + 1) does not.
    """
    first_ineligible_day = as_utc(now).date() - timedelta(days=days - 1)
    return datetime.combine(first_ineligible_day, time.min, tzinfo=timezone.utc)


class TransitionOutcome(str, Enum):
    DELIVERED = "delivered"
    ALREADY_DELIVERED = "already_delivered"


@dataclass
class EligibleOrder:
    id: int
    order_number: str
    status: str
    shipped_at: datetime
    customer_email: Optional[str]
    user_id: Optional[int]
    days_since_shipped: int


@dataclass
class AutoDeliveryOutcome:
    order_id: int
    order_number: str
    days_since_shipped: int
    status: str  # success | error
    error: Optional[str] = None
    already_delivered: bool = False


@dataclass
class AutoDeliveryResult:
    success: bool = True
    total_eligible: int = 0
    processed: int = 0
    errors: int = 0
    skipped: int = 0
    results: List[AutoDeliveryOutcome] = field(default_factory=list)


class AutoDeliveryService:
    """Selects eligible shipped orders and marks them delivered one at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.days = settings.AUTO_DELIVERY_DAYS
        self.batch_size = settings.AUTO_DELIVERY_BATCH_SIZE

    # ==================== Eligibility Selector ====================

    def _eligibility_filters(self, now: datetime) -> list:
        open_refund = exists().where(
            RefundRequest.order_id == Order.id,
            RefundRequest.status.in_(OPEN_REFUND_STATUSES),
        )
        return [
            Order.status == OrderStatus.SHIPPED.value,
            Order.shipped_at.is_not(None),
            Order.shipped_at < eligibility_cutoff(now, self.days),
            Order.delivered_at.is_(None),
            ~open_refund,
        ]

    async def find_eligible_orders(self, now: Optional[datetime] = None) -> List[EligibleOrder]:
        """Orders due for auto-delivery, oldest shipment first. Read only."""
        now = now or datetime.now(timezone.utc)

        stmt = (
            select(
                Order.id,
                Order.order_number,
                Order.status,
                Order.shipped_at,
                Order.customer_email,
                Order.user_id,
            )
            .where(*self._eligibility_filters(now))
            .order_by(Order.shipped_at.asc(), Order.id.asc())
        )
        if self.batch_size:
            stmt = stmt.limit(self.batch_size)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            EligibleOrder(
                id=row.id,
                order_number=row.order_number,
                status=row.status,
                shipped_at=as_utc(row.shipped_at),
                customer_email=row.customer_email,
                user_id=row.user_id,
                days_since_shipped=days_between(now, row.shipped_at),
            )
            for row in rows
        ]

    async def count_eligible_orders(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)

        async with self.session_factory() as session:
            result = await session.execute(
                select(func.count(Order.id)).where(*self._eligibility_filters(now))
            )
            return result.scalar() or 0

    # ==================== Order Transition Processor ====================

    def build_delivery_notification(self, order: EligibleOrder, now: datetime) -> DeliveryNotification:
        return DeliveryNotification(
            user_id=order.user_id,
            order_id=order.id,
            notification_type=DeliveryNotificationType.DELIVERY_CONFIRMATION.value,
            title=AUTO_DELIVERY_TITLE,
            message=(
                f"Your order {order.order_number} has been automatically marked as delivered "
                f"after {order.days_since_shipped} days. If you have any issues with your order, "
                f"please contact our support team."
            ),
            is_read=False,
            created_at=now,
        )

    async def deliver_order(
        self,
        order: EligibleOrder,
        now: Optional[datetime] = None,
    ) -> TransitionOutcome:
        """
        Move one shipped order to delivered in its own transaction.

        The status update, customer notification and audit row commit
        together or not at all. If another run already delivered the order
        the guarded UPDATE matches nothing and no other writes happen.
        """
        now = now or datetime.now(timezone.utc)

        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(
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

                if result.rowcount == 0:
                    logger.info(f"Order {order.order_number} already delivered, skipping")
                    return TransitionOutcome.ALREADY_DELIVERED

                if order.user_id:
                    session.add(self.build_delivery_notification(order, now))

                actor = Actor.system()
                session.add(
                    OrderStatusHistory(
                        order_id=order.id,
                        old_status=OrderStatus.SHIPPED.value,
                        new_status=OrderStatus.DELIVERED.value,
                        actor_type=actor.kind.value,
                        changed_by=actor.changed_by,
                        change_reason=f"Auto-delivery after {order.days_since_shipped} days",
                        created_at=now,
                    )
                )
                await session.flush()

        return TransitionOutcome.DELIVERED

    # ==================== Batch Orchestrator ====================

    async def run(self, now: Optional[datetime] = None) -> AutoDeliveryResult:
        """
        Auto-deliver every eligible order.

        Failures on individual orders are recorded in the result; only a
        failure to select eligible orders is raised.
        """
        logger.info("Starting auto-delivery process...")
        now = now or datetime.now(timezone.utc)
        start_time = datetime.now(timezone.utc)

        try:
            eligible_orders = await self.find_eligible_orders(now)
        except Exception as e:
            logger.error(f"Auto-delivery process failed: {e}")
            raise

        logger.info(f"Found {len(eligible_orders)} orders eligible for auto-delivery")

        summary = AutoDeliveryResult(total_eligible=len(eligible_orders))

        for order in eligible_orders:
            try:
                outcome = await self.deliver_order(order, now)
            except Exception as e:
                summary.errors += 1
                summary.results.append(
                    AutoDeliveryOutcome(
                        order_id=order.id,
                        order_number=order.order_number,
                        days_since_shipped=order.days_since_shipped,
                        status="error",
                        error=str(e) or type(e).__name__,
                    )
                )
                logger.error(f"Failed to auto-deliver order {order.order_number}: {e}")
                continue

            already_delivered = outcome == TransitionOutcome.ALREADY_DELIVERED
            summary.processed += 1
            if already_delivered:
                summary.skipped += 1
            else:
                logger.info(
                    f"Auto-delivered order {order.order_number} "
                    f"({order.days_since_shipped} days since shipped)"
                )
            summary.results.append(
                AutoDeliveryOutcome(
                    order_id=order.id,
                    order_number=order.order_number,
                    days_since_shipped=order.days_since_shipped,
                    status="success",
                    already_delivered=already_delivered,
                )
            )

        elapsed = (datetime.now(timezone.utc) - start_time).total_seconds()
        logger.info(
            f"Auto-delivery process completed: "
            f"{summary.processed} successful, {summary.errors} errors, "
            f"{summary.skipped} already delivered in {elapsed:.2f}s"
        )
        return summary

    async def preview(self, now: Optional[datetime] = None) -> dict:
        """Eligible orders and their count, without changing anything."""
        now = now or datetime.now(timezone.utc)
        count = await self.count_eligible_orders(now)
        orders = await self.find_eligible_orders(now)
        return {"count": count, "orders": orders}
