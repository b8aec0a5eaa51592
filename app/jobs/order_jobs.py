"""
Order Processing Jobs

Background jobs for order lifecycle housekeeping:
- Auto-delivery of orders shipped long ago and never confirmed
"""

import logging
from typing import Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.services.auto_delivery_service import AutoDeliveryService

logger = logging.getLogger(__name__)


async def auto_deliver_shipped_orders(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
) -> Dict[str, Any]:
    """
    Confirm delivery of stale shipped orders.

    This job runs daily to:
    1. Find orders shipped AUTO_DELIVERY_DAYS+ days ago with no open refund
    2. Mark each one delivered in its own transaction
    3. Notify the customer and append to the status history

    Returns:
        Summary dict with eligible, processed, skipped and error counts
    """
    service = AutoDeliveryService(session_factory, settings)
    result = await service.run()

    if result.errors:
        failed = [r.order_number for r in result.results if r.status == "error"]
        logger.warning(f"Auto-delivery could not deliver orders: {', '.join(failed)}")

    return {
        "total_eligible": result.total_eligible,
        "processed": result.processed,
        "skipped": result.skipped,
        "errors": result.errors,
    }
