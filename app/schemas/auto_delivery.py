"""Pydantic schemas for the auto-delivery trigger."""
from datetime import datetime
from typing import Optional, List

from app.schemas.base import CamelSchema


class AutoDeliveryOutcomeResponse(CamelSchema):
    """Per-order result of an auto-delivery run."""
    order_id: int
    order_number: str
    days_since_shipped: int
    status: str
    error: Optional[str] = None
    already_delivered: bool = False


class AutoDeliveryRunResponse(CamelSchema):
    """Aggregate result of an auto-delivery run."""
    message: str = "Auto-delivery process completed"
    success: bool
    total_eligible: int
    processed: int
    errors: int
    skipped: int = 0
    results: List[AutoDeliveryOutcomeResponse]


class EligibleOrderResponse(CamelSchema):
    id: int
    order_number: str
    days_since_shipped: int
    shipped_at: datetime
    customer_email: Optional[str] = None


class AutoDeliveryPreviewResponse(CamelSchema):
    """Orders that the next run would deliver."""
    message: str = "Eligible orders for auto-delivery"
    count: int
    orders: List[EligibleOrderResponse]
