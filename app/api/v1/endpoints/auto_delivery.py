"""Trigger and preview endpoints for order auto-delivery."""
import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import AutoDelivery, require_auto_delivery_caller
from app.schemas.auto_delivery import (
    AutoDeliveryPreviewResponse,
    AutoDeliveryRunResponse,
    EligibleOrderResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_auto_delivery_caller)])


@router.post("", response_model=AutoDeliveryRunResponse)
async def run_auto_delivery(service: AutoDelivery):
    """
    Auto-deliver orders shipped 30+ days ago with no open refund request.

    Accepts an admin/staff bearer token or the X-API-Key used by cron jobs.
    Individual order failures are reported in `results`; the request only
    fails when eligible orders can't be selected.
    """
    try:
        result = await service.run()
    except Exception as e:
        logger.error(f"Auto-delivery process error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process auto-delivery"
        )

    return AutoDeliveryRunResponse.model_validate(result)


@router.get("", response_model=AutoDeliveryPreviewResponse)
async def preview_auto_delivery(service: AutoDelivery):
    """List orders the next run would deliver, without changing them."""
    try:
        preview = await service.preview()
    except Exception as e:
        logger.error(f"Auto-delivery check error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to check eligible orders"
        )

    return AutoDeliveryPreviewResponse(
        count=preview["count"],
        orders=[EligibleOrderResponse.model_validate(o) for o in preview["orders"]],
    )
