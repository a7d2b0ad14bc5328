"""Price alerts and price history router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from tripcompare.dependencies import get_engine
from tripcompare.schemas.price import AlertCondition, NotificationMethod, PriceHistory
from tripcompare.services.comparison_service import ComparisonEngine

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateAlertRequest(BaseModel):
    user_id: str
    item_id: str
    target_price: float = Field(ge=0)
    currency: str = "USD"
    condition: AlertCondition = "below"
    value: float | None = Field(default=None, gt=0)
    notification_methods: list[NotificationMethod] = Field(default_factory=lambda: ["email"])


@router.post("/price-alerts")
async def create_price_alert(req: CreateAlertRequest, engine: ComparisonEngine = Depends(get_engine)):
    """Subscribe to price movements of a tracked item."""
    try:
        alert = await engine.subscribe_price_alert(
            user_id=req.user_id,
            item_id=req.item_id,
            target_price=req.target_price,
            currency=req.currency,
            condition=req.condition,
            notification_methods=req.notification_methods,
            value=req.value,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return {"alert_id": alert.id, "alert": alert}


@router.get("/price-alerts")
async def list_price_alerts(user_id: str = Query(...), engine: ComparisonEngine = Depends(get_engine)):
    """List a user's active price alerts."""
    alerts = await engine.list_price_alerts(user_id)
    return {"alerts": alerts, "count": len(alerts)}


@router.delete("/price-alerts/{alert_id}")
async def delete_price_alert(
    alert_id: str,
    user_id: str = Query(...),
    engine: ComparisonEngine = Depends(get_engine),
):
    if not await engine.cancel_price_alert(alert_id, user_id):
        raise HTTPException(status_code=404, detail="Price alert not found")
    return {"deleted": True}


@router.get("/alerts")
async def get_alerts(user_id: str = Query(...), engine: ComparisonEngine = Depends(get_engine)):
    """Triggered price alert notifications, newest first."""
    notifications = await engine.list_notifications(user_id)
    return {"alerts": notifications, "count": len(notifications)}


@router.get("/price-history/{item_id}", response_model=PriceHistory)
async def get_price_history(item_id: str, engine: ComparisonEngine = Depends(get_engine)):
    history = await engine.get_price_history(item_id)
    if history is None:
        raise HTTPException(status_code=404, detail="No price history for this item")
    return history
