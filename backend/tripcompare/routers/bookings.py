"""Booking router — confirmation of quoted items."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from tripcompare.dependencies import get_engine
from tripcompare.errors import BookingError, QuoteExpired
from tripcompare.schemas.booking import BookingConfirmation, BookingConfirmRequest
from tripcompare.services.comparison_service import ComparisonEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/confirm", response_model=BookingConfirmation)
async def confirm_booking(req: BookingConfirmRequest, engine: ComparisonEngine = Depends(get_engine)):
    try:
        return await engine.confirm_booking(req.quote_ids, req.traveler_details, req.payment_token)
    except QuoteExpired as e:
        raise HTTPException(
            status_code=409,
            detail={"code": e.code, "message": e.message, "quote_ids": e.quote_ids},
        )
    except BookingError as e:
        raise HTTPException(status_code=400, detail={"code": e.code, "message": e.message})
