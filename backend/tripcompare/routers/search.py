"""Search router — offer comparison and cancellation."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from tripcompare.dependencies import get_engine
from tripcompare.errors import QuotaExceeded, SearchAlreadyRunning
from tripcompare.schemas.comparison import ComparisonResult
from tripcompare.schemas.search import SearchRequest
from tripcompare.services.comparison_service import ComparisonEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ComparisonResult)
async def search(req: SearchRequest, engine: ComparisonEngine = Depends(get_engine)):
    """Compare offers across every provider serving the item type."""
    try:
        result = await engine.search(req)
    except QuotaExceeded as e:
        raise HTTPException(
            status_code=429,
            detail={"code": e.code, "message": e.message},
            headers={"Retry-After": str(max(int(e.retry_after), 1))},
        )
    except SearchAlreadyRunning as e:
        raise HTTPException(status_code=409, detail={"code": e.code, "message": e.message})

    if result.status == "failed":
        return JSONResponse(status_code=502, content=result.model_dump(mode="json"))
    return result


@router.delete("/{request_id}")
async def cancel_search(request_id: str, engine: ComparisonEngine = Depends(get_engine)):
    """Abort an in-flight search; it returns with status 'cancelled'."""
    if not engine.cancel_search(request_id):
        raise HTTPException(status_code=404, detail="No active search with this id")
    return {"cancelled": True}
