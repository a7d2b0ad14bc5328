"""Provider catalogue and system health."""

from fastapi import APIRouter, Depends

from tripcompare.dependencies import get_engine
from tripcompare.schemas.health import SystemHealth
from tripcompare.services.comparison_service import ComparisonEngine

router = APIRouter()


@router.get("/providers")
async def list_providers(engine: ComparisonEngine = Depends(get_engine)):
    providers = [
        d.model_dump(mode="json", exclude={"auth"}) | {"auth_type": d.auth.type}
        for d in engine.registry.descriptors()
    ]
    return {"providers": providers, "count": len(providers)}


@router.get("/health", response_model=SystemHealth)
async def health_check(engine: ComparisonEngine = Depends(get_engine)):
    return await engine.get_system_health()
