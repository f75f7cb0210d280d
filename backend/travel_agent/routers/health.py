"""Health and metrics endpoints."""

from fastapi import APIRouter, Depends

from travel_agent.routers.irrops import get_registry
from travel_agent.services.metrics import metrics
from travel_agent.services.resilience.registry import ResilienceRegistry

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "ok", "service": "travel-agent"}


@router.get("/metrics")
async def get_metrics(registry: ResilienceRegistry = Depends(get_registry)):
    """Request/IRROPS counters plus live breaker and limiter state."""
    return {**metrics.snapshot(), "resilience": registry.stats()}
