"""IRROPS router — rebooking options for a disrupted itinerary, plus breaker admin."""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from travel_agent.schemas.irrops import IrropsRequest, IrropsResponse
from travel_agent.services.irrops.disruption_classifier import classify_disruption
from travel_agent.services.irrops.engine import IrropsCancelledError, IrropsEngine
from travel_agent.services.irrops.pnr_parser import parse_pnr_from_text
from travel_agent.services.resilience.registry import ResilienceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()

DISCONNECT_POLL_INTERVAL = 0.5  # seconds


def get_engine(request: Request) -> IrropsEngine:
    return request.app.state.irrops_engine


def get_registry(request: Request) -> ResilienceRegistry:
    return request.app.state.registry


async def watch_disconnect(request: Request, signal: asyncio.Event) -> None:
    """Set the signal once the client goes away."""
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)
    logger.info("Client disconnected, cancelling IRROPS processing")
    signal.set()


@router.post("/irrops/process", response_model=IrropsResponse)
async def process_irrops(
    req: IrropsRequest,
    request: Request,
    engine: IrropsEngine = Depends(get_engine),
):
    """Accepts a structured PNR + disruption, or PNR text + a free-text message."""
    pnr = req.pnr
    if pnr is None and req.pnr_text:
        pnr = parse_pnr_from_text(req.pnr_text)
    if pnr is None:
        raise HTTPException(status_code=422, detail="Could not determine PNR from request")

    disruption = req.disruption
    classification_confidence = None
    if disruption is None:
        if not req.message:
            raise HTTPException(status_code=422, detail="Provide a disruption or a message describing it")
        disruption, classification_confidence = classify_disruption(req.message)

    signal = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(request, signal))
    try:
        options = await engine.process(pnr, disruption, req.preferences, signal=signal)
    except IrropsCancelledError as e:
        raise HTTPException(status_code=499, detail=str(e))
    except Exception as e:
        logger.error(f"IRROPS request failed for {pnr.record_locator}: {type(e).__name__}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Failed to process IRROPS request. Please contact your airline directly.",
        )
    finally:
        watcher.cancel()

    return IrropsResponse(
        record_locator=pnr.record_locator,
        disruption=disruption,
        classification_confidence=classification_confidence,
        options=options,
    )


@router.post("/admin/breakers/reset")
async def reset_breakers(
    target: str | None = Query(None, description="Breaker key; omit to reset all"),
    registry: ResilienceRegistry = Depends(get_registry),
):
    reset = registry.reset(target)
    logger.warning(f"Circuit breakers reset by admin: {reset or 'none'}")
    return {"reset": reset}
