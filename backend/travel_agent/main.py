import logging
import os
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from travel_agent.config import settings

# ─── Logging setup (file + console) ───
_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_LOG_DIR.mkdir(exist_ok=True)

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(),
        RotatingFileHandler(
            _LOG_DIR / "travel_agent.log",
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5,
            encoding="utf-8",
        ),
    ],
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

from travel_agent.routers import health, irrops
from travel_agent.services.cache_service import cache_service
from travel_agent.services.irrops.alternative_search import AmadeusAlternativeSearch
from travel_agent.services.irrops.engine import IrropsEngine
from travel_agent.services.metrics import metrics
from travel_agent.services.resilience.fetch_client import ResilientFetchClient
from travel_agent.services.resilience.registry import ResilienceRegistry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: resilience registry → fetch client → search → engine
    registry = ResilienceRegistry(settings, metrics=metrics)
    registry.init()
    fetch_client = ResilientFetchClient(registry, settings.allowlist, metrics=metrics)
    search = AmadeusAlternativeSearch(fetch_client, settings, cache=cache_service)
    if search.demo_mode:
        logger.warning("Amadeus credentials not set — alternative search runs in demo mode")

    app.state.registry = registry
    app.state.fetch_client = fetch_client
    app.state.irrops_engine = IrropsEngine(
        search,
        metrics=metrics,
        max_options=settings.irrops_max_options,
    )

    yield

    # Shutdown
    await fetch_client.close()
    await cache_service.close()
    registry.shutdown()


app = FastAPI(
    title="Travel Agent",
    description="IRROPS rebooking with resilient outbound calls",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router, prefix="/api", tags=["health"])
app.include_router(irrops.router, prefix="/api", tags=["irrops"])
