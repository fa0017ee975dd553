from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from .api.routes import router as api_router
from .core.config import get_settings
from .core.logging import configure_logging, get_logger
from .dependencies import build_orchestrator
from .services.http import HttpGenerationBackend

settings = get_settings()
configure_logging(settings.observability.log_level, json_output=settings.observability.json_logs)
logger = get_logger(name=__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI):
    generation_backend = HttpGenerationBackend.from_settings(settings.generation)
    orchestrator = build_orchestrator(settings, generation_backend=generation_backend)
    failures = await orchestrator.initialize()
    if failures:
        logger.warning("agent_initialization_failures", failures=failures)
    app.state.orchestrator = orchestrator
    try:
        yield
    finally:
        app.state.orchestrator = None
        await orchestrator.dispose()
        await generation_backend.aclose()
        logger.info("orchestrator_shutdown")


app = FastAPI(title="LandComp Orchestration Engine", version="0.1.0", lifespan=app_lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.frontend_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/", tags=["health"])
async def root() -> dict[str, str]:
    return {"message": "LandComp orchestration engine running"}


if settings.observability.prometheus_enabled:

    @app.get("/metrics", tags=["observability"])
    async def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
