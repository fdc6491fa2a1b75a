"""FastAPI application entry-point.

Assembles routers, middleware, exception handlers, and lifecycle hooks.
"""

from __future__ import annotations

import asyncio
import contextlib
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from wellbeing_ai.adapters.inbound.rest.routers import (
    ai_router,
    health_router,
    metrics_router,
    providers_router,
)
from wellbeing_ai.application.services import LLMService
from wellbeing_ai.config import Settings, get_settings
from wellbeing_ai.shared.errors import register_exception_handlers
from wellbeing_ai.shared.middleware import (
    LoggingMiddleware,
    MetricsMiddleware,
    RequestIdMiddleware,
)
from wellbeing_ai.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


async def _sweep_cooldowns(service: LLMService, interval_s: float) -> None:
    """Periodically drop long-expired cooldown entries."""
    while True:
        await asyncio.sleep(interval_s)
        removed = service.sweep_cooldowns()
        if removed:
            logger.debug("cooldown_sweep", removed=removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifecycle — startup & shutdown hooks."""
    settings: Settings = app.state.settings
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
    )
    logger.info("application_starting", env=settings.app_env.value)

    service: LLMService | None = getattr(app.state, "llm_service", None)
    if service is None:
        service = LLMService.from_settings(settings)
        app.state.llm_service = service

    sweeper: asyncio.Task[None] | None = None
    if settings.cooldown_sweep_interval_seconds > 0:
        sweeper = asyncio.create_task(
            _sweep_cooldowns(service, settings.cooldown_sweep_interval_seconds)
        )

    yield

    if sweeper is not None:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
    await service.aclose()
    logger.info("application_shutdown")


def create_app(
    settings: Settings | None = None,
    *,
    llm_service: LLMService | None = None,
) -> FastAPI:
    """Application factory — creates a fully configured FastAPI instance.

    ``llm_service`` lets tests inject a service built on fake adapters; when
    omitted, the lifespan builds one from ``settings``.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Wellbeing AI Orchestrator",
        description=(
            "LLM provider orchestration for the wellbeing chat assistant. "
            "Routes generation requests across Gemini, OpenAI, Anthropic, "
            "Hugging Face and a local Ollama server with credential rotation, "
            "cooldowns and deterministic fallback."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.state.settings = settings
    if llm_service is not None:
        app.state.llm_service = llm_service

    # ── Middleware (order matters: first added = outermost) ───
    cors_origins = settings.cors_origins
    allow_all_origins = "*" in cors_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all_origins else cors_origins,
        allow_origin_regex=".*" if allow_all_origins else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    if settings.prometheus_enabled:
        app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIdMiddleware)

    # ── Exception handlers ───────────────────────────────────
    register_exception_handlers(app)

    # ── REST routers (versioned) ─────────────────────────────
    api_v1 = "/api/v1"
    app.include_router(health_router, prefix=api_v1)
    app.include_router(ai_router, prefix=api_v1)
    app.include_router(providers_router, prefix=api_v1)
    if settings.prometheus_enabled:
        app.include_router(metrics_router, prefix=api_v1)

    @app.get("/")
    async def root() -> dict[str, str]:
        return {
            "message": "Wellbeing AI Orchestrator is running",
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


# Uvicorn entry-point
app = create_app()
