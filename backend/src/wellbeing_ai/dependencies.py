"""Dependency injection — hands app-owned services to route handlers.

The ``LLMService`` is built once in the application lifespan and stored on
``app.state``; handlers receive it through FastAPI's ``Depends()``.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import HTTPException, Request, status

from wellbeing_ai.application.services import LLMService
from wellbeing_ai.config import Settings, get_settings


# ── Settings ─────────────────────────────────────────────────
@lru_cache(maxsize=1)
def get_cached_settings() -> Settings:
    return get_settings()


def get_app_settings(request: Request) -> Settings:
    settings: Settings | None = getattr(request.app.state, "settings", None)
    return settings or get_cached_settings()


# ── Services ─────────────────────────────────────────────────
def get_llm_service(request: Request) -> LLMService:
    service: LLMService | None = getattr(request.app.state, "llm_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="LLM service not initialised",
        )
    return service
