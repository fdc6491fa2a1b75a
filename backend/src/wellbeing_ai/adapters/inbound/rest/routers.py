"""Health, Metrics, Providers, AI — REST routers."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import ORJSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from wellbeing_ai.application.dtos import (
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    ProviderResetResponse,
)
from wellbeing_ai.application.services import LLMService
from wellbeing_ai.config import Settings
from wellbeing_ai.dependencies import get_app_settings, get_llm_service

logger = structlog.get_logger(__name__)


# ═══════════════════════════════════════════════════════════════
#  Health
# ═══════════════════════════════════════════════════════════════
health_router = APIRouter(tags=["Health"])


@health_router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    return HealthResponse(environment=settings.app_env.value)


@health_router.get("/health/ready")
async def readiness(request: Request) -> ORJSONResponse:
    """Ready when at least one provider can take traffic; 503 otherwise."""
    request_id = getattr(request.state, "request_id", None)
    providers: dict[str, Any] = {}
    try:
        service: LLMService = get_llm_service(request)
        providers = {
            pid: entry.to_dict() for pid, entry in service.get_provider_status().items()
        }
        ready = any(p["available"] for p in providers.values())
    except Exception as exc:  # noqa: BLE001
        logger.error("readiness_check_failed", error=type(exc).__name__)
        ready = False

    return ORJSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "degraded",
            "checks": {"providers": providers},
            "requestId": request_id,
        },
    )


# ═══════════════════════════════════════════════════════════════
#  Metrics (mounted when PROMETHEUS_ENABLED)
# ═══════════════════════════════════════════════════════════════
metrics_router = APIRouter(tags=["Metrics"])


@metrics_router.get("/metrics")
async def prometheus_metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


# ═══════════════════════════════════════════════════════════════
#  AI Generation
# ═══════════════════════════════════════════════════════════════
ai_router = APIRouter(prefix="/ai", tags=["AI Generation"])


@ai_router.post("/generate", response_model=GenerateResponse)
async def generate(
    body: GenerateRequest,
    service: LLMService = Depends(get_llm_service),
) -> GenerateResponse:
    options = (
        body.options.to_domain(service.default_options)
        if body.options
        else service.default_options
    )
    response = await service.generate_response(
        [m.to_domain() for m in body.messages],
        options,
        body.context.to_domain() if body.context else None,
    )
    return GenerateResponse.from_domain(response)


# ═══════════════════════════════════════════════════════════════
#  Provider Health (Admin)
# ═══════════════════════════════════════════════════════════════
providers_router = APIRouter(prefix="/providers", tags=["Provider Health"])


@providers_router.get("/status")
async def provider_status(
    service: LLMService = Depends(get_llm_service),
) -> dict[str, dict[str, Any]]:
    """Availability snapshot per provider; makes no outbound calls."""
    return {pid: entry.to_dict() for pid, entry in service.get_provider_status().items()}


@providers_router.get("/test")
async def test_providers(
    service: LLMService = Depends(get_llm_service),
) -> dict[str, bool]:
    """Live connectivity probe of every provider."""
    return await service.test_all_providers()


@providers_router.get("/stats")
async def provider_stats(
    service: LLMService = Depends(get_llm_service),
) -> list[dict[str, Any]]:
    """Rolling success/latency statistics for all configured providers."""
    return [h.to_dict() for h in service.get_provider_stats()]


@providers_router.post("/{provider_id}/reset", response_model=ProviderResetResponse)
async def reset_provider(
    provider_id: str,
    service: LLMService = Depends(get_llm_service),
) -> ProviderResetResponse:
    """Admin: clear cooldowns and auth disables for a provider."""
    try:
        cleared = service.reset_provider(provider_id)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown provider: {provider_id}",
        ) from None
    entry = service.get_provider_status()[provider_id]
    return ProviderResetResponse(provider=provider_id, cleared=cleared, status=entry.to_dict())
