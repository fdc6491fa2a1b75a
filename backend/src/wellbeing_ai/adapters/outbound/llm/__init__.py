"""LLM provider adapters and the factory that builds them from settings.

Each adapter is a thin HTTP client for one backend family.  Rotation,
cooldowns and failover live in ``ResilientProviderGateway``; the adapters
only translate between ``ChatMessage`` lists and vendor payloads.
"""

from __future__ import annotations

import httpx
import structlog

from wellbeing_ai.adapters.outbound.llm.anthropic import AnthropicAdapter
from wellbeing_ai.adapters.outbound.llm.base import HttpProviderAdapter, classify_status
from wellbeing_ai.adapters.outbound.llm.gemini import GeminiAdapter
from wellbeing_ai.adapters.outbound.llm.huggingface import HuggingFaceAdapter
from wellbeing_ai.adapters.outbound.llm.ollama import OllamaAdapter
from wellbeing_ai.adapters.outbound.llm.openai import OpenAIAdapter
from wellbeing_ai.config import Settings
from wellbeing_ai.domain.enums import ProviderKind
from wellbeing_ai.shared.providers.key_manager import sanitize_credentials
from wellbeing_ai.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)

ADAPTERS: dict[ProviderKind, type[HttpProviderAdapter]] = {
    ProviderKind.GEMINI: GeminiAdapter,
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.HUGGINGFACE: HuggingFaceAdapter,
    ProviderKind.OLLAMA: OllamaAdapter,
}

_DISPLAY_NAMES = {
    ProviderKind.GEMINI: "Google Gemini",
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.ANTHROPIC: "Anthropic Claude",
    ProviderKind.HUGGINGFACE: "Hugging Face",
    ProviderKind.OLLAMA: "Ollama (local)",
}


def build_provider_configs(settings: Settings) -> list[ProviderConfig]:
    """Build one ProviderConfig per known backend from settings values.

    Providers named in ``ai_provider_priority`` come first, in that order;
    unlisted providers follow in enum order.  Credentials are sanitized here
    so placeholders never reach the key manager.
    """
    order = settings.provider_priority
    priority_map = {name: idx + 1 for idx, name in enumerate(order)}
    unlisted = len(order) + 1

    metadata = {
        ProviderKind.GEMINI: {"model": settings.gemini_model},
        ProviderKind.OPENAI: {
            "model": settings.openai_model,
            "base_url": settings.openai_base_url,
        },
        ProviderKind.ANTHROPIC: {"model": settings.anthropic_model, "api_version": "2023-06-01"},
        ProviderKind.HUGGINGFACE: {"model": settings.huggingface_model},
        ProviderKind.OLLAMA: {
            "model": settings.ollama_model,
            "base_url": settings.ollama_base_url,
        },
    }

    configs: list[ProviderConfig] = []
    for kind in ProviderKind:
        if kind is ProviderKind.OLLAMA and not settings.ollama_enabled:
            logger.info("provider_disabled", provider=kind.value)
            continue
        local = kind is ProviderKind.OLLAMA
        priority = priority_map.get(kind.value)
        if priority is None:
            priority = unlisted
            unlisted += 1
        configs.append(
            ProviderConfig(
                provider_id=kind.value,
                display_name=_DISPLAY_NAMES[kind],
                api_keys=() if local else sanitize_credentials(settings.credentials_for(kind)),
                priority=priority,
                requires_credential=not local,
                timeout_s=settings.ai_timeout_seconds,
                metadata=metadata[kind],
            )
        )
    return configs


def build_adapters(
    configs: list[ProviderConfig],
    *,
    client: httpx.AsyncClient | None = None,
) -> dict[str, HttpProviderAdapter]:
    """Instantiate the adapter for every configured provider."""
    adapters: dict[str, HttpProviderAdapter] = {}
    for cfg in configs:
        adapter_cls = ADAPTERS[ProviderKind(cfg.provider_id)]
        adapters[cfg.provider_id] = adapter_cls(cfg, client=client)
    return adapters


__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "GeminiAdapter",
    "HttpProviderAdapter",
    "HuggingFaceAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "build_adapters",
    "build_provider_configs",
    "classify_status",
]
