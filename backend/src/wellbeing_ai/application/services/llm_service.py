"""LLM orchestration service.

The single entry-point the chat feature uses to turn a conversation into a
model reply.  Provider choice, credential rotation and failover are fully
delegated to ``ResilientProviderGateway``; this class validates input,
applies defaults, and exposes the read-only status and probe operations.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Mapping, Sequence

import httpx
import structlog

from wellbeing_ai.adapters.outbound.llm import build_adapters, build_provider_configs
from wellbeing_ai.config import Settings
from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.exceptions import ValidationError
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    ConversationContext,
    GenerationOptions,
    GenerationResponse,
)
from wellbeing_ai.ports.outbound import LLMProviderPort
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.gateway import ResilientProviderGateway
from wellbeing_ai.shared.providers.key_manager import Credential
from wellbeing_ai.shared.providers.types import (
    CooldownPolicy,
    ProviderConfig,
    ProviderHealth,
    ProviderStatusEntry,
)

logger = structlog.get_logger(__name__)


class LLMService:
    """Facade over the provider gateway and adapters.

    Construct once per process (``from_settings``) and share it; all methods
    are safe to call concurrently.
    """

    def __init__(
        self,
        gateway: ResilientProviderGateway,
        adapters: Mapping[str, LLMProviderPort],
        *,
        default_options: GenerationOptions | None = None,
        total_budget_s: float | None = None,
        probe_timeout_s: float = 10.0,
    ) -> None:
        missing = [
            cfg.provider_id
            for cfg in gateway.router.providers
            if cfg.provider_id not in adapters
        ]
        if missing:
            raise ValueError(f"No adapter registered for providers: {missing}")
        self._gateway = gateway
        self._adapters = dict(adapters)
        self._defaults = default_options or GenerationOptions()
        self._total_budget_s = total_budget_s
        self._probe_timeout_s = probe_timeout_s

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Callable[[], float] = time.time,
    ) -> LLMService:
        """Wire configs, adapters and the gateway from validated settings."""
        configs = build_provider_configs(settings)
        policy = CooldownPolicy(
            floor_s=settings.cooldown_floor_seconds,
            ceiling_s=settings.cooldown_ceiling_seconds,
            multiplier=settings.cooldown_multiplier,
            rate_limit_s=settings.rate_limit_cooldown_seconds,
        )
        gateway = ResilientProviderGateway(
            configs, tracker=CooldownTracker(policy, clock=clock)
        )
        service = cls(
            gateway,
            build_adapters(configs, client=client),
            default_options=GenerationOptions(
                max_tokens=settings.ai_max_tokens,
                temperature=settings.ai_temperature,
                timeout_s=settings.ai_timeout_seconds,
            ),
            total_budget_s=settings.ai_total_budget_seconds,
            probe_timeout_s=settings.ai_health_probe_timeout_seconds,
        )
        logger.info(
            "llm_service_initialized",
            providers=[c.provider_id for c in gateway.router.get_fallback_chain()],
            unavailable=gateway.router.excluded,
        )
        return service

    @property
    def gateway(self) -> ResilientProviderGateway:
        return self._gateway

    @property
    def default_options(self) -> GenerationOptions:
        return self._defaults

    # ── Generation ───────────────────────────────────────────
    async def generate_response(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions | None = None,
        context: ConversationContext | None = None,
    ) -> GenerationResponse:
        """Generate a reply, falling back across providers as needed.

        Raises:
            ValidationError: empty conversation, empty message content, or no
                user message.
            AllProvidersExhaustedError: every provider was skipped or failed.
        """
        self._validate(messages)
        opts = options or self._defaults
        log = logger.bind(
            session_id=context.session_id if context else None,
            message_count=len(messages),
        )
        log.debug("generation_requested", max_tokens=opts.max_tokens)

        async def _call(cfg: ProviderConfig, credential: Credential) -> GenerationResponse:
            return await self._adapters[cfg.provider_id].generate(messages, opts, credential)

        response = await self._gateway.execute(
            _call,
            attempt_timeout_s=opts.timeout_s,
            budget_s=self._total_budget_s,
        )
        log.info(
            "generation_completed",
            provider=response.provider,
            model=response.model,
            processing_time_ms=round(response.processing_time_ms, 1),
        )
        return response

    @staticmethod
    def _validate(messages: Sequence[ChatMessage]) -> None:
        if not messages:
            raise ValidationError("At least one message is required")
        for idx, message in enumerate(messages):
            if not isinstance(message, ChatMessage):
                raise ValidationError(f"messages[{idx}] is not a ChatMessage")
            if not message.content.strip():
                raise ValidationError(f"messages[{idx}] has empty content")
        if not any(m.role is MessageRole.USER for m in messages):
            raise ValidationError("At least one user message is required")

    # ── Observation ──────────────────────────────────────────
    def get_provider_status(self) -> dict[str, ProviderStatusEntry]:
        """Availability snapshot; no network I/O."""
        return self._gateway.get_status()

    def available_providers(self) -> list[str]:
        status = self.get_provider_status()
        return [
            cfg.provider_id
            for cfg in self._gateway.router.get_fallback_chain()
            if status[cfg.provider_id].available
        ]

    def get_provider_stats(self) -> list[ProviderHealth]:
        return self._gateway.get_all_health()

    async def test_all_providers(self) -> dict[str, bool]:
        """Probe every registered provider concurrently.

        Probes use the first configured credential regardless of cooldown and
        never feed the cooldown tracker.
        """
        providers = self._gateway.router.providers
        results = await asyncio.gather(*(self._probe(cfg) for cfg in providers))
        outcome = {cfg.provider_id: ok for cfg, ok in zip(providers, results)}
        logger.info("provider_probe_completed", results=outcome)
        return outcome

    async def _probe(self, cfg: ProviderConfig) -> bool:
        km = self._gateway.key_manager(cfg.provider_id)
        credential = km.probe_credential() if km else None
        if credential is None:
            return False
        return await self._adapters[cfg.provider_id].check_health(
            credential, timeout_s=self._probe_timeout_s
        )

    # ── Operations ───────────────────────────────────────────
    def reset_provider(self, provider_id: str) -> int:
        """Clear cooldowns and auth disables for a provider.

        Raises:
            KeyError: unknown provider id.
        """
        return self._gateway.reset_provider(provider_id)

    def sweep_cooldowns(self) -> int:
        return self._gateway.tracker.sweep()

    async def aclose(self) -> None:
        """Close every adapter; clients injected from outside stay open."""
        await asyncio.gather(*(a.close() for a in self._adapters.values()))
