"""Unit tests for the LLMService facade."""

from __future__ import annotations

import httpx
import pytest

from conftest import FakeAdapter, FakeClock

from wellbeing_ai.application.services import LLMService
from wellbeing_ai.config import get_settings
from wellbeing_ai.domain.enums import FailureKind
from wellbeing_ai.domain.exceptions import (
    AllProvidersExhaustedError,
    ProviderUnreachableError,
    RateLimitedError,
    ValidationError,
)
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    ConversationContext,
    GenerationOptions,
)
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.gateway import ResilientProviderGateway
from wellbeing_ai.shared.providers.types import ProviderConfig


def _service(
    configs: list[ProviderConfig],
    adapters: dict[str, FakeAdapter],
    clock: FakeClock,
    **kwargs,
) -> LLMService:
    gateway = ResilientProviderGateway(
        configs, tracker=CooldownTracker(clock=clock), monotonic=clock
    )
    return LLMService(gateway, adapters, **kwargs)


@pytest.fixture
def adapters(provider_configs: list[ProviderConfig]) -> dict[str, FakeAdapter]:
    return {p.provider_id: FakeAdapter(p.provider_id) for p in provider_configs}


@pytest.fixture
def service(
    provider_configs: list[ProviderConfig],
    adapters: dict[str, FakeAdapter],
    clock: FakeClock,
) -> LLMService:
    return _service(provider_configs, adapters, clock)


class TestGenerateResponse:
    @pytest.mark.asyncio
    async def test_returns_first_provider_reply(
        self, service: LLMService, messages: list[ChatMessage]
    ) -> None:
        response = await service.generate_response(messages)
        assert response.provider == "alpha"
        assert response.content == "ok from alpha"
        assert response.success is True
        assert response.credential_id == "alpha:key-0"

    @pytest.mark.asyncio
    async def test_accepts_context_without_interpreting_it(
        self, service: LLMService, messages: list[ChatMessage]
    ) -> None:
        ctx = ConversationContext(session_id="s-1", user_id="u-1", metadata={"mood": 3})
        response = await service.generate_response(
            messages, GenerationOptions(max_tokens=64), ctx
        )
        assert response.provider == "alpha"

    @pytest.mark.asyncio
    async def test_empty_conversation_rejected(self, service: LLMService) -> None:
        with pytest.raises(ValidationError):
            await service.generate_response([])

    @pytest.mark.asyncio
    async def test_blank_message_rejected(
        self, service: LLMService, adapters: dict[str, FakeAdapter]
    ) -> None:
        with pytest.raises(ValidationError):
            await service.generate_response([ChatMessage.user("   ")])
        assert adapters["alpha"].calls == []

    @pytest.mark.asyncio
    async def test_conversation_without_user_message_rejected(
        self, service: LLMService, adapters: dict[str, FakeAdapter]
    ) -> None:
        with pytest.raises(ValidationError):
            await service.generate_response(
                [ChatMessage.system("Be kind."), ChatMessage.assistant("Hello!")]
            )
        assert all(a.calls == [] for a in adapters.values())

    @pytest.mark.asyncio
    async def test_falls_back_in_priority_order(
        self,
        provider_configs: list[ProviderConfig],
        clock: FakeClock,
        messages: list[ChatMessage],
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha", default=ProviderUnreachableError("alpha", "down")),
            "beta": FakeAdapter("beta", [RateLimitedError("beta", "429")]),
            "gamma": FakeAdapter("gamma"),
        }
        service = _service(provider_configs, adapters, clock)

        response = await service.generate_response(messages)

        assert response.provider == "gamma"
        status = service.get_provider_status()
        assert status["alpha"].available is True  # second key still eligible
        assert status["beta"].available is False
        assert status["beta"].cooldown_active is True
        assert service.available_providers() == ["alpha", "gamma"]

    @pytest.mark.asyncio
    async def test_exhaustion_raises_typed_error(
        self,
        provider_configs: list[ProviderConfig],
        clock: FakeClock,
        messages: list[ChatMessage],
    ) -> None:
        adapters = {
            p.provider_id: FakeAdapter(
                p.provider_id, default=ProviderUnreachableError(p.provider_id, "down")
            )
            for p in provider_configs
        }
        service = _service(provider_configs, adapters, clock)

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await service.generate_response(messages)
        assert set(exc_info.value.errors) == {"alpha", "beta", "gamma"}

    def test_missing_adapter_rejected(
        self, provider_configs: list[ProviderConfig], clock: FakeClock
    ) -> None:
        with pytest.raises(ValueError):
            _service(provider_configs, {"alpha": FakeAdapter("alpha")}, clock)


class TestProviderStatus:
    def test_snapshot_has_every_provider(self, service: LLMService) -> None:
        status = service.get_provider_status()
        assert set(status) == {"alpha", "beta", "gamma"}
        assert all(entry.available for entry in status.values())

    def test_snapshot_makes_no_calls(
        self, service: LLMService, adapters: dict[str, FakeAdapter]
    ) -> None:
        service.get_provider_status()
        assert all(a.calls == [] and a.probes == [] for a in adapters.values())

    def test_back_to_back_snapshots_are_identical(self, service: LLMService) -> None:
        tracker = service.gateway.tracker
        tracker.record_failure("beta", "beta:key-0", FailureKind.TIMEOUT)
        tracker.record_failure("gamma", "gamma:key-0", FailureKind.AUTH_FAILURE)
        entries_before = {
            (pid, cid): tracker.entry(pid, cid)
            for pid, cid in [("beta", "beta:key-0"), ("gamma", "gamma:key-0")]
        }

        first = service.get_provider_status()
        second = service.get_provider_status()

        assert first == second
        assert {k: v.to_dict() for k, v in first.items()} == {
            k: v.to_dict() for k, v in second.items()
        }
        assert first["beta"].cooldown_active is True
        assert first["gamma"].reason.value == "auth_failed"
        for (pid, cid), entry in entries_before.items():
            assert tracker.entry(pid, cid) == entry


class TestTestAllProviders:
    @pytest.mark.asyncio
    async def test_probes_every_provider(
        self,
        provider_configs: list[ProviderConfig],
        clock: FakeClock,
    ) -> None:
        adapters = {
            "alpha": FakeAdapter("alpha"),
            "beta": FakeAdapter("beta", healthy=False),
            "gamma": FakeAdapter("gamma"),
        }
        service = _service(provider_configs, adapters, clock)

        assert await service.test_all_providers() == {
            "alpha": True,
            "beta": False,
            "gamma": True,
        }

    @pytest.mark.asyncio
    async def test_probe_ignores_and_preserves_cooldowns(
        self,
        service: LLMService,
        adapters: dict[str, FakeAdapter],
    ) -> None:
        tracker = service.gateway.tracker
        for idx in (0, 1):
            tracker.record_failure(
                "alpha", f"alpha:key-{idx}", FailureKind.RATE_LIMITED
            )
        before = tracker.entry("alpha", "alpha:key-0")

        results = await service.test_all_providers()

        assert results["alpha"] is True
        assert adapters["alpha"].probes == ["alpha:key-0"]
        assert tracker.entry("alpha", "alpha:key-0") == before
        assert service.get_provider_status()["alpha"].available is False

    @pytest.mark.asyncio
    async def test_provider_without_credentials_is_false(self, clock: FakeClock) -> None:
        configs = [
            ProviderConfig("alpha", api_keys=(), priority=1),
            ProviderConfig("beta", api_keys=("k",), priority=2),
        ]
        adapters = {"alpha": FakeAdapter("alpha"), "beta": FakeAdapter("beta")}
        service = _service(configs, adapters, clock)

        assert await service.test_all_providers() == {"alpha": False, "beta": True}
        assert adapters["alpha"].probes == []


class TestOperations:
    @pytest.mark.asyncio
    async def test_reset_provider_restores_availability(
        self, service: LLMService
    ) -> None:
        tracker = service.gateway.tracker
        for idx in (0, 1):
            tracker.record_failure("alpha", f"alpha:key-{idx}", FailureKind.AUTH_FAILURE)
        assert service.get_provider_status()["alpha"].available is False

        assert service.reset_provider("alpha") == 2
        assert service.get_provider_status()["alpha"].available is True

    def test_reset_unknown_provider(self, service: LLMService) -> None:
        with pytest.raises(KeyError):
            service.reset_provider("unknown")

    @pytest.mark.asyncio
    async def test_stats_cover_all_providers(
        self, service: LLMService, messages: list[ChatMessage]
    ) -> None:
        await service.generate_response(messages)
        stats = {h.provider_id: h for h in service.get_provider_stats()}
        assert stats["alpha"].total_successes == 1
        assert stats["beta"].total_requests == 0

    @pytest.mark.asyncio
    async def test_aclose_closes_adapters(
        self, service: LLMService, adapters: dict[str, FakeAdapter]
    ) -> None:
        await service.aclose()
        assert all(a.closed for a in adapters.values())


class TestFromSettings:
    def test_builds_registry_from_settings(self) -> None:
        settings = get_settings(
            _env_file=None,
            gemini_api_key_1="gem-key-1",
            gemini_api_key_2="your_gemini_api_key",
            openai_api_keys="sk-one, sk-two",
            ai_provider_priority="openai,gemini",
            ollama_enabled=True,
        )
        service = LLMService.from_settings(settings)

        chain = [c.provider_id for c in service.gateway.router.get_fallback_chain()]
        assert chain[:2] == ["openai", "gemini"]
        assert "ollama" in chain
        assert "anthropic" not in chain

        status = service.get_provider_status()
        assert status["anthropic"].available is False
        assert status["anthropic"].reason.value == "no_credentials"
        assert service.gateway.key_manager("gemini").key_count == 1  # type: ignore[union-attr]
        assert service.gateway.key_manager("openai").key_count == 2  # type: ignore[union-attr]
        assert service.default_options.max_tokens == settings.ai_max_tokens


    @pytest.mark.asyncio
    async def test_injected_client_outlives_service(self) -> None:
        client = httpx.AsyncClient()
        settings = get_settings(_env_file=None, openai_api_key_1="sk-one")
        service = LLMService.from_settings(settings, client=client)

        await service.aclose()

        assert client.is_closed is False
        await client.aclose()
