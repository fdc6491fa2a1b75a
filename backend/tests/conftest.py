"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import os
import sys
from collections import deque
from typing import Any, Sequence

import pytest

# Add src to path so imports work
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "../src")))

from wellbeing_ai.domain.exceptions import ProviderError
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
    ProviderDescription,
)
from wellbeing_ai.ports.outbound import LLMProviderPort
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.key_manager import Credential
from wellbeing_ai.shared.providers.types import CooldownPolicy, ProviderConfig


class FakeClock:
    """Manually advanced clock usable as both wall and monotonic time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(LLMProviderPort):
    """In-memory provider: pops scripted outcomes, records every call.

    An outcome is either a reply string, a ``ProviderError`` instance to
    raise, or ``"hang"`` to block until cancelled.
    """

    def __init__(
        self,
        provider_id: str,
        outcomes: Sequence[Any] = (),
        *,
        default: Any = "ok",
        healthy: bool = True,
    ) -> None:
        self.provider_id = provider_id
        self.outcomes: deque[Any] = deque(outcomes)
        self.default = default
        self.healthy = healthy
        self.calls: list[str] = []
        self.probes: list[str] = []
        self.closed = False

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse:
        self.calls.append(credential.credential_id)
        outcome = self.outcomes.popleft() if self.outcomes else self.default
        if isinstance(outcome, ProviderError):
            raise outcome
        if outcome == "hang":
            await asyncio.Event().wait()
        return GenerationResponse(
            provider=self.provider_id,
            model="fake-model",
            content=f"{outcome} from {self.provider_id}",
            credential_id=credential.credential_id,
        )

    async def check_health(self, credential: Credential, *, timeout_s: float = 10.0) -> bool:
        self.probes.append(credential.credential_id)
        return self.healthy

    def describe(self) -> ProviderDescription:
        return ProviderDescription(name=self.provider_id, default_model="fake-model")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(clock: FakeClock) -> CooldownTracker:
    return CooldownTracker(CooldownPolicy(), clock=clock)


@pytest.fixture
def provider_configs() -> list[ProviderConfig]:
    return [
        ProviderConfig(provider_id="alpha", api_keys=("key-a1", "key-a2"), priority=1),
        ProviderConfig(provider_id="beta", api_keys=("key-b1",), priority=2),
        ProviderConfig(provider_id="gamma", api_keys=("key-g1",), priority=3),
    ]


@pytest.fixture
def messages() -> list[ChatMessage]:
    return [
        ChatMessage.system("You are a supportive assistant."),
        ChatMessage.user("I had a rough day."),
    ]
