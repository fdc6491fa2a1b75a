"""Outbound ports — interfaces that infrastructure adapters must implement.

These are the *driven* ports in hexagonal architecture.  The orchestration
layer depends only on these abstractions, never on a vendor's HTTP API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    GenerationOptions,
    GenerationResponse,
    ProviderDescription,
)
from wellbeing_ai.shared.providers.key_manager import Credential


# ═══════════════════════════════════════════════════════════════
#  LLM provider port
# ═══════════════════════════════════════════════════════════════
class LLMProviderPort(ABC):
    """Uniform capability over one backend family.

    ``generate`` raises a ``ProviderError`` subclass on failure and must not
    block longer than ``options.timeout_s``.
    """

    @abstractmethod
    async def generate(
        self,
        messages: Sequence[ChatMessage],
        options: GenerationOptions,
        credential: Credential,
    ) -> GenerationResponse: ...

    @abstractmethod
    async def check_health(self, credential: Credential, *, timeout_s: float = 10.0) -> bool:
        """Lightweight connectivity probe; never raises."""
        ...

    @abstractmethod
    def describe(self) -> ProviderDescription: ...

    async def close(self) -> None:  # noqa: B027
        """Release network resources (optional)."""
