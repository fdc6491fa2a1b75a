"""Domain value objects — immutable, self-validating request/response types.

Value objects have *no identity*; two instances with equal fields are equal.
They enforce invariants at construction time so the orchestration layer can
trust their contents without re-checking.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.exceptions import ValidationError


# ═══════════════════════════════════════════════════════════════
#  Request side
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One role-tagged message of a conversation."""

    role: MessageRole
    content: str

    def __post_init__(self) -> None:
        if not isinstance(self.role, MessageRole):
            try:
                object.__setattr__(self, "role", MessageRole(str(self.role).lower()))
            except ValueError as exc:
                raise ValidationError(f"Unknown message role: {self.role!r}") from exc
        if not isinstance(self.content, str):
            raise ValidationError("Message content must be a string")

    @classmethod
    def system(cls, content: str) -> ChatMessage:
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> ChatMessage:
        return cls(MessageRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> ChatMessage:
        return cls(MessageRole.ASSISTANT, content)


@dataclass(frozen=True, slots=True)
class GenerationOptions:
    """Per-call generation knobs.

    ``timeout_s`` bounds a *single* provider attempt; the overall budget of a
    call across all fallback attempts is owned by the facade.
    """

    max_tokens: int = 512
    temperature: float = 0.7
    timeout_s: float = 30.0
    model: str | None = None

    def __post_init__(self) -> None:
        if self.max_tokens <= 0:
            raise ValidationError("max_tokens must be positive")
        if not 0.0 <= self.temperature <= 2.0:
            raise ValidationError("temperature must be within [0, 2]")
        if self.timeout_s <= 0:
            raise ValidationError("timeout_s must be positive")


@dataclass(frozen=True, slots=True)
class ConversationContext:
    """Opaque caller context; carried along but never interpreted here."""

    session_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════
#  Response side
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


@dataclass(frozen=True, slots=True)
class GenerationResponse:
    """Normalized result of a successful generation.

    Exactly one provider is credited per response; ``credential_id`` names
    the credential used (never the secret itself).
    """

    provider: str
    model: str
    content: str
    processing_time_ms: float = 0.0
    usage: TokenUsage | None = None
    finish_reason: str | None = None
    credential_id: str | None = None
    success: bool = True

    def with_timing(self, processing_time_ms: float) -> GenerationResponse:
        return replace(self, processing_time_ms=processing_time_ms)


@dataclass(frozen=True, slots=True)
class ProviderDescription:
    name: str
    default_model: str
