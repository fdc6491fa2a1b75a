"""Data Transfer Objects — Pydantic models for API boundaries.

DTOs handle serialisation, validation, and documentation.  They live in the
application layer because they are *not* domain objects — they adapt between
the external world and the domain.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from wellbeing_ai.domain.enums import MessageRole
from wellbeing_ai.domain.value_objects import (
    ChatMessage,
    ConversationContext,
    GenerationOptions,
    GenerationResponse,
)


# ═══════════════════════════════════════════════════════════════
#  Common
# ═══════════════════════════════════════════════════════════════
class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    environment: str = "development"


# ═══════════════════════════════════════════════════════════════
#  Generation
# ═══════════════════════════════════════════════════════════════
class ChatMessageIn(BaseModel):
    role: MessageRole
    content: str = Field(..., min_length=1, max_length=32_000)

    def to_domain(self) -> ChatMessage:
        return ChatMessage(self.role, self.content)


class GenerationOptionsIn(BaseModel):
    """Caller-tunable knobs.  The model is fixed per provider by configuration."""

    model_config = ConfigDict(extra="forbid")

    max_tokens: int | None = Field(None, ge=1, le=32_000)
    temperature: float | None = Field(None, ge=0.0, le=2.0)
    timeout_s: float | None = Field(None, gt=0, le=300)

    def to_domain(self, defaults: GenerationOptions) -> GenerationOptions:
        return GenerationOptions(
            max_tokens=self.max_tokens or defaults.max_tokens,
            temperature=(
                self.temperature if self.temperature is not None else defaults.temperature
            ),
            timeout_s=self.timeout_s or defaults.timeout_s,
            model=defaults.model,
        )


class ConversationContextIn(BaseModel):
    session_id: str | None = None
    user_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> ConversationContext:
        return ConversationContext(
            session_id=self.session_id,
            user_id=self.user_id,
            metadata=dict(self.metadata),
        )


class GenerateRequest(BaseModel):
    messages: list[ChatMessageIn] = Field(..., min_length=1)
    options: GenerationOptionsIn | None = None
    context: ConversationContextIn | None = None


class TokenUsageOut(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class GenerateResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    success: bool = True
    provider: str
    model: str
    content: str
    processing_time_ms: float
    finish_reason: str | None = None
    usage: TokenUsageOut | None = None

    @classmethod
    def from_domain(cls, response: GenerationResponse) -> GenerateResponse:
        usage = None
        if response.usage is not None:
            usage = TokenUsageOut(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return cls(
            success=response.success,
            provider=response.provider,
            model=response.model,
            content=response.content,
            processing_time_ms=round(response.processing_time_ms, 1),
            finish_reason=response.finish_reason,
            usage=usage,
        )


# ═══════════════════════════════════════════════════════════════
#  Providers
# ═══════════════════════════════════════════════════════════════
class ProviderResetResponse(BaseModel):
    provider: str
    cleared: int
    status: dict[str, Any]
