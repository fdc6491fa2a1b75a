"""Domain enumerations for the LLM orchestration layer."""

from __future__ import annotations

import enum


class ProviderKind(str, enum.Enum):
    """Closed set of backend families the orchestrator knows how to call."""

    GEMINI = "gemini"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    HUGGINGFACE = "huggingface"
    OLLAMA = "ollama"


class MessageRole(str, enum.Enum):
    """Speaker of a single chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class FailureKind(str, enum.Enum):
    """Uniform failure taxonomy surfaced by every provider adapter."""

    AUTH_FAILURE = "auth_failure"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"

    @property
    def is_recoverable(self) -> bool:
        """Auth failures stay down until an operator resets the credential."""
        return self is not FailureKind.AUTH_FAILURE


class UnavailableReason(str, enum.Enum):
    """Why a provider (or credential) is not currently eligible."""

    COOLDOWN = "cooldown"
    AUTH_FAILED = "auth_failed"
    NO_CREDENTIALS = "no_credentials"
    BUDGET_EXHAUSTED = "budget_exhausted"
