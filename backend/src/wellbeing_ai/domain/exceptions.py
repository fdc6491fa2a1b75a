"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.

Provider failures carry an internal ``message`` for logs; only the ``kind``
code and provider name are ever meant to reach an end user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from wellbeing_ai.domain.enums import FailureKind


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Validation ──────────────────────────────────────────────
class ValidationError(DomainError):
    """Input failed domain validation rules."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


# ── Provider failures ───────────────────────────────────────
class ProviderError(DomainError):
    """A single provider attempt failed.

    Subclasses pin ``kind``; the cooldown policy is chosen from it.  Errors
    with ``charges_credential`` unset are caused by the request itself and
    leave the credential's cooldown state untouched.
    """

    kind: FailureKind = FailureKind.UNKNOWN
    charges_credential: bool = True

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"[{provider}] {message}", code=f"PROVIDER_{self.kind.name}")


class AuthFailureError(ProviderError):
    """Credential rejected or revoked; needs an operator."""

    kind = FailureKind.AUTH_FAILURE


class RateLimitedError(ProviderError):
    kind = FailureKind.RATE_LIMITED

    def __init__(
        self, provider: str, message: str, *, retry_after: float | None = None
    ) -> None:
        self.retry_after = retry_after
        super().__init__(provider, message)


class ProviderTimeoutError(ProviderError):
    kind = FailureKind.TIMEOUT


class ProviderUnreachableError(ProviderError):
    kind = FailureKind.UNREACHABLE


class InvalidResponseError(ProviderError):
    """Backend answered, but with empty or malformed content."""

    kind = FailureKind.INVALID_RESPONSE

    def __init__(self, provider: str, message: str, *, payload_size: int = 0) -> None:
        self.payload_size = payload_size
        super().__init__(provider, message)


class UnknownProviderError(ProviderError):
    kind = FailureKind.UNKNOWN


class RequestRejectedError(ProviderError):
    """Backend refused this particular request (bad model, malformed body)."""

    kind = FailureKind.UNKNOWN
    charges_credential = False


# ── Exhaustion ──────────────────────────────────────────────
@dataclass(frozen=True, slots=True)
class ProviderFailure:
    """One entry of the attempt log kept by the fallback gateway."""

    provider: str
    kind: FailureKind
    message: str
    credential_id: str | None = None
    latency_ms: float = 0.0

    def to_public_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "kind": self.kind.value}


class AllProvidersExhaustedError(DomainError):
    """Raised when every provider was skipped or failed for one request."""

    def __init__(
        self,
        failures: list[ProviderFailure] | None = None,
        skipped: dict[str, str] | None = None,
    ) -> None:
        self.failures = list(failures or [])
        self.skipped = dict(skipped or {})
        attempted = ", ".join(f"{f.provider}={f.kind.value}" for f in self.failures)
        super().__init__(
            f"All providers exhausted (attempted: {attempted or 'none'}; "
            f"skipped: {', '.join(self.skipped) or 'none'})",
            code="ALL_PROVIDERS_EXHAUSTED",
        )

    @property
    def errors(self) -> dict[str, str]:
        """Provider → failure kind for the last failure of each provider."""
        return {f.provider: f.kind.value for f in self.failures}

    def to_dict(self) -> dict[str, Any]:
        return {
            "failures": [f.to_public_dict() for f in self.failures],
            "skipped": dict(self.skipped),
        }
