"""Core types for the multi-provider resilience framework."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from wellbeing_ai.domain.enums import FailureKind, UnavailableReason


@dataclass(frozen=True)
class ProviderConfig:
    """Static configuration for a single provider.

    Attributes:
        provider_id:  Unique, stable identifier (e.g. "gemini", "ollama").
        display_name: Human-readable name reported in status snapshots.
        api_keys:     Sanitized pool of credentials to rotate through.
        priority:     Lower = tried first; ties keep registration order.
        requires_credential: False for local servers that take no key.
        timeout_s:    Default per-attempt timeout in seconds.
        metadata:     Extra config (model name, base URL, API version).
    """

    provider_id: str
    display_name: str = ""
    api_keys: tuple[str, ...] = ()
    priority: int = 10
    requires_credential: bool = True
    timeout_s: float = 30.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.display_name or self.provider_id

    @property
    def has_keys(self) -> bool:
        if not self.requires_credential:
            return True
        return bool(self.api_keys) and any(k.strip() for k in self.api_keys)


@dataclass(frozen=True)
class CooldownPolicy:
    """Suspension durations applied after a failed call.

    Transient failures back off exponentially from ``floor_s`` up to
    ``ceiling_s``; rate limits get a fixed, longer window.
    """

    floor_s: float = 5.0
    ceiling_s: float = 300.0
    multiplier: float = 2.0
    rate_limit_s: float = 60.0

    def __post_init__(self) -> None:
        if self.floor_s <= 0:
            raise ValueError("floor_s must be positive")
        if self.ceiling_s < self.floor_s:
            raise ValueError("ceiling_s must be >= floor_s")
        if self.multiplier < 1.0:
            raise ValueError("multiplier must be >= 1")
        if self.rate_limit_s <= 0:
            raise ValueError("rate_limit_s must be positive")


@dataclass(frozen=True)
class CooldownEntry:
    """Read-only view of the tracker state for one (provider, credential)."""

    provider_id: str
    credential_id: str
    consecutive_failures: int = 0
    expires_at: float | None = None
    reason: FailureKind | None = None
    disabled: bool = False

    def is_active(self, now: float) -> bool:
        return self.disabled or (self.expires_at is not None and self.expires_at > now)


@dataclass(frozen=True)
class CredentialState:
    """Per-credential eligibility as seen by the key manager."""

    credential_id: str
    eligible: bool
    consecutive_failures: int = 0
    cooldown_expires_at: float | None = None
    disabled: bool = False


def _iso(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ProviderStatusEntry:
    """Point-in-time availability of one provider (never stored)."""

    provider_id: str
    name: str
    available: bool
    cooldown_active: bool = False
    cooldown_expires_at: float | None = None
    reason: UnavailableReason | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "available": self.available,
            "name": self.name,
            "cooldownActive": self.cooldown_active,
            "cooldownExpiresAt": _iso(self.cooldown_expires_at),
            "reason": self.reason.value if self.reason else None,
        }


@dataclass
class ProviderHealth:
    """Rolling production statistics for a provider."""

    provider_id: str
    total_requests: int = 0
    total_successes: int = 0
    total_failures: int = 0
    consecutive_failures: int = 0
    success_rate: float = 1.0
    latency_p50_ms: float = 0.0
    latency_p95_ms: float = 0.0
    latency_p99_ms: float = 0.0
    last_failure_kind: str | None = None
    last_failure_time: float | None = None
    failures_by_kind: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_id": self.provider_id,
            "total_requests": self.total_requests,
            "total_successes": self.total_successes,
            "total_failures": self.total_failures,
            "consecutive_failures": self.consecutive_failures,
            "success_rate": self.success_rate,
            "latency_p50_ms": self.latency_p50_ms,
            "latency_p95_ms": self.latency_p95_ms,
            "latency_p99_ms": self.latency_p99_ms,
            "last_failure_kind": self.last_failure_kind,
            "failures_by_kind": dict(self.failures_by_kind),
        }
