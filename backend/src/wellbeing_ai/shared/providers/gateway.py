"""Resilient provider gateway — the fallback loop behind every generation.

Composes ProviderRouter, KeyManager and CooldownTracker.  Callers hand in a
request function; the gateway walks the fallback chain, picks a credential
per provider, bounds each attempt by a timeout and by the remaining call
budget, and records the outcome.  It never retries the same provider within
one call; backoff lives entirely in the cooldown tracker.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable, Sequence, TypeVar

import structlog

from wellbeing_ai.domain.enums import UnavailableReason
from wellbeing_ai.domain.exceptions import (
    AllProvidersExhaustedError,
    InvalidResponseError,
    ProviderError,
    ProviderFailure,
    ProviderTimeoutError,
    UnknownProviderError,
)
from wellbeing_ai.shared.observability.metrics import (
    GENERATION_EXHAUSTED,
    PROVIDER_ATTEMPTS,
    PROVIDER_LATENCY,
)
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.health import ProviderHealthTracker
from wellbeing_ai.shared.providers.key_manager import Credential, KeyManager
from wellbeing_ai.shared.providers.router import ProviderRouter
from wellbeing_ai.shared.providers.types import (
    ProviderConfig,
    ProviderHealth,
    ProviderStatusEntry,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RequestFn = Callable[[ProviderConfig, Credential], Awaitable[T]]


class ResilientProviderGateway:
    """Autonomous failover layer that wraps any async provider call.

    Usage::

        gateway = ResilientProviderGateway(providers=[...])

        result = await gateway.execute(
            lambda cfg, cred: adapter_for(cfg).generate(messages, options, cred),
            attempt_timeout_s=30.0,
            budget_s=90.0,
        )
    """

    def __init__(
        self,
        providers: Sequence[ProviderConfig],
        *,
        tracker: CooldownTracker | None = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._router = ProviderRouter(providers)
        self._tracker = tracker or CooldownTracker()
        self._monotonic = monotonic

        self._key_managers: dict[str, KeyManager] = {}
        self._health_trackers: dict[str, ProviderHealthTracker] = {}
        for cfg in self._router.providers:
            pid = cfg.provider_id
            self._key_managers[pid] = KeyManager(cfg, self._tracker)
            self._health_trackers[pid] = ProviderHealthTracker(pid)

    @property
    def tracker(self) -> CooldownTracker:
        return self._tracker

    @property
    def router(self) -> ProviderRouter:
        return self._router

    def key_manager(self, provider_id: str) -> KeyManager | None:
        return self._key_managers.get(provider_id)

    # ── Main entry-point ─────────────────────────────────────
    async def execute(
        self,
        request_fn: RequestFn[T],
        *,
        attempt_timeout_s: float | None = None,
        budget_s: float | None = None,
    ) -> T:
        """Run ``request_fn`` against providers in fallback order.

        Args:
            request_fn: Async callable receiving (ProviderConfig, Credential).
            attempt_timeout_s: Per-attempt bound; defaults to the provider's
                configured ``timeout_s``.
            budget_s: Wall-clock cap across all attempts of this call.

        Raises:
            AllProvidersExhaustedError: every provider was skipped or failed.
        """
        failures: list[ProviderFailure] = []
        skipped: dict[str, str] = {
            pid: UnavailableReason.NO_CREDENTIALS.value for pid in self._router.excluded
        }
        deadline = self._monotonic() + budget_s if budget_s is not None else None

        for cfg in self._router.get_fallback_chain():
            pid = cfg.provider_id
            km = self._key_managers[pid]

            timeout = attempt_timeout_s if attempt_timeout_s is not None else cfg.timeout_s
            if deadline is not None:
                remaining = deadline - self._monotonic()
                if remaining <= 0:
                    skipped[pid] = UnavailableReason.BUDGET_EXHAUSTED.value
                    continue
                timeout = min(timeout, remaining)

            credential = km.next_eligible()
            if credential is None:
                skipped[pid] = self._skip_reason(km).value
                logger.debug("provider_skipped", provider=pid, reason=skipped[pid])
                continue

            result = await self._attempt(cfg, km, credential, request_fn, timeout, failures)
            if result is not _SENTINEL:
                if failures:
                    logger.info(
                        "provider_failover_success",
                        provider=pid,
                        failed_providers=[f.provider for f in failures],
                    )
                return result  # type: ignore[return-value]

        GENERATION_EXHAUSTED.inc()
        logger.error(
            "all_providers_exhausted",
            failures={f.provider: f.kind.value for f in failures},
            skipped=skipped,
        )
        raise AllProvidersExhaustedError(failures, skipped)

    # ── Single attempt ───────────────────────────────────────
    async def _attempt(
        self,
        cfg: ProviderConfig,
        km: KeyManager,
        credential: Credential,
        request_fn: RequestFn[T],
        timeout: float,
        failures: list[ProviderFailure],
    ) -> T | object:
        pid = cfg.provider_id
        tracker = self._health_trackers[pid]
        log = logger.bind(provider=pid, credential=credential.credential_id)

        start = self._monotonic()
        try:
            result = await asyncio.wait_for(request_fn(cfg, credential), timeout=timeout)
        except asyncio.CancelledError:
            # Caller went away; not the provider's fault.
            PROVIDER_ATTEMPTS.labels(provider=pid, outcome="cancelled").inc()
            log.info("provider_request_cancelled")
            raise
        except ProviderError as exc:
            error = exc
        except asyncio.TimeoutError:
            error = ProviderTimeoutError(pid, f"Timeout after {timeout:.1f}s")
        except Exception as exc:  # noqa: BLE001
            error = UnknownProviderError(pid, f"{type(exc).__name__}: {exc}")
        else:
            latency_ms = (self._monotonic() - start) * 1000
            km.mark_success(credential)
            tracker.record_success(latency_ms)
            PROVIDER_ATTEMPTS.labels(provider=pid, outcome="success").inc()
            PROVIDER_LATENCY.labels(provider=pid).observe(latency_ms / 1000)
            log.info("provider_request_success", latency_ms=round(latency_ms, 1))
            return result

        latency_ms = (self._monotonic() - start) * 1000
        if error.charges_credential:
            km.mark_failure(credential, error)
        tracker.record_failure(error.kind, latency_ms)
        PROVIDER_ATTEMPTS.labels(provider=pid, outcome=error.kind.value).inc()
        PROVIDER_LATENCY.labels(provider=pid).observe(latency_ms / 1000)
        failures.append(
            ProviderFailure(
                provider=pid,
                kind=error.kind,
                message=error.message,
                credential_id=credential.credential_id,
                latency_ms=round(latency_ms, 1),
            )
        )
        log.warning(
            "provider_request_failed",
            kind=error.kind.value,
            error=error.message,
            latency_ms=round(latency_ms, 1),
            charged=error.charges_credential,
            payload_size=(
                error.payload_size if isinstance(error, InvalidResponseError) else None
            ),
        )
        return _SENTINEL

    @staticmethod
    def _skip_reason(km: KeyManager) -> UnavailableReason:
        if km.key_count == 0:
            return UnavailableReason.NO_CREDENTIALS
        states = km.credential_states()
        if all(s.disabled for s in states):
            return UnavailableReason.AUTH_FAILED
        return UnavailableReason.COOLDOWN

    # ── Status observation (no I/O) ──────────────────────────
    def get_status(self) -> dict[str, ProviderStatusEntry]:
        """Availability snapshot for every registered provider."""
        status: dict[str, ProviderStatusEntry] = {}
        for cfg in self._router.providers:
            pid = cfg.provider_id
            km = self._key_managers[pid]
            if not cfg.has_keys or km.key_count == 0:
                status[pid] = ProviderStatusEntry(
                    provider_id=pid,
                    name=cfg.name,
                    available=False,
                    reason=UnavailableReason.NO_CREDENTIALS,
                )
                continue

            states = km.credential_states()
            if any(s.eligible for s in states):
                status[pid] = ProviderStatusEntry(provider_id=pid, name=cfg.name, available=True)
                continue

            expiries = [s.cooldown_expires_at for s in states if s.cooldown_expires_at is not None]
            if expiries:
                status[pid] = ProviderStatusEntry(
                    provider_id=pid,
                    name=cfg.name,
                    available=False,
                    cooldown_active=True,
                    cooldown_expires_at=min(expiries),
                    reason=UnavailableReason.COOLDOWN,
                )
            else:
                status[pid] = ProviderStatusEntry(
                    provider_id=pid,
                    name=cfg.name,
                    available=False,
                    reason=UnavailableReason.AUTH_FAILED,
                )
        return status

    def get_health(self, provider_id: str) -> ProviderHealth | None:
        tracker = self._health_trackers.get(provider_id)
        return tracker.health if tracker else None

    def get_all_health(self) -> list[ProviderHealth]:
        return [t.health for t in self._health_trackers.values()]

    def reset_provider(self, provider_id: str) -> int:
        """Admin reset — clears cooldowns and auth disables for a provider."""
        km = self._key_managers.get(provider_id)
        if km is None:
            raise KeyError(provider_id)
        cleared = km.reset()
        logger.info("provider_admin_reset", provider=provider_id, cleared=cleared)
        return cleared


# Sentinel for "no result"
_SENTINEL = object()
