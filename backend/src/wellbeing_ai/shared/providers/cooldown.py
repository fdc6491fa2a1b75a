"""Cooldown tracker — suspends (provider, credential) pairs after failures.

State per key:
    failures == 0, no expiry      → eligible
    transient failure             → suspended for floor * multiplier**(n-1), capped
    rate limited                  → suspended for a fixed, longer window
    auth failure                  → disabled until an operator reset

An expiry in the past reads exactly like "no cooldown"; nothing has to run
for a credential to become eligible again.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator

import structlog

from wellbeing_ai.domain.enums import FailureKind
from wellbeing_ai.shared.observability.metrics import CREDENTIAL_COOLDOWNS
from wellbeing_ai.shared.providers.types import CooldownEntry, CooldownPolicy

logger = structlog.get_logger(__name__)

_Key = tuple[str, str]


@dataclass
class _Slot:
    lock: threading.Lock
    consecutive_failures: int = 0
    expires_at: float | None = None
    reason: FailureKind | None = None
    disabled: bool = False
    last_failure_at: float = 0.0
    # Set when sweep drops the slot; writers holding it must fetch a new one.
    retired: bool = False

    def clear(self) -> bool:
        had_state = bool(self.consecutive_failures or self.expires_at or self.disabled)
        self.consecutive_failures = 0
        self.expires_at = None
        self.reason = None
        self.disabled = False
        return had_state


class CooldownTracker:
    """Process-wide failure/cooldown state keyed by (provider, credential)."""

    def __init__(
        self,
        policy: CooldownPolicy | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._policy = policy or CooldownPolicy()
        self._clock = clock
        self._slots: dict[_Key, _Slot] = {}
        # Guards slot creation and sweeping only; per-key locks guard the values.
        self._registry_lock = threading.Lock()

    @property
    def policy(self) -> CooldownPolicy:
        return self._policy

    def now(self) -> float:
        return self._clock()

    # ── Policy ───────────────────────────────────────────────
    def cooldown_duration(
        self,
        consecutive_failures: int,
        kind: FailureKind,
        *,
        retry_after: float | None = None,
    ) -> float | None:
        """Seconds of suspension for the n-th consecutive failure.

        Returns ``None`` for failures that never auto-recover.
        """
        p = self._policy
        if kind is FailureKind.AUTH_FAILURE:
            return None
        if kind is FailureKind.RATE_LIMITED:
            hinted = min(retry_after, p.ceiling_s) if retry_after else 0.0
            return max(p.rate_limit_s, hinted)
        n = max(consecutive_failures, 1)
        return min(p.ceiling_s, p.floor_s * (p.multiplier ** (n - 1)))

    # ── Queries ──────────────────────────────────────────────
    def is_suspended(self, provider_id: str, credential_id: str) -> bool:
        slot = self._slots.get((provider_id, credential_id))
        if slot is None:
            return False
        with slot.lock:
            if slot.disabled:
                return True
            return slot.expires_at is not None and slot.expires_at > self._clock()

    def entry(self, provider_id: str, credential_id: str) -> CooldownEntry:
        slot = self._slots.get((provider_id, credential_id))
        if slot is None:
            return CooldownEntry(provider_id=provider_id, credential_id=credential_id)
        with slot.lock:
            return CooldownEntry(
                provider_id=provider_id,
                credential_id=credential_id,
                consecutive_failures=slot.consecutive_failures,
                expires_at=slot.expires_at,
                reason=slot.reason,
                disabled=slot.disabled,
            )

    # ── Mutations ────────────────────────────────────────────
    def record_failure(
        self,
        provider_id: str,
        credential_id: str,
        kind: FailureKind,
        *,
        retry_after: float | None = None,
    ) -> CooldownEntry:
        """Count a failure and extend the suspension window.

        The stored expiry only ever moves forward: concurrent failures each
        compute their own window and the later of the two wins.
        """
        with self._locked_slot(provider_id, credential_id) as slot:
            now = self._clock()
            slot.consecutive_failures += 1
            slot.last_failure_at = now
            slot.reason = kind
            duration = self.cooldown_duration(
                slot.consecutive_failures, kind, retry_after=retry_after
            )
            if duration is None:
                slot.disabled = True
            else:
                candidate = now + duration
                if slot.expires_at is None or candidate > slot.expires_at:
                    slot.expires_at = candidate
            failures = slot.consecutive_failures
            expires_at = slot.expires_at
            disabled = slot.disabled

        CREDENTIAL_COOLDOWNS.labels(provider=provider_id, reason=kind.value).inc()
        if disabled:
            logger.error(
                "credential_disabled",
                provider=provider_id,
                credential=credential_id,
                reason=kind.value,
            )
        else:
            logger.warning(
                "credential_cooldown",
                provider=provider_id,
                credential=credential_id,
                reason=kind.value,
                failures=failures,
                cooldown_s=round(duration or 0.0, 1),
            )
        return CooldownEntry(
            provider_id=provider_id,
            credential_id=credential_id,
            consecutive_failures=failures,
            expires_at=expires_at,
            reason=kind,
            disabled=disabled,
        )

    def record_success(self, provider_id: str, credential_id: str) -> None:
        """Reset the failure streak; an already-stored expiry is left alone."""
        slot = self._slots.get((provider_id, credential_id))
        if slot is None:
            return
        with slot.lock:
            if slot.consecutive_failures:
                logger.info(
                    "credential_recovered",
                    provider=provider_id,
                    credential=credential_id,
                    previous_failures=slot.consecutive_failures,
                )
            slot.consecutive_failures = 0
            if slot.expires_at is not None and slot.expires_at <= self._clock():
                slot.reason = None

    def reset(self, provider_id: str, credential_id: str | None = None) -> int:
        """Operator override: clear state, including auth disables.

        Slots are cleared in place under their own lock so a failure being
        recorded concurrently is never written to a dropped slot.  Returns
        the number of entries that held any state.
        """
        with self._registry_lock:
            slots = [
                slot
                for k, slot in self._slots.items()
                if k[0] == provider_id and (credential_id is None or k[1] == credential_id)
            ]
        cleared = 0
        for slot in slots:
            with slot.lock:
                cleared += slot.clear()
        logger.info(
            "cooldown_force_reset",
            provider=provider_id,
            credential=credential_id,
            cleared=cleared,
        )
        return cleared

    def sweep(self, *, idle_s: float | None = None) -> int:
        """Drop entries whose cooldown ended more than ``idle_s`` ago.

        Disabled entries are kept. Defaults to the policy ceiling.
        """
        idle = self._policy.ceiling_s if idle_s is None else idle_s
        now = self._clock()
        removed = 0
        with self._registry_lock:
            for key, slot in list(self._slots.items()):
                with slot.lock:
                    if slot.disabled:
                        continue
                    ended = slot.expires_at if slot.expires_at is not None else slot.last_failure_at
                    if ended + idle <= now:
                        slot.retired = True
                        del self._slots[key]
                        removed += 1
        if removed:
            logger.debug("cooldown_sweep", removed=removed)
        return removed

    @contextmanager
    def _locked_slot(self, provider_id: str, credential_id: str) -> Iterator[_Slot]:
        """Yield the live slot for a key with its lock held."""
        while True:
            slot = self._slot(provider_id, credential_id)
            with slot.lock:
                if not slot.retired:
                    yield slot
                    return

    def _slot(self, provider_id: str, credential_id: str) -> _Slot:
        key = (provider_id, credential_id)
        slot = self._slots.get(key)
        if slot is not None:
            return slot
        with self._registry_lock:
            return self._slots.setdefault(key, _Slot(lock=threading.Lock()))
