"""Key manager — round-robin credential selection for a single provider.

Each credential is identified by ``<provider>:key-<index>``; the secret
itself never leaves the ``Credential`` object except to build the outbound
request.  Eligibility is decided by the shared ``CooldownTracker``.
"""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field
from typing import Iterable

import structlog

from wellbeing_ai.domain.exceptions import ProviderError
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.types import CredentialState, ProviderConfig

logger = structlog.get_logger(__name__)

_PLACEHOLDER_RE = re.compile(
    r"^(your[_\-].*|.*[_\-]here|<.*>|x{3,}|changeme|change[_\-]me|placeholder|"
    r"dummy|none|null|todo|tbd|sk-\.\.\.|\.\.\.)$",
    re.IGNORECASE,
)

LOCAL_CREDENTIAL = "local"


def is_placeholder(value: str) -> bool:
    return bool(_PLACEHOLDER_RE.match(value.strip()))


def sanitize_credentials(values: Iterable[str | None]) -> tuple[str, ...]:
    """Strip, de-duplicate and drop empty/placeholder credential strings."""
    keys: list[str] = []
    for raw in values:
        if raw is None:
            continue
        key = raw.strip()
        if not key or is_placeholder(key) or key in keys:
            continue
        keys.append(key)
    return tuple(keys)


@dataclass(frozen=True)
class Credential:
    """A single API credential owned by exactly one provider."""

    provider_id: str
    index: int
    secret: str = field(repr=False)

    @property
    def credential_id(self) -> str:
        return f"{self.provider_id}:key-{self.index}"

    @property
    def masked(self) -> str:
        if len(self.secret) <= 8:
            return "****"
        return f"****{self.secret[-4:]}"


class KeyManager:
    """Manages the pool of credentials for a single provider."""

    def __init__(self, config: ProviderConfig, tracker: CooldownTracker) -> None:
        self.provider_id = config.provider_id
        self._config = config
        self._tracker = tracker
        self._lock = threading.Lock()
        self._rr_index = 0

        if config.requires_credential:
            secrets = sanitize_credentials(config.api_keys)
        else:
            secrets = (LOCAL_CREDENTIAL,)
        self._keys: list[Credential] = [
            Credential(provider_id=self.provider_id, index=idx, secret=secret)
            for idx, secret in enumerate(secrets)
        ]
        if not self._keys:
            logger.warning("provider_without_credentials", provider=self.provider_id)

    # ── Selection ────────────────────────────────────────────
    def next_eligible(self) -> Credential | None:
        """Next credential not under cooldown, round-robin; ``None`` if exhausted."""
        with self._lock:
            count = len(self._keys)
            if count == 0:
                return None
            start_index = self._rr_index
            for i in range(count):
                idx = (start_index + i) % count
                cred = self._keys[idx]
                if self._tracker.is_suspended(self.provider_id, cred.credential_id):
                    continue
                self._rr_index = (idx + 1) % count
                return cred
            return None

    def probe_credential(self) -> Credential | None:
        """First configured credential regardless of cooldown (health probes only)."""
        return self._keys[0] if self._keys else None

    # ── Outcome recording ────────────────────────────────────
    def mark_success(self, credential: Credential) -> None:
        self._tracker.record_success(self.provider_id, credential.credential_id)

    def mark_failure(self, credential: Credential, error: ProviderError) -> None:
        self._tracker.record_failure(
            self.provider_id,
            credential.credential_id,
            error.kind,
            retry_after=getattr(error, "retry_after", None),
        )

    def reset(self) -> int:
        return self._tracker.reset(self.provider_id)

    # ── Observation ──────────────────────────────────────────
    def credential_states(self) -> list[CredentialState]:
        now = self._tracker.now()
        states: list[CredentialState] = []
        for cred in self._keys:
            entry = self._tracker.entry(self.provider_id, cred.credential_id)
            cooling = entry.expires_at is not None and entry.expires_at > now
            states.append(
                CredentialState(
                    credential_id=cred.credential_id,
                    eligible=not entry.is_active(now),
                    consecutive_failures=entry.consecutive_failures,
                    cooldown_expires_at=entry.expires_at if cooling else None,
                    disabled=entry.disabled,
                )
            )
        return states

    @property
    def any_eligible(self) -> bool:
        return any(
            not self._tracker.is_suspended(self.provider_id, c.credential_id)
            for c in self._keys
        )

    @property
    def key_count(self) -> int:
        return len(self._keys)
