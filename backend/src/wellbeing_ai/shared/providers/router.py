"""Provider router — deterministic fallback order over registered providers.

Providers are ordered by ``priority`` ascending; equal priorities keep their
registration order.  Providers with no usable credentials are dropped once,
at construction, and reported as permanently unavailable.
"""

from __future__ import annotations

from typing import Sequence

import structlog

from wellbeing_ai.shared.providers.types import ProviderConfig

logger = structlog.get_logger(__name__)


class ProviderRouter:
    """Computes the fallback chain for a request."""

    def __init__(self, providers: Sequence[ProviderConfig]) -> None:
        self._providers = list(providers)
        ids = [p.provider_id for p in self._providers]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate provider ids: {ids}")

        # sorted() is stable, so ties keep registration order.
        ordered = sorted(self._providers, key=lambda p: p.priority)
        self._chain = [p for p in ordered if p.has_keys]
        self._excluded = [p.provider_id for p in ordered if not p.has_keys]
        if self._excluded:
            logger.warning("providers_excluded_no_credentials", providers=self._excluded)
        logger.info(
            "provider_chain_built",
            chain=[p.provider_id for p in self._chain],
        )

    @property
    def providers(self) -> list[ProviderConfig]:
        """All registered providers, in registration order."""
        return list(self._providers)

    @property
    def excluded(self) -> list[str]:
        return list(self._excluded)

    def get(self, provider_id: str) -> ProviderConfig | None:
        return next((p for p in self._providers if p.provider_id == provider_id), None)

    def get_fallback_chain(self, *, exclude: set[str] | None = None) -> list[ProviderConfig]:
        """Routable providers in attempt order."""
        exclude = exclude or set()
        return [p for p in self._chain if p.provider_id not in exclude]
