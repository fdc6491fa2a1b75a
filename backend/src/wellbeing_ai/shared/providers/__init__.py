"""Multi-provider resilience framework.

Provides credential rotation, cooldown tracking, deterministic failover and
health statistics for the LLM provider adapters.
"""

from wellbeing_ai.shared.providers.types import (
    CooldownEntry,
    CooldownPolicy,
    CredentialState,
    ProviderConfig,
    ProviderHealth,
    ProviderStatusEntry,
)
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.health import ProviderHealthTracker
from wellbeing_ai.shared.providers.key_manager import (
    Credential,
    KeyManager,
    sanitize_credentials,
)
from wellbeing_ai.shared.providers.router import ProviderRouter
from wellbeing_ai.shared.providers.gateway import ResilientProviderGateway

__all__ = [
    "CooldownEntry",
    "CooldownPolicy",
    "CooldownTracker",
    "Credential",
    "CredentialState",
    "KeyManager",
    "ProviderConfig",
    "ProviderHealth",
    "ProviderHealthTracker",
    "ProviderRouter",
    "ProviderStatusEntry",
    "ResilientProviderGateway",
    "sanitize_credentials",
]
