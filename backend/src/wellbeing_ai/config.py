"""Wellbeing AI Orchestrator — Application Configuration."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from wellbeing_ai.domain.enums import ProviderKind


class Environment(str, enum.Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Centralised, validated configuration loaded from environment / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Application ──────────────────────────────────────────
    app_name: str = "wellbeing-ai-orchestrator"
    app_env: Environment = Environment.DEVELOPMENT
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # ── Provider credentials ─────────────────────────────────
    # Numbered variables and comma-separated lists are merged per provider.
    gemini_api_key_1: str = ""
    gemini_api_key_2: str = ""
    gemini_api_key_3: str = ""
    gemini_api_keys: str = ""

    openai_api_key_1: str = ""
    openai_api_key_2: str = ""
    openai_api_key_3: str = ""
    openai_api_keys: str = ""

    anthropic_api_key_1: str = ""
    anthropic_api_key_2: str = ""
    anthropic_api_keys: str = ""

    huggingface_api_key: str = ""
    huggingface_api_key_1: str = ""
    huggingface_api_key_2: str = ""
    huggingface_api_keys: str = ""

    # ── Provider endpoints & models ──────────────────────────
    gemini_model: str = "gemini-1.5-flash"
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str = "https://api.openai.com/v1"
    anthropic_model: str = "claude-3-haiku-20240307"
    huggingface_model: str = "mistralai/Mistral-7B-Instruct-v0.2"
    ollama_model: str = "llama3"
    ollama_base_url: str = "http://localhost:11434"
    ollama_enabled: bool = True

    # ── Generation defaults ──────────────────────────────────
    ai_provider_priority: str = "gemini,openai,anthropic,huggingface,ollama"
    ai_max_tokens: int = 1000
    ai_temperature: float = 0.7
    ai_timeout_seconds: float = 30.0
    ai_total_budget_seconds: float = 90.0
    ai_health_probe_timeout_seconds: float = 10.0

    # ── Cooldown policy ──────────────────────────────────────
    cooldown_floor_seconds: float = 5.0
    cooldown_ceiling_seconds: float = 300.0
    cooldown_multiplier: float = 2.0
    rate_limit_cooldown_seconds: float = 60.0
    cooldown_sweep_interval_seconds: float = 0.0

    # ── Observability ────────────────────────────────────────
    prometheus_enabled: bool = True

    # ── Derived helpers ──────────────────────────────────────
    @property
    def is_production(self) -> bool:
        return self.app_env == Environment.PRODUCTION

    @property
    def provider_priority(self) -> list[str]:
        return [name.lower() for name in _split_csv(self.ai_provider_priority)]

    def credentials_for(self, kind: ProviderKind) -> list[str]:
        """Raw (unsanitized) credential strings configured for a provider."""
        numbered = {
            ProviderKind.GEMINI: [
                self.gemini_api_key_1,
                self.gemini_api_key_2,
                self.gemini_api_key_3,
            ],
            ProviderKind.OPENAI: [
                self.openai_api_key_1,
                self.openai_api_key_2,
                self.openai_api_key_3,
            ],
            ProviderKind.ANTHROPIC: [self.anthropic_api_key_1, self.anthropic_api_key_2],
            ProviderKind.HUGGINGFACE: [
                self.huggingface_api_key,
                self.huggingface_api_key_1,
                self.huggingface_api_key_2,
            ],
            ProviderKind.OLLAMA: [],
        }[kind]
        listed = getattr(self, f"{kind.value}_api_keys", "")
        return numbered + _split_csv(listed)

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("ai_provider_priority")
    @classmethod
    def _validate_priority(cls, v: str) -> str:
        known = {k.value for k in ProviderKind}
        names = [name.lower() for name in _split_csv(v)]
        unknown = [n for n in names if n not in known]
        if unknown:
            raise ValueError(f"Unknown providers in ai_provider_priority: {unknown}")
        if len(set(names)) != len(names):
            raise ValueError("ai_provider_priority must not repeat a provider")
        return v

    @field_validator(
        "ai_timeout_seconds",
        "ai_total_budget_seconds",
        "ai_health_probe_timeout_seconds",
        "cooldown_floor_seconds",
        "rate_limit_cooldown_seconds",
    )
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("ai_max_tokens")
    @classmethod
    def _positive_tokens(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("ai_max_tokens must be positive")
        return v

    @field_validator("ai_temperature")
    @classmethod
    def _temperature_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("ai_temperature must be within [0, 2]")
        return v

    @model_validator(mode="after")
    def _check_bounds(self) -> Settings:
        if self.cooldown_ceiling_seconds < self.cooldown_floor_seconds:
            raise ValueError("cooldown_ceiling_seconds must be >= cooldown_floor_seconds")
        if self.cooldown_multiplier < 1.0:
            raise ValueError("cooldown_multiplier must be >= 1")
        if self.ai_total_budget_seconds < self.ai_timeout_seconds:
            raise ValueError("ai_total_budget_seconds must be >= ai_timeout_seconds")
        if self.cooldown_sweep_interval_seconds < 0:
            raise ValueError("cooldown_sweep_interval_seconds must not be negative")
        return self


def get_settings(**overrides: Any) -> Settings:
    """Factory that allows test-time overrides."""
    return Settings(**overrides)
