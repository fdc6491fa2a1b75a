"""Prometheus metrics for the orchestration service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram


# ── HTTP metrics ─────────────────────────────────────────────
HTTP_REQUESTS_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# ── Provider metrics ─────────────────────────────────────────
PROVIDER_ATTEMPTS = Counter(
    "llm_provider_attempts_total",
    "Provider call attempts by outcome",
    ["provider", "outcome"],  # success / <failure kind> / cancelled
)

PROVIDER_LATENCY = Histogram(
    "llm_provider_latency_seconds",
    "Latency of individual provider attempts",
    ["provider"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

CREDENTIAL_COOLDOWNS = Counter(
    "llm_credential_cooldowns_total",
    "Cooldowns applied to provider credentials",
    ["provider", "reason"],
)

GENERATION_EXHAUSTED = Counter(
    "llm_generation_exhausted_total",
    "Generation requests where every provider was skipped or failed",
)
