"""Integration tests for API endpoints using FastAPI TestClient."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conftest import FakeAdapter, FakeClock

from wellbeing_ai.application.services import LLMService
from wellbeing_ai.config import get_settings
from wellbeing_ai.domain.enums import FailureKind
from wellbeing_ai.domain.exceptions import ProviderUnreachableError, RequestRejectedError
from wellbeing_ai.main import create_app
from wellbeing_ai.shared.providers.cooldown import CooldownTracker
from wellbeing_ai.shared.providers.gateway import ResilientProviderGateway
from wellbeing_ai.shared.providers.types import ProviderConfig


@pytest.fixture
def settings():
    return get_settings(_env_file=None, cors_origins=["*"])


@pytest.fixture
def adapters(provider_configs: list[ProviderConfig]) -> dict[str, FakeAdapter]:
    return {p.provider_id: FakeAdapter(p.provider_id) for p in provider_configs}


@pytest.fixture
def service(provider_configs, adapters, clock: FakeClock) -> LLMService:
    gateway = ResilientProviderGateway(
        provider_configs, tracker=CooldownTracker(clock=clock), monotonic=clock
    )
    return LLMService(gateway, adapters)


@pytest.fixture
def client(settings, service):
    app = create_app(settings, llm_service=service)
    with TestClient(app) as test_client:
        yield test_client


def _cool_down_everything(service: LLMService) -> None:
    tracker = service.gateway.tracker
    for cfg in service.gateway.router.providers:
        for idx in range(len(cfg.api_keys)):
            tracker.record_failure(
                cfg.provider_id, f"{cfg.provider_id}:key-{idx}", FailureKind.RATE_LIMITED
            )


class TestHealthEndpoints:
    def test_health_check(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert "version" in data

    def test_ready_when_a_provider_is_available(self, client):
        resp = client.get("/api/v1/health/ready", headers={"X-Request-ID": "req-123"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ready"
        assert data["requestId"] == "req-123"
        assert resp.headers["X-Request-ID"] == "req-123"
        assert data["checks"]["providers"]["alpha"]["available"] is True

    def test_degraded_when_everything_is_cooling(self, client, service):
        _cool_down_everything(service)
        resp = client.get("/api/v1/health/ready")
        assert resp.status_code == 503
        data = resp.json()
        assert data["status"] == "degraded"
        assert data["requestId"]
        assert data["checks"]["providers"]["beta"]["cooldownActive"] is True

    def test_metrics_endpoint(self, client):
        client.get("/api/v1/health")
        resp = client.get("/api/v1/metrics")
        assert resp.status_code == 200
        assert b"http_requests_total" in resp.content

    def test_metrics_can_be_disabled(self, service):
        settings = get_settings(_env_file=None, prometheus_enabled=False)
        with TestClient(create_app(settings, llm_service=service)) as test_client:
            assert test_client.get("/api/v1/metrics").status_code == 404
            assert test_client.get("/api/v1/health").status_code == 200


class TestProviderEndpoints:
    def test_status_snapshot(self, client):
        resp = client.get("/api/v1/providers/status")
        assert resp.status_code == 200
        assert resp.json()["gamma"] == {
            "available": True,
            "name": "gamma",
            "cooldownActive": False,
            "cooldownExpiresAt": None,
            "reason": None,
        }

    def test_probe_all(self, client, adapters):
        adapters["beta"].healthy = False
        resp = client.get("/api/v1/providers/test")
        assert resp.status_code == 200
        assert resp.json() == {"alpha": True, "beta": False, "gamma": True}

    def test_stats(self, client):
        client.post("/api/v1/ai/generate", json={"messages": [{"role": "user", "content": "hi"}]})
        resp = client.get("/api/v1/providers/stats")
        assert resp.status_code == 200
        stats = {s["provider_id"]: s for s in resp.json()}
        assert stats["alpha"]["total_successes"] == 1

    def test_reset(self, client, service):
        _cool_down_everything(service)
        resp = client.post("/api/v1/providers/alpha/reset")
        assert resp.status_code == 200
        data = resp.json()
        assert data["cleared"] == 2
        assert data["status"]["available"] is True

    def test_reset_unknown_provider(self, client):
        resp = client.post("/api/v1/providers/nope/reset")
        assert resp.status_code == 404


class TestGenerateEndpoint:
    def test_generate(self, client, adapters):
        resp = client.post(
            "/api/v1/ai/generate",
            json={
                "messages": [
                    {"role": "system", "content": "Be supportive."},
                    {"role": "user", "content": "I feel anxious."},
                ],
                "options": {"max_tokens": 200},
                "context": {"session_id": "abc"},
            },
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["provider"] == "alpha"
        assert data["content"] == "ok from alpha"
        assert "credential_id" not in data

    def test_invalid_role_rejected(self, client):
        resp = client.post(
            "/api/v1/ai/generate",
            json={"messages": [{"role": "narrator", "content": "hi"}]},
        )
        assert resp.status_code == 422

    def test_empty_messages_rejected(self, client):
        resp = client.post("/api/v1/ai/generate", json={"messages": []})
        assert resp.status_code == 422

    def test_blank_content_rejected(self, client):
        resp = client.post(
            "/api/v1/ai/generate",
            json={"messages": [{"role": "user", "content": "   "}]},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"

    def test_exhaustion_returns_503_with_kind_codes(self, client, adapters):
        for name, adapter in adapters.items():
            adapter.default = ProviderUnreachableError(name, "upstream said: secret detail")

        resp = client.post(
            "/api/v1/ai/generate",
            json={"messages": [{"role": "user", "content": "hello"}]},
        )

        assert resp.status_code == 503
        data = resp.json()
        assert data["code"] == "ALL_PROVIDERS_EXHAUSTED"
        assert data["details"]["failures"] == [
            {"provider": "alpha", "kind": "unreachable"},
            {"provider": "beta", "kind": "unreachable"},
            {"provider": "gamma", "kind": "unreachable"},
        ]
        assert "secret detail" not in resp.text

    def test_model_override_not_accepted(self, client, adapters):
        resp = client.post(
            "/api/v1/ai/generate",
            json={
                "messages": [{"role": "user", "content": "hi"}],
                "options": {"model": "typo-model"},
            },
        )
        assert resp.status_code == 422
        assert all(a.calls == [] for a in adapters.values())

    def test_system_only_conversation_rejected(self, client, adapters):
        resp = client.post(
            "/api/v1/ai/generate",
            json={"messages": [{"role": "system", "content": "Be supportive."}]},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"
        assert all(a.calls == [] for a in adapters.values())

    def test_rejected_requests_leave_providers_available(self, client, adapters):
        for name, adapter in adapters.items():
            adapter.default = RequestRejectedError(name, "HTTP 404: request rejected")

        for _ in range(3):
            resp = client.post(
                "/api/v1/ai/generate",
                json={"messages": [{"role": "user", "content": "hello"}]},
            )
            assert resp.status_code == 503

        status = client.get("/api/v1/providers/status").json()
        assert all(entry["available"] for entry in status.values())
        assert client.get("/api/v1/health/ready").status_code == 200
