"""Integration tests for API endpoints using FastAPI TestClient."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from conftest import FakeProviderClient, failing
from northstar.adapters.outbound.event_log import InMemoryEventLog
from northstar.config import get_settings
from northstar.dependencies import configure_container, reset_container
from northstar.domain.exceptions import NoProviderConfiguredError
from northstar.domain.enums import ProviderId
from northstar.main import create_app
from northstar.shared.providers import ProviderRegistry, RequestEnvelope


def scripted_reply(envelope: RequestEnvelope) -> str:
    """Answer each caller the way a well-behaved model would."""
    if "sentiment" in envelope.system_prompt:
        return 'Here you go: {"sentiment": "positive", "score": 78}'
    if "insights" in envelope.system_prompt:
        return '["Take a short walk", "Drink water", "Call a friend", "Sleep early"]'
    if "crisis" in envelope.system_prompt:
        return '{"isCrisis": false, "confidence": 5, "recommendation": "Keep going."}'
    return "Small steps add up. Try one change this week."


def _providers(**overrides) -> list[FakeProviderClient]:
    return [
        overrides.get(pid.value) or FakeProviderClient(pid, [scripted_reply], model=f"{pid.value}-model")
        for pid in ProviderId
    ]


@pytest.fixture
def settings():
    return get_settings(_env_file=None, app_env="test", cors_origins=["*"])


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def providers():
    return _providers()


@pytest.fixture
def app(settings, providers, event_log):
    reset_container()
    configure_container(registry=ProviderRegistry(providers), event_log=event_log)
    yield create_app(settings)
    reset_container()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def unconfigured_client(settings):
    reset_container()
    clients = [FakeProviderClient(pid, api_key=None) for pid in ProviderId]
    configure_container(registry=ProviderRegistry(clients), event_log=InMemoryEventLog())
    with TestClient(create_app(settings)) as c:
        yield c
    reset_container()


class TestHealthEndpoints:
    def test_health_check(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["environment"] == "test"
        assert data["providers"] == {"reasoning": True, "narrative": True, "general": True}

    def test_health_degraded_without_providers(self, unconfigured_client):
        data = unconfigured_client.get("/api/v1/health").json()
        assert data["status"] == "degraded"
        assert not any(data["providers"].values())

    def test_metrics_endpoint(self, client):
        client.post("/api/v1/ai/sentiment", json={"text": "Great day"})
        resp = client.get("/api/v1/metrics")
        assert resp.status_code == 200
        assert b"http_requests_total" in resp.content
        assert b"ai_dispatch_outcomes_total" in resp.content
        assert b'endpoint="/api/v1/ai/sentiment"' in resp.content

    def test_metrics_label_keeps_path_parameters(self, client):
        client.post("/api/v1/providers/general/reset")
        resp = client.get("/api/v1/metrics")
        assert b'endpoint="/api/v1/providers/{provider_id}/reset"' in resp.content
        assert b'endpoint="/api/v1/providers/general/reset"' not in resp.content

    def test_metrics_disabled(self, providers, event_log):
        reset_container()
        configure_container(registry=ProviderRegistry(providers), event_log=event_log)
        settings = get_settings(_env_file=None, app_env="test", prometheus_enabled=False)
        with TestClient(create_app(settings)) as c:
            assert c.get("/api/v1/metrics").status_code == 404
            assert c.get("/api/v1/health").status_code == 200
        reset_container()

    def test_request_id_echoed(self, client):
        resp = client.get("/api/v1/health", headers={"X-Request-ID": "abc-123"})
        assert resp.headers["X-Request-ID"] == "abc-123"

    def test_malformed_request_id_replaced(self, client):
        resp = client.get("/api/v1/health", headers={"X-Request-ID": "bad id; drop table"})
        assert resp.headers["X-Request-ID"] != "bad id; drop table"
        assert len(resp.headers["X-Request-ID"]) == 32


class TestAIEndpoints:
    def test_sentiment(self, client):
        resp = client.post("/api/v1/ai/sentiment", json={"text": "Had a great day"})
        assert resp.status_code == 200
        assert resp.json() == {"sentiment": "positive", "score": 78}

    def test_sentiment_validation(self, client):
        resp = client.post("/api/v1/ai/sentiment", json={"text": ""})
        assert resp.status_code == 422

    def test_insights(self, client):
        resp = client.post("/api/v1/ai/insights", json={"context": "Busy week", "count": 2})
        assert resp.status_code == 200
        assert resp.json() == {"insights": ["Take a short walk", "Drink water"]}

    def test_insights_count_bounds(self, client):
        resp = client.post("/api/v1/ai/insights", json={"context": "Busy week", "count": 11})
        assert resp.status_code == 422

    def test_crisis_pattern(self, client, providers):
        resp = client.post("/api/v1/ai/crisis-check", json={"message": "I want to kill myself"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_crisis"] is True
        assert data["severity"] == "critical"
        assert data["type"] == "suicide"
        assert data["method"] == "pattern"
        assert data["resources"][0]["number"] == "988"
        assert all(not p.calls for p in providers)

    def test_crisis_model_negative(self, client, providers):
        resp = client.post("/api/v1/ai/crisis-check", json={"message": "Work has been a lot lately"})
        data = resp.json()
        assert data["is_crisis"] is False
        assert data["method"] == "ai"
        assert data["confidence"] == 5
        narrative = providers[1]
        assert len(narrative.calls) == 1

    def test_screening_follow_up(self, client):
        resp = client.post(
            "/api/v1/ai/screening-follow-up",
            json={
                "name": "PHQ-9",
                "pillar": "mental-health",
                "score": 12,
                "max_score": 27,
                "category": "Moderate",
                "recommendation": "Consider speaking with a counselor.",
            },
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "text": "Small steps add up. Try one change this week.",
            "model": "narrative-model",
            "provider": "narrative",
            "fallback": False,
        }

    def test_screening_rejects_unknown_pillar(self, client):
        resp = client.post(
            "/api/v1/ai/screening-follow-up",
            json={
                "name": "X",
                "pillar": "astrology",
                "score": 1,
                "max_score": 2,
                "category": "Low",
                "recommendation": "None",
            },
        )
        assert resp.status_code == 422

    def test_screening_score_above_max(self, client):
        resp = client.post(
            "/api/v1/ai/screening-follow-up",
            json={
                "name": "GAD-7",
                "pillar": "mental-health",
                "score": 30,
                "max_score": 21,
                "category": "Severe",
                "recommendation": "See a clinician.",
            },
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"

    def test_coach_with_override(self, client):
        resp = client.post(
            "/api/v1/ai/coach",
            json={"message": "Help me plan meals", "pillar": "nutrition", "provider": "general"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["provider"] == "general"
        assert data["degraded"] is False
        assert data["reason"] == "explicit override: general"


class TestFallbackAndUnavailable:
    @pytest.fixture
    def providers(self):
        return _providers(narrative=FakeProviderClient(ProviderId.NARRATIVE, [failing(ProviderId.NARRATIVE)]))

    def test_fallback_is_transparent(self, client, event_log):
        resp = client.post("/api/v1/ai/coach", json={"message": "Feeling stuck", "pillar": "social"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["provider"] == "reasoning"
        assert "served by fallback reasoning (skipped: narrative)" in data["reason"]

    def test_no_provider_coach_is_degraded(self, unconfigured_client):
        resp = unconfigured_client.post("/api/v1/ai/coach", json={"message": "hello"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["degraded"] is True
        assert data["text"] == "NorthStar AI is temporarily unavailable. Please try again soon."

    def test_no_provider_sentiment_is_neutral(self, unconfigured_client):
        resp = unconfigured_client.post("/api/v1/ai/sentiment", json={"text": "hello"})
        assert resp.status_code == 200
        assert resp.json() == {"sentiment": "neutral", "score": 50}

    def test_direct_dispatch_without_provider_is_503(self, unconfigured_client):
        async def direct_dispatch():
            raise NoProviderConfiguredError("reasoning task (score): reasoning")

        unconfigured_client.app.add_api_route("/api/v1/direct-dispatch", direct_dispatch)
        resp = unconfigured_client.get("/api/v1/direct-dispatch")
        assert resp.status_code == 503
        assert resp.json() == {
            "code": "AI_UNAVAILABLE",
            "message": "AI assistance is temporarily unavailable. Please try again soon.",
        }
        assert "reasoning" not in json.dumps(resp.json())

    def test_crisis_check_still_answers_without_providers(self, unconfigured_client):
        resp = unconfigured_client.post("/api/v1/ai/crisis-check", json={"message": "Long day"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_crisis"] is False
        assert data["method"] == "fallback"
        assert data["type"] == "error"

    def test_crisis_pattern_works_without_providers(self, unconfigured_client):
        resp = unconfigured_client.post("/api/v1/ai/crisis-check", json={"message": "He hit me"})
        assert resp.json()["type"] == "abuse"


class TestProviderAdmin:
    def test_provider_health(self, client):
        client.post("/api/v1/ai/sentiment", json={"text": "Nice"})
        resp = client.get("/api/v1/providers/health")
        assert resp.status_code == 200
        health = {h["provider_id"]: h for h in resp.json()}
        assert set(health) == {"reasoning", "narrative", "general"}
        assert health["reasoning"]["total_successes"] == 1
        assert health["reasoning"]["model"] == "reasoning-model"
        assert health["reasoning"]["circuit_state"] == "closed"
        assert health["general"]["total_requests"] == 0

    def test_reset_provider(self, client):
        resp = client.post("/api/v1/providers/Reasoning/reset")
        assert resp.status_code == 200
        assert resp.json() == {"status": "reset", "provider_id": "reasoning"}

    def test_reset_unknown_provider(self, client):
        resp = client.post("/api/v1/providers/oracle/reset")
        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"
