from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from src.renderme.api.main import app
from src.renderme.observability.metrics import sanitize_path

from .utils import token_headers


client = TestClient(app)


def test_metrics_endpoint_exposes_histogram():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"

    m = client.get("/metrics")
    assert m.status_code == 200
    body = m.text
    assert "# HELP renderme_request_latency_seconds" in body
    assert "# TYPE renderme_request_latency_seconds histogram" in body
    assert "renderme_request_latency_seconds_count" in body


def test_request_latency_uses_sanitized_path():
    labels = {"method": "GET", "path": "/api/documents", "status": "404"}
    before = REGISTRY.get_sample_value("renderme_request_latency_seconds_count", labels) or 0
    client.get("/api/documents/some-id", headers=token_headers())
    after = REGISTRY.get_sample_value("renderme_request_latency_seconds_count", labels)
    assert after == before + 1


def test_api_metrics_alias():
    assert client.get("/api/metrics").status_code == 200
    assert client.get("/api/health").json()["status"] == "ok"


def test_sanitize_path():
    assert sanitize_path("") == "/"
    assert sanitize_path("/") == "/"
    assert sanitize_path("/chat/abc123") == "/chat"
    assert sanitize_path("/api/chat/abc123?x=1") == "/api/chat"
    assert sanitize_path("/api") == "/api"


def test_intent_counter_increments():
    import asyncio

    from src.renderme.services.intent_classifier import classify_user_intent
    from src.renderme.services.llm import ScriptedModelClient

    from .utils import user_msg

    labels = {"intent": "mock_interview"}
    before = REGISTRY.get_sample_value("renderme_intent_total", labels) or 0
    asyncio.run(classify_user_intent([user_msg("模拟面试")], "deepseek/deepseek-chat", ScriptedModelClient()))
    assert REGISTRY.get_sample_value("renderme_intent_total", labels) == before + 1
