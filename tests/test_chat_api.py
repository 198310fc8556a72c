import json
import time

from fastapi.testclient import TestClient

from src.renderme.api.main import app
from src.renderme.infrastructure.chat_store import get_chat_store

from .utils import data_url, make_pdf_bytes, token_headers

MODEL = "deepseek/deepseek-chat"


def _payload(chat_id="chat-1", message_id="m-1", text="Hello", **extra):
    body = {
        "id": chat_id,
        "message": {"id": message_id, "role": "user", "parts": [{"type": "text", "text": text}]},
        "selectedChatModel": MODEL,
    }
    body.update(extra)
    return body


def _events(response):
    frames = [line[len("data: "):] for line in response.text.split("\n") if line.startswith("data: ")]
    assert frames[-1] == "[DONE]"
    return [json.loads(f) for f in frames[:-1]]


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_chat_streams_sse_and_persists():
    with TestClient(app) as client:
        r = client.post("/chat", json=_payload(), headers=token_headers("user-1"))
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        events = _events(r)
        assert events[0]["type"] == "start"
        assert events[-1]["type"] == "finish"
        assistant_id = events[0]["messageId"]

        store = get_chat_store()
        assert _wait_for(lambda: len(store.list_messages("chat-1")) == 2)
        assert [m.id for m in store.list_messages("chat-1")] == ["m-1", assistant_id]
        assert _wait_for(lambda: store.get_chat("chat-1").title == "Test chat title")

        history = client.get("/chat/history", headers=token_headers("user-1")).json()
        assert [c["chat_id"] for c in history] == ["chat-1"]
        detail = client.get("/chat/chat-1", headers=token_headers("user-1")).json()
        assert [m["role"] for m in detail["messages"]] == ["user", "assistant"]


def test_chat_under_api_prefix_and_existing_history():
    with TestClient(app) as client:
        headers = token_headers("user-1")
        client.post("/api/chat", json=_payload(message_id="m-1"), headers=headers)
        store = get_chat_store()
        assert _wait_for(lambda: len(store.list_messages("chat-1")) == 2)

        r = client.post("/api/chat", json=_payload(message_id="m-2", text="And then?"), headers=headers)
        assert r.status_code == 200
        assert _wait_for(lambda: len(store.list_messages("chat-1")) == 4)
        # the title is only generated for the first message
        assert _wait_for(lambda: store.get_chat("chat-1").title == "Test chat title")


def test_chat_with_pdf_attachment():
    pdf = make_pdf_bytes("Resume of Li Lei React TypeScript five years of experience building dashboards")
    body = _payload(text="please review")
    body["message"]["parts"].append(
        {"type": "file", "url": data_url("application/pdf", pdf), "mediaType": "application/pdf", "filename": "cv.pdf"}
    )
    with TestClient(app) as client:
        r = client.post("/chat", json=body, headers=token_headers("user-1"))
        assert r.status_code == 200
        assert _events(r)[-1]["type"] == "finish"
        stored = get_chat_store().list_messages("chat-1")
        # the stored user message keeps the original file part
        assert stored[0].parts[1].type == "file"


def test_chat_requires_token():
    with TestClient(app) as client:
        assert client.post("/chat", json=_payload()).status_code == 401


def test_chat_public_mode_uses_guest(monkeypatch):
    monkeypatch.setenv("RENDERME_PUBLIC_MODE", "1")
    with TestClient(app) as client:
        r = client.post("/chat", json=_payload())
        assert r.status_code == 200
        assert get_chat_store().get_chat("chat-1").user_id == "guest"


def test_chat_rejects_both_message_and_messages():
    body = _payload(messages=[{"id": "x", "role": "user", "parts": [{"type": "text", "text": "hi"}]}])
    with TestClient(app) as client:
        assert client.post("/chat", json=body, headers=token_headers()).status_code == 422


def test_chat_rejects_unsupported_attachment_type():
    body = _payload()
    body["message"]["parts"].append({"type": "file", "url": "https://x.example/a.gif", "mediaType": "image/gif"})
    with TestClient(app) as client:
        assert client.post("/chat", json=body, headers=token_headers()).status_code == 422


def test_chat_owned_by_other_user_is_forbidden():
    with TestClient(app) as client:
        client.post("/chat", json=_payload(), headers=token_headers("owner"))
        r = client.post("/chat", json=_payload(message_id="m-2"), headers=token_headers("intruder"))
        assert r.status_code == 403
        assert client.get("/chat/chat-1", headers=token_headers("intruder")).status_code == 403
        assert client.delete("/chat/chat-1", headers=token_headers("intruder")).status_code == 403


def test_duplicate_message_id_conflicts():
    with TestClient(app) as client:
        headers = token_headers("user-1")
        client.post("/chat", json=_payload(), headers=headers)
        assert client.post("/chat", json=_payload(), headers=headers).status_code == 409


def test_daily_quota_returns_429(monkeypatch):
    monkeypatch.setenv("RENDERME_REGULAR_MESSAGES_PER_DAY", "1")
    with TestClient(app) as client:
        headers = token_headers("user-1")
        assert client.post("/chat", json=_payload(), headers=headers).status_code == 200
        r = client.post("/chat", json=_payload(chat_id="chat-2", message_id="m-2"), headers=headers)
        assert r.status_code == 429
        usage = client.get("/usage", headers=headers).json()
        assert usage == {"used": 1, "limit": 1, "remaining": 0, "user_type": "regular"}


def test_quota_can_be_disabled(monkeypatch):
    monkeypatch.setenv("RENDERME_REGULAR_MESSAGES_PER_DAY", "1")
    monkeypatch.setenv("RENDERME_QUOTA_DISABLED", "true")
    with TestClient(app) as client:
        headers = token_headers("user-1")
        client.post("/chat", json=_payload(), headers=headers)
        r = client.post("/chat", json=_payload(chat_id="chat-2", message_id="m-2"), headers=headers)
        assert r.status_code == 200


def test_tool_approval_continuation_via_api():
    from src.renderme.infrastructure.doc_store import get_document_store

    doc = get_document_store().create("user-1", "Plan", "text", "old")
    store = get_chat_store()
    store.save_chat("chat-1", "user-1", "Plan")
    user = {"id": "m-1", "role": "user", "parts": [{"type": "text", "text": "update my plan"}]}
    pending = {
        "id": "a-1",
        "role": "assistant",
        "parts": [
            {
                "type": "tool-invocation",
                "tool_call_id": "call-1",
                "tool_name": "updateDocument",
                "arguments": {"id": doc.document_id, "description": "new", "content": "new"},
                "state": "pending",
            }
        ],
    }
    from src.renderme.domain.chat_models import ChatMessage

    store.insert_messages("chat-1", [ChatMessage.model_validate(user), ChatMessage.model_validate(pending)])
    approved = json.loads(json.dumps(pending))
    approved["parts"][0]["state"] = "approved"

    with TestClient(app) as client:
        r = client.post(
            "/chat",
            json={"id": "chat-1", "messages": [user, approved], "selectedChatModel": MODEL},
            headers=token_headers("user-1"),
        )
        assert r.status_code == 200
        events = _events(r)
        assert events[0] == {"type": "start", "messageId": "a-1"}
        assert [e["type"] for e in events[1:3]] == ["tool-call-start", "tool-call-result"]
        assert _wait_for(lambda: store.list_messages("chat-1")[1].parts[0].state == "result")
        assert len(store.list_messages("chat-1")) == 2
        assert get_document_store().get(doc.document_id).content == "new"


def test_delete_chat():
    with TestClient(app) as client:
        headers = token_headers("user-1")
        client.post("/chat", json=_payload(), headers=headers)
        r = client.delete("/chat/chat-1", headers=headers)
        assert r.status_code == 200
        assert r.json() == {"status": "deleted", "chat_id": "chat-1"}
        assert client.get("/chat/chat-1", headers=headers).status_code == 404


def test_models_catalog(monkeypatch):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with TestClient(app) as client:
        models = client.get("/chat/models", headers=token_headers()).json()
        by_id = {m["id"]: m for m in models}
        assert by_id["deepseek/deepseek-chat"]["available"] is True
        assert by_id["deepseek/deepseek-reasoner"]["reasoning"] is True
        assert by_id["openai/gpt-4o-mini"]["available"] is False
