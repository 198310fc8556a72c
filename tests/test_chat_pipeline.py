import asyncio

from src.renderme.config import AppConfig
from src.renderme.domain.chat_models import ChatMessage, TextPart, Turn
from src.renderme.domain.stream_events import GENERIC_ERROR_TEXT
from src.renderme.agents.prompts import RESUME_REQUEST_REPLY
from src.renderme.infrastructure.chat_store import InMemoryChatStore
from src.renderme.infrastructure.doc_store import get_document_store
from src.renderme.services.chat_pipeline import ChatPipeline
from src.renderme.services.llm import ModelChunk, ScriptedModelClient
from src.renderme.services.telemetry_sink import list_recent_events
from src.renderme.tools.base import ToolContext

from .utils import StubExtractor, assistant_msg, collect, drain_background, pdf_part, tool_part, user_msg

CONFIG = AppConfig(environment="test")
CTX = ToolContext(user_id="u1", chat_id="c1")


def _setup(client, *stored, extractor=None):
    store = InMemoryChatStore()
    store.save_chat("c1", "u1", "New chat")
    if stored:
        store.insert_messages("c1", list(stored))
    pipeline = ChatPipeline(CONFIG, client, store, extractor=extractor or StubExtractor())
    return pipeline, store


def _turn(*messages, continuation=False):
    return Turn(
        chat_id="c1",
        messages=list(messages),
        selected_model_id="deepseek/deepseek-chat",
        is_tool_approval_continuation=continuation,
    )


async def _stream(pipeline, turn, title_source=None):
    events = await collect(pipeline.create_chat_stream(turn, CTX, title_source=title_source))
    await drain_background()
    return events


def test_turn_streams_and_persists_reply():
    client = ScriptedModelClient()
    user = user_msg("What should I learn after React?", message_id="u-1")
    pipeline, store = _setup(client, user)

    events = asyncio.run(_stream(pipeline, _turn(user), title_source=user))

    types = [e.type for e in events]
    assert types[0] == "start"
    assert types[-1] == "finish"
    assert types.count("finish") == 1
    message_id = events[0].payload["messageId"]
    text = "".join(e.payload["delta"] for e in events if e.type == "text-delta")
    assert text == "Hello! How can I help you today?"

    stored = store.list_messages("c1")
    assert [m.id for m in stored] == ["u-1", message_id]
    assert stored[1].parts == [TextPart(text=text)]
    assert store.get_chat("c1").title == "Test chat title"

    finished = [e for e in list_recent_events() if e.name == "turn_finished"]
    assert finished[-1].properties["inserted"] == [message_id]
    assert finished[-1].actor == "u1"


def test_title_event_never_follows_terminal_event():
    client = ScriptedModelClient()
    user = user_msg("hello there", message_id="u-1")
    pipeline, _ = _setup(client, user)
    events = asyncio.run(_stream(pipeline, _turn(user), title_source=user))
    types = [e.type for e in events]
    if "data-title" in types:
        assert types.index("data-title") < types.index("finish")


def test_resume_request_short_circuits_model():
    client = ScriptedModelClient()
    user = user_msg("帮我优化简历", message_id="u-1")
    pipeline, store = _setup(client, user)

    events = asyncio.run(_stream(pipeline, _turn(user)))

    assert [c["kind"] for c in client.calls] == ["object"]
    text = "".join(e.payload["delta"] for e in events if e.type == "text-delta")
    assert text == RESUME_REQUEST_REPLY
    assert store.list_messages("c1")[1].parts == [TextPart(text=RESUME_REQUEST_REPLY)]


def test_model_failure_emits_single_error_and_keeps_partial():
    client = ScriptedModelClient(streams=[[ModelChunk.of_text("Half an "), RuntimeError("provider down")]])
    user = user_msg("hello", message_id="u-1")
    pipeline, store = _setup(client, user)

    events = asyncio.run(_stream(pipeline, _turn(user)))

    types = [e.type for e in events]
    assert types == ["start", "text-delta", "error"]
    assert events[-1].payload == {"errorText": GENERIC_ERROR_TEXT}
    stored = store.list_messages("c1")
    assert stored[-1].parts == [TextPart(text="Half an ")]


def test_failure_before_generation_emits_error():
    client = ScriptedModelClient()
    user = ChatMessage(id="u-1", role="user", parts=[TextPart(text="see attached"), pdf_part()])
    pipeline, store = _setup(client, user, extractor=StubExtractor(error=RuntimeError("parser crashed")))

    events = asyncio.run(_stream(pipeline, _turn(user)))

    assert [e.type for e in events] == ["start", "error"]
    assert [m.id for m in store.list_messages("c1")] == ["u-1"]


def test_unreadable_attachment_still_answers():
    from src.renderme.services.attachments import ExtractionError

    client = ScriptedModelClient()
    user = ChatMessage(id="u-1", role="user", parts=[TextPart(text="hi"), pdf_part(filename="cv.pdf")])
    pipeline, _ = _setup(client, user, extractor=StubExtractor(error=ExtractionError("bad pdf")))

    events = asyncio.run(_stream(pipeline, _turn(user)))

    assert events[-1].type == "finish"
    history = client.calls[-1]["history"]
    assert "[Document: cv.pdf] (Unable to extract content)" in history[-1].content


def test_turn_completes_after_consumer_disconnects():
    client = ScriptedModelClient()
    user = user_msg("hello", message_id="u-1")
    pipeline, store = _setup(client, user)

    async def scenario():
        stream = pipeline.create_chat_stream(_turn(user), CTX)
        first = await stream.__anext__()
        await stream.aclose()
        await drain_background()
        return first

    first = asyncio.run(scenario())
    stored = store.list_messages("c1")
    assert [m.id for m in stored] == ["u-1", first.payload["messageId"]]
    assert stored[1].parts[0].text == "Hello! How can I help you today?"


def test_approval_continuation_updates_existing_message():
    doc = get_document_store().create("u1", "Plan", "text", "v1")
    user = user_msg("please update my plan", message_id="u-1")
    args = {"id": doc.document_id, "description": "bump", "content": "v2"}
    pending = assistant_msg(tool_part("call-1", "updateDocument", "pending", args), message_id="a-1")
    client = ScriptedModelClient(streams=[[ModelChunk.of_text("Updated.")]])
    pipeline, store = _setup(client, user, pending)

    approved = assistant_msg(tool_part("call-1", "updateDocument", "approved", args), message_id="a-1")
    events = asyncio.run(_stream(pipeline, _turn(user, approved, continuation=True)))

    assert events[0].payload["messageId"] == "a-1"
    assert events[-1].type == "finish"
    stored = store.list_messages("c1")
    assert [m.id for m in stored] == ["u-1", "a-1"]
    assert stored[1].parts[0].state == "result"
    assert stored[1].parts[1].text == "Updated."
    assert get_document_store().get(doc.document_id).content == "v2"
