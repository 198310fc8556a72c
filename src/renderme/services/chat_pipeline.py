"""Turn orchestration: pre-process, classify, route, generate, persist.

``create_chat_stream`` returns the outbound event stream for one turn. The
turn itself runs in a background task that writes into a multiplexer source;
if the client stops reading, the task still drains the generator, reconciles
storage and publishes ``chat.turn_finished``.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import AsyncIterator, List, Optional, Set

from ..agents.base import GenerationError
from ..agents.registry import GeneratorRegistry
from ..config import AppConfig
from ..domain import stream_events as ev
from ..domain.chat_models import ChatMessage, Turn
from ..domain.stream_events import StreamEvent
from ..infrastructure.chat_store import ChatStore
from ..infrastructure.events import publish_event
from ..tools.base import ToolContext
from .attachments import TextExtractor, preprocess_messages
from .intent_classifier import classify_user_intent
from .llm import ModelClient
from .reconciler import ReconcileOutcome, reconcile_finished_messages
from .streaming import EventChannel, EventWriter, StreamMultiplexer
from .telemetry_sink import TelemetryEvent, record_event
from .titles import generate_title_from_user_message


logger = logging.getLogger("renderme.services.chat_pipeline")

# Strong references to detached turn and title tasks until they complete
_background_tasks: Set[asyncio.Task] = set()


def _track(task: asyncio.Task) -> asyncio.Task:
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def pending_background_tasks() -> List[asyncio.Task]:
    return [t for t in _background_tasks if not t.done()]


class ChatPipeline:
    def __init__(
        self,
        config: AppConfig,
        client: ModelClient,
        store: ChatStore,
        registry: Optional[GeneratorRegistry] = None,
        extractor: Optional[TextExtractor] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._store = store
        self._registry = registry or GeneratorRegistry.from_config(config, client)
        self._extractor = extractor or TextExtractor(timeout=config.attachment_fetch_timeout)

    @staticmethod
    def assistant_message_id(turn: Turn) -> str:
        if turn.is_tool_approval_continuation:
            last = turn.last_assistant_message()
            if last is not None:
                return last.id
        return uuid.uuid4().hex

    async def run_turn(self, turn: Turn, context: ToolContext, writer: EventWriter, message_id: str) -> List[ChatMessage]:
        """Run one turn up to its terminal event; returns the finished messages.

        Never raises: a failure writes a single generic ``error`` event and
        whatever the generator produced before failing is returned.
        """
        try:
            messages = await preprocess_messages(turn.messages, self._extractor)
            prepared = turn.model_copy(update={"messages": messages})
            intent = await classify_user_intent(messages, turn.selected_model_id, self._client)
            generator = self._registry.select(intent.intent)
            logger.info(
                "turn_routed",
                extra={"chat_id": turn.chat_id, "intent": intent.intent.value, "generator_id": generator.generator_id},
            )
            result = await generator.generate(prepared, turn.selected_model_id, context, writer, message_id)
        except GenerationError as exc:
            logger.error("generation_failed", extra={"chat_id": turn.chat_id}, exc_info=exc.cause)
            writer.write(ev.error())
            return list(exc.partial.messages)
        except Exception:
            logger.exception("turn_failed", extra={"chat_id": turn.chat_id})
            writer.write(ev.error())
            return []
        writer.write(ev.finish())
        return list(result.messages)

    async def finalize(self, turn: Turn, finished: List[ChatMessage], user_id: str) -> ReconcileOutcome:
        outcome = await asyncio.to_thread(
            reconcile_finished_messages,
            finished,
            turn.messages,
            turn.chat_id,
            turn.is_tool_approval_continuation,
            self._store,
        )
        payload = {
            "chat_id": turn.chat_id,
            "inserted": outcome.inserted,
            "updated": outcome.updated,
            "persist_failed": outcome.failed,
        }
        record_event(TelemetryEvent(name="turn_finished", properties=payload, actor=user_id))
        await asyncio.to_thread(publish_event, "chat.turn_finished", payload)
        return outcome

    async def _title(self, chat_id: str, message: ChatMessage, outbound: EventChannel) -> None:
        try:
            title = await generate_title_from_user_message(message, self._client, self._config)
            await asyncio.to_thread(self._store.update_chat_title, chat_id, title)
            outbound.send(ev.data_title(title))
            await asyncio.to_thread(publish_event, "chat.title_updated", {"chat_id": chat_id, "title": title})
        except Exception:
            logger.warning("title_update_failed", extra={"chat_id": chat_id}, exc_info=True)

    async def _turn_task(
        self,
        turn: Turn,
        context: ToolContext,
        source: EventChannel,
        mux: StreamMultiplexer,
        message_id: str,
    ) -> ReconcileOutcome:
        try:
            finished = await self.run_turn(turn, context, source, message_id)
        finally:
            source.close()
        await mux.finished
        return await self.finalize(turn, finished, context.user_id)

    async def create_chat_stream(
        self,
        turn: Turn,
        context: ToolContext,
        title_source: Optional[ChatMessage] = None,
    ) -> AsyncIterator[StreamEvent]:
        mux = StreamMultiplexer()
        message_id = self.assistant_message_id(turn)
        mux.outbound.send(ev.start(message_id))
        if title_source is not None:
            _track(asyncio.create_task(self._title(turn.chat_id, title_source, mux.outbound)))
        source = EventChannel()
        mux.add_source("generator", source)
        _track(asyncio.create_task(self._turn_task(turn, context, source, mux, message_id)))
        async for event in mux:
            yield event
