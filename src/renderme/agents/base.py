from __future__ import annotations

import asyncio
import logging
import re
import uuid
from typing import Dict, List, Optional, Sequence

from ..config import AppConfig
from ..domain import stream_events as ev
from ..domain.chat_models import (
    ChatMessage,
    FilePart,
    GeneratorResult,
    TextPart,
    ToolInvocationPart,
    Turn,
    message_text,
)
from ..observability.metrics import GENERATOR_RUNS
from ..services.llm import ModelClient, ModelMessage, ToolCall, tool_result_content
from ..services.streaming import AccumulatingWriter, EventWriter, MessageAccumulator, iter_as_async
from ..services.telemetry_sink import record_metric
from ..tools.base import Tool, ToolContext, ToolExecutionError


logger = logging.getLogger("renderme.agents")

DENIED_TOOL_TEXT = "The user denied this tool call."

_WORDS = re.compile(r"\S+\s*")


class GenerationError(Exception):
    """Model failure during generation; carries whatever was produced before it."""

    def __init__(self, partial: GeneratorResult, cause: BaseException) -> None:
        super().__init__(str(cause))
        self.partial = partial
        self.cause = cause


def _user_content(message: ChatMessage) -> str:
    chunks = [p.text for p in message.parts if isinstance(p, TextPart)]
    for p in message.parts:
        if isinstance(p, FilePart):
            chunks.append(f"[Attachment: {p.filename or 'file'} ({p.media_type})]")
    return " ".join(chunks)


def to_model_history(messages: Sequence[ChatMessage]) -> List[ModelMessage]:
    """Convert chat messages into provider-neutral model history.

    Resolved and denied tool invocations become an assistant tool call followed
    by its tool message; pending or approved calls are left out.
    """
    out: List[ModelMessage] = []
    for message in messages:
        if message.role == "user":
            out.append(ModelMessage("user", _user_content(message)))
            continue
        buffer: List[str] = []
        for part in message.parts:
            if isinstance(part, TextPart):
                buffer.append(part.text)
            elif isinstance(part, ToolInvocationPart) and part.state in ("result", "error", "denied"):
                call = ToolCall(id=part.tool_call_id, name=part.tool_name, arguments=dict(part.arguments))
                out.append(ModelMessage("assistant", "".join(buffer), tool_calls=(call,)))
                buffer = []
                if part.state == "result":
                    content = tool_result_content(part.result)
                elif part.state == "denied":
                    content = DENIED_TOOL_TEXT
                else:
                    content = tool_result_content({"error": part.error})
                out.append(ModelMessage("tool", content, tool_call_id=part.tool_call_id))
        if buffer:
            out.append(ModelMessage("assistant", "".join(buffer)))
    return out


class BaseGenerator:
    """Streams one assistant reply for a turn, running tools between model steps."""

    generator_id: str = "base"
    system_prompt: str = ""

    def __init__(self, config: AppConfig, client: ModelClient) -> None:
        self._config = config
        self._client = client

    # --- hooks ---
    def tools(self, model_id: str) -> List[Tool]:
        return []

    def prime_context(self, turn: Turn) -> List[ModelMessage]:
        return to_model_history(turn.messages)

    async def scripted_reply(self, turn: Turn) -> Optional[str]:
        """Return a canned reply to send instead of calling the model, if any."""
        return None

    # --- driver ---
    async def generate(
        self,
        turn: Turn,
        model_id: str,
        context: ToolContext,
        writer: EventWriter,
        message_id: Optional[str] = None,
    ) -> GeneratorResult:
        seed = turn.last_assistant_message() if turn.is_tool_approval_continuation else None
        accumulator = MessageAccumulator(message_id or uuid.uuid4().hex, seed=seed)
        out = AccumulatingWriter(writer, accumulator)
        outcome = "ok"
        try:
            if seed is not None:
                turn = await self._resolve_approvals(turn, seed, model_id, context, out)
            canned = await self.scripted_reply(turn)
            if canned is not None:
                outcome = "scripted"
                async for piece in iter_as_async(_WORDS.findall(canned)):
                    out.write(ev.text_delta(piece))
            else:
                await self._run_steps(turn, model_id, context, out)
        except Exception as exc:
            outcome = "error"
            result = self._result(accumulator)
            logger.error("generator_failed", extra={"generator_id": self.generator_id, "chat_id": turn.chat_id})
            raise GenerationError(result, exc) from exc
        finally:
            GENERATOR_RUNS.labels(generator=self.generator_id, outcome=outcome).inc()
            record_metric(
                name="generator_run",
                value=1,
                properties={"generator_id": self.generator_id, "outcome": outcome},
                metric_type="counter",
            )
        return self._result(accumulator)

    @staticmethod
    def _result(accumulator: MessageAccumulator) -> GeneratorResult:
        message = accumulator.message()
        return GeneratorResult(messages=[message] if message is not None else [])

    async def _resolve_approvals(
        self,
        turn: Turn,
        seed: ChatMessage,
        model_id: str,
        context: ToolContext,
        writer: AccumulatingWriter,
    ) -> Turn:
        tool_map = {t.name: t for t in self.tools(model_id)}
        changed = False
        for part in seed.parts:
            if not isinstance(part, ToolInvocationPart):
                continue
            if part.state == "denied":
                writer.write(ev.tool_call_result(part.tool_call_id, part.tool_name, error=DENIED_TOOL_TEXT, denied=True))
                changed = True
            elif part.state == "approved":
                writer.write(ev.tool_call_start(part.tool_call_id, part.tool_name, part.arguments, state="approved"))
                await self._execute(tool_map.get(part.tool_name), part.tool_call_id, part.tool_name, part.arguments, context, writer)
                changed = True
        if not changed:
            return turn
        updated = seed.model_copy(update={"parts": writer.accumulator.parts})
        return turn.model_copy(update={"messages": [*turn.messages[:-1], updated]})

    async def _execute(
        self,
        tool: Optional[Tool],
        call_id: str,
        name: str,
        arguments: Dict,
        context: ToolContext,
        writer: EventWriter,
    ) -> str:
        """Run one tool and emit its result event; returns the content fed back to the model."""
        try:
            if tool is None:
                raise ToolExecutionError(f"unknown tool: {name}")
            result = await asyncio.to_thread(tool.run, arguments, context)
        except ToolExecutionError as exc:
            logger.warning("tool_failed", extra={"tool": name, "reason": str(exc)})
            writer.write(ev.tool_call_result(call_id, name, error=str(exc)))
            return tool_result_content({"error": str(exc)})
        except Exception:
            logger.exception("tool_failed", extra={"tool": name})
            writer.write(ev.tool_call_result(call_id, name, error="Tool execution failed"))
            return tool_result_content({"error": "Tool execution failed"})
        writer.write(ev.tool_call_result(call_id, name, result=result))
        return tool_result_content(result)

    async def _run_steps(self, turn: Turn, model_id: str, context: ToolContext, writer: EventWriter) -> None:
        tools = self.tools(model_id)
        tool_map = {t.name: t for t in tools}
        schemas = [t.openai_schema() for t in tools] or None
        history = self.prime_context(turn)

        for _step in range(self._config.max_tool_steps):
            text: List[str] = []
            calls: List[ToolCall] = []
            async for chunk in self._client.stream(self.system_prompt, history, model_id, schemas):
                if chunk.type == "text":
                    text.append(chunk.text)
                    writer.write(ev.text_delta(chunk.text))
                elif chunk.type == "reasoning":
                    writer.write(ev.reasoning_delta(chunk.text))
                elif chunk.type == "tool_call" and chunk.tool_call is not None:
                    calls.append(chunk.tool_call)
            if not calls:
                return
            history = [*history, ModelMessage("assistant", "".join(text), tool_calls=tuple(calls))]
            awaiting_approval = False
            for call in calls:
                tool = tool_map.get(call.name)
                if tool is not None and tool.needs_approval:
                    writer.write(ev.tool_call_start(call.id, call.name, call.arguments, state="pending"))
                    awaiting_approval = True
                    continue
                writer.write(ev.tool_call_start(call.id, call.name, call.arguments))
                content = await self._execute(tool, call.id, call.name, call.arguments, context, writer)
                history = [*history, ModelMessage("tool", content, tool_call_id=call.id)]
            if awaiting_approval:
                return
        logger.info("tool_step_limit_reached", extra={"generator_id": self.generator_id, "chat_id": turn.chat_id})


def longest_user_text(turn: Turn) -> int:
    return max((len(message_text(m)) for m in turn.user_messages()), default=0)
