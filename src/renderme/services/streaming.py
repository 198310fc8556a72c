"""Producer/consumer plumbing between generators and the HTTP response.

Generators write :class:`StreamEvent` objects into an :class:`EventChannel`;
the :class:`StreamMultiplexer` pumps each attached source into one outbound
channel, preserving per-source order, and keeps draining when the outbound
consumer has gone away. :class:`MessageAccumulator` folds the same events
into the finished assistant message that the reconciler persists.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Protocol, TypeVar

from ..domain import stream_events as ev
from ..domain.chat_models import ChatMessage, Part, ReasoningPart, TextPart, ToolInvocationPart
from ..domain.stream_events import StreamEvent


logger = logging.getLogger("renderme.services.streaming")

T = TypeVar("T")

_CLOSED = object()


class EventWriter(Protocol):
    def write(self, event: StreamEvent) -> None: ...


class EventChannel:
    """Unbounded ordered channel with an explicit close sentinel.

    Once a terminal event (``finish``/``error``) has been sent, later sends
    are dropped, as are sends after :meth:`close`.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._closed = False
        self._terminated = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def terminated(self) -> bool:
        return self._terminated

    def send(self, event: StreamEvent) -> bool:
        if self._closed or self._terminated:
            return False
        if event.is_terminal:
            self._terminated = True
        self._queue.put_nowait(event)
        return True

    def write(self, event: StreamEvent) -> None:
        self.send(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[StreamEvent]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item


class StreamMultiplexer:
    """Fan-in of event sources into a single outbound channel.

    Each source gets its own pump task, so events from one source keep their
    relative order. Terminal events from sources are held back; once every
    attached source has been drained a single terminal event is sent (an
    ``error`` wins over ``finish``), the outbound channel is closed and
    :attr:`finished` resolves.
    """

    def __init__(self, outbound: Optional[EventChannel] = None) -> None:
        self.outbound = outbound or EventChannel()
        self._pumps: Dict[str, asyncio.Task[None]] = {}
        self._terminal: Optional[StreamEvent] = None
        self.finished: asyncio.Future[None] = asyncio.get_running_loop().create_future()

    def add_source(self, name: str, source: AsyncIterator[StreamEvent]) -> asyncio.Task[None]:
        if name in self._pumps:
            raise ValueError(f"duplicate stream source: {name}")
        if self.finished.done():
            raise RuntimeError("multiplexer already finished")
        task = asyncio.create_task(self._pump(name, source), name=f"mux:{name}")
        self._pumps[name] = task
        task.add_done_callback(self._on_pump_done)
        return task

    async def _pump(self, name: str, source: AsyncIterator[StreamEvent]) -> None:
        async for event in source:
            if event.is_terminal:
                self._hold_terminal(event)
                continue
            self.outbound.send(event)

    def _hold_terminal(self, event: StreamEvent) -> None:
        if self._terminal is None or (event.type == ev.ERROR and self._terminal.type != ev.ERROR):
            self._terminal = event

    def _on_pump_done(self, task: asyncio.Task[None]) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("stream_source_failed", exc_info=task.exception())
        if all(t.done() for t in self._pumps.values()):
            if self._terminal is not None:
                self.outbound.send(self._terminal)
            self.outbound.close()
            if not self.finished.done():
                self.finished.set_result(None)

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self.outbound.__aiter__()


class MessageAccumulator:
    """Builds the finished assistant message from streamed events.

    When seeded with an existing assistant message (tool-approval
    continuation), the id and existing parts are kept and tool parts are
    updated in place by tool call id.
    """

    def __init__(self, message_id: str, seed: Optional[ChatMessage] = None) -> None:
        self.message_id = seed.id if seed is not None else message_id
        self.created_at = seed.created_at if seed is not None else None
        self._parts: List[Part] = [p.model_copy(deep=True) for p in seed.parts] if seed is not None else []
        self._tool_index: Dict[str, int] = {
            p.tool_call_id: i for i, p in enumerate(self._parts) if isinstance(p, ToolInvocationPart)
        }
        self._open: Optional[str] = None

    def apply(self, event: StreamEvent) -> None:
        payload = event.payload
        if event.type == ev.TEXT_DELTA:
            self._append_delta("text", payload.get("delta") or "")
        elif event.type == ev.REASONING_DELTA:
            self._append_delta("reasoning", payload.get("delta") or "")
        elif event.type == ev.TOOL_CALL_START:
            self._open = None
            call_id = str(payload["toolCallId"])
            state = "approved" if payload.get("state") == "approved" else "pending"
            idx = self._tool_index.get(call_id)
            if idx is None:
                self._tool_index[call_id] = len(self._parts)
                self._parts.append(
                    ToolInvocationPart(
                        tool_call_id=call_id,
                        tool_name=str(payload.get("toolName") or ""),
                        arguments=dict(payload.get("arguments") or {}),
                        state=state,
                    )
                )
            else:
                self._parts[idx].state = state  # type: ignore[union-attr]
        elif event.type == ev.TOOL_CALL_RESULT:
            self._open = None
            call_id = str(payload["toolCallId"])
            idx = self._tool_index.get(call_id)
            if idx is None:
                self._tool_index[call_id] = len(self._parts)
                self._parts.append(ToolInvocationPart(tool_call_id=call_id, tool_name=str(payload.get("toolName") or "")))
                idx = self._tool_index[call_id]
            part = self._parts[idx]
            if "error" in payload:
                part.state = "denied" if payload.get("denied") else "error"  # type: ignore[union-attr]
                part.error = str(payload["error"])  # type: ignore[union-attr]
                part.result = None  # type: ignore[union-attr]
            else:
                part.state = "result"  # type: ignore[union-attr]
                part.result = payload.get("result")  # type: ignore[union-attr]
                part.error = None  # type: ignore[union-attr]

    def _append_delta(self, kind: str, delta: str) -> None:
        if not delta:
            return
        if self._open == kind and self._parts:
            last = self._parts[-1]
            last.text += delta  # type: ignore[union-attr]
            return
        self._parts.append(TextPart(text=delta) if kind == "text" else ReasoningPart(text=delta))
        self._open = kind

    @property
    def parts(self) -> List[Part]:
        return list(self._parts)

    def message(self) -> Optional[ChatMessage]:
        if not self._parts:
            return None
        return ChatMessage(id=self.message_id, role="assistant", parts=list(self._parts), created_at=self.created_at)


class AccumulatingWriter:
    """Writer that records events on an accumulator before forwarding them."""

    def __init__(self, target: EventWriter, accumulator: MessageAccumulator) -> None:
        self._target = target
        self.accumulator = accumulator

    def write(self, event: StreamEvent) -> None:
        self.accumulator.apply(event)
        self._target.write(event)


async def iter_as_async(items: Iterable[T]) -> AsyncIterator[T]:
    """Yield items of a sync iterable, giving the loop a turn between them."""
    for item in items:
        yield item
        await asyncio.sleep(0)
