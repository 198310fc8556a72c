from __future__ import annotations

import json
import logging
import re
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Deque, Dict, List, Optional, Protocol, Sequence, Type, TypeVar, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from ..config import AppConfig
from .model_router import ModelRouter, ProviderSelection


logger = logging.getLogger("renderme.services.llm")
LOG = logging.getLogger("renderme.llm")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelMessage:
    """Provider-neutral conversation entry handed to a model client."""

    role: str
    content: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: Optional[str] = None


@dataclass(frozen=True)
class ModelChunk:
    type: str
    text: str = ""
    tool_call: Optional[ToolCall] = None

    @staticmethod
    def of_text(text: str) -> "ModelChunk":
        return ModelChunk("text", text=text)

    @staticmethod
    def of_reasoning(text: str) -> "ModelChunk":
        return ModelChunk("reasoning", text=text)

    @staticmethod
    def of_tool_call(name: str, arguments: Dict[str, Any], call_id: Optional[str] = None) -> "ModelChunk":
        return ModelChunk("tool_call", tool_call=ToolCall(id=call_id or uuid.uuid4().hex, name=name, arguments=dict(arguments)))


class ModelClient(Protocol):
    def stream(
        self,
        system: str,
        history: Sequence[ModelMessage],
        model_id: str,
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AsyncIterator[ModelChunk]: ...

    async def generate_object(self, system: str, prompt: str, model_id: str, schema: Type[SchemaT]) -> SchemaT: ...

    async def complete(self, system: str, prompt: str, model_id: str) -> str: ...


def _to_langchain(system: str, history: Sequence[ModelMessage]) -> List[BaseMessage]:
    msgs: List[BaseMessage] = [SystemMessage(content=system)] if system else []
    for m in history:
        if m.role == "system":
            msgs.append(SystemMessage(content=m.content))
        elif m.role == "assistant":
            calls = [{"id": c.id, "name": c.name, "args": dict(c.arguments)} for c in m.tool_calls]
            msgs.append(AIMessage(content=m.content, tool_calls=calls))
        elif m.role == "tool":
            msgs.append(ToolMessage(content=m.content, tool_call_id=m.tool_call_id or ""))
        else:
            msgs.append(HumanMessage(content=m.content))
    return msgs


def _chunk_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        pieces: List[str] = []
        for item in content:
            if isinstance(item, str):
                pieces.append(item)
            elif isinstance(item, dict) and item.get("type") == "text":
                pieces.append(str(item.get("text") or ""))
        return "".join(pieces)
    return ""


class LangChainModelClient:
    """Model client backed by ``langchain_openai.ChatOpenAI``.

    A fresh ``ChatOpenAI`` is built per call from the router selection, so
    concurrent turns never share mutable client configuration.
    """

    def __init__(self, router: ModelRouter, temperature: float = 0.7) -> None:
        self._router = router
        self._temperature = temperature

    def _build_llm(self, model_id: str) -> tuple[ChatOpenAI, ProviderSelection]:
        selection = self._router.resolve(model_id)
        kwargs: Dict[str, Any] = {
            "model": selection.model,
            "base_url": self._router.base_url(selection),
            "api_key": self._router.api_key(selection) or "not-needed",
        }
        if not selection.reasoning:
            kwargs["temperature"] = self._temperature
        LOG.debug("llm_build", extra={"provider": selection.name, "model": selection.model})
        return ChatOpenAI(**kwargs), selection

    async def stream(
        self,
        system: str,
        history: Sequence[ModelMessage],
        model_id: str,
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AsyncIterator[ModelChunk]:
        llm, selection = self._build_llm(model_id)
        runnable = llm.bind_tools(list(tools)) if tools else llm
        aggregate = None
        LOG.info("llm_stream_started", extra={"provider": selection.name, "model": selection.model, "tools": len(tools or [])})
        async for chunk in runnable.astream(_to_langchain(system, history)):
            reasoning = (chunk.additional_kwargs or {}).get("reasoning_content")
            if reasoning:
                yield ModelChunk.of_reasoning(str(reasoning))
            text = _chunk_text(chunk.content)
            if text:
                yield ModelChunk.of_text(text)
            aggregate = chunk if aggregate is None else aggregate + chunk
        if aggregate is not None:
            for call in getattr(aggregate, "tool_calls", None) or []:
                yield ModelChunk.of_tool_call(call["name"], call.get("args") or {}, call.get("id"))

    async def generate_object(self, system: str, prompt: str, model_id: str, schema: Type[SchemaT]) -> SchemaT:
        llm, _ = self._build_llm(model_id)
        structured = llm.with_structured_output(schema, method="function_calling")
        result = await structured.ainvoke([SystemMessage(content=system), HumanMessage(content=prompt)])
        if isinstance(result, schema):
            return result
        return schema.model_validate(result)

    async def complete(self, system: str, prompt: str, model_id: str) -> str:
        llm, _ = self._build_llm(model_id)
        res = await llm.ainvoke([SystemMessage(content=system), HumanMessage(content=prompt)])
        return _chunk_text(res.content if hasattr(res, "content") else str(res))


ScriptStep = List[Union[ModelChunk, BaseException]]


class ScriptedModelClient:
    """Deterministic model client for the ``test`` environment and the test-suite.

    ``streams`` holds one list of chunks per ``stream`` call; an exception in
    the list is raised at that position. When the scripts run out a short
    canned reply is streamed word by word.
    """

    def __init__(
        self,
        streams: Optional[Sequence[ScriptStep]] = None,
        objects: Optional[Sequence[Union[BaseModel, Dict[str, Any], BaseException]]] = None,
        completions: Optional[Sequence[Union[str, BaseException]]] = None,
    ) -> None:
        self._streams: Deque[ScriptStep] = deque(list(s) for s in (streams or []))
        self._objects: Deque[Any] = deque(objects or [])
        self._completions: Deque[Any] = deque(completions or [])
        self.calls: List[Dict[str, Any]] = []

    async def stream(
        self,
        system: str,
        history: Sequence[ModelMessage],
        model_id: str,
        tools: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> AsyncIterator[ModelChunk]:
        self.calls.append(
            {
                "kind": "stream",
                "system": system,
                "history": list(history),
                "model_id": model_id,
                "tools": [t["function"]["name"] for t in (tools or [])],
            }
        )
        script = self._streams.popleft() if self._streams else [
            ModelChunk.of_text(word) for word in re.findall(r"\S+\s*", "Hello! How can I help you today?")
        ]
        for item in script:
            if isinstance(item, BaseException):
                raise item
            yield item

    async def generate_object(self, system: str, prompt: str, model_id: str, schema: Type[SchemaT]) -> SchemaT:
        self.calls.append({"kind": "object", "system": system, "prompt": prompt, "model_id": model_id})
        if self._objects:
            item = self._objects.popleft()
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, schema):
                return item
            return schema.model_validate(item)
        return schema.model_validate(_keyword_intent(prompt))

    async def complete(self, system: str, prompt: str, model_id: str) -> str:
        self.calls.append({"kind": "complete", "system": system, "prompt": prompt, "model_id": model_id})
        if self._completions:
            item = self._completions.popleft()
            if isinstance(item, BaseException):
                raise item
            return str(item)
        return "Test chat title"


def _keyword_intent(text: str) -> Dict[str, Any]:
    haystack = (text or "").lower()
    if any(term in haystack for term in ("简历", "resume", "cv")):
        return {"intent": "resume_optimization", "confidence": 0.9}
    if any(term in haystack for term in ("面试", "interview")):
        return {"intent": "mock_interview", "confidence": 0.9}
    return {"intent": "related_topics", "confidence": 0.6}


def tool_result_content(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


def get_model_client(config: AppConfig) -> ModelClient:
    if config.is_test:
        logger.info("Using scripted model client (test environment)")
        return ScriptedModelClient()
    router = ModelRouter(env=config.env or None, default_model_id=config.default_chat_model)
    return LangChainModelClient(router)
