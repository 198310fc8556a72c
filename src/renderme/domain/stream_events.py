from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


START = "start"
TEXT_DELTA = "text-delta"
REASONING_DELTA = "reasoning-delta"
TOOL_CALL_START = "tool-call-start"
TOOL_CALL_RESULT = "tool-call-result"
DATA_TITLE = "data-title"
ERROR = "error"
FINISH = "finish"

TERMINAL_TYPES = frozenset({ERROR, FINISH})

GENERIC_ERROR_TEXT = "Oops, an error occurred!"


@dataclass(frozen=True)
class StreamEvent:
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_TYPES

    def to_dict(self) -> Dict[str, Any]:
        data = {"type": self.type}
        data.update(self.payload)
        return data

    def to_sse(self) -> str:
        return f"data: {json.dumps(self.to_dict(), ensure_ascii=False, default=str)}\n\n"


def start(message_id: str) -> StreamEvent:
    return StreamEvent(START, {"messageId": message_id})


def text_delta(delta: str) -> StreamEvent:
    return StreamEvent(TEXT_DELTA, {"delta": delta})


def reasoning_delta(delta: str) -> StreamEvent:
    return StreamEvent(REASONING_DELTA, {"delta": delta})


def tool_call_start(tool_call_id: str, tool_name: str, arguments: Dict[str, Any], state: str = "running") -> StreamEvent:
    return StreamEvent(
        TOOL_CALL_START,
        {"toolCallId": tool_call_id, "toolName": tool_name, "arguments": arguments, "state": state},
    )


def tool_call_result(
    tool_call_id: str,
    tool_name: str,
    result: Any = None,
    error: Optional[str] = None,
    denied: bool = False,
) -> StreamEvent:
    payload: Dict[str, Any] = {"toolCallId": tool_call_id, "toolName": tool_name}
    if error is not None:
        payload["error"] = error
        if denied:
            payload["denied"] = True
    else:
        payload["result"] = result
    return StreamEvent(TOOL_CALL_RESULT, payload)


def data_title(title: str) -> StreamEvent:
    return StreamEvent(DATA_TITLE, {"title": title})


def error(text: str = GENERIC_ERROR_TEXT) -> StreamEvent:
    return StreamEvent(ERROR, {"errorText": text})


def finish() -> StreamEvent:
    return StreamEvent(FINISH, {})
