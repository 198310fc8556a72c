from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError


class ToolExecutionError(Exception):
    """Raised when a tool cannot run with the supplied arguments."""


@dataclass
class ToolContext:
    """Per-turn values a tool handler may need."""

    user_id: str
    chat_id: str
    extras: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    args_model: Type[BaseModel]
    handler: Callable[[BaseModel, Optional[ToolContext]], Any]
    needs_approval: bool = False

    def openai_schema(self) -> Dict[str, Any]:
        params = self.args_model.model_json_schema()
        params.pop("title", None)
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": params,
            },
        }

    def run(self, arguments: Dict[str, Any], context: Optional[ToolContext] = None) -> Any:
        try:
            args = self.args_model.model_validate(arguments or {})
        except ValidationError as exc:
            raise ToolExecutionError(f"invalid arguments for {self.name}: {exc.errors()[0].get('msg')}") from exc
        return self.handler(args, context)
