from __future__ import annotations

from typing import List

from ..domain.chat_models import Turn
from ..services.llm import ModelMessage
from ..services.model_router import ModelRouter
from ..tools.base import Tool
from ..tools.documents import CREATE_DOCUMENT_TOOL, UPDATE_DOCUMENT_TOOL
from ..tools.weather import WEATHER_TOOL
from .base import BaseGenerator, to_model_history
from .prompts import CHAT_OPENING_REPLY, CHAT_OPENING_USER, CHAT_SYSTEM_PROMPT


class ChatGenerator(BaseGenerator):
    """General assistant; reasoning models run without tools."""

    generator_id = "default-chat-generator"
    system_prompt = CHAT_SYSTEM_PROMPT

    def tools(self, model_id: str) -> List[Tool]:
        if ModelRouter.is_reasoning_model(model_id):
            return []
        return [WEATHER_TOOL, CREATE_DOCUMENT_TOOL, UPDATE_DOCUMENT_TOOL]

    def prime_context(self, turn: Turn) -> List[ModelMessage]:
        history = to_model_history(turn.messages)
        if len(turn.user_messages()) > 1:
            return history
        return [
            ModelMessage("user", CHAT_OPENING_USER),
            ModelMessage("assistant", CHAT_OPENING_REPLY),
            *history,
        ]
