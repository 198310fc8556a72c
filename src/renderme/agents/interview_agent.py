from __future__ import annotations

from typing import List

from ..domain.chat_models import Turn
from ..services.llm import ModelMessage
from .base import BaseGenerator, to_model_history
from .prompts import INTERVIEW_OPENING_REPLY, INTERVIEW_OPENING_USER, INTERVIEW_SYSTEM_PROMPT


class InterviewGenerator(BaseGenerator):
    generator_id = "interview-generator"
    system_prompt = INTERVIEW_SYSTEM_PROMPT

    def prime_context(self, turn: Turn) -> List[ModelMessage]:
        history = to_model_history(turn.messages)
        if len(turn.user_messages()) > 1:
            return history
        # first contact: open the interview with the scripted greeting
        return [
            ModelMessage("user", INTERVIEW_OPENING_USER),
            ModelMessage("assistant", INTERVIEW_OPENING_REPLY),
            *history,
        ]
