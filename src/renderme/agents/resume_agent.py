from __future__ import annotations

from typing import List, Optional

from ..domain.chat_models import Turn
from ..tools.base import Tool
from ..tools.evaluate_skills import EVALUATE_SKILLS_TOOL
from ..tools.resume_template import RESUME_TEMPLATE_TOOL
from .base import BaseGenerator, longest_user_text
from .prompts import RESUME_REQUEST_REPLY, RESUME_SYSTEM_PROMPT


class ResumeGenerator(BaseGenerator):
    """Reviews a pasted or uploaded resume; asks for one when none was given."""

    generator_id = "resume-generator"
    system_prompt = RESUME_SYSTEM_PROMPT

    def has_resume_content(self, turn: Turn) -> bool:
        return longest_user_text(turn) > self._config.resume_min_chars

    def tools(self, model_id: str) -> List[Tool]:
        return [EVALUATE_SKILLS_TOOL, RESUME_TEMPLATE_TOOL]

    async def scripted_reply(self, turn: Turn) -> Optional[str]:
        if self.has_resume_content(turn):
            return None
        return RESUME_REQUEST_REPLY
