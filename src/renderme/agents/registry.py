from __future__ import annotations

from typing import Dict, Iterable, Optional

from ..config import AppConfig
from ..domain.intents import Intent
from ..services.llm import ModelClient
from .base import BaseGenerator
from .chat_agent import ChatGenerator
from .interview_agent import InterviewGenerator
from .resume_agent import ResumeGenerator


RESUME_GENERATOR = "resume-generator"
INTERVIEW_GENERATOR = "interview-generator"
DEFAULT_GENERATOR = "default-chat-generator"

_ROUTES = {
    Intent.RESUME_OPTIMIZATION: RESUME_GENERATOR,
    Intent.MOCK_INTERVIEW: INTERVIEW_GENERATOR,
}


def route_intent(label: object) -> str:
    """Map an intent label to a generator id; unknown labels go to the default chat generator."""
    intent = Intent.parse(label)
    if intent is None:
        return DEFAULT_GENERATOR
    return _ROUTES.get(intent, DEFAULT_GENERATOR)


class GeneratorRegistry:
    def __init__(self, generators: Iterable[BaseGenerator]) -> None:
        self._generators: Dict[str, BaseGenerator] = {g.generator_id: g for g in generators}
        if DEFAULT_GENERATOR not in self._generators:
            raise ValueError("registry requires a default chat generator")

    @classmethod
    def from_config(cls, config: AppConfig, client: ModelClient) -> "GeneratorRegistry":
        return cls(
            [
                ResumeGenerator(config, client),
                InterviewGenerator(config, client),
                ChatGenerator(config, client),
            ]
        )

    def get(self, generator_id: str) -> Optional[BaseGenerator]:
        return self._generators.get(generator_id)

    def select(self, intent: object) -> BaseGenerator:
        generator_id = route_intent(intent)
        return self._generators.get(generator_id) or self._generators[DEFAULT_GENERATOR]

    def ids(self) -> list[str]:
        return sorted(self._generators)
