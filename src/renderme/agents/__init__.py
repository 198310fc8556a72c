from .base import BaseGenerator, GenerationError
from .chat_agent import ChatGenerator
from .interview_agent import InterviewGenerator
from .registry import GeneratorRegistry, route_intent
from .resume_agent import ResumeGenerator

__all__ = [
    "BaseGenerator",
    "GenerationError",
    "ChatGenerator",
    "InterviewGenerator",
    "ResumeGenerator",
    "GeneratorRegistry",
    "route_intent",
]
