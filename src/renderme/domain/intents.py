from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    RESUME_OPTIMIZATION = "resume_optimization"
    MOCK_INTERVIEW = "mock_interview"
    RELATED_TOPICS = "related_topics"
    OTHER = "other"

    @classmethod
    def parse(cls, label: object) -> Optional["Intent"]:
        """Return the matching intent, accepting legacy labels; ``None`` if unknown."""
        if isinstance(label, Intent):
            return label
        key = str(label or "").strip().lower()
        key = _LEGACY_LABELS.get(key, key)
        try:
            return cls(key)
        except ValueError:
            return None


_LEGACY_LABELS = {
    "resume_opt": "resume_optimization",
    "others": "other",
}


@dataclass(frozen=True)
class IntentResult:
    intent: Intent
    confidence: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("confidence must be within [0, 1]")
