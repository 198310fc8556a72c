"""Intent classification for an incoming chat turn.

One structured-output call labels the latest user message. Failures of any
kind degrade to ``related_topics`` with confidence 0.5 so the turn is still
answered by the general chat generator.
"""

from __future__ import annotations

import logging
from typing import Sequence

from pydantic import BaseModel, Field

from ..domain.chat_models import ChatMessage, message_text
from ..domain.intents import Intent, IntentResult
from ..observability.metrics import INTENT_TOTAL
from .llm import ModelClient
from .telemetry_sink import record_metric


logger = logging.getLogger("renderme.services.intent_classifier")

CLASSIFIER_SYSTEM_PROMPT = """You classify the intent of a user talking to a career assistant for front-end engineers.
Return exactly one label:
- resume_optimization: the user wants a resume reviewed, rewritten, scored or improved, or shares resume content.
- mock_interview: the user wants to practise an interview, be asked interview questions, or get feedback on answers.
- related_topics: career, job hunting, front-end technology or learning questions that are not the two above.
- other: anything unrelated to careers or technology.
Also return a confidence between 0 and 1."""

FALLBACK_RESULT = IntentResult(Intent.RELATED_TOPICS, 0.5)
EMPTY_RESULT = IntentResult(Intent.OTHER, 1.0)


class IntentPayload(BaseModel):
    intent: str
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


def _emit(result: IntentResult) -> IntentResult:
    INTENT_TOTAL.labels(intent=result.intent.value).inc()
    record_metric(
        name="intent_classified",
        value=result.confidence,
        properties={"intent": result.intent.value},
    )
    return result


async def classify_user_intent(
    messages: Sequence[ChatMessage],
    model_id: str,
    client: ModelClient,
) -> IntentResult:
    user_messages = [m for m in messages if m.role == "user"]
    if not user_messages:
        return _emit(EMPTY_RESULT)
    text = message_text(user_messages[-1]).strip()
    if not text:
        return _emit(EMPTY_RESULT)

    try:
        payload = await client.generate_object(CLASSIFIER_SYSTEM_PROMPT, text, model_id, IntentPayload)
        intent = Intent.parse(payload.intent)
        if intent is None:
            raise ValueError(f"unknown intent label: {payload.intent!r}")
        result = IntentResult(intent, float(payload.confidence))
    except Exception:
        logger.exception("intent_classification_failed", extra={"model_id": model_id})
        return _emit(FALLBACK_RESULT)

    logger.info("intent_classified", extra={"intent": result.intent.value, "confidence": result.confidence})
    return _emit(result)
