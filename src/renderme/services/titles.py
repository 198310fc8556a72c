from __future__ import annotations

import logging

from ..config import AppConfig
from ..domain.chat_models import ChatMessage, message_text
from .llm import ModelClient


logger = logging.getLogger("renderme.services.titles")

MAX_TITLE_CHARS = 80
DEFAULT_TITLE = "New chat"

TITLE_SYSTEM_PROMPT = """Generate a short title based on the first message a user begins a conversation with.
- The title must be at most 80 characters long.
- The title should summarise the user's message.
- Do not use quotes or colons."""


def fallback_title(text: str) -> str:
    cleaned = " ".join((text or "").split())
    return cleaned[:MAX_TITLE_CHARS] or DEFAULT_TITLE


def _clean(title: str) -> str:
    return " ".join(title.replace('"', "").replace("'", "").replace(":", " ").split())[:MAX_TITLE_CHARS]


async def generate_title_from_user_message(message: ChatMessage, client: ModelClient, config: AppConfig) -> str:
    text = message_text(message)
    if not text.strip():
        return DEFAULT_TITLE
    try:
        title = _clean(await client.complete(TITLE_SYSTEM_PROMPT, text, config.title_model))
    except Exception:
        logger.warning("title_generation_failed", exc_info=True)
        return fallback_title(text)
    return title or fallback_title(text)
