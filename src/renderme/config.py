"""Process-wide configuration.

Built once at startup with :meth:`AppConfig.from_env` and handed to the
pipeline, classifier and generators by reference. Nothing in the package
reads provider or environment selection from module globals.

Env vars:
- RENDERME_ENV (production | development | test)
- RENDERME_DEFAULT_MODEL, RENDERME_TITLE_MODEL
- RENDERME_RESUME_MIN_CHARS, RENDERME_MAX_TOOL_STEPS
- RENDERME_ATTACHMENT_TIMEOUT, RENDERME_MAX_UPLOAD_BYTES
- RENDERME_GUEST_MESSAGES_PER_DAY, RENDERME_REGULAR_MESSAGES_PER_DAY
- RENDERME_CHAT_STORE_IMPL (memory | mongo)
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        return default


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None:
        return default
    try:
        value = float(raw)
        return value if value > 0 else default
    except ValueError:
        return default


@dataclass(frozen=True)
class AppConfig:
    environment: str = "development"
    default_chat_model: str = "deepseek/deepseek-chat"
    title_model: str = "deepseek/deepseek-chat"
    resume_min_chars: int = 50
    max_tool_steps: int = 5
    attachment_fetch_timeout: float = 15.0
    max_upload_bytes: int = 10 * 1024 * 1024
    messages_per_day: Dict[str, int] = field(default_factory=lambda: {"guest": 20, "regular": 100})
    chat_store_impl: str = "memory"
    env: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)

    @property
    def is_test(self) -> bool:
        return self.environment == "test"

    @staticmethod
    def from_env(env: Optional[Mapping[str, str]] = None) -> "AppConfig":
        source: Mapping[str, str] = env if env is not None else dict(os.environ)
        environment = (source.get("RENDERME_ENV") or "development").strip().lower()
        if environment not in ("production", "development", "test"):
            environment = "development"
        return AppConfig(
            environment=environment,
            default_chat_model=source.get("RENDERME_DEFAULT_MODEL") or "deepseek/deepseek-chat",
            title_model=source.get("RENDERME_TITLE_MODEL") or "deepseek/deepseek-chat",
            resume_min_chars=_env_int(source, "RENDERME_RESUME_MIN_CHARS", 50),
            max_tool_steps=_env_int(source, "RENDERME_MAX_TOOL_STEPS", 5),
            attachment_fetch_timeout=_env_float(source, "RENDERME_ATTACHMENT_TIMEOUT", 15.0),
            max_upload_bytes=_env_int(source, "RENDERME_MAX_UPLOAD_BYTES", 10 * 1024 * 1024),
            messages_per_day={
                "guest": _env_int(source, "RENDERME_GUEST_MESSAGES_PER_DAY", 20),
                "regular": _env_int(source, "RENDERME_REGULAR_MESSAGES_PER_DAY", 100),
            },
            chat_store_impl=(source.get("RENDERME_CHAT_STORE_IMPL") or "memory").strip().lower(),
            env=dict(source),
        )
