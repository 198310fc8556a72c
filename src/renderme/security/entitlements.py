"""Daily message quota per user type."""

from __future__ import annotations

import os

from ..config import AppConfig
from ..domain.chat_models import UsageResponse
from ..infrastructure.chat_store import ChatStore
from .auth import User

WINDOW_HOURS = 24


class QuotaExceeded(Exception):
    def __init__(self, used: int, limit: int) -> None:
        super().__init__("Daily message limit reached")
        self.used = used
        self.limit = limit


def daily_limit(user: User, config: AppConfig) -> int:
    limits = config.messages_per_day
    return int(limits.get(user.user_type, limits.get("guest", 0)))


def usage_for(user: User, store: ChatStore, config: AppConfig) -> UsageResponse:
    used = store.count_user_messages(user.id, hours=WINDOW_HOURS)
    limit = daily_limit(user, config)
    return UsageResponse(used=used, limit=limit, remaining=max(0, limit - used), user_type=user.user_type)


def _quota_disabled() -> bool:
    flag = os.getenv("RENDERME_QUOTA_DISABLED")
    return bool(flag) and flag.lower() in {"1", "true", "yes", "on"}


def enforce_message_quota(user: User, store: ChatStore, config: AppConfig) -> UsageResponse:
    """Return current usage, raising :class:`QuotaExceeded` when no messages remain."""
    usage = usage_for(user, store, config)
    if not _quota_disabled() and usage.used >= usage.limit:
        raise QuotaExceeded(usage.used, usage.limit)
    return usage
