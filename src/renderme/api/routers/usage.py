from __future__ import annotations

from fastapi import APIRouter, Depends

from ...config import AppConfig
from ...domain.chat_models import UsageResponse
from ...infrastructure.chat_store import ChatStore
from ...security.auth import User
from ...security.entitlements import usage_for
from ...security.rbac import Permission, require_permission
from ..deps import get_config, get_store

router = APIRouter(tags=["usage"])


@router.get("/usage", response_model=UsageResponse)
def get_usage(
    user: User = Depends(require_permission(Permission.CHAT_READ)),
    store: ChatStore = Depends(get_store),
    config: AppConfig = Depends(get_config),
) -> UsageResponse:
    return usage_for(user, store, config)
