from __future__ import annotations

import logging
from typing import AsyncIterator, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse

from ...config import AppConfig
from ...domain.chat_models import Chat, ChatRequest, ChatWithMessages, Turn
from ...infrastructure.chat_store import ChatStore, DuplicateMessageError
from ...security.auth import User
from ...security.entitlements import QuotaExceeded, enforce_message_quota
from ...security.rbac import Permission, require_permission
from ...services.chat_pipeline import ChatPipeline
from ...services.model_router import ModelRouter
from ...tools.base import ToolContext
from ..deps import get_config, get_pipeline, get_router, get_store


logger = logging.getLogger("renderme.api.chat")

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"}
PLACEHOLDER_TITLE = "New chat"


def _owned_chat(store: ChatStore, chat_id: str, user: User) -> Chat:
    chat = store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if chat.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return chat


@router.post("")
def post_chat(
    req: ChatRequest,
    user: User = Depends(require_permission(Permission.CHAT_WRITE)),
    store: ChatStore = Depends(get_store),
    pipeline: ChatPipeline = Depends(get_pipeline),
    config: AppConfig = Depends(get_config),
) -> StreamingResponse:
    try:
        enforce_message_quota(user, store, config)
    except QuotaExceeded as exc:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"You have reached your daily limit of {exc.limit} messages.",
        ) from exc

    chat = store.get_chat(req.id)
    title_source = None
    if chat is None:
        store.save_chat(req.id, user.id, PLACEHOLDER_TITLE, req.selected_visibility_type)
        title_source = req.new_user_message()
    elif chat.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")

    new_message = req.new_user_message()
    if new_message is not None:
        history = [m.to_chat_message() for m in store.list_messages(req.id)]
        try:
            store.insert_messages(req.id, [new_message])
        except DuplicateMessageError as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Message already exists") from exc
        messages = [*history, new_message]
    else:
        messages = list(req.messages or [])

    turn = Turn(
        chat_id=req.id,
        messages=messages,
        selected_model_id=req.selected_chat_model,
        is_tool_approval_continuation=req.is_tool_approval_flow,
    )
    context = ToolContext(user_id=user.id, chat_id=req.id)
    logger.info(
        "chat_turn_started",
        extra={"chat_id": req.id, "user_id": user.id, "continuation": turn.is_tool_approval_continuation},
    )

    async def body() -> AsyncIterator[str]:
        async for event in pipeline.create_chat_stream(turn, context, title_source=title_source):
            yield event.to_sse()
        yield "data: [DONE]\n\n"

    return StreamingResponse(body(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/history", response_model=List[Chat])
def chat_history(
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(require_permission(Permission.CHAT_READ)),
    store: ChatStore = Depends(get_store),
) -> List[Chat]:
    return store.list_chats(user.id, limit=limit)


@router.get("/models")
def chat_models(
    user: User = Depends(require_permission(Permission.CHAT_READ)),
    model_router: ModelRouter = Depends(get_router),
) -> List[Dict[str, object]]:
    return model_router.catalog()


@router.get("/{chat_id}", response_model=ChatWithMessages)
def get_chat(
    chat_id: str,
    user: User = Depends(require_permission(Permission.CHAT_READ)),
    store: ChatStore = Depends(get_store),
) -> ChatWithMessages:
    chat = store.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if chat.visibility == "private" and chat.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return ChatWithMessages(chat=chat, messages=store.list_messages(chat_id))


@router.delete("/{chat_id}")
def delete_chat(
    chat_id: str,
    user: User = Depends(require_permission(Permission.CHAT_WRITE)),
    store: ChatStore = Depends(get_store),
) -> Dict[str, str]:
    _owned_chat(store, chat_id, user)
    store.delete_chat(chat_id)
    return {"status": "deleted", "chat_id": chat_id}
