from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Sequence
import logging
import os

from ..domain.chat_models import Chat, ChatMessage, Part, StoredMessage


logger = logging.getLogger("renderme.infrastructure.chat_store")


class DuplicateMessageError(ValueError):
    pass


class ChatStore(Protocol):
    def save_chat(self, chat_id: str, user_id: str, title: str, visibility: str = "private") -> Chat: ...

    def get_chat(self, chat_id: str) -> Optional[Chat]: ...

    def list_chats(self, user_id: str, limit: int = 50) -> List[Chat]: ...

    def delete_chat(self, chat_id: str) -> bool: ...

    def insert_messages(self, chat_id: str, messages: Sequence[ChatMessage]) -> List[StoredMessage]: ...

    def update_message_parts(self, message_id: str, parts: Sequence[Part]) -> bool: ...

    def update_chat_title(self, chat_id: str, title: str) -> bool: ...

    def list_messages(self, chat_id: str) -> List[StoredMessage]: ...

    def count_user_messages(self, user_id: str, hours: int = 24) -> int: ...


def now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class _Chat:
    chat_id: str
    user_id: str
    title: str
    visibility: str
    created_at: str
    updated_at: str


@dataclass
class _Message:
    id: str
    chat_id: str
    role: str
    parts: List[Dict[str, Any]]
    created_at: str


class InMemoryChatStore:
    def __init__(self) -> None:
        self._chats: Dict[str, _Chat] = {}
        self._messages: Dict[str, List[_Message]] = {}
        self._message_chat: Dict[str, str] = {}
        self._lock = RLock()

    def _chat_model(self, chat: _Chat) -> Chat:
        return Chat(**chat.__dict__)

    def _message_model(self, message: _Message) -> StoredMessage:
        return StoredMessage(**message.__dict__)

    def save_chat(self, chat_id: str, user_id: str, title: str, visibility: str = "private") -> Chat:
        with self._lock:
            existing = self._chats.get(chat_id)
            if existing:
                return self._chat_model(existing)
            now = now_iso()
            chat = _Chat(chat_id, user_id, title, visibility, now, now)
            self._chats[chat_id] = chat
            self._messages.setdefault(chat_id, [])
            return self._chat_model(chat)

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        with self._lock:
            chat = self._chats.get(chat_id)
            return self._chat_model(chat) if chat else None

    def list_chats(self, user_id: str, limit: int = 50) -> List[Chat]:
        with self._lock:
            chats = [self._chat_model(c) for c in self._chats.values() if c.user_id == user_id]
            # Newest first
            chats.sort(key=lambda c: c.updated_at, reverse=True)
            return chats[: max(0, limit)]

    def delete_chat(self, chat_id: str) -> bool:
        with self._lock:
            if chat_id not in self._chats:
                return False
            del self._chats[chat_id]
            for m in self._messages.pop(chat_id, []):
                self._message_chat.pop(m.id, None)
            return True

    def insert_messages(self, chat_id: str, messages: Sequence[ChatMessage]) -> List[StoredMessage]:
        with self._lock:
            if chat_id not in self._chats:
                raise KeyError("Chat not found")
            for m in messages:
                if m.id in self._message_chat:
                    raise DuplicateMessageError(f"message already exists: {m.id}")
            now = now_iso()
            out: List[StoredMessage] = []
            for m in messages:
                row = _Message(
                    id=m.id,
                    chat_id=chat_id,
                    role=m.role,
                    parts=[p.model_dump(mode="json") for p in m.parts],
                    created_at=now,
                )
                self._messages[chat_id].append(row)
                self._message_chat[m.id] = chat_id
                out.append(self._message_model(row))
            self._chats[chat_id].updated_at = now
            return out

    def update_message_parts(self, message_id: str, parts: Sequence[Part]) -> bool:
        with self._lock:
            chat_id = self._message_chat.get(message_id)
            if chat_id is None:
                return False
            for row in self._messages.get(chat_id, []):
                if row.id == message_id:
                    row.parts = [p.model_dump(mode="json") for p in parts]
                    self._chats[chat_id].updated_at = now_iso()
                    return True
            return False

    def update_chat_title(self, chat_id: str, title: str) -> bool:
        with self._lock:
            chat = self._chats.get(chat_id)
            if not chat:
                return False
            chat.title = title
            return True

    def list_messages(self, chat_id: str) -> List[StoredMessage]:
        with self._lock:
            return [self._message_model(m) for m in self._messages.get(chat_id, [])]

    def count_user_messages(self, user_id: str, hours: int = 24) -> int:
        cutoff = datetime.now(UTC) - timedelta(hours=hours)
        with self._lock:
            total = 0
            for chat in self._chats.values():
                if chat.user_id != user_id:
                    continue
                total += sum(
                    1
                    for m in self._messages.get(chat.chat_id, [])
                    if m.role == "user" and parse_iso(m.created_at) >= cutoff
                )
            return total


_store: Optional[ChatStore] = None


def get_chat_store(impl: Optional[str] = None) -> ChatStore:
    global _store
    if _store is not None:
        return _store
    impl = (impl or os.getenv("RENDERME_CHAT_STORE_IMPL") or "memory").lower()
    if impl == "mongo":
        from .chat_store_mongo import MongoChatStore

        _store = MongoChatStore()
    else:
        _store = InMemoryChatStore()
    logger.info("chat_store_selected", extra={"impl": type(_store).__name__})
    return _store


def set_chat_store(store: Optional[ChatStore]) -> None:
    global _store
    _store = store
