from __future__ import annotations

from datetime import UTC, datetime, timedelta
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..domain.chat_models import Chat, ChatMessage, Part, StoredMessage
from .chat_store import DuplicateMessageError, InMemoryChatStore, now_iso


logger = logging.getLogger("renderme.infrastructure.chat_store_mongo")


class MongoChatStore:
    """pymongo-backed chat store.

    Falls back to an in-process :class:`InMemoryChatStore` when Mongo cannot
    be reached at construction time.
    """

    def __init__(self, client: Optional[MongoClient] = None) -> None:
        self._fallback = InMemoryChatStore()
        self._chats: Optional[Collection] = None
        self._messages: Optional[Collection] = None
        try:
            mongo_url = os.getenv("MONGO_URL", "mongodb://localhost:27017")
            mongo_db = os.getenv("MONGO_DB", "renderme")
            self._client = client or MongoClient(mongo_url, serverSelectionTimeoutMS=500)
            self._client.admin.command("ping")
            db = self._client[mongo_db]
            self._chats = db["chats"]
            self._messages = db["messages"]
            self._chats.create_index("chat_id", unique=True)
            self._chats.create_index([("user_id", ASCENDING), ("updated_at", DESCENDING)])
            self._messages.create_index("id", unique=True)
            self._messages.create_index([("chat_id", ASCENDING), ("created_at", ASCENDING)])
        except PyMongoError as exc:
            logger.warning("mongo_unavailable", extra={"reason": str(exc)})
            self._chats = None
            self._messages = None

    def _use_fallback(self) -> bool:
        return self._chats is None or self._messages is None

    @staticmethod
    def _to_chat(doc: Dict[str, Any]) -> Chat:
        return Chat(
            chat_id=str(doc["chat_id"]),
            user_id=str(doc["user_id"]),
            title=str(doc.get("title") or ""),
            visibility=doc.get("visibility") or "private",
            created_at=str(doc.get("created_at")),
            updated_at=str(doc.get("updated_at")),
        )

    @staticmethod
    def _to_message(doc: Dict[str, Any]) -> StoredMessage:
        return StoredMessage(
            id=str(doc["id"]),
            chat_id=str(doc["chat_id"]),
            role=doc["role"],
            parts=doc.get("parts") or [],
            created_at=str(doc.get("created_at")),
        )

    def save_chat(self, chat_id: str, user_id: str, title: str, visibility: str = "private") -> Chat:
        if self._use_fallback():
            return self._fallback.save_chat(chat_id, user_id, title, visibility)
        now = now_iso()
        self._chats.update_one(  # type: ignore[union-attr]
            {"chat_id": chat_id},
            {
                "$setOnInsert": {
                    "chat_id": chat_id,
                    "user_id": user_id,
                    "title": title,
                    "visibility": visibility,
                    "created_at": now,
                    "updated_at": now,
                }
            },
            upsert=True,
        )
        doc = self._chats.find_one({"chat_id": chat_id})  # type: ignore[union-attr]
        return self._to_chat(doc)

    def get_chat(self, chat_id: str) -> Optional[Chat]:
        if self._use_fallback():
            return self._fallback.get_chat(chat_id)
        doc = self._chats.find_one({"chat_id": chat_id})  # type: ignore[union-attr]
        return self._to_chat(doc) if doc else None

    def list_chats(self, user_id: str, limit: int = 50) -> List[Chat]:
        if self._use_fallback():
            return self._fallback.list_chats(user_id, limit)
        cursor = self._chats.find({"user_id": user_id}).sort("updated_at", -1).limit(max(0, limit))  # type: ignore[union-attr]
        return [self._to_chat(doc) for doc in cursor]

    def delete_chat(self, chat_id: str) -> bool:
        if self._use_fallback():
            return self._fallback.delete_chat(chat_id)
        res = self._chats.delete_one({"chat_id": chat_id})  # type: ignore[union-attr]
        self._messages.delete_many({"chat_id": chat_id})  # type: ignore[union-attr]
        return res.deleted_count > 0

    def insert_messages(self, chat_id: str, messages: Sequence[ChatMessage]) -> List[StoredMessage]:
        if self._use_fallback():
            return self._fallback.insert_messages(chat_id, messages)
        if not messages:
            return []
        now = now_iso()
        docs = [
            {
                "id": m.id,
                "chat_id": chat_id,
                "role": m.role,
                "parts": [p.model_dump(mode="json") for p in m.parts],
                "created_at": now,
            }
            for m in messages
        ]
        try:
            self._messages.insert_many([dict(d) for d in docs], ordered=True)  # type: ignore[union-attr]
        except DuplicateKeyError as exc:
            raise DuplicateMessageError(str(exc)) from exc
        self._chats.update_one({"chat_id": chat_id}, {"$set": {"updated_at": now}})  # type: ignore[union-attr]
        return [self._to_message(d) for d in docs]

    def update_message_parts(self, message_id: str, parts: Sequence[Part]) -> bool:
        if self._use_fallback():
            return self._fallback.update_message_parts(message_id, parts)
        res = self._messages.update_one(  # type: ignore[union-attr]
            {"id": message_id},
            {"$set": {"parts": [p.model_dump(mode="json") for p in parts]}},
        )
        return res.matched_count > 0

    def update_chat_title(self, chat_id: str, title: str) -> bool:
        if self._use_fallback():
            return self._fallback.update_chat_title(chat_id, title)
        res = self._chats.update_one({"chat_id": chat_id}, {"$set": {"title": title}})  # type: ignore[union-attr]
        return res.matched_count > 0

    def list_messages(self, chat_id: str) -> List[StoredMessage]:
        if self._use_fallback():
            return self._fallback.list_messages(chat_id)
        cursor = self._messages.find({"chat_id": chat_id}).sort("created_at", 1)  # type: ignore[union-attr]
        return [self._to_message(doc) for doc in cursor]

    def count_user_messages(self, user_id: str, hours: int = 24) -> int:
        if self._use_fallback():
            return self._fallback.count_user_messages(user_id, hours)
        cutoff = (datetime.now(UTC) - timedelta(hours=hours)).isoformat().replace("+00:00", "Z")
        chat_ids = [doc["chat_id"] for doc in self._chats.find({"user_id": user_id}, {"chat_id": 1})]  # type: ignore[union-attr]
        if not chat_ids:
            return 0
        return int(
            self._messages.count_documents(  # type: ignore[union-attr]
                {"chat_id": {"$in": chat_ids}, "role": "user", "created_at": {"$gte": cutoff}}
            )
        )
