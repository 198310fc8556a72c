from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from threading import RLock
from typing import Dict, List, Optional, Protocol

from ..domain.chat_models import Document


DOCUMENT_KINDS = ("text", "code", "sheet")


class DocumentNotFound(KeyError):
    pass


@dataclass
class _Version:
    version: int
    title: str
    kind: str
    content: str
    created_at: datetime


def _isoformat_utc(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


class DocumentStore(Protocol):
    def create(self, owner: str, title: str, kind: str, content: str = "") -> Document: ...
    def update(self, document_id: str, content: str) -> Document: ...
    def get(self, document_id: str, version: Optional[int] = None) -> Optional[Document]: ...
    def list_for_owner(self, owner: str) -> List[Document]: ...


class InMemoryDocumentStore:
    """Versioned documents produced by the chat tools.

    Every update appends a version; identical content does not bump it.
    """

    def __init__(self) -> None:
        self._versions: Dict[str, List[_Version]] = {}
        self._owners: Dict[str, str] = {}
        self._lock = RLock()

    def _to_model(self, document_id: str, v: _Version) -> Document:
        return Document(
            document_id=document_id,
            title=v.title,
            kind=v.kind,
            content=v.content,
            version=v.version,
            owner=self._owners[document_id],
            created_at=_isoformat_utc(v.created_at),
        )

    def create(self, owner: str, title: str, kind: str, content: str = "") -> Document:
        if kind not in DOCUMENT_KINDS:
            raise ValueError(f"unsupported document kind: {kind}")
        document_id = uuid.uuid4().hex
        with self._lock:
            self._owners[document_id] = owner
            self._versions[document_id] = [_Version(1, title, kind, content, datetime.now(UTC))]
            return self._to_model(document_id, self._versions[document_id][-1])

    def update(self, document_id: str, content: str) -> Document:
        with self._lock:
            versions = self._versions.get(document_id)
            if not versions:
                raise DocumentNotFound(document_id)
            last = versions[-1]
            if last.content != content:
                versions.append(_Version(last.version + 1, last.title, last.kind, content, datetime.now(UTC)))
            return self._to_model(document_id, versions[-1])

    def get(self, document_id: str, version: Optional[int] = None) -> Optional[Document]:
        with self._lock:
            versions = self._versions.get(document_id) or []
            if not versions:
                return None
            if version is None:
                return self._to_model(document_id, versions[-1])
            for v in versions:
                if v.version == version:
                    return self._to_model(document_id, v)
            return None

    def list_for_owner(self, owner: str) -> List[Document]:
        with self._lock:
            return [
                self._to_model(doc_id, self._versions[doc_id][-1])
                for doc_id, doc_owner in self._owners.items()
                if doc_owner == owner
            ]


_document_store: Optional[InMemoryDocumentStore] = None


def get_document_store() -> InMemoryDocumentStore:
    global _document_store
    if _document_store is None:
        _document_store = InMemoryDocumentStore()
    return _document_store


def reset_document_store() -> None:
    global _document_store
    _document_store = None
