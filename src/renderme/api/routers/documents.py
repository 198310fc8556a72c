from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...domain.chat_models import Document
from ...infrastructure.doc_store import get_document_store
from ...security.auth import User
from ...security.rbac import Permission, require_permission

router = APIRouter(prefix="/documents", tags=["documents"])


@router.get("", response_model=List[Document])
def list_documents(user: User = Depends(require_permission(Permission.CHAT_READ))) -> List[Document]:
    return get_document_store().list_for_owner(user.id)


@router.get("/{document_id}", response_model=Document)
def get_document(
    document_id: str,
    version: Optional[int] = Query(None, ge=1),
    user: User = Depends(require_permission(Permission.CHAT_READ)),
) -> Document:
    doc = get_document_store().get(document_id, version)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    if doc.owner != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return doc
