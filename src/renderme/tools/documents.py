from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from ..infrastructure.doc_store import DocumentNotFound, get_document_store
from .base import Tool, ToolContext, ToolExecutionError


class CreateDocumentArgs(BaseModel):
    title: str = Field(min_length=1)
    kind: Literal["text", "code", "sheet"] = "text"
    content: str = Field(default="", description="Initial document body")


class UpdateDocumentArgs(BaseModel):
    id: str = Field(min_length=1, description="Document id returned by createDocument")
    description: str = Field(min_length=1, description="What should change")
    content: Optional[str] = Field(default=None, description="Full replacement body, if already written")


def _owner(context: Optional[ToolContext]) -> str:
    return context.user_id if context else "anonymous"


def _create(args: CreateDocumentArgs, context: Optional[ToolContext]) -> Dict[str, Any]:
    doc = get_document_store().create(_owner(context), args.title, args.kind, args.content)
    return {
        "id": doc.document_id,
        "title": doc.title,
        "kind": doc.kind,
        "content": "A document was created and is now visible to the user.",
    }


def _update(args: UpdateDocumentArgs, context: Optional[ToolContext]) -> Dict[str, Any]:
    store = get_document_store()
    current = store.get(args.id)
    if current is None:
        raise ToolExecutionError(f"document not found: {args.id}")
    if context is not None and current.owner != context.user_id:
        raise ToolExecutionError("document belongs to another user")
    body = args.content if args.content is not None else f"{current.content}\n\n{args.description}".strip()
    try:
        doc = store.update(args.id, body)
    except DocumentNotFound as exc:
        raise ToolExecutionError(f"document not found: {args.id}") from exc
    return {
        "id": doc.document_id,
        "title": doc.title,
        "kind": doc.kind,
        "version": doc.version,
        "content": "The document has been updated successfully.",
    }


CREATE_DOCUMENT_TOOL = Tool(
    name="createDocument",
    description="Create a document for writing or content creation activities.",
    args_model=CreateDocumentArgs,
    handler=_create,  # type: ignore[arg-type]
)

UPDATE_DOCUMENT_TOOL = Tool(
    name="updateDocument",
    description="Update an existing document with the given description.",
    args_model=UpdateDocumentArgs,
    handler=_update,  # type: ignore[arg-type]
    needs_approval=True,
)
