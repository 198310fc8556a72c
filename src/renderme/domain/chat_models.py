from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, model_validator


DOCUMENT_MEDIA_TYPES = frozenset(
    {
        "application/pdf",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    }
)
UPLOAD_MEDIA_TYPES = frozenset({"image/jpeg", "image/png", "application/pdf"})


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ReasoningPart(BaseModel):
    type: Literal["reasoning"] = "reasoning"
    text: str


class FilePart(BaseModel):
    type: Literal["file"] = "file"
    url: str
    media_type: str = Field(alias="mediaType")
    filename: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


ToolState = Literal["pending", "approved", "denied", "result", "error"]


class ToolInvocationPart(BaseModel):
    type: Literal["tool-invocation"] = "tool-invocation"
    tool_call_id: str
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    state: ToolState = "pending"
    result: Optional[Any] = None
    error: Optional[str] = None


Part = Annotated[
    Union[TextPart, ReasoningPart, FilePart, ToolInvocationPart],
    Field(discriminator="type"),
]

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    id: str
    role: Role
    parts: List[Part] = Field(default_factory=list)
    created_at: Optional[datetime] = None


def message_text(message: ChatMessage) -> str:
    return " ".join(p.text for p in message.parts if isinstance(p, TextPart))


class Turn(BaseModel):
    """One request cycle as handed to a generator."""

    chat_id: str
    messages: List[ChatMessage]
    selected_model_id: str
    is_tool_approval_continuation: bool = False

    model_config = ConfigDict(frozen=True)

    def user_messages(self) -> List[ChatMessage]:
        return [m for m in self.messages if m.role == "user"]

    def last_assistant_message(self) -> Optional[ChatMessage]:
        if self.messages and self.messages[-1].role == "assistant":
            return self.messages[-1]
        return None


class GeneratorResult(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)


# --- inbound HTTP contract ---
class UserMessageIn(BaseModel):
    id: str = Field(min_length=1)
    role: Literal["user"]
    parts: List[Union[TextPart, FilePart]] = Field(min_length=1)

    @model_validator(mode="after")
    def _check_parts(self) -> "UserMessageIn":
        for part in self.parts:
            if isinstance(part, TextPart) and not part.text:
                raise ValueError("text parts must not be empty")
            if isinstance(part, FilePart):
                allowed = UPLOAD_MEDIA_TYPES | DOCUMENT_MEDIA_TYPES
                if part.media_type not in allowed:
                    raise ValueError(f"unsupported media type: {part.media_type}")
                if not (part.url.startswith("data:") or part.url.startswith("http://") or part.url.startswith("https://")):
                    raise ValueError("Invalid URL format")
        return self


class ChatRequest(BaseModel):
    id: str = Field(min_length=1)
    message: Optional[UserMessageIn] = None
    messages: Optional[List[ChatMessage]] = None
    selected_chat_model: str = Field(alias="selectedChatModel", min_length=1)
    selected_visibility_type: Literal["public", "private"] = Field(default="private", alias="selectedVisibilityType")

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="after")
    def _one_of_message_or_messages(self) -> "ChatRequest":
        if (self.message is None) == (self.messages is None):
            raise ValueError("provide exactly one of 'message' or 'messages'")
        if self.messages is not None and not self.messages:
            raise ValueError("'messages' must not be empty")
        return self

    @property
    def is_tool_approval_flow(self) -> bool:
        return self.messages is not None

    def new_user_message(self) -> Optional[ChatMessage]:
        if self.message is None:
            return None
        return ChatMessage(id=self.message.id, role="user", parts=list(self.message.parts))


# --- storage facing models ---
class Chat(BaseModel):
    chat_id: str
    user_id: str
    title: str
    visibility: Literal["public", "private"] = "private"
    created_at: str
    updated_at: str


class StoredMessage(BaseModel):
    id: str
    chat_id: str
    role: Role
    parts: List[Part]
    created_at: str

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(id=self.id, role=self.role, parts=list(self.parts), created_at=self.created_at)


class ChatWithMessages(BaseModel):
    chat: Chat
    messages: List[StoredMessage]


class UsageResponse(BaseModel):
    used: int
    limit: int
    remaining: int
    user_type: str


class UploadResponse(BaseModel):
    url: str
    pathname: str
    content_type: str


class Document(BaseModel):
    document_id: str
    title: str
    kind: str
    content: str
    version: int
    owner: str
    created_at: str
