from __future__ import annotations

import asyncio
import base64
import io
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

from docx import Document as DocxDocument

from src.renderme.domain.chat_models import ChatMessage, FilePart, TextPart, ToolInvocationPart
from src.renderme.domain.stream_events import StreamEvent
from src.renderme.security.auth import User, create_access_token
from src.renderme.services.attachments import ExtractedDocument
from src.renderme.services.chat_pipeline import pending_background_tasks


def user_msg(text: str, message_id: Optional[str] = None) -> ChatMessage:
    return ChatMessage(id=message_id or uuid.uuid4().hex, role="user", parts=[TextPart(text=text)])


def assistant_msg(*parts: Any, message_id: Optional[str] = None) -> ChatMessage:
    return ChatMessage(id=message_id or uuid.uuid4().hex, role="assistant", parts=list(parts))


def pdf_part(url: str = "data:application/pdf;base64,AAAA", filename: str = "resume.pdf") -> FilePart:
    return FilePart(url=url, media_type="application/pdf", filename=filename)


def tool_part(call_id: str, name: str, state: str, arguments: Optional[Dict[str, Any]] = None, **kw: Any) -> ToolInvocationPart:
    return ToolInvocationPart(tool_call_id=call_id, tool_name=name, arguments=arguments or {}, state=state, **kw)


def make_pdf_bytes(text: str = "Hello Resume", title: str = "My Resume", author: str = "Zhang San") -> bytes:
    """Build a one-page PDF with a Helvetica text run and an info dictionary."""
    content = f"BT /F1 24 Tf 72 720 Td ({text}) Tj ET".encode("latin-1")
    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R "
        b"/Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
        f"<< /Title ({title}) /Author ({author}) >>".encode("latin-1"),
    ]
    out = bytearray(b"%PDF-1.4\n")
    offsets: List[int] = []
    for i, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % i + body + b"\nendobj\n"
    xref = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for off in offsets:
        out += b"%010d 00000 n \n" % off
    out += b"trailer\n<< /Size %d /Root 1 0 R /Info 6 0 R >>\nstartxref\n%d\n%%%%EOF\n" % (len(objects) + 1, xref)
    return bytes(out)


def make_docx_bytes(paragraphs: Sequence[str], title: str = "", author: str = "") -> bytes:
    doc = DocxDocument()
    for p in paragraphs:
        doc.add_paragraph(p)
    doc.core_properties.title = title
    doc.core_properties.author = author
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


def data_url(media_type: str, data: bytes) -> str:
    return f"data:{media_type};base64,{base64.b64encode(data).decode('ascii')}"


class StubExtractor:
    def __init__(self, doc: Optional[ExtractedDocument] = None, error: Optional[Exception] = None) -> None:
        self.doc = doc or ExtractedDocument(text="Senior front-end engineer", page_count=2, title="CV")
        self.error = error
        self.calls: List[Any] = []

    def extract(self, source: Any, media_type: Optional[str] = None) -> ExtractedDocument:
        self.calls.append(source)
        if self.error is not None:
            raise self.error
        return self.doc


class ListWriter:
    def __init__(self) -> None:
        self.events: List[StreamEvent] = []

    def write(self, event: StreamEvent) -> None:
        self.events.append(event)

    def types(self) -> List[str]:
        return [e.type for e in self.events]


async def collect(stream: AsyncIterator[StreamEvent]) -> List[StreamEvent]:
    return [event async for event in stream]


async def drain_background() -> None:
    """Wait for detached turn and title tasks started by the pipeline."""
    for _ in range(10):
        tasks = pending_background_tasks()
        if not tasks:
            return
        await asyncio.gather(*tasks, return_exceptions=True)


def token_headers(user_id: str = "user-1", user_type: str = "regular", roles: Optional[List[str]] = None) -> Dict[str, str]:
    user = User(
        id=user_id,
        email=f"{user_id}@example.com",
        name=user_id,
        roles=roles or ["member"],
        user_type=user_type,
    )
    return {"Authorization": f"Bearer {create_access_token(user)}"}
