from __future__ import annotations

import asyncio
import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import requests
from docx import Document as DocxDocument
from pypdf import PdfReader

from ..domain.chat_models import DOCUMENT_MEDIA_TYPES, ChatMessage, FilePart, Part, TextPart
from .http_session import build_http_session


logger = logging.getLogger("renderme.services.attachments")

PDF_MEDIA_TYPE = "application/pdf"
DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


class ExtractionError(Exception):
    """Raised when a document cannot be fetched or parsed."""


@dataclass(frozen=True)
class ExtractedDocument:
    text: str
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep or ";base64" not in header:
        raise ExtractionError("data URL is not base64 encoded")
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ExtractionError(f"invalid base64 payload: {exc}") from exc


def _sniff_media_type(data: bytes) -> Optional[str]:
    if data.startswith(b"%PDF"):
        return PDF_MEDIA_TYPE
    if data.startswith(b"PK"):
        return DOCX_MEDIA_TYPE
    return None


class TextExtractor:
    """Turns PDF or DOCX payloads into plain text.

    ``source`` may be raw bytes, a ``data:`` URL or an ``http(s)`` URL; remote
    documents are fetched with a retrying ``requests`` session.
    """

    def __init__(self, timeout: float = 15.0, session: Optional[requests.Session] = None) -> None:
        self._timeout = timeout
        self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = build_http_session()
        return self._session

    def _load(self, source: Union[bytes, str]) -> bytes:
        if isinstance(source, (bytes, bytearray)):
            return bytes(source)
        if source.startswith("data:"):
            return _decode_data_url(source)
        if source.startswith("http://") or source.startswith("https://"):
            try:
                resp = self._get_session().get(source, timeout=self._timeout)
                resp.raise_for_status()
            except requests.RequestException as exc:
                raise ExtractionError(f"failed to fetch document: {exc}") from exc
            return resp.content
        raise ExtractionError("unsupported document source")

    def extract(self, source: Union[bytes, str], media_type: Optional[str] = None) -> ExtractedDocument:
        data = self._load(source)
        if not data:
            raise ExtractionError("empty document")
        kind = media_type or _sniff_media_type(data)
        if kind == PDF_MEDIA_TYPE:
            return self._extract_pdf(data)
        if kind == DOCX_MEDIA_TYPE:
            return self._extract_docx(data)
        raise ExtractionError(f"unsupported document type: {kind}")

    def _extract_pdf(self, data: bytes) -> ExtractedDocument:
        try:
            reader = PdfReader(io.BytesIO(data))
            texts: List[str] = []
            for page in reader.pages:
                t = page.extract_text() or ""
                if t:
                    texts.append(t)
            meta = reader.metadata
            title = str(meta.get("/Title")) if meta and meta.get("/Title") else None
            author = str(meta.get("/Author")) if meta and meta.get("/Author") else None
            return ExtractedDocument(text="\n".join(texts), page_count=len(reader.pages), title=title, author=author)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"PDF parse failed: {exc}") from exc

    def _extract_docx(self, data: bytes) -> ExtractedDocument:
        try:
            doc = DocxDocument(io.BytesIO(data))
            paragraphs = [p.text for p in doc.paragraphs if p.text and p.text.strip()]
            props = doc.core_properties
            return ExtractedDocument(
                text="\n".join(paragraphs),
                page_count=1,
                title=props.title or None,
                author=props.author or None,
            )
        except Exception as exc:
            raise ExtractionError(f"DOCX parse failed: {exc}") from exc


def format_document_for_model(doc: ExtractedDocument, filename: str) -> str:
    lines = [f"[Document: {filename}]"]
    if doc.title:
        lines.append(f"Title: {doc.title}")
    if doc.author:
        lines.append(f"Author: {doc.author}")
    lines.append(f"Pages: {doc.page_count}")
    lines.append("")
    lines.append("--- Content ---")
    lines.append(doc.text)
    lines.append("--- End of document ---")
    return "\n".join(lines)


def unreadable_placeholder(filename: str) -> str:
    return f"[Document: {filename}] (Unable to extract content)"


async def _convert_part(part: FilePart, extractor: TextExtractor) -> TextPart:
    filename = part.filename or "document"
    try:
        doc = await asyncio.to_thread(extractor.extract, part.url, part.media_type)
    except ExtractionError as exc:
        logger.warning("attachment_extract_failed", extra={"attachment": filename, "reason": str(exc)})
        return TextPart(text=unreadable_placeholder(filename))
    except Exception:
        logger.exception("attachment_extract_crashed", extra={"attachment": filename})
        return TextPart(text=unreadable_placeholder(filename))
    return TextPart(text=format_document_for_model(doc, filename))


async def preprocess_messages(messages: Sequence[ChatMessage], extractor: TextExtractor) -> List[ChatMessage]:
    """Replace document file parts with extracted text, keeping part positions.

    Input messages are left untouched; copies are returned. Image parts and
    text parts pass through unchanged, so running this twice is a no-op.
    """
    out: List[ChatMessage] = []
    for message in messages:
        doc_parts = [
            p for p in message.parts if isinstance(p, FilePart) and p.media_type in DOCUMENT_MEDIA_TYPES
        ]
        if not doc_parts:
            out.append(message)
            continue
        converted = await asyncio.gather(*(_convert_part(p, extractor) for p in doc_parts))
        replacements = {id(p): c for p, c in zip(doc_parts, converted)}
        parts: List[Part] = [replacements.get(id(p), p) for p in message.parts]
        out.append(message.model_copy(update={"parts": parts}))
    return out
