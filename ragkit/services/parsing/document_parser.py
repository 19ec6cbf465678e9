"""Document parser: uploaded bytes -> cleaned text and page records.

PDFs are read with PyMuPDF (fitz) page by page; plain text and markdown
are decoded as UTF-8.  Text is cleaned of control characters and runs of
horizontal whitespace, but line and paragraph breaks are kept so the
semantic and recursive chunkers can still see document structure.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragkit.models.chunking import PAGE_SEPARATOR, PageContent
from ragkit.models.knowledge_base import DocumentMetadata, ParsedDocument
from ragkit.utils.errors import ParsingError

logger = structlog.get_logger(logger_name=__name__)

PDF_MIME_TYPES = frozenset({"application/pdf"})
TEXT_MIME_TYPES = frozenset({"text/plain", "text/markdown", "text/x-markdown"})

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_HORIZONTAL_WS = re.compile(r"[ \t\u00a0]+")
_SPACE_BEFORE_PUNCT = re.compile(r" +([.,!?;:])")
_PDF_DATE = re.compile(r"D:(\d{4})(\d{2})(\d{2})(\d{2})?(\d{2})?(\d{2})?")


class DocumentParser:
    """Turns uploaded file bytes into a :class:`ParsedDocument`."""

    def supports(self, mime_type: str) -> bool:
        return mime_type in PDF_MIME_TYPES or mime_type in TEXT_MIME_TYPES

    def parse(self, data: bytes, mime_type: str) -> ParsedDocument:
        """Parse *data* according to *mime_type*.

        Raises
        ------
        ParsingError
            ``UNSUPPORTED_TYPE`` for unknown MIME types, ``INVALID_PDF`` if
            PyMuPDF cannot open the file, ``EMPTY_DOCUMENT`` if no text was
            extracted.
        """
        if mime_type in PDF_MIME_TYPES:
            document = self._parse_pdf(data)
        elif mime_type in TEXT_MIME_TYPES:
            document = self.parse_text(data.decode("utf-8", errors="replace"))
        else:
            raise ParsingError(f"Unsupported file type: {mime_type}", code="UNSUPPORTED_TYPE")

        if not document.text:
            raise ParsingError("No text could be extracted from the document", code="EMPTY_DOCUMENT")

        logger.info(
            "document_parsed",
            mime_type=mime_type,
            pages=len(document.pages),
            characters=document.total_characters,
            words=document.total_words,
        )
        return document

    def parse_text(self, text: str) -> ParsedDocument:
        """Wrap raw text (manual input or a text file) as a single-page document."""
        cleaned = clean_text(text)
        return ParsedDocument(
            text=cleaned,
            pages=[PageContent(page_number=1, text=cleaned)] if cleaned else [],
            metadata=DocumentMetadata(page_count=1 if cleaned else 0),
            total_characters=len(cleaned),
            total_words=count_words(cleaned),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_pdf(data: bytes) -> ParsedDocument:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ParsingError(f"Could not open PDF: {exc}", code="INVALID_PDF") from exc

        pages: list[PageContent] = []
        try:
            info = doc.metadata or {}
            page_count = len(doc)
            for page_num in range(page_count):
                text = clean_text(doc[page_num].get_text("text"))
                if text:
                    pages.append(PageContent(page_number=page_num + 1, text=text))
        finally:
            doc.close()

        full_text = PAGE_SEPARATOR.join(page.text for page in pages)
        return ParsedDocument(
            text=full_text,
            pages=pages,
            metadata=DocumentMetadata(
                title=info.get("title") or None,
                author=info.get("author") or None,
                page_count=page_count,
                created_at=parse_pdf_date(info.get("creationDate")),
                modified_at=parse_pdf_date(info.get("modDate")),
            ),
            total_characters=len(full_text),
            total_words=count_words(full_text),
        )


def clean_text(text: str) -> str:
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = _CONTROL_CHARS.sub("", text)
    text = _HORIZONTAL_WS.sub(" ", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    lines = [line.strip() for line in text.split("\n")]
    return re.sub(r"\n{3,}", "\n\n", "\n".join(lines)).strip()


def count_words(text: str) -> int:
    return len(text.split())


def parse_pdf_date(value: str | None) -> datetime | None:
    """Parse a PDF date string (``D:YYYYMMDDHHmmSS...``) as UTC."""
    if not value:
        return None
    match = _PDF_DATE.match(value)
    if not match:
        return None
    year, month, day, hour, minute, second = (int(part) if part else 0 for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None
