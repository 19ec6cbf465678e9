"""Unit tests for the document parser."""

from __future__ import annotations

import string
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from ragkit.models.chunking import ChunkingOptions
from ragkit.services.chunking.fixed import fixed_chunk
from ragkit.services.parsing.document_parser import DocumentParser, clean_text, parse_pdf_date
from ragkit.utils.errors import ParsingError

_FITZ_OPEN = "ragkit.services.parsing.document_parser.fitz.open"


def _fake_pdf(page_texts: list[str], metadata: dict | None = None) -> MagicMock:
    pages = [MagicMock(**{"get_text.return_value": text}) for text in page_texts]
    doc = MagicMock()
    doc.metadata = metadata or {}
    doc.__len__.return_value = len(pages)
    doc.__getitem__.side_effect = lambda index: pages[index]
    return doc


# ======================================================================
# PDF parsing
# ======================================================================


class TestParsePdf:
    def test_pages_and_metadata(self) -> None:
        doc = _fake_pdf(
            ["Page one   text .", "", "Page three"],
            {"title": "Handbook", "author": "", "creationDate": "D:20240102030405+00'00'"},
        )
        with patch(_FITZ_OPEN, return_value=doc) as fitz_open:
            parsed = DocumentParser().parse(b"%PDF-1.7", "application/pdf")

        fitz_open.assert_called_once_with(stream=b"%PDF-1.7", filetype="pdf")
        doc.close.assert_called_once()
        assert [page.page_number for page in parsed.pages] == [1, 3]
        assert parsed.text == "Page one text.\n\nPage three"
        assert parsed.metadata.title == "Handbook"
        assert parsed.metadata.author is None
        assert parsed.metadata.page_count == 3
        assert parsed.metadata.created_at == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert parsed.total_words == 5

    def test_unreadable_pdf(self) -> None:
        with patch(_FITZ_OPEN, side_effect=RuntimeError("broken xref")):
            with pytest.raises(ParsingError) as exc_info:
                DocumentParser().parse(b"garbage", "application/pdf")
        assert exc_info.value.code == "INVALID_PDF"

    def test_pdf_without_text(self) -> None:
        with patch(_FITZ_OPEN, return_value=_fake_pdf(["  ", "\n"])):
            with pytest.raises(ParsingError) as exc_info:
                DocumentParser().parse(b"%PDF", "application/pdf")
        assert exc_info.value.code == "EMPTY_DOCUMENT"

    def test_page_table_matches_joined_text(self) -> None:
        page_texts = [letter * 100 for letter in string.ascii_letters[:40]]
        with patch(_FITZ_OPEN, return_value=_fake_pdf(page_texts)):
            parsed = DocumentParser().parse(b"%PDF", "application/pdf")
        options = ChunkingOptions(chunk_size=50, chunk_overlap=0, min_chunk_size=0, preserve_sentences=False)

        chunks = fixed_chunk(parsed.text, options, parsed.pages)

        for chunk in chunks:
            page_number = string.ascii_letters.index(chunk.content[0]) + 1
            assert chunk.metadata.page_number == page_number
        assert chunks[-1].metadata.page_number == 40


# ======================================================================
# Text parsing
# ======================================================================


class TestParseText:
    def test_plain_text(self) -> None:
        parsed = DocumentParser().parse("Hello\r\nworld\x00!".encode(), "text/plain")
        assert parsed.text == "Hello\nworld!"
        assert [page.page_number for page in parsed.pages] == [1]
        assert parsed.total_characters == len(parsed.text)

    def test_markdown_keeps_structure(self) -> None:
        parsed = DocumentParser().parse(b"# Title\n\n\n\nBody text.", "text/markdown")
        assert parsed.text == "# Title\n\nBody text."

    def test_unsupported_type(self) -> None:
        with pytest.raises(ParsingError) as exc_info:
            DocumentParser().parse(b"...", "image/png")
        assert exc_info.value.code == "UNSUPPORTED_TYPE"

    def test_empty_text(self) -> None:
        with pytest.raises(ParsingError) as exc_info:
            DocumentParser().parse(b"   \n ", "text/plain")
        assert exc_info.value.code == "EMPTY_DOCUMENT"

    def test_parse_text_of_empty_input_has_no_pages(self) -> None:
        parsed = DocumentParser().parse_text("")
        assert parsed.pages == []
        assert parsed.metadata.page_count == 0

    def test_supports(self) -> None:
        parser = DocumentParser()
        assert parser.supports("application/pdf")
        assert parser.supports("text/plain")
        assert not parser.supports("application/msword")


# ======================================================================
# Helpers
# ======================================================================


class TestHelpers:
    def test_clean_text(self) -> None:
        assert clean_text("  a \t b  ,c \n\n\n\n d  ") == "a b,c\n\nd"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("D:20231231", datetime(2023, 12, 31, tzinfo=timezone.utc)),
            ("D:202312311530", datetime(2023, 12, 31, 15, 30, tzinfo=timezone.utc)),
            ("D:20231399", None),
            ("2023-12-31", None),
            (None, None),
        ],
    )
    def test_parse_pdf_date(self, value, expected) -> None:
        assert parse_pdf_date(value) == expected
