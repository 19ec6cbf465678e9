"""Unit tests for the text-analysis primitives used by the chunkers."""

from __future__ import annotations

from ragkit.utils.text_utils import (
    Section,
    clean_text_for_chunking,
    estimate_tokens,
    extract_sections,
    find_break_point,
    split_into_paragraphs,
    split_into_sentences,
)


class TestEstimateTokens:
    def test_empty(self) -> None:
        assert estimate_tokens("") == 0

    def test_rounds_up(self) -> None:
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2


class TestSplitIntoSentences:
    def test_abbreviation_does_not_end_sentence(self) -> None:
        assert split_into_sentences("Dr. Smith went home. He slept.") == [
            "Dr. Smith went home.",
            "He slept.",
        ]

    def test_latin_abbreviations(self) -> None:
        assert split_into_sentences("Use tools e.g. hammers. Done!") == [
            "Use tools e.g. hammers.",
            "Done!",
        ]

    def test_question_and_exclamation(self) -> None:
        assert split_into_sentences("Why? Because!  Fine.") == ["Why?", "Because!", "Fine."]

    def test_blank_text(self) -> None:
        assert split_into_sentences("   ") == []


class TestSplitIntoParagraphs:
    def test_blank_lines_with_spaces(self) -> None:
        assert split_into_paragraphs("a\n\n \n\nb\n\n") == ["a", "b"]

    def test_single_paragraph(self) -> None:
        assert split_into_paragraphs("  one line  ") == ["one line"]


class TestExtractSections:
    def test_markdown_headers(self) -> None:
        text = "Intro text\n# One\nBody one\n## Two\nBody two"
        assert extract_sections(text) == [
            Section(header="", content="Intro text"),
            Section(header="One", content="Body one"),
            Section(header="Two", content="Body two"),
        ]

    def test_all_caps_header(self) -> None:
        assert extract_sections("SUMMARY\nThe body.") == [Section(header="SUMMARY", content="The body.")]

    def test_header_without_content_falls_back_to_whole_text(self) -> None:
        assert extract_sections("# Title") == [Section(header="", content="# Title")]

    def test_empty_text(self) -> None:
        assert extract_sections("") == []


class TestCleanTextForChunking:
    def test_normalises_whitespace(self) -> None:
        assert clean_text_for_chunking("a\r\n\r\n\r\n\r\nb  \t c ") == "a\n\nb c"


class TestFindBreakPoint:
    def test_target_past_end(self) -> None:
        assert find_break_point("short", 10) == 5

    def test_prefers_paragraph_break(self) -> None:
        text = "Para one.\n\nPara two continues. More"
        assert find_break_point(text, 20) == 11

    def test_sentence_end(self) -> None:
        text = "First sentence here. Second sentence goes on"
        assert find_break_point(text, 25) == 21

    def test_word_boundary(self) -> None:
        assert find_break_point("aaaa bbbb cccc", 7) == 10

    def test_no_boundary_returns_target(self) -> None:
        assert find_break_point("A" * 50, 20) == 20
