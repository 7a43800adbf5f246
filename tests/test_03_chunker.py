"""Tests for boundary-aware text chunking."""
from __future__ import annotations

import pytest

from tts_batch.tts.chunker import chunk_text

SAMPLES = [
    "A. B. C.",
    "First sentence. Second one here! And a question? Yes.",
    "Line one\nLine two\n\nLine three after a blank line.",
    "nospacesatallinthisveryverylongwordthatmustbehardcut",
    "Words without any sentence ending but plenty of spaces between them all",
    "   Leading and trailing whitespace.   Another sentence.   ",
    "Mixed.\r\nWindows line endings.\r\nAnd more text here.",
]


def _assert_covers(text: str, chunks) -> None:
    """Chunks are exact slices and only whitespace lies between them."""
    pos = 0
    for c in chunks:
        assert text[c.start_char:c.end_char] == c.text
        assert text[pos:c.start_char].strip() == ""
        pos = c.end_char
    assert text[pos:].strip() == ""


class TestChunkProperties:
    """Invariants that must hold for any text and limit."""

    @pytest.mark.parametrize("text", SAMPLES)
    @pytest.mark.parametrize("limit", [1, 3, 5, 10, 17, 40])
    def test_reconstruction_order_and_bounds(self, text, limit):
        result = chunk_text(text, limit)
        chunks = result.chunks

        if len(text) <= limit:
            assert len(chunks) == 1
            assert chunks[0].text == text
            return

        assert [c.index for c in chunks] == list(range(len(chunks)))
        assert all(len(c) <= limit for c in chunks)
        assert all(c.text for c in chunks)
        _assert_covers(text, chunks)
        # Nothing but whitespace is lost
        assert "".join("".join(c.text.split()) for c in chunks) == "".join(text.split())

    @pytest.mark.parametrize("text", SAMPLES)
    def test_idempotent(self, text):
        assert chunk_text(text, 7).chunks == chunk_text(text, 7).chunks

    def test_short_text_single_chunk_untouched(self):
        text = "  fits as is  "
        result = chunk_text(text, 100)
        assert result.texts == [text]
        assert result.chunks[0].start_char == 0
        assert result.chunks[0].end_char == len(text)

    def test_empty_text_single_empty_chunk(self):
        assert chunk_text("", 10).texts == [""]

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            chunk_text("abc", 0)


class TestSplitPriority:
    """Sentence end, then line break, then space, then hard cut."""

    def test_abc_scenario(self):
        assert chunk_text("A. B. C.", 5).texts == ["A.", "B. C."]

    def test_prefers_sentence_boundary(self):
        text = "First sentence. Second one here."
        assert chunk_text(text, 20).texts == ["First sentence.", "Second one here."]

    def test_question_and_exclamation(self):
        text = "Really? Yes! Absolutely sure."
        assert chunk_text(text, 14).texts == ["Really? Yes!", "Absolutely", "sure."]

    def test_line_break_boundary(self):
        text = "no terminator here\nsecond line goes on"
        assert chunk_text(text, 25).texts == ["no terminator here", "second line goes on"]

    def test_space_fallback(self):
        text = "alpha beta gamma delta"
        assert chunk_text(text, 12).texts == ["alpha beta", "gamma delta"]

    def test_space_exactly_at_limit(self):
        text = "abcde fghij"
        assert chunk_text(text, 5).texts == ["abcde", "fghij"]

    def test_hard_cut(self):
        assert chunk_text("abcdefghij", 4).texts == ["abcd", "efgh", "ij"]

    def test_offsets(self):
        text = "One. Two. Three."
        chunks = chunk_text(text, 9).chunks
        assert [(c.start_char, c.end_char) for c in chunks] == [(0, 4), (5, 9), (10, 16)]
        assert [c.text for c in chunks] == ["One.", "Two.", "Three."]
