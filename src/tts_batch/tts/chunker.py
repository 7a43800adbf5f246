"""
Text Chunking for Vendor Synthesis.

Vendors cap the size of a single synthesis request, so long text is carved
into ordered windows of at most ``max_length`` characters before it is
handed to the batch orchestrator.

Split Priority (inside each window):
    1. After the last sentence terminator (. ? !) followed by whitespace,
       or after the last run of line breaks
    2. After the last space
    3. Hard cut at ``max_length``

Each chunk is trimmed; a chunk that trims to nothing is dropped without
consuming an index. ``start_char``/``end_char`` point at the trimmed text,
so ``text[c.start_char:c.end_char] == c.text`` always holds.

Example:
    >>> result = chunk_text("First sentence. Second one here.", max_length=20)
    >>> [c.text for c in result.chunks]
    ['First sentence.', 'Second one here.']
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List

from tts_batch.core.logging import get_logger, verbose
from tts_batch.utils.timeit import timeit

_LOG = get_logger("tts-batch.chunker")


# =============================================================================
# Boundary Patterns
# =============================================================================

# Sentence end followed by whitespace, or a run of line breaks
_SENTENCE_BOUNDARY = re.compile(r"[.?!]\s+|[\n\r]+")


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class TextChunk:
    """
    One bounded slice of the source text.

    Attributes:
        index: 0-based position, contiguous across a chunking result.
        text: Trimmed chunk text.
        start_char: Offset of the first character in the source text.
        end_char: Offset one past the last character.
    """
    index: int
    text: str
    start_char: int
    end_char: int

    def __len__(self) -> int:
        return len(self.text)


@dataclass
class ChunkResult:
    """
    Result of a chunking pass.

    Attributes:
        chunks: Ordered chunks.
        timings_s: Timing measurements in seconds.
    """
    chunks: List[TextChunk]
    timings_s: Dict[str, float]

    @property
    def texts(self) -> List[str]:
        return [c.text for c in self.chunks]


# =============================================================================
# Chunking
# =============================================================================

def _find_split(text: str, pos: int, window_end: int) -> int:
    """Return the split offset for the window text[pos:window_end]."""
    last_boundary = -1
    for match in _SENTENCE_BOUNDARY.finditer(text, pos, window_end):
        last_boundary = match.end()
    if last_boundary > pos:
        return last_boundary

    # A space sitting exactly at window_end still counts; it is trimmed away
    space = text.rfind(" ", pos + 1, window_end + 1)
    if space > pos:
        return space + 1

    return window_end


def _trimmed(text: str, start: int, end: int) -> tuple[int, int]:
    while start < end and text[start].isspace():
        start += 1
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def chunk_text(text: str, max_length: int) -> ChunkResult:
    """
    Split text into chunks of at most ``max_length`` characters.

    Text that already fits is returned untouched as a single chunk, which
    also covers the empty string (one chunk with empty text at index 0).
    Callers that must not synthesize empty text reject it before chunking.

    Args:
        text: Source text.
        max_length: Provider chunk size limit, must be positive.

    Returns:
        ChunkResult with ordered TextChunk entries.

    Raises:
        ValueError: If max_length is not positive.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")

    timings: Dict[str, float] = {}

    with timeit("chunk") as t:
        if len(text) <= max_length:
            chunks = [TextChunk(index=0, text=text, start_char=0, end_char=len(text))]
        else:
            chunks = []
            pos = 0
            while pos < len(text):
                window_end = pos + max_length
                if window_end >= len(text):
                    split = len(text)
                else:
                    split = _find_split(text, pos, window_end)

                start, end = _trimmed(text, pos, split)
                if end > start:
                    chunks.append(TextChunk(
                        index=len(chunks),
                        text=text[start:end],
                        start_char=start,
                        end_char=end,
                    ))
                pos = split

    timings["chunk"] = t.timing.seconds if t.timing else -1.0
    verbose(
        _LOG, "chunked",
        chars=len(text), chunks=len(chunks), max_length=max_length,
        seconds=round(timings["chunk"], 4),
    )

    return ChunkResult(chunks=chunks, timings_s=timings)
