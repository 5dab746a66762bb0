"""Sentence segmentation for live speech transcripts.

Speech recognition output is frequently missing punctuation, so splitting
degrades through three strategies, each tried only when the previous one
left a single long segment:

1. sentence-terminal punctuation (runs of ``.``, ``!`` and ``?``),
2. spoken boundary phrases such as "I worked" or "thank you",
3. fixed-width character windows.
"""

from __future__ import annotations

import re

SENTENCE_END = re.compile(r"[.!?]+")

# A marker must follow whitespace and starts the next segment.
SPEECH_BOUNDARY = re.compile(
    r"\s+(?:I have|I am|I was|I worked|I built|thank you|let me|that is|this is|I have experience)",
    re.IGNORECASE,
)

MARKER_SPLIT_MIN_CHARS = 50
MIN_MARKER_FRAGMENT_CHARS = 10
CHUNK_SPLIT_MIN_CHARS = 100
CHUNK_WIDTH = 100
MIN_CHUNK_CHARS = 20


def split_sentences(text: str) -> list[str]:
    """Split on terminal punctuation and drop empty pieces."""
    return [s.strip() for s in SENTENCE_END.split(text) if s.strip()]


def split_on_markers(text: str) -> list[str]:
    """Split an unpunctuated run of speech on boundary phrases.

    The matched phrase is kept at the start of the following fragment.
    Fragments of ``MIN_MARKER_FRAGMENT_CHARS`` characters or fewer are
    discarded.  Returns ``[text]`` unchanged when no marker occurs.
    """
    starts = [m.start() for m in SPEECH_BOUNDARY.finditer(text)]
    if not starts:
        return [text]

    fragments: list[str] = []
    last = 0
    for start in starts:
        if start > last:
            fragment = text[last:start].strip()
            if len(fragment) > MIN_MARKER_FRAGMENT_CHARS:
                fragments.append(fragment)
        last = start
    if last < len(text):
        fragment = text[last:].strip()
        if len(fragment) > MIN_MARKER_FRAGMENT_CHARS:
            fragments.append(fragment)
    return fragments


def split_fixed_width(text: str, width: int = CHUNK_WIDTH) -> list[str]:
    """Cut *text* every *width* characters, keeping only substantial chunks."""
    chunks: list[str] = []
    for pos in range(0, len(text), width):
        chunk = text[pos : pos + width].strip()
        if len(chunk) > MIN_CHUNK_CHARS:
            chunks.append(chunk)
    return chunks


def segment_text(text: str, max_segments: int = 50) -> list[str]:
    """Split accumulated transcript text into ordered candidate sentences.

    Args:
        text: The transcript snapshot.
        max_segments: Upper bound on the number of segments returned; any
            excess is dropped from the end.

    Returns:
        Trimmed, non-empty sentences in their original order.  Empty or
        whitespace-only input yields an empty list.
    """
    if not text or not text.strip():
        return []

    segments = split_sentences(text)

    if len(segments) == 1 and len(segments[0]) > MARKER_SPLIT_MIN_CHARS:
        segments = split_on_markers(segments[0])

    if len(segments) == 1 and len(segments[0]) > CHUNK_SPLIT_MIN_CHARS:
        segments = split_fixed_width(segments[0])

    return segments[:max_segments]
