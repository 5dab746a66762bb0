"""Hash-based sentence encoding for the neural scorer.

No vocabulary file is shipped with the model: each word is mapped to a
bucket by a 32-bit rolling hash, so identical words always get identical
ids.  The hash must stay bit-compatible with the one the scoring model was
trained with (signed 32-bit ``h * 31 + c`` over UTF-16 code units).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import numpy as np

from keypoints.summarizer.models import EncodedBatch

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def _utf16_units(word: str) -> Iterator[int]:
    for ch in word:
        code = ord(ch)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code


def hash_word(word: str, vocab_size: int = 10000) -> int:
    """Map *word* to a token id in ``[0, vocab_size)``."""
    h = 0
    for code in _utf16_units(word):
        h = _to_int32((h << 5) - h + code)
    return abs(h) % vocab_size


def normalize(sentence: str) -> list[str]:
    """Lowercase and split on any run of whitespace."""
    return sentence.lower().split()


def encode_segments(
    segments: Sequence[str],
    max_segments: int = 50,
    max_words: int = 32,
    vocab_size: int = 10000,
) -> EncodedBatch:
    """Encode sentences into a zero-padded ``[1, max_segments, max_words]`` batch.

    Sentences beyond *max_segments* and words beyond *max_words* are
    dropped silently; unused positions stay zero.

    Args:
        segments: Ordered sentences from the segmenter.
        max_segments: Number of sentence rows in the batch.
        max_words: Number of word columns per row.
        vocab_size: Number of hash buckets the model embeds.

    Returns:
        An :class:`EncodedBatch` whose ``ids`` array is ``int32``.
    """
    shape = (1, max_segments, max_words)
    ids = np.zeros(shape, dtype=np.int32)

    rows = segments[:max_segments]
    for row, sentence in enumerate(rows):
        for col, word in enumerate(normalize(sentence)[:max_words]):
            ids[0, row, col] = hash_word(word, vocab_size)

    return EncodedBatch(ids=ids, shape=shape, segment_count=len(rows))
