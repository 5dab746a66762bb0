"""Top-K selection with narrative order restored."""

from __future__ import annotations

from collections.abc import Sequence

from keypoints.summarizer.models import ScoredSegment

BULLET = "• "
MIN_BULLET_CHARS = 3
FALLBACK_PREFIX_CHARS = 100


def format_bullet(text: str) -> str:
    return f"{BULLET}{text.strip()}"


def rank_segments(segments: Sequence[str], scores: Sequence[float]) -> list[ScoredSegment]:
    """Pair segments with scores, best first; equal scores keep snapshot order."""
    if len(segments) != len(scores):
        msg = f"Got {len(scores)} scores for {len(segments)} segments"
        raise ValueError(msg)
    ranked = [
        ScoredSegment(score=float(score), index=i, text=text)
        for i, (text, score) in enumerate(zip(segments, scores, strict=True))
    ]
    ranked.sort(key=lambda item: (-item.score, item.index))
    return ranked


def select_top_k(segments: Sequence[str], scores: Sequence[float], k: int = 5) -> list[str]:
    """Choose the *k* best-scored segments and render them in original order.

    Args:
        segments: Sentences in snapshot order.
        scores: One score per segment, index-aligned.
        k: Maximum number of key points.

    Returns:
        Bullet strings ordered by segment index, not by score.  Bullets of
        three characters or fewer are dropped, so the result may be empty.
    """
    top = rank_segments(segments, scores)[: max(0, min(k, len(segments)))]
    top.sort(key=lambda item: item.index)
    bullets = (format_bullet(item.text) for item in top)
    return [b for b in bullets if len(b) > MIN_BULLET_CHARS]


def fallback_bullet(segments: Sequence[str], text: str) -> list[str]:
    """Single key point used when selection produced nothing.

    The first segment if there is one, otherwise a prefix of the raw text.
    """
    candidate = segments[0] if segments else text[:FALLBACK_PREFIX_CHARS]
    if not candidate.strip():
        return []
    return [format_bullet(candidate)]
