"""Classify the gap between the last two utterances."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum


class PauseKind(StrEnum):
    SHORT_PAUSE = "SHORT_PAUSE"
    LONG_PAUSE = "LONG_PAUSE"


def detect_pause(
    timestamps: Sequence[float],
    short_ms: float = 600,
    long_ms: float = 1200,
) -> PauseKind | None:
    """Return the pause kind for the latest gap, or ``None`` if it was short enough.

    Args:
        timestamps: Utterance arrival times in milliseconds, oldest first.
        short_ms: Gaps longer than this are a short pause.
        long_ms: Gaps longer than this are a long pause.
    """
    if len(timestamps) < 2:
        return None

    gap = timestamps[-1] - timestamps[-2]
    if gap > long_ms:
        return PauseKind.LONG_PAUSE
    if gap > short_ms:
        return PauseKind.SHORT_PAUSE
    return None
