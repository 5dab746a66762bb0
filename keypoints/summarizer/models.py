"""Data models for the summarization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

import numpy as np


class PipelineState(StrEnum):
    """Lifecycle of the scoring backend."""

    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass(frozen=True)
class EncodedBatch:
    """Fixed-shape integer tensor for a batch of sentences.

    ``ids`` always has ``shape`` ``(1, max_segments, max_words_per_segment)``;
    ``segment_count`` is how many rows carry real sentences.
    """

    ids: np.ndarray
    shape: tuple[int, int, int]
    segment_count: int = 0

    @property
    def size(self) -> int:
        return int(self.ids.size)


@dataclass
class ScoredSegment:
    """A segment paired with its score and position in the snapshot."""

    score: float
    index: int
    text: str


@dataclass
class SummaryResult:
    """Outcome of one summarize cycle."""

    summary: list[str] = field(default_factory=list)
    latency_ms: float = 0.0
    error: str | None = None
    scorer: str | None = None  # "neural", "rule", or None when nothing was scored
    over_budget: bool = False
