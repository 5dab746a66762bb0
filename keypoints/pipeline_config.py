"""Pipeline configuration: scorer strategy enum and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from keypoints.config import Settings


class ScorerStrategy(str, Enum):
    """Preferred scoring strategy for the summarization pipeline."""

    NEURAL = "neural"
    RULE = "rule"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for the summarization pipeline.

    Defaults mirror the shape the bundled scoring model was exported with
    (50 sentences of up to 32 words, 10k hash buckets) and the live summary
    panel (five key points, 50 ms latency target).
    """

    max_segments: int = 50
    max_words_per_segment: int = 32
    vocab_size: int = 10000
    top_k: int = 5
    latency_budget_ms: float = 50.0
    scorer_strategy: ScorerStrategy = ScorerStrategy.NEURAL

    def __post_init__(self) -> None:
        for name in ("max_segments", "max_words_per_segment", "vocab_size", "top_k"):
            if getattr(self, name) <= 0:
                msg = f"{name} must be positive, got {getattr(self, name)!r}"
                raise ValueError(msg)

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            max_segments=settings.max_segments,
            max_words_per_segment=settings.max_words_per_segment,
            vocab_size=settings.vocab_size,
            top_k=settings.top_k,
            latency_budget_ms=settings.latency_budget_ms,
            scorer_strategy=settings.scorer_strategy,
        )
