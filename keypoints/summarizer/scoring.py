"""Sentence importance scorers.

Both scorers map a list of segments to an index-aligned list of floats
(higher means more important).  The neural scorer needs a loaded backend
and may fail; the rule scorer is a pure keyword heuristic that always
succeeds and serves as the fallback.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import numpy as np

from keypoints.summarizer.backend import InferenceBackend
from keypoints.summarizer.errors import InferenceError, ScoringUnavailable
from keypoints.summarizer.models import EncodedBatch

logger = logging.getLogger(__name__)

# Output names tried in order before falling back to the first output.
SCORE_OUTPUT_KEYS: tuple[str, ...] = ("sentence_scores", "output")

DEFAULT_KEYWORDS: tuple[str, ...] = (
    "experience",
    "worked",
    "built",
    "project",
    "team",
    "skill",
    "learned",
    "achieved",
    "responsible",
    "developed",
)

KEYWORD_SCORE = 1.0
BASELINE_SCORE = 0.0
MIN_KEYWORD_CHARS = 20


class Scorer(Protocol):
    """Strategy interface shared by all scorers."""

    name: str

    def score(self, segments: Sequence[str], batch: EncodedBatch | None = None) -> list[float]: ...


def select_score_output(outputs: Mapping[str, Any]) -> Any | None:
    """Pick the output that holds sentence scores.

    Prefers the names in :data:`SCORE_OUTPUT_KEYS`, then whatever output
    comes first.  Returns ``None`` for an empty mapping.
    """
    for key in SCORE_OUTPUT_KEYS:
        value = outputs.get(key)
        if value is not None:
            return value
    return next(iter(outputs.values()), None)


class NeuralScorer:
    """Scores segments by running the encoded batch through an inference backend."""

    name = "neural"

    def __init__(self, backend: InferenceBackend) -> None:
        self.backend = backend

    def score(self, segments: Sequence[str], batch: EncodedBatch | None = None) -> list[float]:
        if batch is None:
            msg = "neural scoring requires an encoded batch"
            raise ScoringUnavailable(msg)

        try:
            outputs = self.backend.run({"input_ids": batch.ids})
        except Exception as exc:
            raise InferenceError(str(exc) or type(exc).__name__) from exc

        logger.debug("Inference complete. Output keys: %s", list(outputs))
        raw = select_score_output(outputs)
        if raw is None:
            msg = "backend returned no score output"
            raise ScoringUnavailable(msg)

        try:
            scores = np.asarray(raw, dtype=np.float64).ravel()
        except (TypeError, ValueError) as exc:
            msg = f"score output is not numeric: {exc}"
            raise ScoringUnavailable(msg) from exc

        # Padding rows carry scores too; only the real sentences matter.
        if scores.size < len(segments):
            msg = f"expected at least {len(segments)} scores, got {scores.size}"
            raise ScoringUnavailable(msg)
        scores = scores[: len(segments)]
        if not np.isfinite(scores).all():
            msg = "score output contains non-finite values"
            raise ScoringUnavailable(msg)
        return scores.tolist()


class RuleScorer:
    """Keyword heuristic for interview answers.

    A segment longer than 20 characters that mentions any keyword scores
    :data:`KEYWORD_SCORE`; everything else gets :data:`BASELINE_SCORE`.
    """

    name = "rule"

    def __init__(self, keywords: Sequence[str] = DEFAULT_KEYWORDS) -> None:
        self.keywords = tuple(k.lower() for k in keywords)

    def score_one(self, segment: str) -> float:
        text = segment.strip()
        if len(text) <= MIN_KEYWORD_CHARS:
            return BASELINE_SCORE
        lower = text.lower()
        if any(kw in lower for kw in self.keywords):
            return KEYWORD_SCORE
        return BASELINE_SCORE

    def score(self, segments: Sequence[str], batch: EncodedBatch | None = None) -> list[float]:
        return [self.score_one(s) for s in segments]
