"""Incremental summarization pipeline: segment -> encode -> score -> select.

The controller owns the scoring backend's lifecycle and degrades to the
rule scorer whenever the neural path is unavailable or fails, so every
request is answered with a best-effort summary.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from keypoints.config import Settings
from keypoints.perf import elapsed_ms, exceeds_budget, now_ms
from keypoints.pipeline_config import PipelineConfig, ScorerStrategy
from keypoints.summarizer.backend import BackendLoader, OnnxBackendLoader
from keypoints.summarizer.encoder import encode_segments
from keypoints.summarizer.errors import ScoringUnavailable
from keypoints.summarizer.models import PipelineState, SummaryResult
from keypoints.summarizer.scoring import NeuralScorer, RuleScorer, Scorer
from keypoints.summarizer.segmenter import segment_text
from keypoints.summarizer.selector import fallback_bullet, select_top_k

logger = logging.getLogger(__name__)

LifecycleListener = Callable[[PipelineState, str | None], None]
"""Called with the new state (READY or ERROR) and the failure reason, if any."""


class PipelineController:
    """Owns the pipeline state and answers load and summarize requests.

    Args:
        loader: Initialises the inference backend.  ``None`` (or a
            ``RULE`` scorer strategy) runs the pipeline rule-only; loading
            then succeeds immediately without touching any backend.
        config: Pipeline limits and defaults.
        rule_scorer: Fallback scorer; defaults to the interview keyword set.
    """

    def __init__(
        self,
        loader: BackendLoader | None = None,
        config: PipelineConfig | None = None,
        rule_scorer: Scorer | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self._loader = loader if self.config.scorer_strategy is ScorerStrategy.NEURAL else None
        self._rule_scorer: Scorer = rule_scorer or RuleScorer()
        self._neural_scorer: NeuralScorer | None = None
        self._state = PipelineState.UNLOADED
        self._listeners: list[LifecycleListener] = []
        self.last_error: str | None = None
        self.load_time_ms: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineController:
        """Build a controller backed by the ONNX model named in *settings*."""
        loader = OnnxBackendLoader(settings.scorer_model_path, settings.execution_providers)
        return cls(loader, PipelineConfig.from_settings(settings))

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is PipelineState.READY

    def add_listener(self, listener: LifecycleListener) -> None:
        self._listeners.append(listener)

    def _transition(self, state: PipelineState, reason: str | None = None) -> None:
        logger.debug("Pipeline state %s -> %s", self._state, state)
        self._state = state
        if state not in (PipelineState.READY, PipelineState.ERROR):
            return
        for listener in self._listeners:
            try:
                listener(state, reason)
            except Exception:
                logger.exception("Lifecycle listener failed on %s", state)

    async def load(self) -> PipelineState:
        """Initialise the scoring backend once.

        A no-op while READY or LOADING.  From UNLOADED or ERROR the loader
        runs off the event loop; failure moves the pipeline to ERROR and is
        reported to listeners rather than raised.

        Returns:
            The state after the attempt.
        """
        if self._state in (PipelineState.READY, PipelineState.LOADING):
            logger.debug("Load ignored, pipeline already %s", self._state)
            return self._state

        self._transition(PipelineState.LOADING)
        start = now_ms()

        if self._loader is None:
            self._neural_scorer = None
        else:
            try:
                backend = await asyncio.to_thread(self._loader)
            except Exception as exc:
                reason = str(exc) or type(exc).__name__
                self.last_error = reason
                logger.error("Scoring backend unavailable, using rule scorer: %s", reason)
                self._transition(PipelineState.ERROR, reason)
                return self._state
            self._neural_scorer = NeuralScorer(backend)

        self.last_error = None
        self.load_time_ms = elapsed_ms(start)
        logger.info(
            "Pipeline ready in %.2f ms (%s scorer)",
            self.load_time_ms,
            "neural" if self._neural_scorer else "rule",
        )
        self._transition(PipelineState.READY)
        return self._state

    def rule_summary(self, text: str, top_k: int | None = None) -> list[str]:
        """Keyword-ranked key points for *text*, without touching the backend."""
        segments = segment_text(text, self.config.max_segments)
        if not segments:
            return []
        scores = self._rule_scorer.score(segments)
        summary = select_top_k(segments, scores, top_k or self.config.top_k)
        return summary or fallback_bullet(segments, text)

    async def summarize(self, text: str, top_k: int | None = None) -> SummaryResult:
        """Summarize the transcript snapshot *text* into at most *top_k* key points.

        Never raises for backend problems: a failed load or failed inference
        falls back to the rule scorer.  When inference itself raised, the
        result carries the error message and a latency of ``0``.
        """
        # 1. Nothing to do
        if not text or not text.strip():
            return SummaryResult()

        k = top_k or self.config.top_k

        # 2. Make sure the backend had its chance to load; ERROR waits for an explicit reload
        if self._state is PipelineState.UNLOADED:
            await self.load()

        start = now_ms()

        # 3. Segment
        segments = segment_text(text, self.config.max_segments)
        if not segments:
            return SummaryResult(latency_ms=elapsed_ms(start))

        scores: list[float] | None = None
        scorer_name = self._rule_scorer.name
        error: str | None = None

        # 4. Neural scoring
        if self._state is PipelineState.READY and self._neural_scorer is not None:
            batch = encode_segments(
                segments,
                self.config.max_segments,
                self.config.max_words_per_segment,
                self.config.vocab_size,
            )
            try:
                scores = await asyncio.to_thread(self._neural_scorer.score, segments, batch)
                scorer_name = self._neural_scorer.name
            except ScoringUnavailable as exc:
                logger.warning("No usable neural scores (%s), using rule scorer", exc)
            except Exception as exc:
                error = str(exc) or type(exc).__name__
                logger.warning("Neural scoring failed, using rule scorer: %s", error)

        # 5. Rule fallback
        if scores is None:
            scores = self._rule_scorer.score(segments)

        # 6. Select
        summary = select_top_k(segments, scores, k) or fallback_bullet(segments, text)

        latency = 0.0 if error else elapsed_ms(start)
        over_budget = exceeds_budget(latency, self.config.latency_budget_ms)
        if over_budget:
            logger.warning(
                "Summary latency %.2f ms exceeds %.0f ms budget",
                latency,
                self.config.latency_budget_ms,
            )
        logger.debug(
            "Summarized %d segments into %d key points with %s scorer in %.2f ms",
            len(segments),
            len(summary),
            scorer_name,
            latency,
        )
        return SummaryResult(
            summary=summary,
            latency_ms=latency,
            error=error,
            scorer=scorer_name,
            over_budget=over_budget,
        )
