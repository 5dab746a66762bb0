"""Tests for the PipelineController state machine and fallback ladder."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from keypoints.config import Settings
from keypoints.pipeline_config import PipelineConfig, ScorerStrategy
from keypoints.summarizer.controller import PipelineController
from keypoints.summarizer.errors import BackendUnavailable
from keypoints.summarizer.models import PipelineState, SummaryResult
from keypoints.summarizer.scoring import RuleScorer
from keypoints.summarizer.segmenter import segment_text
from keypoints.summarizer.selector import select_top_k

INTERVIEW = (
    "I built a distributed cache. It reduced latency. The team was great. "
    "I learned Go. Thanks for listening."
)

ANSWER = (
    "Hello, thanks for having me. I worked at a fintech startup for four years. "
    "Mostly on the payments side. I developed the reconciliation service from scratch. "
    "The office had a nice view. My team learned a lot about observability."
)


def _scores_backend(scores: list[float]) -> MagicMock:
    padded = np.zeros(50, dtype=np.float32)
    padded[: len(scores)] = scores
    backend = MagicMock()
    backend.run.return_value = {"sentence_scores": padded}
    return backend


def _controller(loader: MagicMock, **config: object) -> tuple[PipelineController, list[tuple]]:
    controller = PipelineController(loader, PipelineConfig(**config))  # type: ignore[arg-type]
    events: list[tuple] = []
    controller.add_listener(lambda state, reason: events.append((state, reason)))
    return controller, events


# ---------------------------------------------------------------------------
# Load lifecycle
# ---------------------------------------------------------------------------


class TestLoad:
    def test_initial_state(self) -> None:
        controller = PipelineController(MagicMock())
        assert controller.state is PipelineState.UNLOADED
        assert not controller.is_ready

    def test_load_success(self) -> None:
        loader = MagicMock(return_value=_scores_backend([]))
        controller, events = _controller(loader)

        state = asyncio.run(controller.load())

        assert state is PipelineState.READY
        assert controller.is_ready
        assert controller.load_time_ms is not None
        assert events == [(PipelineState.READY, None)]

    def test_load_is_idempotent(self) -> None:
        loader = MagicMock(return_value=_scores_backend([]))
        controller, events = _controller(loader)

        async def scenario() -> None:
            await controller.load()
            await controller.load()
            await controller.load()

        asyncio.run(scenario())

        loader.assert_called_once()
        assert events == [(PipelineState.READY, None)]

    def test_concurrent_loads_share_one_attempt(self) -> None:
        loader = MagicMock(return_value=_scores_backend([]))
        controller, events = _controller(loader)

        async def scenario() -> list[PipelineState]:
            return list(await asyncio.gather(controller.load(), controller.load()))

        states = asyncio.run(scenario())

        loader.assert_called_once()
        assert states == [PipelineState.READY, PipelineState.LOADING]
        assert events == [(PipelineState.READY, None)]

    def test_load_failure_enters_error(self) -> None:
        loader = MagicMock(side_effect=BackendUnavailable("no execution provider"))
        controller, events = _controller(loader)

        state = asyncio.run(controller.load())

        assert state is PipelineState.ERROR
        assert controller.last_error == "no execution provider"
        assert events == [(PipelineState.ERROR, "no execution provider")]

    def test_reload_after_error(self) -> None:
        loader = MagicMock(side_effect=[RuntimeError("disk busy"), _scores_backend([])])
        controller, events = _controller(loader)

        async def scenario() -> None:
            await controller.load()
            await controller.load()

        asyncio.run(scenario())

        assert controller.state is PipelineState.READY
        assert controller.last_error is None
        assert loader.call_count == 2
        assert events == [(PipelineState.ERROR, "disk busy"), (PipelineState.READY, None)]

    def test_rule_strategy_skips_backend(self) -> None:
        loader = MagicMock()
        controller, events = _controller(loader, scorer_strategy=ScorerStrategy.RULE)

        asyncio.run(controller.load())

        loader.assert_not_called()
        assert controller.is_ready
        assert events == [(PipelineState.READY, None)]

    def test_failing_listener_does_not_break_load(self) -> None:
        controller = PipelineController(MagicMock(return_value=_scores_backend([])))
        controller.add_listener(MagicMock(side_effect=RuntimeError("ui gone")))

        assert asyncio.run(controller.load()) is PipelineState.READY


# ---------------------------------------------------------------------------
# Summarize
# ---------------------------------------------------------------------------


class TestSummarize:
    def test_empty_text(self) -> None:
        loader = MagicMock()
        controller = PipelineController(loader)

        result = asyncio.run(controller.summarize(""))

        assert result == SummaryResult(summary=[], latency_ms=0.0)
        loader.assert_not_called()
        assert controller.state is PipelineState.UNLOADED

    def test_whitespace_text(self) -> None:
        loader = MagicMock()
        result = asyncio.run(PipelineController(loader).summarize("   \n"))
        assert result.summary == []
        assert result.latency_ms == 0.0
        loader.assert_not_called()

    def test_loads_on_first_request(self) -> None:
        loader = MagicMock(return_value=_scores_backend([0.1, 0.9, 0.2, 0.8, 0.3]))
        controller = PipelineController(loader)

        result = asyncio.run(controller.summarize(INTERVIEW, top_k=2))

        loader.assert_called_once()
        assert controller.is_ready
        assert result.scorer == "neural"
        assert result.summary == ["• It reduced latency", "• I learned Go"]
        assert result.error is None

    def test_neural_scores_restore_order(self) -> None:
        backend = _scores_backend([0.9, 0.1, 0.8, 0.2, 0.95])
        controller = PipelineController(MagicMock(return_value=backend))

        result = asyncio.run(controller.summarize(INTERVIEW, top_k=3))

        assert result.summary == [
            "• I built a distributed cache",
            "• The team was great",
            "• Thanks for listening",
        ]

    def test_default_top_k_from_config(self) -> None:
        backend = _scores_backend([0.5] * 5)
        controller = PipelineController(MagicMock(return_value=backend), PipelineConfig(top_k=1))

        result = asyncio.run(controller.summarize(INTERVIEW))

        assert result.summary == ["• I built a distributed cache"]

    def test_rule_scorer_end_to_end(self) -> None:
        """Only the first sentence passes the keyword gate; ties resolve by index."""
        controller = PipelineController(config=PipelineConfig(scorer_strategy=ScorerStrategy.RULE))

        assert len(segment_text(INTERVIEW)) == 5
        result = asyncio.run(controller.summarize(INTERVIEW, top_k=2))

        assert result.scorer == "rule"
        assert result.summary == ["• I built a distributed cache", "• It reduced latency"]

    def test_load_failure_uses_rule_scorer(self) -> None:
        loader = MagicMock(side_effect=BackendUnavailable("model missing"))
        controller = PipelineController(loader)

        result = asyncio.run(controller.summarize(ANSWER, top_k=2))

        assert controller.state is PipelineState.ERROR
        assert result.scorer == "rule"
        assert result.error is None
        assert result.summary == [
            "• I worked at a fintech startup for four years",
            "• I developed the reconciliation service from scratch",
        ]

    def test_error_state_is_not_retried_by_summarize(self) -> None:
        loader = MagicMock(side_effect=BackendUnavailable("model missing"))
        controller = PipelineController(loader)

        async def scenario() -> None:
            await controller.summarize(ANSWER)
            await controller.summarize(ANSWER)

        asyncio.run(scenario())

        loader.assert_called_once()

    def test_inference_failure_falls_back(self) -> None:
        backend = MagicMock()
        backend.run.side_effect = RuntimeError("execution provider crashed")
        controller = PipelineController(MagicMock(return_value=backend))

        result = asyncio.run(controller.summarize(ANSWER, top_k=3))

        segments = segment_text(ANSWER)
        expected = select_top_k(segments, RuleScorer().score(segments), 3)
        assert result.summary == expected
        assert result.summary == controller.rule_summary(ANSWER, 3)
        assert result.error == "execution provider crashed"
        assert result.latency_ms == 0.0
        assert result.scorer == "rule"
        assert controller.is_ready

    def test_missing_scores_fall_back_silently(self) -> None:
        backend = MagicMock()
        backend.run.return_value = {}
        controller = PipelineController(MagicMock(return_value=backend))

        result = asyncio.run(controller.summarize(ANSWER, top_k=2))

        assert result.scorer == "rule"
        assert result.error is None
        assert result.summary == controller.rule_summary(ANSWER, 2)

    def test_short_score_vector_falls_back(self) -> None:
        backend = MagicMock()
        backend.run.return_value = {"output": np.array([0.3, 0.4])}
        controller = PipelineController(MagicMock(return_value=backend))

        result = asyncio.run(controller.summarize(INTERVIEW, top_k=2))

        assert result.scorer == "rule"
        assert result.error is None

    def test_nan_scores_fall_back_to_rules(self) -> None:
        backend = _scores_backend([0.2, float("nan"), 0.9, 0.1, 0.5])
        controller = PipelineController(MagicMock(return_value=backend))

        result = asyncio.run(controller.summarize(INTERVIEW, top_k=2))

        assert result.scorer == "rule"
        assert result.error is None
        assert result.summary == controller.rule_summary(INTERVIEW, 2)

    def test_punctuation_only_text(self) -> None:
        controller = PipelineController(config=PipelineConfig(scorer_strategy=ScorerStrategy.RULE))
        result = asyncio.run(controller.summarize("... ?! ."))
        assert result.summary == []
        assert result.scorer is None

    def test_empty_selection_uses_fallback_bullet(self) -> None:
        controller = PipelineController(config=PipelineConfig(scorer_strategy=ScorerStrategy.RULE))
        result = asyncio.run(controller.summarize("a. b"))
        assert result.summary == ["• a"]

    def test_over_budget_flag(self) -> None:
        controller = PipelineController(config=PipelineConfig(scorer_strategy=ScorerStrategy.RULE))
        with patch("keypoints.summarizer.controller.elapsed_ms", return_value=75.0):
            result = asyncio.run(controller.summarize(INTERVIEW))
        assert result.latency_ms == 75.0
        assert result.over_budget

    @pytest.mark.parametrize("top_k", [1, 2, 5, 10])
    def test_summary_never_exceeds_top_k(self, top_k: int) -> None:
        controller = PipelineController(config=PipelineConfig(scorer_strategy=ScorerStrategy.RULE))
        result = asyncio.run(controller.summarize(ANSWER, top_k=top_k))
        assert 1 <= len(result.summary) <= top_k


class TestFromSettings:
    def test_builds_onnx_loader_and_config(self) -> None:
        settings = Settings(  # type: ignore[call-arg]
            _env_file=None,
            scorer_model_path="models/custom.onnx",
            execution_providers=["CPUExecutionProvider"],
            top_k=3,
        )

        controller = PipelineController.from_settings(settings)

        assert controller.config.top_k == 3
        assert controller.state is PipelineState.UNLOADED

    def test_missing_model_degrades_to_rule_scorer(self) -> None:
        settings = Settings(  # type: ignore[call-arg]
            _env_file=None, scorer_model_path="does/not/exist.onnx", execution_providers=[]
        )
        controller = PipelineController.from_settings(settings)
        loader_error = BackendUnavailable("Could not load scoring model")

        with patch(
            "keypoints.summarizer.backend.OnnxBackendLoader.__call__", side_effect=loader_error
        ):
            result = asyncio.run(controller.summarize(INTERVIEW, top_k=2))

        assert controller.state is PipelineState.ERROR
        assert result.scorer == "rule"
        assert result.summary == ["• I built a distributed cache", "• It reduced latency"]
