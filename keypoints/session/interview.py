"""Live interview session: utterances in, filler phrases and key points out."""

from __future__ import annotations

import itertools
import logging

from keypoints.config import Settings, settings as default_settings
from keypoints.session.fillers import FillerPlayer
from keypoints.session.pauses import detect_pause
from keypoints.session.transcript import TranscriptLog
from keypoints.worker.channel import SummarizerClient
from keypoints.worker.messages import Result

logger = logging.getLogger(__name__)


class InterviewSession:
    """Connects the speech-to-text feed to the filler player and the summarizer.

    Each recognised utterance is appended to the transcript log, may trigger
    a filler phrase when it followed a pause, and resubmits the whole
    transcript for summarization.  Only the newest answer is kept: a result
    for an older request that arrives late is ignored.
    """

    def __init__(
        self,
        client: SummarizerClient,
        fillers: FillerPlayer | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.client = client
        self.fillers = fillers
        self.settings = settings or default_settings
        self.log = TranscriptLog()
        self.summary: list[str] = []
        self.latency_ms: float | None = None
        self.over_budget = False
        self.last_error: str | None = None
        self._seq = itertools.count(1)
        self._issued: dict[str, int] = {}
        self._shown_seq = 0

    @property
    def model_ready(self) -> bool:
        return self.client.is_ready

    @property
    def load_time_ms(self) -> float | None:
        return self.client.load_time_ms

    async def start(self) -> None:
        await self.client.start(on_result=self._on_result, on_error=self._on_error)

    async def stop(self) -> None:
        await self.client.close()
        self._issued.clear()

    def on_utterance(self, text: str, timestamp_ms: float) -> str | None:
        """Handle one recognised utterance.

        Returns:
            The id of the summary request sent, or ``None`` if none was sent.
        """
        text = (text or "").strip()
        if not text:
            logger.debug("Empty utterance skipped")
            return None

        self.log.append(text, timestamp_ms)

        pause = detect_pause(
            self.log.timestamps,
            self.settings.short_pause_ms,
            self.settings.long_pause_ms,
        )
        if pause is not None and self.fillers is not None:
            self.fillers.play(pause, self.log.recent())

        snapshot = self.log.snapshot()
        if len(snapshot) <= self.settings.min_summary_chars:
            logger.debug("Transcript too short to summarize (%d chars)", len(snapshot))
            return None

        request_id = self.client.run_summary(snapshot, self.settings.top_k)
        if request_id is not None:
            self._issued[request_id] = next(self._seq)
        return request_id

    def _on_result(self, result: Result) -> None:
        seq = self._issued.pop(result.request_id, None)
        if seq is None or seq < self._shown_seq:
            logger.debug("Ignoring stale result %s", result.request_id)
            return

        self._shown_seq = seq
        self.summary = list(result.summary)
        self.latency_ms = result.latency
        self.over_budget = result.over_budget
        self.last_error = result.error
        if result.error:
            logger.warning(
                "Summary %s fell back to rule scoring: %s", result.request_id, result.error
            )

    def _on_error(self, error: str) -> None:
        self.last_error = error
