"""Spoken filler phrases that cover recognition latency during pauses."""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence
from typing import Protocol

from keypoints.session.pauses import PauseKind

logger = logging.getLogger(__name__)

FILLER_PHRASES: dict[PauseKind, tuple[str, ...]] = {
    PauseKind.SHORT_PAUSE: (
        "Let me think for a moment.",
        "That's a good question.",
    ),
    PauseKind.LONG_PAUSE: (
        "Thanks for your patience.",
        "Let me clarify that.",
    ),
}


class FillerSpeaker(Protocol):
    """Text-to-speech collaborator.  Should interrupt anything still playing."""

    def speak(self, text: str) -> None: ...


class FillerPlayer:
    """Picks a filler for a pause and hands it to the speech synthesiser."""

    def __init__(
        self,
        speaker: FillerSpeaker,
        phrases: dict[PauseKind, tuple[str, ...]] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.speaker = speaker
        self.phrases = phrases or FILLER_PHRASES
        self._rng = rng or random.Random()

    def choose(self, kind: PauseKind) -> str | None:
        options = self.phrases.get(kind)
        if not options:
            return None
        return self._rng.choice(options)

    def play(self, kind: PauseKind, recent_transcript: Sequence[str] = ()) -> str | None:
        """Speak a filler for *kind*; returns the phrase, or ``None`` if nothing played.

        Synthesis failures are logged and swallowed so they never hold up
        summarization.
        """
        phrase = self.choose(kind)
        if phrase is None:
            return None
        logger.debug("Playing %s filler after %d utterances", kind, len(recent_transcript))
        try:
            self.speaker.speak(phrase)
        except Exception:
            logger.exception("Filler playback failed for %s", kind)
            return None
        return phrase
