"""Append-only transcript log for one interview."""

from __future__ import annotations

from dataclasses import dataclass, field

SNAPSHOT_SEPARATOR = ". "


@dataclass(frozen=True)
class Utterance:
    """A unit of recognised speech and its arrival time (monotonic, ms)."""

    text: str
    timestamp_ms: float


@dataclass
class TranscriptLog:
    """Ordered utterances; entries are never removed or reordered."""

    utterances: list[Utterance] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.utterances)

    def append(self, text: str, timestamp_ms: float) -> Utterance:
        utterance = Utterance(text=text, timestamp_ms=timestamp_ms)
        self.utterances.append(utterance)
        return utterance

    @property
    def timestamps(self) -> list[float]:
        return [u.timestamp_ms for u in self.utterances]

    def snapshot(self) -> str:
        """Join every utterance, in arrival order, into one text blob."""
        return SNAPSHOT_SEPARATOR.join(u.text for u in self.utterances)

    def recent(self, n: int = 3) -> list[str]:
        return [u.text for u in self.utterances[-n:]] if n > 0 else []
