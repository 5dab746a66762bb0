"""Failure modes of the summarization pipeline."""

from __future__ import annotations


class SummarizerError(Exception):
    """Base class for pipeline failures absorbed by the controller."""


class BackendUnavailable(SummarizerError):
    """The inference backend could not be initialised under any configuration."""


class ScoringUnavailable(SummarizerError):
    """Inference ran (or could not start) but produced no usable score vector."""


class InferenceError(SummarizerError):
    """The inference backend raised while scoring a request."""
