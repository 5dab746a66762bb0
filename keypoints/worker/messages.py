"""Pydantic message schemas for the summarizer worker channel.

Messages cross the channel as plain dicts (``model_dump()``) and are
validated back into models on the receiving side, so neither side ever
holds a reference to the other's objects.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter

# ---------------------------------------------------------------------------
# caller -> worker
# ---------------------------------------------------------------------------


class LoadModel(BaseModel):
    """Ask the worker to initialise the scoring backend."""

    type: Literal["LOAD_MODEL"] = "LOAD_MODEL"


class RunSummary(BaseModel):
    """Ask the worker to summarize a transcript snapshot."""

    type: Literal["RUN_SUMMARY"] = "RUN_SUMMARY"
    request_id: str
    text: str
    top_k: int = Field(default=5, ge=1)


class Shutdown(BaseModel):
    """Stop the worker loop once in-flight requests finish."""

    type: Literal["SHUTDOWN"] = "SHUTDOWN"


# ---------------------------------------------------------------------------
# worker -> caller
# ---------------------------------------------------------------------------


class Ready(BaseModel):
    """The pipeline is usable; sent once per successful load."""

    type: Literal["READY"] = "READY"
    load_time_ms: float | None = None


class LoadError(BaseModel):
    """Loading failed; the worker keeps serving rule-based summaries."""

    type: Literal["ERROR"] = "ERROR"
    error: str


class Result(BaseModel):
    """Answer to one RUN_SUMMARY request."""

    type: Literal["RESULT"] = "RESULT"
    request_id: str
    summary: list[str]
    latency: float
    error: str | None = None
    scorer: str | None = None
    over_budget: bool = False


WorkerRequest = Annotated[LoadModel | RunSummary | Shutdown, Field(discriminator="type")]
WorkerEvent = Annotated[Ready | LoadError | Result, Field(discriminator="type")]

_request_adapter: TypeAdapter[LoadModel | RunSummary | Shutdown] = TypeAdapter(WorkerRequest)
_event_adapter: TypeAdapter[Ready | LoadError | Result] = TypeAdapter(WorkerEvent)


def parse_request(payload: dict[str, Any]) -> LoadModel | RunSummary | Shutdown:
    """Validate a caller -> worker payload.  Raises ``pydantic.ValidationError``."""
    return _request_adapter.validate_python(payload)


def parse_event(payload: dict[str, Any]) -> Ready | LoadError | Result:
    """Validate a worker -> caller payload.  Raises ``pydantic.ValidationError``."""
    return _event_adapter.validate_python(payload)
