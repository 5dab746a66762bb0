"""Asynchronous message channel between the caller and the summarization pipeline.

``SummarizerWorker`` runs the :class:`PipelineController` on its own task and
talks to the outside world only through two queues of plain dicts.
``SummarizerClient`` is the caller's handle: it starts the worker, tracks
readiness, and turns incoming events into callbacks.

Every RUN_SUMMARY is handled as an independent task, so results can arrive
out of request order; the ``request_id`` echoed on each RESULT tells them
apart.  There is no queueing, cancellation or timeout.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from pydantic import BaseModel, ValidationError

from keypoints.config import settings
from keypoints.summarizer.controller import PipelineController
from keypoints.summarizer.models import PipelineState
from keypoints.worker.messages import (
    LoadError,
    LoadModel,
    Ready,
    Result,
    RunSummary,
    Shutdown,
    parse_event,
    parse_request,
)

logger = logging.getLogger(__name__)

Payload = dict[str, Any]


class SummarizerWorker:
    """Worker side of the channel: owns the controller and answers requests."""

    def __init__(
        self,
        controller: PipelineController,
        inbox: asyncio.Queue[Payload],
        outbox: asyncio.Queue[Payload],
    ) -> None:
        self.controller = controller
        self._inbox = inbox
        self._outbox = outbox
        self._tasks: set[asyncio.Task[None]] = set()
        self._announced_ready = False
        controller.add_listener(self._on_lifecycle)

    def post(self, event: BaseModel) -> None:
        self._outbox.put_nowait(event.model_dump())

    def _on_lifecycle(self, state: PipelineState, reason: str | None) -> None:
        if state is PipelineState.READY:
            self._announce_ready()
        else:
            self.post(LoadError(error=reason or "unknown error"))

    def _announce_ready(self) -> None:
        self._announced_ready = True
        self.post(Ready(load_time_ms=self.controller.load_time_ms))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def run(self) -> None:
        """Consume the inbox until a SHUTDOWN message arrives."""
        # Each run answers its own first LOAD_MODEL, even for an already loaded controller.
        self._announced_ready = False
        while True:
            payload = await self._inbox.get()
            try:
                message = parse_request(payload)
            except ValidationError as exc:
                logger.warning("Dropping malformed worker message %r: %s", payload, exc)
                continue

            if isinstance(message, Shutdown):
                break
            if isinstance(message, LoadModel):
                self._spawn(self._load())
            else:
                self._spawn(self._run_summary(message))

        if self._tasks:
            await asyncio.gather(*self._tasks)
        logger.debug("Summarizer worker stopped")

    async def _load(self) -> None:
        # READY/ERROR are posted by the lifecycle listener, only on real transitions.
        state = await self.controller.load()
        # A controller loaded before this worker existed never transitions again.
        if state is PipelineState.READY and not self._announced_ready:
            self._announce_ready()

    async def _run_summary(self, request: RunSummary) -> None:
        logger.debug(
            "RUN_SUMMARY %s received, text length %d", request.request_id, len(request.text)
        )
        try:
            result = await self.controller.summarize(request.text, request.top_k)
        except Exception as exc:
            logger.exception("Summary request %s failed", request.request_id)
            self.post(
                Result(
                    request_id=request.request_id,
                    summary=self.controller.rule_summary(request.text, request.top_k),
                    latency=0.0,
                    error=str(exc) or type(exc).__name__,
                    scorer="rule",
                )
            )
            return

        self.post(
            Result(
                request_id=request.request_id,
                summary=result.summary,
                latency=result.latency_ms,
                error=result.error,
                scorer=result.scorer,
                over_budget=result.over_budget,
            )
        )


class SummarizerClient:
    """Caller side of the channel.

    Summary requests are only accepted once the worker has answered the
    load: after READY they are scored normally, after ERROR they are served
    by the rule scorer.  Requests made earlier are rejected, never queued.
    """

    def __init__(self, controller: PipelineController | None = None) -> None:
        self._inbox: asyncio.Queue[Payload] = asyncio.Queue()
        self._outbox: asyncio.Queue[Payload] = asyncio.Queue()
        if controller is None:
            controller = PipelineController.from_settings(settings)
        self._worker = SummarizerWorker(controller, self._inbox, self._outbox)
        self._worker_task: asyncio.Task[None] | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._settled = asyncio.Event()
        self._ids = itertools.count(1)
        self._state = PipelineState.UNLOADED
        self.last_error: str | None = None
        self.load_time_ms: float | None = None

        self._on_ready: Callable[[], None] | None = None
        self._on_result: Callable[[Result], None] | None = None
        self._on_error: Callable[[str], None] | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is PipelineState.READY and self._worker_task is not None

    @property
    def accepts_requests(self) -> bool:
        if self._worker_task is None:
            return False
        return self._state in (PipelineState.READY, PipelineState.ERROR)

    def _send(self, message: BaseModel) -> None:
        self._inbox.put_nowait(message.model_dump())

    async def start(
        self,
        on_ready: Callable[[], None] | None = None,
        on_result: Callable[[Result], None] | None = None,
        on_error: Callable[[str], None] | None = None,
    ) -> None:
        """Start the worker and request a backend load.

        Calling ``start`` again does not reload; if the worker is already
        READY, *on_ready* is invoked right away.
        """
        if self._worker_task is not None:
            if self.is_ready and on_ready is not None:
                on_ready()
            return

        self._on_ready = on_ready
        self._on_result = on_result
        self._on_error = on_error
        self._worker_task = asyncio.create_task(self._worker.run())
        self._reader_task = asyncio.create_task(self._read_events())
        self._state = PipelineState.LOADING
        self._send(LoadModel())

    def reload(self) -> bool:
        """Retry a failed load.  Returns ``False`` when there is nothing to retry."""
        if self._worker_task is None or self._state is not PipelineState.ERROR:
            return False
        self._settled.clear()
        self._state = PipelineState.LOADING
        self._send(LoadModel())
        return True

    async def wait_until_settled(self) -> PipelineState:
        """Wait for the pending load to be answered with READY or ERROR."""
        await self._settled.wait()
        return self._state

    def run_summary(self, text: str, top_k: int = 5) -> str | None:
        """Send a RUN_SUMMARY request.

        Returns:
            The request id echoed by the matching RESULT, or ``None`` when the
            worker has not answered the load yet and the request was dropped.
        """
        if not self.accepts_requests:
            logger.warning("Worker not ready, cannot run summary (state=%s)", self._state)
            return None
        request_id = f"req-{next(self._ids)}"
        logger.debug("Sending RUN_SUMMARY %s, text length %d", request_id, len(text))
        self._send(RunSummary(request_id=request_id, text=text, top_k=top_k))
        return request_id

    async def _read_events(self) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                self._dispatch(payload)
            except Exception:
                logger.exception("Failed to handle worker event %r", payload)
            finally:
                self._outbox.task_done()

    def _dispatch(self, payload: Payload) -> None:
        event = parse_event(payload)
        if isinstance(event, Ready):
            self._state = PipelineState.READY
            self.last_error = None
            self.load_time_ms = event.load_time_ms
            self._settled.set()
            logger.info("Summarizer worker ready (load time: %s ms)", event.load_time_ms)
            if self._on_ready is not None:
                self._on_ready()
        elif isinstance(event, LoadError):
            self._state = PipelineState.ERROR
            self.last_error = event.error
            self._settled.set()
            logger.error("Summarizer worker error: %s", event.error)
            if self._on_error is not None:
                self._on_error(event.error)
        else:
            logger.debug(
                "Received result %s: %d key points in %.2f ms",
                event.request_id,
                len(event.summary),
                event.latency,
            )
            if self._on_result is not None:
                self._on_result(event)

    async def close(self) -> None:
        """Stop the worker after in-flight requests finish and deliver their results."""
        if self._worker_task is None:
            return
        self._send(Shutdown())
        await self._worker_task
        await self._outbox.join()
        if self._reader_task is not None:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._worker_task = None
        self._reader_task = None
        self._state = PipelineState.UNLOADED
        self._settled.clear()
