"""
Progress Delivery

Moves progress events from a running analysis to whoever is listening.

- QueueProgressEmitter: bounded asyncio.Queue between the pipeline task
  and the transport; once the consumer detaches, events are dropped
- CallbackProgressEmitter: adapts a plain callback
- NullProgressEmitter: discards everything

Emitters never raise into the pipeline. stream_analysis() runs an
analysis in a background task and yields its events until the terminal
one; if the consumer goes away the run still finishes (and is handed to
on_complete) while further events are discarded.
"""

import asyncio
import inspect
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Set, Union

from ..errors import ValidationError
from ..models import AnalysisRequest, AnalysisResult, EventType, ProgressEvent, Stage

logger = logging.getLogger(__name__)


# Strong references to detached background runs
_background_runs: Set[asyncio.Task] = set()


class ProgressEmitter:
    """Delivery abstraction for progress events."""

    async def emit(self, event: ProgressEvent):
        raise NotImplementedError

    def close(self):
        """Stop delivering; later events are dropped."""


class NullProgressEmitter(ProgressEmitter):
    """Emitter for runs nobody is watching."""

    async def emit(self, event: ProgressEvent):
        return None


class CallbackProgressEmitter(ProgressEmitter):
    """
    Calls a function (sync or async) for every event.

    Errors raised by the callback are logged and swallowed.
    """

    def __init__(self, callback: Callable[[ProgressEvent], Union[None, Awaitable[None]]]):
        self.callback = callback
        self._closed = False

    async def emit(self, event: ProgressEvent):
        if self._closed:
            return
        try:
            result = self.callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.debug(f"Progress callback failed for {event.type.value} event: {e}")

    def close(self):
        self._closed = True


class QueueProgressEmitter(ProgressEmitter):
    """
    Bounded queue between the pipeline and a transport adapter.

    emit() waits while the queue is full (backpressure from a slow
    consumer). close() drains the queue so a blocked emit() resumes, and
    every later event is dropped.
    """

    def __init__(self, maxsize: int = 100):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: ProgressEvent):
        if self._closed:
            self._drop(event)
            return
        await self._queue.put(event)

    async def get(self) -> ProgressEvent:
        return await self._queue.get()

    def close(self):
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._drop(self._queue.get_nowait())

    def _drop(self, event: ProgressEvent):
        self.dropped += 1
        logger.debug(f"Dropped {event.type.value} event at stage {event.stage.value}")


# =============================================================================
# WIRE FORMAT
# =============================================================================


def format_sse(event: ProgressEvent) -> str:
    """Frame one event as a Server-Sent Events chunk."""
    return f"data: {json.dumps(event.to_dict())}\n\n"


def error_event(message: str, stage: Stage = Stage.INITIALIZING) -> ProgressEvent:
    return ProgressEvent(type=EventType.ERROR, stage=stage, data={"error": message})


# =============================================================================
# STREAM DRIVER
# =============================================================================


CompletionHook = Callable[[AnalysisResult], Any]


async def stream_analysis(
    orchestrator,
    request: AnalysisRequest,
    queue_size: int = 100,
    on_complete: Optional[CompletionHook] = None,
) -> AsyncIterator[ProgressEvent]:
    """
    Run an analysis and yield its progress events.

    Args:
        orchestrator: AnalysisOrchestrator
        request: Validated analysis request
        queue_size: Bound of the event queue
        on_complete: Called with the result of a completed run, even
            when the consumer has stopped listening

    Yields:
        Progress events, ending with exactly one terminal event
    """
    emitter = QueueProgressEmitter(maxsize=queue_size)
    task = asyncio.create_task(_run_detached(orchestrator, request, emitter, on_complete))
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    try:
        while True:
            event = await emitter.get()
            yield event
            if event.is_terminal:
                break
    finally:
        if not task.done():
            logger.info("Progress consumer detached; analysis continues in background")
        emitter.close()


async def _run_detached(
    orchestrator,
    request: AnalysisRequest,
    emitter: QueueProgressEmitter,
    on_complete: Optional[CompletionHook],
):
    try:
        result = await orchestrator.run(request, emitter)
    except ValidationError as e:
        # Rejected before any stage ran, so no terminal event exists yet
        await emitter.emit(error_event(str(e)))
        return
    except Exception as e:
        # The orchestrator has already emitted the terminal error event
        logger.info(f"Analysis for {request.company_name} ended with error: {e}")
        return

    if on_complete is None:
        return
    try:
        outcome = on_complete(result)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        logger.exception(f"Failed to store analysis for {request.company_name}")
