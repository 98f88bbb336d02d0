"""
Progress streaming.

The pipeline writes stage transitions to an EventSink through a
ProgressTracker, which enforces stage order and a single terminal event.
Transports (SSE here) adapt a sink to the wire.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Optional

from .models import ProgressEvent, Stage
from .utils.logger import bind_run_context


logger = logging.getLogger(__name__)

STAGE_ORDER = [
    Stage.STARTED,
    Stage.AGGREGATING,
    Stage.SYNTHESIZING_INTERESTS,
    Stage.SYNTHESIZING_SCRIPT,
    Stage.SYNTHESIZING_AUDIO,
    Stage.PERSISTING,
    Stage.COMPLETED,
]


class EventSink(ABC):
    """Receives the events of one run."""

    @abstractmethod
    async def emit(self, event: ProgressEvent) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


class NullEventSink(EventSink):
    """For runs nobody watches."""

    async def emit(self, event: ProgressEvent) -> None:
        pass

    async def close(self) -> None:
        pass


class QueueEventSink(EventSink):
    """
    Buffers events for a transport to drain with ``events()``.
    After ``detach()`` (subscriber gone) emits are dropped.
    """

    def __init__(self):
        self._queue: asyncio.Queue[Optional[ProgressEvent]] = asyncio.Queue()
        self.detached = False
        self.closed = False

    async def emit(self, event: ProgressEvent) -> None:
        if self.detached or self.closed:
            return
        await self._queue.put(event)

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(None)

    def detach(self) -> None:
        self.detached = True

    async def events(self) -> AsyncIterator[ProgressEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event


class ProgressTracker:
    """
    State machine over the run's stages.

    Stages only move forward (synthesizing-interests may be skipped), error
    is reachable from any non-terminal stage, and after the terminal event
    nothing more is sent and the sink is closed. A failing sink is detached
    without interrupting the run.
    """

    def __init__(self, sink: EventSink):
        self.sink = sink
        self.current: Optional[Stage] = None
        self.history: list[ProgressEvent] = []
        self._sink_failed = False

    @property
    def finished(self) -> bool:
        return self.current is not None and self.current.is_terminal

    async def advance(self, stage: Stage, **payload: Any) -> None:
        stage = Stage(stage)
        if stage == Stage.ERROR:
            raise ValueError("use fail() for the error stage")
        if self.finished:
            logger.debug(f"Ignoring {stage.value} after terminal event")
            return
        if self.current is not None and STAGE_ORDER.index(stage) <= STAGE_ORDER.index(self.current):
            raise ValueError(f"Stage {stage.value} cannot follow {self.current.value}")
        await self._emit(stage, payload)

    async def complete(self, **payload: Any) -> None:
        await self.advance(Stage.COMPLETED, **payload)

    async def fail(self, message: str, **payload: Any) -> None:
        if self.finished:
            logger.debug("Ignoring error after terminal event")
            return
        await self._emit(Stage.ERROR, {"message": message, **payload})

    async def _emit(self, stage: Stage, payload: dict[str, Any]) -> None:
        event = ProgressEvent(stage=stage, payload=payload)
        self.current = stage
        bind_run_context(stage=stage.value)
        self.history.append(event)

        if not self._sink_failed:
            try:
                await self.sink.emit(event)
                if stage.is_terminal:
                    await self.sink.close()
            except Exception as e:
                self._sink_failed = True
                logger.warning(f"Progress subscriber detached at {stage.value}: {e}")


def format_sse(event: ProgressEvent) -> str:
    """``event: <stage>`` / ``data: <json>`` framing."""
    data = {**event.payload, "timestamp": event.timestamp.isoformat()}
    return f"event: {event.stage.value}\ndata: {json.dumps(data, default=str, ensure_ascii=False)}\n\n"
