"""Relay one upstream generation stream to one downstream SSE consumer.

A ``RelaySession`` drives the whole pipeline from a single read loop:

    upstream bytes -> FrameDecoder -> DeltaAccumulator -> finalizer

while writing ``status``/``progress`` events as deltas arrive and exactly
one terminal event (``result``, ``error`` or ``done``) at the end. Every
path, including client disconnect, ends with the writer closed once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from enum import StrEnum
from typing import Protocol

from core.exceptions import UpstreamError
from core.observability import get_tracer
from schemas.streaming import DoneEvent, ErrorEvent, OutboundEvent, StatusEvent
from services.streaming.accumulator import DeltaAccumulator
from services.streaming.frames import FrameDecoder, RawFrame
from services.streaming.profiles import FrameKind, StreamProfile


logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

INTERNAL_ERROR_MESSAGE = "Error interno al procesar la respuesta"
UPSTREAM_UNAVAILABLE_STATUS = 502

Finalizer = Callable[[str], Awaitable[OutboundEvent | None]]

# Strong references so detached session tasks are not garbage collected
_running_sessions: set[asyncio.Task[None]] = set()


class SessionState(StrEnum):
    IDLE = "idle"
    RECEIVING = "receiving"
    FINALIZING = "finalizing"
    CLOSED = "closed"


class UpstreamSource(Protocol):
    """Opens the provider stream; raises UpstreamError on a failed open."""

    def open(self) -> AbstractAsyncContextManager[AsyncIterator[bytes]]: ...


class EventWriter(Protocol):
    @property
    def gone(self) -> bool: ...

    async def write(self, event: OutboundEvent) -> None: ...

    async def close(self) -> None: ...


class SseEventChannel:
    """Outbound writer backed by a queue of serialized SSE strings.

    The HTTP layer iterates the channel; the session writes into it. Writes
    after ``close`` or after the consumer is gone are dropped, and ``close``
    is idempotent.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._closed = False
        self._gone = False
        self.close_calls = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def gone(self) -> bool:
        return self._gone

    def mark_gone(self) -> None:
        """Record that the downstream consumer has disconnected."""
        self._gone = True

    async def write(self, event: OutboundEvent) -> None:
        if self._closed or self._gone:
            return
        self._queue.put_nowait(event.to_sse())

    async def close(self) -> None:
        self.close_calls += 1
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[str]:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            yield item


class RelaySession:
    """Owns one upstream read loop, one writer, and the accumulated text."""

    def __init__(
        self,
        *,
        source: UpstreamSource,
        writer: EventWriter,
        profile: StreamProfile,
        finalizer: Finalizer,
        status_message: str,
        progress_message: str,
        name: str = "relay",
    ) -> None:
        self._source = source
        self._writer = writer
        self._profile = profile
        self._finalizer = finalizer
        self._status_message = status_message
        self._decoder = FrameDecoder(profile)
        self._accumulator = DeltaAccumulator(profile, progress_message)
        self._name = name
        self._cancelled = False
        self._writer_closed = False
        self.state = SessionState.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def run(self) -> None:
        """Drive the session to ``closed``. Never raises."""
        terminal: OutboundEvent | None = None
        with tracer.start_as_current_span(f"{self._name}.session") as span:
            span.set_attribute("relay.profile", self._profile.name)
            try:
                await self._write(StatusEvent(message=self._status_message))
                final_text = await self._receive()
                self.state = SessionState.FINALIZING
                terminal = await self._finalizer(final_text) or DoneEvent()
            except asyncio.CancelledError:
                self._cancelled = True
                logger.info(
                    "%s canceled after %d deltas",
                    self._name,
                    self._accumulator.delta_count,
                )
                self._accumulator.finalize()
                # Dropped by _write when the consumer is already gone
                terminal = DoneEvent()
            except UpstreamError as exc:
                logger.error(
                    "%s upstream failure (status=%s): %s",
                    self._name,
                    exc.status_code,
                    exc.message,
                )
                terminal = ErrorEvent(
                    message=exc.message,
                    status=exc.status_code or UPSTREAM_UNAVAILABLE_STATUS,
                )
            except Exception:
                logger.exception("%s failed while relaying", self._name)
                terminal = ErrorEvent(message=INTERNAL_ERROR_MESSAGE, status=500)
            finally:
                span.set_attribute("relay.delta_count", self._accumulator.delta_count)
                span.set_attribute("relay.frames_discarded", self._decoder.discarded)
                span.set_attribute("relay.cancelled", self._cancelled)
                await self._finish(terminal)

    async def _receive(self) -> str:
        async with self._source.open() as chunks:
            async for chunk in chunks:
                if self.state is SessionState.IDLE:
                    self.state = SessionState.RECEIVING
                if await self._process(self._decoder.feed(chunk)):
                    logger.debug("%s reached terminator frame", self._name)
                    return self._accumulator.finalize()
            await self._process(self._decoder.flush())
        return self._accumulator.finalize()

    async def _process(self, frames: list[RawFrame]) -> bool:
        """Apply frames in order; True once a terminator is seen."""
        for frame in frames:
            if frame.kind is FrameKind.TERMINATOR:
                return True
            event = self._accumulator.on_frame(frame)
            if event is not None:
                await self._write(event)
        return False

    async def _write(self, event: OutboundEvent) -> None:
        if self._writer.gone:
            return
        await self._writer.write(event)

    async def _finish(self, terminal: OutboundEvent | None) -> None:
        self.state = SessionState.FINALIZING
        try:
            if terminal is not None:
                await self._write(terminal)
        except Exception:
            logger.exception("%s could not write its terminal event", self._name)
            if not self._writer.gone:
                try:
                    await self._writer.write(
                        ErrorEvent(message=INTERNAL_ERROR_MESSAGE, status=500)
                    )
                except Exception:
                    logger.exception("%s could not write fallback error", self._name)
        finally:
            await self.close()

    async def close(self) -> None:
        """Close the writer once; later calls are no-ops."""
        if self._writer_closed:
            return
        self._writer_closed = True
        try:
            await self._writer.close()
        except Exception:
            logger.exception("%s failed to close its writer", self._name)
        finally:
            self.state = SessionState.CLOSED


async def relay_to_sse(
    session_factory: Callable[[EventWriter], RelaySession],
) -> AsyncGenerator[str, None]:
    """Run a session in a task and yield its SSE output for StreamingResponse.

    If the consumer stops iterating (client disconnect), the session task is
    canceled so the upstream read is abandoned instead of drained.
    """
    channel = SseEventChannel()
    session = session_factory(channel)
    task = asyncio.create_task(session.run())
    _running_sessions.add(task)
    task.add_done_callback(_running_sessions.discard)
    try:
        async for chunk in channel:
            yield chunk
    finally:
        if not task.done():
            channel.mark_gone()
            task.cancel()
