"""Lifecycle of long-lived SSE stream sessions."""

import asyncio
import time
import uuid
from collections.abc import AsyncIterator, Callable

import structlog

from src.exceptions import TransportError
from .schemas import MCPStreamEvent, ping_event


logger = structlog.get_logger("mcp_transport")

DEFAULT_KEEPALIVE_SECONDS = 30.0
DEFAULT_MAX_PENDING_EVENTS = 100


class StreamSession:
    """One open server-to-client channel.

    Events go through a per-session queue that the response body drains; a
    ``None`` in the queue ends the stream. The session owns exactly one
    keepalive task, armed on ``open()`` and cancelled by ``close()``, which
    runs at most once however many paths reach it.

    Attributes:
        session_id: Opaque identifier used in logs.
        opened_at: Wall-clock time the channel opened.
        closed: Whether ``close()`` has run.
    """

    def __init__(
        self,
        manager: "StreamManager",
        keepalive_interval: float = DEFAULT_KEEPALIVE_SECONDS,
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
    ) -> None:
        self.session_id = uuid.uuid4().hex
        self.opened_at = time.time()
        self.closed = False
        self.keepalive_interval = keepalive_interval
        self.max_pending_events = max_pending_events
        self._manager = manager
        self._queue: asyncio.Queue[MCPStreamEvent | None] = asyncio.Queue()
        self._keepalive_task: asyncio.Task[None] | None = None

    @property
    def keepalive_task(self) -> asyncio.Task[None] | None:
        return self._keepalive_task

    @property
    def pending_events(self) -> int:
        return self._queue.qsize()

    def open(self, handshake: MCPStreamEvent) -> None:
        """Queue the handshake, then arm the keepalive timer."""
        self.publish(handshake)
        self._keepalive_task = asyncio.create_task(self._keepalive())

    def publish(self, event: MCPStreamEvent) -> None:
        """Queue an event for delivery.

        Raises:
            TransportError: If the session is closed, or is closed here
                because the peer stopped draining its queue.
        """
        if self.closed:
            raise TransportError(self.session_id, "session is closed")
        if self._queue.qsize() >= self.max_pending_events:
            self.close(reason="backlog")
            raise TransportError(
                self.session_id, f"more than {self.max_pending_events} undelivered events"
            )
        self._queue.put_nowait(event)

    async def next_event(self) -> MCPStreamEvent | None:
        """Wait for the next event; ``None`` means the stream is over."""
        return await self._queue.get()

    async def _keepalive(self) -> None:
        while True:
            await asyncio.sleep(self.keepalive_interval)
            try:
                self.publish(ping_event())
            except TransportError as e:
                logger.warning("stream_transport_error", session_id=self.session_id, error=e.message)
                return

    def close(self, reason: str = "closed") -> None:
        """Cancel the keepalive timer and end the stream. Idempotent."""
        if self.closed:
            return
        self.closed = True

        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

        # Undelivered events are dropped; only the end marker remains.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(None)

        self._manager._release(self)
        logger.info(
            "stream_closed",
            session_id=self.session_id,
            reason=reason,
            duration_seconds=round(time.time() - self.opened_at, 3),
            active_streams=self._manager.active_count,
        )


class StreamManager:
    """Registry of open stream sessions with fan-out.

    Sessions share nothing with each other; closing one never touches the
    rest.

    Attributes:
        keepalive_interval: Seconds between liveness events on each session.
        max_pending_events: Backlog at which a slow session is dropped.
        accepting: False once shutdown has started.
    """

    def __init__(
        self,
        handshake_factory: Callable[[], MCPStreamEvent],
        keepalive_interval: float = DEFAULT_KEEPALIVE_SECONDS,
        max_pending_events: int = DEFAULT_MAX_PENDING_EVENTS,
    ) -> None:
        self.keepalive_interval = keepalive_interval
        self.max_pending_events = max_pending_events
        self.accepting = True
        self._handshake_factory = handshake_factory
        self._sessions: dict[str, StreamSession] = {}

    @property
    def active_count(self) -> int:
        return len(self._sessions)

    @property
    def sessions(self) -> list[StreamSession]:
        return list(self._sessions.values())

    def open_session(self) -> StreamSession:
        """Register a new session and send its handshake.

        Raises:
            TransportError: If the manager is shutting down.
        """
        session = StreamSession(
            self,
            keepalive_interval=self.keepalive_interval,
            max_pending_events=self.max_pending_events,
        )
        if not self.accepting:
            raise TransportError(session.session_id, "server is shutting down")
        self._sessions[session.session_id] = session
        session.open(self._handshake_factory())
        logger.info("stream_opened", session_id=session.session_id, active_streams=self.active_count)
        return session

    def _release(self, session: StreamSession) -> None:
        self._sessions.pop(session.session_id, None)

    def broadcast(self, event: MCPStreamEvent) -> int:
        """Queue an event on every open session.

        Returns:
            Number of sessions that accepted the event.
        """
        delivered = 0
        for session in self.sessions:
            try:
                session.publish(event)
            except TransportError as e:
                logger.warning("stream_transport_error", session_id=session.session_id, error=e.message)
                continue
            delivered += 1
        return delivered

    def close_all(self, reason: str = "shutdown") -> None:
        """Stop accepting sessions and close every open one."""
        self.accepting = False
        for session in self.sessions:
            session.close(reason=reason)


async def stream_events(manager: StreamManager) -> AsyncIterator[str]:
    """Response body for one SSE channel.

    The session is opened only once the body starts streaming, and closed on
    every exit: end marker, peer disconnect (cancellation) or write failure.
    """
    try:
        session = manager.open_session()
    except TransportError as e:
        logger.warning("stream_transport_error", session_id=e.session_id, error=e.message)
        return

    try:
        while True:
            event = await session.next_event()
            if event is None:
                return
            yield event.to_sse()
    finally:
        session.close(reason="disconnected")
