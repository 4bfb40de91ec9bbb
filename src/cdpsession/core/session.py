"""the session layer: one transport, many concurrent commands, one event feed.

- `send()` assigns a fresh request id, parks a future in the pending map and
  awaits it. concurrent sends never block each other.
- a single reader task pulls frames off the transport and handles them one at a
  time, in arrival order: responses resolve their pending future, events go to
  the `EventBroadcaster`.
- `close()` (or the transport dying) fails every pending command with
  `SessionClosed` and ends every subscription.

everything runs on one asyncio loop, so the pending map and the subscription
registry only change between awaits and need no lock.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .broadcast import EventBroadcaster, Subscription
from .codec import CommandRequest, CommandResponse, Event, parse, serialize
from .errors import (
    DecodeError,
    MalformedResponse,
    ProtocolError,
    SessionClosed,
    TransportClosed,
)
from .transport import MAX_SIZE, PING_TIMEOUT, Transport, WebSocketTransport

logger = logging.getLogger("cdpsession.session")


@dataclass
class PendingCommand:
    """an in-flight command waiting for its response.

    `future` is resolved at most once. `on_cancel` (if set) runs when the
    session closes before a response arrives.
    """
    id: int
    method: str
    future: asyncio.Future
    on_cancel: Callable[["PendingCommand", str], Any] | None = None
    session_id: str | None = field(default=None, repr=False)


class Session:
    """correlates commands with responses and fans out events over one transport.

    lifecycle:
    1. `Session(transport)` then `start()` (or `async with`), or `await Session.connect(url)`
    - `send()`: run a command and await its result dict
    - `subscribe()`: typed/filtered event feed
    - `events()`: unfiltered event feed
    2. `close()`: idempotent shutdown
    """

    transport: Transport
    command_timeout: float | None

    def __init__(
        self,
        transport: Transport,
        *,
        event_buffer_size: int = 1024,
        command_timeout: float | None = None,
    ):
        """
        :param transport: an open `Transport`.
        :param event_buffer_size: per-subscription buffer; events beyond it are dropped
        for that subscription (`0` = unbounded).
        :param command_timeout: default seconds to wait for any response (`None` = forever).
        """
        self.transport = transport
        self.command_timeout = command_timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingCommand] = {}
        self._broadcaster = EventBroadcaster(event_buffer_size)
        self._reader: asyncio.Task | None = None
        self._closed = False
        self._close_reason: str | None = None
        self._closed_event = asyncio.Event()

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        open_timeout: float | None = 10,
        max_size: int | None = MAX_SIZE,
        ping_timeout: float | None = PING_TIMEOUT,
        **kwargs,
    ) -> "Session":
        """open a websocket to `url` and return a started session.

        :param url: devtools websocket url.
        :param open_timeout: handshake timeout in seconds.
        :param max_size: max frame size in bytes.
        :param ping_timeout: websocket keepalive timeout in seconds.
        :param kwargs: forwarded to `Session()`.
        """
        transport = await WebSocketTransport.connect(
            url,
            open_timeout=open_timeout,
            max_size=max_size,
            ping_timeout=ping_timeout,
        )
        session = cls(transport, **kwargs)
        session.start()
        return session

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def close_reason(self) -> str | None:
        return self._close_reason

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def start(self):
        """spawn the reader task. must be called from within a running loop."""
        if self._closed:
            raise SessionClosed(self._close_reason)
        if self._reader is not None:
            logger.warning("session already started")
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            raise RuntimeError("Session.start() must be called from within an asyncio event loop")
        self._reader = loop.create_task(self._read_loop())

    async def send(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        timeout: float | None = None,
        on_cancel: Callable[[PendingCommand, str], Any] | None = None,
    ) -> dict[str, Any]:
        """send a command and wait for its result.

        :param method: full method name (e.g. "Storage.getUsageAndQuota").
        :param params: params dict; keys left out stay out of the frame.
        :param session_id: target session when addressing an attached (flattened) target.
        :param timeout: seconds to wait; falls back to `command_timeout`.
        :param on_cancel: called with `(pending, reason)` if the session closes first.
        :return: the response's `result` object.
        :raises ProtocolError: the peer answered with an error.
        :raises MalformedResponse: the response for this command couldn't be decoded.
        :raises SessionClosed: the session closed before (or while) sending.
        :raises asyncio.TimeoutError: no response within the timeout.
        """
        if self._closed:
            raise SessionClosed(self._close_reason)

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        pending = PendingCommand(request_id, method, future, on_cancel, session_id)
        # register before writing so a fast response can't miss its slot
        self._pending[request_id] = pending
        frame = serialize(CommandRequest(request_id, method, params or {}, session_id))
        logger.debug("-> %s", frame)

        try:
            try:
                await self.transport.send(frame)
            except TransportClosed as e:
                self._pending.pop(request_id, None)
                # the reader may have closed the session (and failed this future) mid-write
                if future.done():
                    if not future.cancelled():
                        future.exception()
                else:
                    future.cancel()
                await self.close(e.reason)
                raise SessionClosed(self._close_reason) from e
            if timeout is None:
                timeout = self.command_timeout
            if timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            logger.warning("%s (id=%d) timed out after %ss", method, request_id, timeout)
            raise
        finally:
            # covers timeouts + caller cancellation; a late response is then an anomaly
            if self._pending.get(request_id) is pending:
                del self._pending[request_id]

    def subscribe(
        self,
        *methods: str,
        decode: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Subscription:
        """subscribe to events by exact method name.

        :param methods: one or more method names (e.g. "Storage.cacheStorageListUpdated").
        :param decode: optional params -> value mapping; events whose params raise
        `DecodeError` are dropped with a warning.
        """
        if not methods:
            raise ValueError("subscribe() needs at least one method name; use events() for all")
        return self._broadcaster.subscribe(methods, decode)

    def events(self) -> Subscription:
        """unfiltered feed of every inbound `Event`, in arrival order."""
        return self._broadcaster.subscribe(None)

    def subscriber_count(self, method: str | None = None) -> int:
        return self._broadcaster.subscriber_count(method)

    async def close(self, reason: str = "session closed"):
        """close the transport, fail pending commands and end every subscription.

        closing an already closed session is a no-op.

        :param reason: carried by the `SessionClosed` errors raised to pending callers.
        """
        if self._closed:
            return
        self._closed = True
        self._close_reason = reason
        logger.info("closing session: %s", reason)

        pending = list(self._pending.values())
        self._pending.clear()
        for cmd in pending:
            if not cmd.future.done():
                cmd.future.set_exception(SessionClosed(reason))
            if cmd.on_cancel is not None:
                try:
                    cmd.on_cancel(cmd, reason)
                except Exception:
                    logger.exception("on_cancel hook for %s (id=%d) failed", cmd.method, cmd.id)
        if pending:
            logger.debug("failed %d pending command(s)", len(pending))

        self._broadcaster.close()

        cancelled = False
        reader = self._reader
        current = asyncio.current_task()
        if reader is not None and reader is not current and not reader.done():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                # the reader's own cancellation is expected; the caller's is not
                cancelled = current is not None and current.cancelling() > 0

        try:
            await self.transport.close()
        except Exception:
            logger.debug("error closing transport", exc_info=True)
        self._closed_event.set()
        if cancelled:
            raise asyncio.CancelledError

    async def wait_closed(self):
        """block until the session is closed."""
        await self._closed_event.wait()

    async def _read_loop(self):
        """pull frames off the transport and dispatch them one by one."""
        reason = "transport closed"
        try:
            while not self._closed:
                try:
                    frame = await self.transport.recv()
                except TransportClosed as e:
                    reason = e.reason
                    break
                self._dispatch(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("reader task crashed")
            reason = f"reader task crashed: {e}"
        await self.close(reason)

    def _dispatch(self, frame: str | bytes):
        """handle one inbound frame. never raises."""
        logger.debug("<- %s", frame)
        try:
            message = parse(frame)
        except DecodeError as e:
            self._on_decode_error(e)
            return

        if isinstance(message, CommandResponse):
            self._on_response(message)
        elif isinstance(message, Event):
            self._broadcaster.publish(message)
        else:
            logger.debug("ignoring peer-originated request %s (id=%d)", message.method, message.id)

    def _on_response(self, response: CommandResponse):
        pending = self._pending.pop(response.id, None)
        if pending is None:
            logger.warning("response for unknown or abandoned command id=%d, ignoring", response.id)
            return
        if pending.future.done():
            logger.warning("%s (id=%d) already resolved, ignoring response", pending.method, response.id)
            return
        if response.error is not None:
            error = response.error
            pending.future.set_exception(ProtocolError(error.code, error.message, error.data, pending.method))
        else:
            pending.future.set_result(response.result)

    def _on_decode_error(self, error: DecodeError):
        pending = self._pending.pop(error.message_id, None) if error.message_id is not None else None
        if pending is None:
            logger.warning("dropping undecodable frame: %s", error)
            return
        logger.warning("malformed response for %s (id=%d): %s", pending.method, pending.id, error)
        if not pending.future.done():
            pending.future.set_exception(MalformedResponse(str(error), pending.id))

    async def __aenter__(self):
        if self._reader is None:
            self.start()
        return self

    async def __aexit__(self, *exc):
        await self.close()

    def __repr__(self):
        state = f"closed: {self._close_reason}" if self._closed else f"{len(self._pending)} pending"
        return f"<Session {self.transport!r} ({state})>"


__all__ = [
    "PendingCommand",
    "Session",
]
