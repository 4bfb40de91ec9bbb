"""publish/subscribe registry for inbound events.

the session's reader task calls `EventBroadcaster.publish()` once per event,
in arrival order. each `Subscription` owns a bounded buffer so publishing never
waits on a consumer:

**slow subscriber policy**: when a subscription's buffer is full, the new event
is dropped *for that subscription only*, `Subscription.dropped` is bumped and a
warning is logged. other subscriptions (and the reader task) are unaffected.
"""

import asyncio
import logging
from typing import Any, Callable, Iterable

from .codec import Event
from .errors import DecodeError

logger = logging.getLogger("cdpsession.broadcast")

# wakes a consumer parked on an empty buffer after close()
_CLOSED = object()


class Subscription:
    """live registration for one or more event names.

    async iterable; ends (no error) once the subscription or its session is closed.
    events buffered before the close are still delivered first.

    with `decode`, each event's params are mapped through it and values that raise
    `DecodeError` are skipped with a warning. without it, raw `Event`s are yielded.

    usage:
    ```python
    async with session.subscribe("Storage.indexedDBListUpdated") as sub:
        async for ev in sub:
            ...
    ```
    """

    def __init__(
        self,
        broadcaster: "EventBroadcaster",
        methods: frozenset[str] | None,
        decode: Callable[[dict[str, Any]], Any] | None = None,
        buffer_size: int = 0,
    ):
        self._broadcaster = broadcaster
        # None means "every event"
        self.methods = methods
        self.decode = decode
        self.dropped = 0
        self._queue: asyncio.Queue = asyncio.Queue(buffer_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, method: str) -> bool:
        return self.methods is None or method in self.methods

    def _offer(self, event: Event):
        # called from the reader task: must never block
        if self._closed:
            return
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(
                "subscription %s is full (%d buffered), dropped %s (%d dropped so far)",
                self, self._queue.qsize(), event.method, self.dropped,
            )

    def _finish(self):
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # a full buffer means nobody is parked on get(); __anext__ sees _closed once drained
            pass

    def close(self):
        """unsubscribe. safe to call more than once."""
        self._broadcaster.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self):
        while True:
            if self._closed and self._queue.empty():
                raise StopAsyncIteration
            item = await self._queue.get()
            if item is _CLOSED:
                raise StopAsyncIteration
            if self.decode is None:
                return item
            try:
                return self.decode(item.params)
            except DecodeError as e:
                logger.warning("dropping undecodable %s event: %s", item.method, e)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.close()

    def __repr__(self):
        names = "*" if self.methods is None else ",".join(sorted(self.methods))
        return f"<Subscription {names}>"


class EventBroadcaster:
    """name-keyed registry of subscriptions.

    one event name may have any number of subscriptions and one subscription may
    listen on several names. only touched from the event loop thread.
    """

    def __init__(self, buffer_size: int = 1024):
        self.buffer_size = buffer_size
        self._by_method: dict[str, set[Subscription]] = {}
        self._wildcard: set[Subscription] = set()
        self._closed = False

    def subscribe(
        self,
        methods: Iterable[str] | None = None,
        decode: Callable[[dict[str, Any]], Any] | None = None,
    ) -> Subscription:
        """register a new subscription.

        :param methods: exact method names to receive, or `None` for all events.
        :param decode: optional params -> value mapping applied on delivery.
        """
        names = frozenset(methods) if methods is not None else None
        sub = Subscription(self, names, decode, self.buffer_size)
        if self._closed:
            sub._finish()
            return sub
        if names is None:
            self._wildcard.add(sub)
        else:
            for name in names:
                self._by_method.setdefault(name, set()).add(sub)
        logger.debug("added %s", sub)
        return sub

    def unsubscribe(self, sub: Subscription):
        if sub.methods is None:
            self._wildcard.discard(sub)
        else:
            for name in sub.methods:
                subs = self._by_method.get(name)
                if subs is None:
                    continue
                subs.discard(sub)
                if not subs:
                    del self._by_method[name]
        sub._finish()

    def publish(self, event: Event) -> int:
        """hand `event` to every matching subscription without waiting.

        :return: number of subscriptions the event was offered to.
        """
        targets = list(self._by_method.get(event.method, ()))
        targets.extend(self._wildcard)
        for sub in targets:
            sub._offer(event)
        return len(targets)

    def subscriber_count(self, method: str | None = None) -> int:
        if method is None:
            return len(self._wildcard) + len({s for subs in self._by_method.values() for s in subs})
        return len(self._by_method.get(method, ()))

    def close(self):
        """end every subscription; later subscriptions start out closed."""
        self._closed = True
        subs = set(self._wildcard)
        for group in self._by_method.values():
            subs.update(group)
        self._wildcard.clear()
        self._by_method.clear()
        for sub in subs:
            sub._finish()


__all__ = [
    "Subscription",
    "EventBroadcaster",
]
