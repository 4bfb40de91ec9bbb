import asyncio
import json

import pytest

from cdpsession import Session, Transport, TransportClosed


class FakeTransport(Transport):
    """in-memory peer: records what the session writes, replays what the test feeds."""

    def __init__(self):
        self.sent: list[dict] = []
        self.closed = False
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._outbound: asyncio.Queue = asyncio.Queue()
        self.fail_sends = False

    async def send(self, frame: str):
        if self.closed or self.fail_sends:
            raise TransportClosed("fake transport closed")
        msg = json.loads(frame)
        self.sent.append(msg)
        self._outbound.put_nowait(msg)

    async def recv(self):
        if self.closed:
            raise TransportClosed("fake transport closed")
        item = await self._inbound.get()
        if item is None:
            self.closed = True
            raise TransportClosed("peer hung up")
        return item

    async def close(self):
        self.closed = True
        self._inbound.put_nowait(None)

    # test helpers

    def feed(self, message: dict | str):
        self._inbound.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def respond(self, request: dict, result: dict | None = None):
        self.feed({"id": request["id"], "result": result or {}})

    def emit(self, method: str, params: dict | None = None):
        self.feed({"method": method, "params": params or {}})

    def hang_up(self):
        self._inbound.put_nowait(None)

    async def next_request(self, timeout: float = 1) -> dict:
        return await asyncio.wait_for(self._outbound.get(), timeout)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def make_session(transport):
    def _make(**kwargs) -> Session:
        session = Session(transport, **kwargs)
        session.start()
        return session
    return _make


async def settle():
    """let the reader task drain whatever has been fed so far."""
    for _ in range(5):
        await asyncio.sleep(0)
