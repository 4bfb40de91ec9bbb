import logging

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from .errors import TransportClosed

logger = logging.getLogger("cdpsession.transport")

# same limits nodriver uses for its own devtools connection
MAX_SIZE: int = 2**28
PING_TIMEOUT: int = 900


class Transport:
    """ordered, bidirectional channel of discrete text frames.

    subclasses implement `send()`, `recv()` and `close()`.
    `recv()` must raise `TransportClosed` once the channel is gone
    (and keep raising it on later calls).
    """

    async def send(self, frame: str):
        raise NotImplementedError

    async def recv(self) -> str | bytes:
        raise NotImplementedError

    async def close(self):
        raise NotImplementedError


class WebSocketTransport(Transport):
    """`Transport` over a `websockets` client connection."""

    def __init__(self, websocket, url: str | None = None):
        self.websocket = websocket
        self.url = url

    @classmethod
    async def connect(
        cls,
        url: str,
        *,
        open_timeout: float | None = 10,
        max_size: int | None = MAX_SIZE,
        ping_timeout: float | None = PING_TIMEOUT,
    ) -> "WebSocketTransport":
        """open a websocket to a devtools endpoint.

        :param url: `ws://` url, e.g. the browser's `webSocketDebuggerUrl`.
        :param open_timeout: seconds to wait for the handshake.
        :param max_size: max incoming frame size in bytes.
        :param ping_timeout: keepalive timeout in seconds.
        """
        logger.debug("connecting to %s", url)
        websocket = await websockets.connect(
            url,
            open_timeout=open_timeout,
            max_size=max_size,
            ping_timeout=ping_timeout,
        )
        logger.debug("connected to %s", url)
        return cls(websocket, url)

    async def send(self, frame: str):
        try:
            await self.websocket.send(frame)
        except ConnectionClosed as e:
            raise TransportClosed(_describe(e)) from e

    async def recv(self) -> str | bytes:
        try:
            return await self.websocket.recv()
        except ConnectionClosed as e:
            raise TransportClosed(_describe(e)) from e

    async def close(self):
        await self.websocket.close()

    def __repr__(self):
        return f"<WebSocketTransport {self.url}>"


def _describe(e: ConnectionClosed) -> str:
    if isinstance(e, ConnectionClosedOK):
        return "websocket closed"
    return f"websocket closed unexpectedly: {e}"


__all__ = [
    "MAX_SIZE",
    "PING_TIMEOUT",
    "Transport",
    "WebSocketTransport",
]
