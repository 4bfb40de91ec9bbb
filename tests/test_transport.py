import subprocess
import sys

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK

from cdpsession import TransportClosed, WebSocketTransport


@pytest.mark.parametrize("module", ["cdpsession", "cdpsession.core.transport"])
def test_imports_in_a_fresh_interpreter(module):
    # nothing else may have pulled in websockets' submodules first
    proc = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert proc.returncode == 0, proc.stderr


class ClosedSocket:
    """stands in for a `websockets` connection that is already gone."""

    def __init__(self, exc):
        self.exc = exc
        self.closed = False

    async def send(self, frame):
        raise self.exc

    async def recv(self):
        raise self.exc

    async def close(self):
        self.closed = True


@pytest.mark.asyncio
async def test_clean_close_maps_to_transport_closed():
    transport = WebSocketTransport(ClosedSocket(ConnectionClosedOK(None, None)), "ws://test")
    with pytest.raises(TransportClosed) as info:
        await transport.recv()
    assert info.value.reason == "websocket closed"
    with pytest.raises(TransportClosed):
        await transport.send("{}")


@pytest.mark.asyncio
async def test_abnormal_close_maps_to_transport_closed():
    transport = WebSocketTransport(ClosedSocket(ConnectionClosedError(None, None)), "ws://test")
    with pytest.raises(TransportClosed) as info:
        await transport.send("{}")
    assert info.value.reason.startswith("websocket closed unexpectedly")
    await transport.close()
    assert transport.websocket.closed
