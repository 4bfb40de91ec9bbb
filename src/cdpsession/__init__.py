"""typed asyncio client for the chrome devtools protocol.

- `Session`: one connection, many concurrent commands, one ordered event feed
- `Subscription`: name-filtered (optionally typed) event stream
- `StorageApi`: typed bindings for the `Storage` domain
- `start()` / `stop()`: launch a local chrome with nodriver and attach a session

usage:
```python
session = await Session.connect("ws://127.0.0.1:9222/devtools/browser/...")
storage = StorageApi(session)
quota = await storage.get_usage_and_quota("https://example.com")
await session.close()
```
"""

from .core.session import Session, PendingCommand
from .core.broadcast import Subscription
from .core.codec import CommandRequest, CommandResponse, Event
from .core.transport import Transport, WebSocketTransport
from .core.errors import (
    CDPError,
    ProtocolError,
    DecodeError,
    MalformedResponse,
    UnknownEnumValue,
    SessionClosed,
    TransportClosed,
)
from .core.browser import start, stop
from .domains import (
    ProtocolEnum,
    StorageApi,
    StorageType,
    UsageForType,
    TrustTokens,
    GetUsageAndQuotaResult,
    CacheStorageContentUpdated,
    IndexedDBContentUpdated,
)
from . import domains

__all__ = [
    "Session",
    "PendingCommand",
    "Subscription",
    "CommandRequest",
    "CommandResponse",
    "Event",
    "Transport",
    "WebSocketTransport",
    "CDPError",
    "ProtocolError",
    "DecodeError",
    "MalformedResponse",
    "UnknownEnumValue",
    "SessionClosed",
    "TransportClosed",
    "start",
    "stop",
    "domains",
    "ProtocolEnum",
    "StorageApi",
    "StorageType",
    "UsageForType",
    "TrustTokens",
    "GetUsageAndQuotaResult",
    "CacheStorageContentUpdated",
    "IndexedDBContentUpdated",
]
