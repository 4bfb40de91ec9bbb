from .codec import CommandRequest, CommandResponse, Event, parse, serialize
from .session import Session, PendingCommand
from .broadcast import Subscription, EventBroadcaster
from .transport import Transport, WebSocketTransport
from .errors import (
    CDPError,
    ProtocolError,
    DecodeError,
    MalformedResponse,
    UnknownEnumValue,
    SessionClosed,
    TransportClosed,
)

__all__ = [
    "CommandRequest",
    "CommandResponse",
    "Event",
    "parse",
    "serialize",
    "Session",
    "PendingCommand",
    "Subscription",
    "EventBroadcaster",
    "Transport",
    "WebSocketTransport",
    "CDPError",
    "ProtocolError",
    "DecodeError",
    "MalformedResponse",
    "UnknownEnumValue",
    "SessionClosed",
    "TransportClosed",
]
