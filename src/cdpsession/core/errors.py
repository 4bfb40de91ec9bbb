"""error taxonomy shared by the codec, session and domain bindings.

- `ProtocolError`: the peer answered a command with an `error` body
- `DecodeError`: wire data doesn't have the expected shape
- `MalformedResponse`: a `DecodeError` pinned to one pending command
- `UnknownEnumValue`: a binding got an enum string it doesn't know
- `SessionClosed`: the session ended (terminal)
- `TransportClosed`: raised by transports when the channel is gone
"""

from typing import Any

# standard json-rpc / devtools error codes
SERVER_ERROR = -32000
SESSION_NOT_FOUND = -32001
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602


class CDPError(Exception):
    """base class for everything raised by cdpsession."""


class ProtocolError(CDPError):
    """peer-reported command failure.

    :param code: error code exactly as returned by the peer.
    :param message: error message exactly as returned by the peer.
    :param data: optional extra `data` field from the error body.
    :param method: the command that failed, when known.
    """

    def __init__(self, code: int, message: str, data: Any = None, method: str | None = None):
        self.code = code
        self.message = message
        self.data = data
        self.method = method
        text = f"{message} ({code})"
        if method:
            text = f"{method}: {text}"
        if data is not None:
            text += f" {data}"
        super().__init__(text)

    @property
    def method_not_found(self) -> bool:
        return self.code == METHOD_NOT_FOUND

    @property
    def session_not_found(self) -> bool:
        return self.code == SESSION_NOT_FOUND


class DecodeError(CDPError):
    """wire data violates the expected shape.

    :param message: what was wrong.
    :param message_id: the frame's `id` if one could be read.
    """

    def __init__(self, message: str, message_id: int | None = None):
        self.message_id = message_id
        super().__init__(message)


class MalformedResponse(DecodeError):
    """the response to one specific command couldn't be decoded."""


class UnknownEnumValue(DecodeError):
    """a wire string that isn't a member of the expected enum."""

    def __init__(self, enum_name: str, value: Any):
        self.enum_name = enum_name
        self.value = value
        super().__init__(f"{value!r} is not a valid {enum_name}")


class SessionClosed(CDPError):
    """the session is closed; carries the close reason."""

    def __init__(self, reason: str = "session closed"):
        self.reason = reason
        super().__init__(reason)


class TransportClosed(CDPError):
    """the underlying channel ended (peer hung up or we closed it)."""

    def __init__(self, reason: str = "transport closed"):
        self.reason = reason
        super().__init__(reason)


__all__ = [
    "SERVER_ERROR",
    "SESSION_NOT_FOUND",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "CDPError",
    "ProtocolError",
    "DecodeError",
    "MalformedResponse",
    "UnknownEnumValue",
    "SessionClosed",
    "TransportClosed",
]
