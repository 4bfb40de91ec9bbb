"""wire envelope codec.

every frame is a json object shaped like `{id?, method?, params?, result?, error?, sessionId?}`
and decodes to one of three kinds:

- `CommandRequest`: has `id` + `method` (what we send)
- `CommandResponse`: has `id` + `result` or `error`
- `Event`: has `method`, no `id`

pure + stateless. unknown extra fields are ignored.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from .errors import DecodeError, ProtocolError


@dataclass(frozen=True)
class CommandRequest:
    id: int
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None


@dataclass(frozen=True)
class CommandResponse:
    """response to a command. exactly one of `result` / `error` is set."""
    id: int
    result: dict[str, Any] | None = None
    error: ProtocolError | None = None
    session_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class Event:
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    session_id: str | None = None

    @property
    def domain(self) -> str:
        return self.method.split(".", 1)[0]


WireMessage = CommandRequest | CommandResponse | Event


def _is_int(value: Any) -> bool:
    # json true/false would otherwise pass as 1/0
    return isinstance(value, int) and not isinstance(value, bool)


def _decode_error(body: Any, message_id: int) -> ProtocolError:
    if not isinstance(body, dict):
        raise DecodeError(f"error body must be an object, got {type(body).__name__}", message_id)
    code = body.get("code")
    message = body.get("message")
    if not _is_int(code) or not isinstance(message, str):
        raise DecodeError(f"error body needs an integer code and a string message: {body!r}", message_id)
    return ProtocolError(code, message, body.get("data"))


def parse(frame: str | bytes) -> WireMessage:
    """decode one raw frame.

    :param frame: the raw text (or utf-8 bytes) received from the transport.
    :return: the decoded message.
    :raises DecodeError: when the frame breaks the envelope rules.
    `DecodeError.message_id` is set whenever the frame looks like a response
    (usable `id`, no `method`).
    """
    try:
        data = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"frame is not valid json: {e}") from None
    if not isinstance(data, dict):
        raise DecodeError(f"frame must be a json object, got {type(data).__name__}")

    message_id = data.get("id")
    method = data.get("method")
    if message_id is None and method is None:
        raise DecodeError("frame has neither id nor method")
    if message_id is not None and not _is_int(message_id):
        raise DecodeError(f"frame id must be an integer, got {message_id!r}")
    # a frame with a method is the peer talking to us, never a reply to one of our commands
    reply_id = message_id if method is None else None
    if method is not None and not isinstance(method, str):
        raise DecodeError(f"frame method must be a string, got {method!r}")

    session_id = data.get("sessionId")
    if session_id is not None and not isinstance(session_id, str):
        raise DecodeError(f"sessionId must be a string, got {session_id!r}", reply_id)

    if "result" in data and "error" in data:
        raise DecodeError("frame carries both result and error", reply_id)

    if method is not None:
        params = data.get("params", {})
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise DecodeError(f"params must be an object, got {type(params).__name__}")
        if message_id is not None:
            return CommandRequest(message_id, method, params, session_id)
        return Event(method, params, session_id)

    if "error" in data:
        return CommandResponse(message_id, error=_decode_error(data["error"], message_id), session_id=session_id)

    # void commands answer with `result: {}` or, with some peers, no result at all
    result = data.get("result", {})
    if result is None:
        result = {}
    if not isinstance(result, dict):
        raise DecodeError(f"result must be an object, got {type(result).__name__}", message_id)
    return CommandResponse(message_id, result=result, session_id=session_id)


def serialize(request: CommandRequest) -> str:
    """encode a command request as a compact json frame.

    `sessionId` is only written when set.
    """
    obj: dict[str, Any] = {
        "id": request.id,
        "method": request.method,
        "params": request.params if request.params is not None else {},
    }
    if request.session_id is not None:
        obj["sessionId"] = request.session_id
    return json.dumps(obj, separators=(",", ":"))


__all__ = [
    "CommandRequest",
    "CommandResponse",
    "Event",
    "WireMessage",
    "parse",
    "serialize",
]
