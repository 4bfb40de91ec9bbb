"""shared plumbing for domain bindings: wire enums + strict field decoding."""

import enum
from typing import Any, Callable, TypeVar

from ..core.errors import DecodeError, UnknownEnumValue

T = TypeVar("T")


class ProtocolEnum(enum.Enum):
    """closed set of protocol values, each carrying its canonical wire string.

    equality is by wire string, and **a member also equals its own raw wire
    string**: `StorageType.CACHE_STORAGE == "cache_storage"` is `True`.
    that string case is deliberate so values read straight off the wire can be
    compared against members. it's the only coercion: `from_json()` is strict and
    raises `UnknownEnumValue` for anything that isn't a member.
    `hash()` follows the wire string so members and strings share dict slots.
    """

    def __eq__(self, other):
        if isinstance(other, ProtocolEnum):
            return self.value == other.value
        if isinstance(other, str):
            return self.value == other
        return NotImplemented

    def __hash__(self):
        return hash(self.value)

    def __str__(self):
        return self.value

    def to_json(self) -> str:
        return self.value

    @classmethod
    def from_json(cls, value: Any):
        if not isinstance(value, str):
            raise DecodeError(f"{cls.__name__} must be a string, got {value!r}")
        try:
            return cls(value)
        except ValueError:
            raise UnknownEnumValue(cls.__name__, value) from None


def _type_name(expected) -> str:
    if isinstance(expected, tuple):
        return " | ".join(t.__name__ for t in expected)
    return expected.__name__


def _check(value: Any, expected, where: str):
    # bool is an int subclass; a json true must not pass for a number
    if isinstance(value, bool) and bool not in (expected if isinstance(expected, tuple) else (expected,)):
        raise DecodeError(f"{where}: expected {_type_name(expected)}, got bool")
    if not isinstance(value, expected):
        raise DecodeError(f"{where}: expected {_type_name(expected)}, got {type(value).__name__}")
    return value


NUMBER = (int, float)


def require(json: Any, key: str, expected, owner: str):
    """read a required field with an explicit type.

    :param json: the decoded object.
    :param key: wire field name.
    :param expected: type (or tuple of types) the value must be.
    :param owner: name used in error messages.
    :raises DecodeError: field missing or of the wrong type.
    """
    if not isinstance(json, dict):
        raise DecodeError(f"{owner}: expected an object, got {type(json).__name__}")
    if key not in json:
        raise DecodeError(f"{owner}: missing required field {key!r}")
    return _check(json[key], expected, f"{owner}.{key}")


def require_list(json: Any, key: str, item: Callable[[Any], T], owner: str) -> list[T]:
    """read a required array field, decoding every element with `item`."""
    values = require(json, key, list, owner)
    return [item(v) for v in values]


def omit_none(**params) -> dict[str, Any]:
    """build a params dict, leaving out every argument that is `None`.

    absent and explicit-empty differ: `0`, `""` and `[]` are kept.
    """
    return {k: v for k, v in params.items() if v is not None}


__all__ = [
    "ProtocolEnum",
    "NUMBER",
    "require",
    "require_list",
    "omit_none",
]
