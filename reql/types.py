"""JSON envelopes exchanged during the handshake."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from reql.exceptions import ParseError

logger = logging.getLogger("reql.types")


def _loads(text: str, envelope: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.error("Could not decode %s: %s", envelope, exc)
        raise ParseError(f"Invalid {envelope} JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(f"Invalid {envelope}: expected a JSON object")
    if not isinstance(data.get("success"), bool):
        raise ParseError(f"Invalid {envelope}: missing boolean 'success' field")
    return data


def _optional(data: dict[str, Any], key: str, kind: type, envelope: str) -> Any:
    value = data.get(key)
    # bool is an int subclass; never accept it where a number is expected.
    if value is not None and (not isinstance(value, kind) or isinstance(value, bool)):
        raise ParseError(f"Invalid {envelope}: field {key!r} must be {kind.__name__}")
    return value


def _dumps(obj: Any) -> bytes:
    return json.dumps(asdict(obj), separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True, slots=True)
class ServerInfo:
    """Greeting the server sends in reply to the version word."""

    success: bool
    min_protocol_version: Optional[int] = None
    max_protocol_version: Optional[int] = None
    server_version: Optional[str] = None

    @classmethod
    def from_json(cls, text: str) -> ServerInfo:
        data = _loads(text, "ServerInfo")
        return cls(
            success=data["success"],
            min_protocol_version=_optional(data, "min_protocol_version", int, "ServerInfo"),
            max_protocol_version=_optional(data, "max_protocol_version", int, "ServerInfo"),
            server_version=_optional(data, "server_version", str, "ServerInfo"),
        )


@dataclass(frozen=True, slots=True)
class AuthRequest:
    protocol_version: int
    authentication_method: str
    authentication: str

    def to_json(self) -> bytes:
        return _dumps(self)


@dataclass(frozen=True, slots=True)
class AuthConfirmation:
    authentication: str

    def to_json(self) -> bytes:
        return _dumps(self)


@dataclass(frozen=True, slots=True)
class AuthResponse:
    """Server reply to an AuthRequest or AuthConfirmation."""

    success: bool
    authentication: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[int] = None

    @classmethod
    def from_json(cls, text: str) -> AuthResponse:
        data = _loads(text, "AuthResponse")
        return cls(
            success=data["success"],
            authentication=_optional(data, "authentication", str, "AuthResponse"),
            error=_optional(data, "error", str, "AuthResponse"),
            error_code=_optional(data, "error_code", int, "AuthResponse"),
        )
