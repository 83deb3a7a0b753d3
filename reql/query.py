"""Query framing used once a connection is authenticated.

Wire format (both directions)::

    [8B little‑endian token][4B little‑endian length][length B JSON]

A query body is the JSON array ``[type, term, global_optargs]``; the term
and optargs are optional.  The caller advances ``conn.token`` before
writing, and the response must echo that token.
"""

from __future__ import annotations

import json
import logging
import struct
from typing import TYPE_CHECKING, Any, Optional

from reql.exceptions import ConnectionError

if TYPE_CHECKING:
    from reql.connection import Connection

logger = logging.getLogger("reql.query")

_HEADER = struct.Struct("<QI")


def wrap(query_type: int, term: Optional[str] = None, global_optargs: Optional[dict[str, Any]] = None) -> bytes:
    """Build a query body.  *term* is already‑serialized JSON text."""
    parts = [str(int(query_type))]
    if term is not None:
        parts.append(term)
        if global_optargs is not None:
            parts.append(json.dumps(global_optargs, separators=(",", ":")))
    return f"[{','.join(parts)}]".encode("utf-8")


def write(conn: Connection, body: bytes) -> None:
    """Send *body* tagged with the connection's current token."""
    conn.send(_HEADER.pack(conn.token, len(body)) + body)
    conn.flush()
    logger.debug("Sent query token=%d (%d bytes)", conn.token, len(body))


def read(conn: Connection) -> bytes:
    """Read one response for the connection's current token."""
    token, length = _HEADER.unpack(conn.read_exact(_HEADER.size))
    body = conn.read_exact(length)
    if token != conn.token:
        conn.broken = True
        raise ConnectionError(
            f"Response token {token} does not match query token {conn.token}"
        )
    return body
