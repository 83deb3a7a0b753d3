"""Session framing: the version word and NUL‑terminated text messages.

Wire format::

    Client → Server   [4B little‑endian version]
    Either direction  [UTF‑8 JSON bytes][0x00]

The functions operate on buffered binary file objects (``socket.makefile``)
so the same reader can be handed on to the query layer after the handshake.
"""

from __future__ import annotations

import logging
import struct
from typing import BinaryIO

from reql.exceptions import ConnectionError, ParseError
from reql.proto import Version

logger = logging.getLogger("reql.framing")

_VERSION_FMT = "<I"
_TERMINATOR = b"\0"


def write_version(wfile: BinaryIO, version: int = Version.V1_0) -> None:
    """Write *version* as a little‑endian unsigned 32‑bit integer."""
    wfile.write(struct.pack(_VERSION_FMT, version))


def read_message(rfile: BinaryIO) -> str:
    """Read one NUL‑terminated message and return it without the terminator.

    The server answers every handshake step with a JSON object; anything
    else is the server's own description of why it refused us.
    """
    buf = bytearray()
    while True:
        byte = rfile.read(1)
        if not byte:
            # EOF before a terminator: discard the partial message.
            buf.clear()
            break
        if byte == _TERMINATOR:
            break
        buf += byte

    if not buf:
        msg = "unable to connect for an unknown reason"
        logger.error(msg)
        raise ConnectionError(msg)

    try:
        text = buf.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.error("Server message is not valid UTF-8: %s", exc)
        raise ParseError(f"Server message is not valid UTF-8: {exc}") from exc

    if not text.startswith("{"):
        logger.error("%s", text)
        raise ConnectionError(text)
    return text


def write_message(wfile: BinaryIO, payload: bytes) -> None:
    """Write *payload* followed by a single NUL byte."""
    if _TERMINATOR in payload:
        raise ValueError("Message payload must not contain NUL bytes")
    wfile.write(payload + _TERMINATOR)

