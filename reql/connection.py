"""A single authenticated socket to a RethinkDB server.

``Connection.open`` dials the endpoint selected in the options, wraps the
socket in TLS when configured, and runs the handshake before returning.
The object is not thread‑safe; the pool hands it to one caller at a time.
"""

from __future__ import annotations

import logging
import socket
import ssl
from typing import BinaryIO, Optional

from reql import framing
from reql.exceptions import ConnectionError
from reql.handshake import perform_handshake
from reql.options import ConnectOptions, Endpoint

logger = logging.getLogger("reql.connection")

_TOKEN_MASK = (1 << 64) - 1


class Connection:
    """Socket plus query token and ``broken`` flag.

    Any socket error raised through this object sets ``broken``; once broken
    the connection refuses further I/O and the pool evicts it.
    """

    def __init__(self, sock: socket.socket, endpoint: Endpoint) -> None:
        self.endpoint = endpoint
        self.token = 0
        self.broken = False

        self._sock: Optional[socket.socket] = sock
        self._rfile: BinaryIO = sock.makefile("rb")
        self._wfile: BinaryIO = sock.makefile("wb")

    # -- construction ------------------------------------------------------

    @classmethod
    def open(cls, opts: ConnectOptions) -> Connection:
        """Dial ``opts.server``, authenticate, and return the ready connection."""
        endpoint = opts.endpoint
        if endpoint is None:
            raise ConnectionError("No server selected.")

        conn = cls(_open_socket(endpoint, opts), endpoint)
        try:
            perform_handshake(conn, opts)
        except BaseException:
            conn.close()
            raise
        logger.debug("Connection to %s established", endpoint)
        return conn

    # -- properties --------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._sock is None

    # -- I/O ---------------------------------------------------------------

    def send(self, data: bytes) -> None:
        self._check_usable()
        try:
            self._wfile.write(data)
        except OSError as exc:
            raise self._fail("write", exc) from exc

    def flush(self) -> None:
        self._check_usable()
        try:
            self._wfile.flush()
        except OSError as exc:
            raise self._fail("flush", exc) from exc

    def write_version(self, version: int) -> None:
        self._check_usable()
        try:
            framing.write_version(self._wfile, version)
        except OSError as exc:
            raise self._fail("write", exc) from exc

    def write_message(self, payload: bytes) -> None:
        self._check_usable()
        try:
            framing.write_message(self._wfile, payload)
        except OSError as exc:
            raise self._fail("write", exc) from exc

    def read_message(self) -> str:
        """Read one NUL‑terminated handshake message (see :mod:`reql.framing`)."""
        self._check_usable()
        try:
            return framing.read_message(self._rfile)
        except OSError as exc:
            raise self._fail("read", exc) from exc

    def read_exact(self, size: int) -> bytes:
        self._check_usable()
        try:
            data = self._rfile.read(size)
        except OSError as exc:
            raise self._fail("read", exc) from exc
        if len(data) != size:
            self.broken = True
            raise ConnectionError(
                f"Connection to {self.endpoint} closed by server "
                f"(expected {size} bytes, got {len(data)})"
            )
        return data

    def next_token(self) -> int:
        """Advance the query token and return the new value."""
        self.token = (self.token + 1) & _TOKEN_MASK
        return self.token

    def take_error(self) -> int:
        """Return the pending ``SO_ERROR`` value of the socket (0 if none).

        Raises ``OSError`` when the socket can no longer be queried.
        """
        if self._sock is None:
            raise OSError("socket is closed")
        return self._sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)

    def close(self) -> None:
        """Close the socket.  Safe to call more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        for f in (self._wfile, self._rfile):
            try:
                f.close()
            except OSError:
                # Flushing unsent bytes to a dead peer; the socket goes anyway.
                pass
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()
        logger.debug("Connection to %s closed", self.endpoint)

    # -- private -----------------------------------------------------------

    def _check_usable(self) -> None:
        if self._sock is None:
            raise ConnectionError(f"Connection to {self.endpoint} is closed")
        if self.broken:
            raise ConnectionError(f"Connection to {self.endpoint} is broken")

    def _fail(self, op: str, exc: OSError) -> ConnectionError:
        self.broken = True
        logger.debug("Socket %s to %s failed: %s", op, self.endpoint, exc)
        return ConnectionError(f"Socket {op} to {self.endpoint} failed: {exc}")

    def __repr__(self) -> str:
        return f"<Connection {self.endpoint} token={self.token} broken={self.broken}>"


def _open_socket(endpoint: Endpoint, opts: ConnectOptions) -> socket.socket:
    try:
        raw = socket.create_connection((endpoint.host, endpoint.port), timeout=opts.timeout)
    except OSError as exc:
        raise ConnectionError(f"Could not connect to {endpoint}: {exc}") from exc

    raw.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
    if opts.ssl is None:
        return raw

    try:
        ctx = ssl.create_default_context(cafile=opts.ssl.ca_certs)
        return ctx.wrap_socket(raw, server_hostname=endpoint.host)
    except (OSError, ssl.SSLError) as exc:
        raw.close()
        raise ConnectionError(f"TLS handshake with {endpoint} failed: {exc}") from exc
