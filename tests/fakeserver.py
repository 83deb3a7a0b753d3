"""
In‑process fake RethinkDB server for tests.

Speaks the real V1_0 handshake (SCRAM‑SHA‑256 proofs are checked with
hashlib/hmac) and answers liveness queries.  Each accepted socket is served
by its own thread running a *script*, optionally behind TLS; scripts can be
swapped per test to simulate misbehaving servers.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import socket
import ssl
import struct
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

from reql.options import ConnectOptions

# ---------------------------------------------------------------------------
# Shared constants
# ---------------------------------------------------------------------------

TEST_USER = "admin"
TEST_PASSWORD = "s3cret"
GREETING = {
    "success": True,
    "min_protocol_version": 0,
    "max_protocol_version": 0,
    "server_version": "2.4.4",
}
VALID_RESPONSE = b'{"t":1,"r":[1]}'

_SALT = b"rethinkdb-salt"
_ITERATIONS = 4096

# Test CA and a server certificate for 127.0.0.1 signed by it.
CERTS_DIR = Path(__file__).parent / "certs"
CA_CERTS = str(CERTS_DIR / "ca.pem")


def server_tls_context() -> ssl.SSLContext:
    ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    ctx.load_cert_chain(CERTS_DIR / "server.pem", CERTS_DIR / "server.key")
    return ctx


# ---------------------------------------------------------------------------
# Server side of SCRAM‑SHA‑256
# ---------------------------------------------------------------------------


def _hmac(key: bytes, msg: bytes) -> bytes:
    return hmac.new(key, msg, hashlib.sha256).digest()


class ServerScram:
    """Computes server‑first/final messages for one client exchange."""

    def __init__(self, password: str, client_first: str) -> None:
        assert client_first.startswith("n,,")
        self.client_first_bare = client_first[3:]
        attrs = dict(part.split("=", 1) for part in self.client_first_bare.split(","))
        self.user = attrs["n"]
        self.nonce = attrs["r"] + "fakeserver0nce"
        self.server_first = (
            f"r={self.nonce},s={base64.b64encode(_SALT).decode()},i={_ITERATIONS}"
        )
        self._salted = hashlib.pbkdf2_hmac("sha256", password.encode(), _SALT, _ITERATIONS)

    def server_final(self, client_final: str) -> str | None:
        """Return ``v=<signature>`` or ``None`` when the client proof is wrong."""
        without_proof, _, proof_b64 = client_final.rpartition(",p=")
        auth_message = f"{self.client_first_bare},{self.server_first},{without_proof}".encode()

        client_key = _hmac(self._salted, b"Client Key")
        stored_key = hashlib.sha256(client_key).digest()
        expected = bytes(a ^ b for a, b in zip(client_key, _hmac(stored_key, auth_message)))
        if base64.b64decode(proof_b64) != expected:
            return None

        server_key = _hmac(self._salted, b"Server Key")
        return "v=" + base64.b64encode(_hmac(server_key, auth_message)).decode()


# ---------------------------------------------------------------------------
# Fake server
# ---------------------------------------------------------------------------


class Peer:
    """Server end of one accepted socket."""

    def __init__(self, sock: socket.socket) -> None:
        self.sock = sock
        self.rfile = sock.makefile("rb")
        self.version: int | None = None
        self.messages: list[bytes] = []
        self.queries: list[tuple[int, bytes]] = []

    def start_tls(self, ctx: ssl.SSLContext) -> None:
        self.sock = ctx.wrap_socket(self.sock, server_side=True)
        self.rfile = self.sock.makefile("rb")

    def read_version(self) -> int:
        (self.version,) = struct.unpack("<I", self.rfile.read(4))
        return self.version

    def read_message(self) -> dict[str, Any]:
        buf = bytearray()
        while (byte := self.rfile.read(1)) not in (b"", b"\0"):
            buf += byte
        self.messages.append(bytes(buf))
        return json.loads(buf)

    def send(self, raw: bytes) -> None:
        self.sock.sendall(raw)

    def send_json(self, obj: dict[str, Any]) -> None:
        self.send(json.dumps(obj).encode() + b"\0")

    def serve_queries(self, response: Callable[[], bytes] = lambda: VALID_RESPONSE) -> None:
        """Answer every query with *response()* until the client hangs up."""
        while True:
            header = self.rfile.read(12)
            if len(header) < 12:
                return
            token, length = struct.unpack("<QI", header)
            body = self.rfile.read(length)
            self.queries.append((token, body))
            reply = response()
            self.send(struct.pack("<QI", token, len(reply)) + reply)


Script = Callable[["FakeRethinkServer", Peer], None]


def authenticate(server: FakeRethinkServer, peer: Peer) -> None:
    """Well‑behaved handshake."""
    peer.read_version()
    peer.send_json(GREETING)
    request = peer.read_message()
    scram = ServerScram(server.password, request["authentication"])
    peer.send_json({"success": True, "authentication": scram.server_first})
    confirmation = peer.read_message()
    signature = scram.server_final(confirmation["authentication"])
    if signature is None:
        peer.send_json({"success": False, "error": "Wrong password", "error_code": 12})
        return
    peer.send_json({"success": True, "authentication": signature})


def happy_path(server: FakeRethinkServer, peer: Peer) -> None:
    authenticate(server, peer)
    peer.serve_queries(lambda: server.query_response)


class FakeRethinkServer:
    def __init__(
        self,
        script: Script = happy_path,
        *,
        password: str = TEST_PASSWORD,
        tls: Optional[ssl.SSLContext] = None,
    ) -> None:
        self.script = script
        self.password = password
        self.tls = tls
        self.query_response = VALID_RESPONSE
        self.peers: list[Peer] = []
        self.errors: list[BaseException] = []

        self._listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._listener.bind(("127.0.0.1", 0))
        self._listener.listen(128)
        self._listener.settimeout(0.2)
        self.port: int = self._listener.getsockname()[1]
        self._lock = threading.Lock()
        self._running = True
        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    @property
    def address(self) -> str:
        return f"127.0.0.1:{self.port}"

    @property
    def accepted(self) -> int:
        with self._lock:
            return len(self.peers)

    def options(self, **overrides: Any) -> ConnectOptions:
        fields: dict[str, Any] = {
            "servers": [self.address],
            "user": TEST_USER,
            "password": TEST_PASSWORD,
            "timeout": 5.0,
        }
        fields.update(overrides)
        return ConnectOptions(**fields).for_server(fields["servers"][0])

    def stop(self) -> None:
        self._running = False
        self._thread.join(timeout=5)
        self._listener.close()
        with self._lock:
            peers = list(self.peers)
        for peer in peers:
            try:
                peer.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

    def _accept_loop(self) -> None:
        while self._running:
            try:
                sock, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            sock.settimeout(10)
            peer = Peer(sock)
            with self._lock:
                self.peers.append(peer)
            threading.Thread(target=self._serve, args=(peer,), daemon=True).start()

    def _serve(self, peer: Peer) -> None:
        try:
            if self.tls is not None:
                peer.start_tls(self.tls)
            self.script(self, peer)
        except (OSError, ValueError) as exc:
            # Client hung up mid‑script; recorded for tests that care.
            self.errors.append(exc)
        finally:
            try:
                peer.sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            peer.sock.close()

