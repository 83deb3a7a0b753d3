"""Three‑state SCRAM‑SHA‑256 driver.

    ClientFirst(user, password)
        .client_first()              → (ServerFirst, client‑first‑message)
    ServerFirst
        .handle_server_first(msg)    → (ServerFinal, client‑final‑message)
    ServerFinal
        .handle_server_final(msg)    → None  (server signature verified)

Each state wraps the same ``scramp.ScramClient`` and may be advanced exactly
once.  The cryptography (salted password, auth message, proofs) stays inside
scramp.
"""

from __future__ import annotations

from scramp import ScramClient, ScramException

from reql.exceptions import ParseError
from reql.proto import AUTH_METHOD


class _State:
    def __init__(self, client: ScramClient) -> None:
        self._client: ScramClient | None = client

    def _take(self) -> ScramClient:
        client = self._client
        if client is None:
            raise RuntimeError(f"{type(self).__name__} state has already been consumed")
        self._client = None
        return client


class ClientFirst(_State):
    def __init__(self, user: str, password: str) -> None:
        super().__init__(ScramClient([AUTH_METHOD], user, password))

    def client_first(self) -> tuple[ServerFirst, str]:
        client = self._take()
        message = client.get_client_first()
        return ServerFirst(client), message


class ServerFirst(_State):
    def handle_server_first(self, message: str) -> tuple[ServerFinal, str]:
        client = self._take()
        try:
            client.set_server_first(message)
            final = client.get_client_final()
        except (ScramException, ValueError) as exc:
            raise ParseError(f"Invalid SCRAM server-first message: {exc}") from exc
        return ServerFinal(client), final


class ServerFinal(_State):
    def handle_server_final(self, message: str) -> None:
        client = self._take()
        try:
            client.set_server_final(message)
        except (ScramException, ValueError) as exc:
            raise ParseError(f"Invalid SCRAM server-final message: {exc}") from exc
