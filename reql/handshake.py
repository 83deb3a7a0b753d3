"""Version negotiation and SCRAM‑SHA‑256 authentication for one socket.

Wire sequence (V1_0)::

    Client → Server   [4B LE version]
    Server → Client   ServerInfo        {"success":true,"max_protocol_version":0,...}\\0
    Client → Server   AuthRequest       {"protocol_version":0,"authentication_method":"SCRAM-SHA-256",
                                         "authentication":"n,,n=<user>,r=<nonce>"}\\0
    Server → Client   AuthResponse      {"success":true,"authentication":"r=...,s=...,i=..."}\\0
    Client → Server   AuthConfirmation  {"authentication":"c=biws,r=...,p=..."}\\0
    Server → Client   AuthResponse      {"success":true,"authentication":"v=..."}\\0

Every step either advances or raises; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from reql.exceptions import AuthError, ConnectionError
from reql.options import ConnectOptions
from reql.proto import AUTH_ERROR_CODES, AUTH_METHOD, SUB_PROTOCOL_VERSION, Version
from reql.scram import ClientFirst, ServerFinal, ServerFirst
from reql.types import AuthConfirmation, AuthRequest, AuthResponse, ServerInfo

if TYPE_CHECKING:
    from reql.connection import Connection

logger = logging.getLogger("reql.handshake")


def perform_handshake(conn: Connection, opts: ConnectOptions) -> None:
    """Drive *conn* from a fresh socket to an authenticated session."""
    conn.write_version(Version.V1_0)
    conn.flush()
    _parse_server_version(conn)

    scram = _send_client_first(conn, opts)
    scram = _send_client_final(conn, scram)
    _parse_server_final(conn, scram)

    conn.flush()
    logger.debug("Handshake with %s complete (user=%s)", conn.endpoint, opts.user)


def _parse_server_version(conn: Connection) -> ServerInfo:
    raw = conn.read_message()
    info = ServerInfo.from_json(raw)
    if not info.success:
        raise ConnectionError(raw)
    logger.debug(
        "Server %s speaks protocol %s..%s (version %s)",
        conn.endpoint,
        info.min_protocol_version,
        info.max_protocol_version,
        info.server_version,
    )
    return info


def _send_client_first(conn: Connection, opts: ConnectOptions) -> ServerFirst:
    scram, client_first = ClientFirst(opts.user, opts.password).client_first()
    request = AuthRequest(
        protocol_version=SUB_PROTOCOL_VERSION,
        authentication_method=AUTH_METHOD,
        authentication=client_first,
    )
    conn.write_message(request.to_json())
    conn.flush()
    return scram


def _send_client_final(conn: Connection, scram: ServerFirst) -> ServerFinal:
    response = _read_auth_response(conn)
    if response.authentication is None:
        raise ConnectionError("Server did not send authentication info.")

    scram_final, client_final = scram.handle_server_first(response.authentication)
    conn.write_message(AuthConfirmation(authentication=client_final).to_json())
    conn.flush()
    return scram_final


def _parse_server_final(conn: Connection, scram: ServerFinal) -> None:
    response = _read_auth_response(conn)
    if response.authentication is not None:
        scram.handle_server_final(response.authentication)


def _read_auth_response(conn: Connection) -> AuthResponse:
    """Read an AuthResponse, raising the classified error when it failed."""
    raw = conn.read_message()
    response = AuthResponse.from_json(raw)
    if response.success:
        return response

    message = response.error if response.error is not None else raw
    if response.error_code in AUTH_ERROR_CODES:
        raise AuthError(message, error_code=response.error_code)
    raise ConnectionError(message, error_code=response.error_code)
