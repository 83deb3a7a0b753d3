"""Lifecycle hooks the pool uses to create, check, and discard connections."""

from __future__ import annotations

import json
import logging

from reql import query
from reql.connection import Connection
from reql.exceptions import ConnectionError
from reql.options import ConnectOptions
from reql.proto import QueryType, ResponseType

logger = logging.getLogger("reql.manager")

# Reply to ``START 1``: a SUCCESS_ATOM carrying the number 1.
_VALID_RESPONSE = json.dumps(
    {"t": int(ResponseType.SUCCESS_ATOM), "r": [1]}, separators=(",", ":")
).encode()


class ConnectionManager:
    """Factory, validator, and health check for connections to one endpoint.

    *opts* must have ``server`` set (see :meth:`ConnectOptions.for_server`).
    """

    def __init__(self, opts: ConnectOptions) -> None:
        self.opts = opts

    def create(self) -> Connection:
        return Connection.open(self.opts)

    def is_valid(self, conn: Connection) -> None:
        """Round‑trip the query ``1``; raise ``ConnectionError`` on any other reply."""
        conn.next_token()
        query.write(conn, query.wrap(QueryType.START, "1"))
        resp = query.read(conn)
        if resp != _VALID_RESPONSE:
            logger.warning(
                "Got %r from server instead of the expected `is_valid()` response.", resp
            )
            conn.broken = True
            raise ConnectionError("Unexpected response from server.")

    def has_broken(self, conn: Connection) -> bool:
        if conn.broken:
            return True
        try:
            return conn.take_error() != 0
        except OSError:
            return True
