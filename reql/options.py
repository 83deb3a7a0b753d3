"""Connection options.

``ConnectOptions`` is an immutable record.  Every ``set_*`` method returns a
new copy, so a chain like::

    ConnectOptions().set_servers(["db1:28015", "db2:28015"]).set_password("pw").connect()

never mutates an options object that another thread may already be reading.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Optional

_DEFAULT_SERVER = "localhost:28015"


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Parsed ``host:port`` pair."""

    host: str
    port: int

    @classmethod
    def parse(cls, value: str) -> Endpoint:
        """Parse ``host:port`` (or ``[v6addr]:port``) into an endpoint."""
        host, sep, port_text = value.rpartition(":")
        if not sep or not host:
            raise ValueError(f"Invalid server address {value!r}: expected host:port")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
        elif ":" in host:
            raise ValueError(f"Invalid server address {value!r}: wrap IPv6 hosts in brackets")
        try:
            port = int(port_text)
        except ValueError:
            raise ValueError(f"Invalid port in server address {value!r}") from None
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range in server address {value!r}")
        return cls(host=host, port=port)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class SslConfig:
    """TLS settings.  ``ca_certs`` is the path of a PEM CA bundle."""

    ca_certs: str


@dataclass(frozen=True, slots=True)
class ConnectOptions:
    """Options accepted by :func:`reql.connect`.

    Parameters
    ----------
    servers:
        Endpoints to pool, as ``host:port`` strings.  One pool per entry.
    db:
        Default database for queries.
    user:
        SCRAM identity.
    password:
        SCRAM secret.
    retries:
        Retry budget for layers above the pool.
    ssl:
        Optional TLS configuration.
    timeout:
        Socket timeout (seconds) for connecting and for every read/write.
    server:
        The endpoint a single pool dials.  Set by ``connect()`` through
        :meth:`for_server`; leave it unset.
    """

    servers: list[str] = field(default_factory=lambda: [_DEFAULT_SERVER])
    db: str = "test"
    user: str = "admin"
    password: str = field(default="", repr=False)
    retries: int = 5
    ssl: Optional[SslConfig] = None
    timeout: float = 20.0
    server: Optional[str] = None

    def __post_init__(self) -> None:
        # Own the list so later changes to the caller's list don't leak in.
        object.__setattr__(self, "servers", list(self.servers))
        if not self.servers:
            raise ValueError("At least one server is required")
        for server in self.servers:
            Endpoint.parse(server)
        if self.server is not None:
            Endpoint.parse(self.server)
        if not self.user:
            raise ValueError("User must not be empty")
        if self.timeout <= 0:
            raise ValueError(f"Timeout must be > 0, got {self.timeout}")

    # -- fluent setters ----------------------------------------------------

    def set_servers(self, servers: list[str]) -> ConnectOptions:
        return dataclasses.replace(self, servers=servers)

    def set_db(self, db: str) -> ConnectOptions:
        return dataclasses.replace(self, db=db)

    def set_user(self, user: str) -> ConnectOptions:
        return dataclasses.replace(self, user=user)

    def set_password(self, password: str) -> ConnectOptions:
        return dataclasses.replace(self, password=password)

    def set_retries(self, retries: int) -> ConnectOptions:
        return dataclasses.replace(self, retries=retries)

    def set_ssl(self, ssl: Optional[SslConfig]) -> ConnectOptions:
        return dataclasses.replace(self, ssl=ssl)

    def set_timeout(self, timeout: float) -> ConnectOptions:
        return dataclasses.replace(self, timeout=timeout)

    def for_server(self, server: str) -> ConnectOptions:
        """Return a copy bound to *server*, as handed to one pool's manager."""
        return dataclasses.replace(self, server=server)

    # -- terminal ----------------------------------------------------------

    @property
    def endpoint(self) -> Optional[Endpoint]:
        return Endpoint.parse(self.server) if self.server is not None else None

    def connect(self) -> None:
        """Build the process‑wide pool set from these options.

        Idempotent — once pools are installed later calls return immediately.
        """
        from reql.session import connect

        connect(self)
