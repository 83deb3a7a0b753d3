"""reql — connection core of a RethinkDB driver.

Quick start::

    import reql

    reql.connect(servers=["localhost:28015"], user="admin", password="")

    with reql.pools().acquire() as conn:
        ...  # authenticated, validated Connection

Or with the fluent options builder::

    from reql import ConnectOptions

    ConnectOptions().set_servers(["db1:28015", "db2:28015"]).set_password("pw").connect()
"""

from __future__ import annotations

from typing import Any, Optional

from reql.connection import Connection
from reql.exceptions import (
    AuthError,
    ConnectionError,
    DriverError,
    ParseError,
    PoolError,
    ReqlError,
)
from reql.manager import ConnectionManager
from reql.options import ConnectOptions, Endpoint, SslConfig
from reql.pool import Pool, PoolSet, PoolState
from reql.session import config, disconnect, is_connected, pools


def connect(opts: Optional[ConnectOptions] = None, **kwargs: Any) -> None:
    """Install the process‑wide pool set.

    Parameters
    ----------
    opts : ConnectOptions, optional
        Complete options.  Mutually exclusive with keyword arguments.
    **kwargs
        Fields of :class:`ConnectOptions` (``servers``, ``db``, ``user``,
        ``password``, ``retries``, ``ssl``, ``timeout``).

    Examples
    --------
    >>> import reql
    >>> reql.connect(servers=["localhost:28015"], password="secret")
    """
    if opts is not None and kwargs:
        raise TypeError("Pass either a ConnectOptions instance or keyword arguments, not both")
    if opts is None:
        opts = ConnectOptions(**kwargs)
    opts.connect()


__all__ = [
    # Entry points
    "connect",
    "disconnect",
    "is_connected",
    "pools",
    "config",
    # Options
    "ConnectOptions",
    "Endpoint",
    "SslConfig",
    # Connections and pools
    "Connection",
    "ConnectionManager",
    "Pool",
    "PoolSet",
    "PoolState",
    # Exceptions
    "ReqlError",
    "ConnectionError",
    "DriverError",
    "AuthError",
    "ParseError",
    "PoolError",
]

__version__ = "0.1.0"
