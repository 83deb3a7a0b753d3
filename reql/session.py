"""Process‑wide pool set and configuration.

``connect()`` builds one pool per configured server and installs the set,
together with the options it was built from, exactly once.  Readers call
:func:`pools` / :func:`config` from any thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from reql.exceptions import DriverError
from reql.manager import ConnectionManager
from reql.options import ConnectOptions
from reql.pool import DEFAULT_MAX_SIZE, DEFAULT_MIN_IDLE, Pool, PoolSet

logger = logging.getLogger("reql.session")

_lock = threading.Lock()
_config: Optional[ConnectOptions] = None
_pools: Optional[PoolSet] = None
# Set while one caller builds pools outside the lock; later callers wait on it.
_building: Optional[threading.Event] = None


def connect(opts: ConnectOptions) -> None:
    """Build and install the pool set for *opts*.

    A second call while pools are installed is a no‑op.  A call made while
    another thread is building waits for that build and then re‑checks.  On
    failure no state is installed and the pools built so far are closed.

    Dialling and handshaking run without holding the module lock, so
    :func:`disconnect` and readers are never blocked by a slow server.
    """
    global _config, _pools, _building

    logger.debug("Calling connect()")
    while True:
        with _lock:
            if _pools is not None:
                logger.info("A connection pool is already initialised. We will use that one instead...")
                return
            if _building is None:
                done = _building = threading.Event()
                break
            pending = _building
        pending.wait()

    built: list[Pool] = []
    try:
        for server in opts.servers:
            manager = ConnectionManager(opts.for_server(server))
            # Fixed sizing: a high ceiling for bursts, a warm floor when idle.
            built.append(Pool(manager, max_size=DEFAULT_MAX_SIZE, min_idle=DEFAULT_MIN_IDLE))
    except BaseException:
        for pool in built:
            pool.close()
        with _lock:
            _building = None
        done.set()
        raise

    with _lock:
        _config = opts
        _pools = PoolSet(built)
        _building = None
    done.set()
    logger.info("A connection pool has been initialised...")


def pools() -> PoolSet:
    """Return the installed pool set."""
    pool_set = _pools
    if pool_set is None:
        raise DriverError("Not connected: call reql.connect() first")
    return pool_set


def config() -> ConnectOptions:
    """Return the options the installed pool set was built from."""
    opts = _config
    if opts is None:
        raise DriverError("Not connected: call reql.connect() first")
    return opts


def is_connected() -> bool:
    return _pools is not None


def disconnect() -> None:
    """Close and uninstall the pool set.  The next ``connect()`` starts afresh."""
    global _config, _pools

    with _lock:
        pool_set, _pools = _pools, None
        _config = None
    if pool_set is not None:
        pool_set.close()
        logger.info("Connection pools closed")
