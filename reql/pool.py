"""Bounded, thread‑safe connection pools.

One :class:`Pool` per server endpoint; the :class:`PoolSet` groups them and
hands out pools round‑robin.

Checkout contract
-----------------
* Idle connections are validated (``manager.is_valid``) before being handed
  out; failures are closed and the next idle connection is tried.
* With nothing idle and fewer than ``max_size`` connections open, a new one
  is dialed with ``manager.create``.  Dial errors propagate to the caller.
* Otherwise the caller waits for a release, up to the checkout timeout.
* On release, broken connections are closed and the pool refills toward
  ``min_idle`` in the background.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from reql.connection import Connection
from reql.exceptions import PoolError, ReqlError
from reql.manager import ConnectionManager
from reql.options import Endpoint

logger = logging.getLogger("reql.pool")

DEFAULT_MAX_SIZE = 100
DEFAULT_MIN_IDLE = 10
DEFAULT_CONNECTION_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class PoolState:
    """Snapshot of pool occupancy."""

    connections: int
    idle_connections: int


class Pool:
    """Pool of connections to a single endpoint.

    Parameters
    ----------
    manager:
        Creates, validates, and health‑checks connections.
    max_size:
        Upper bound on open connections (idle + checked out + being dialed).
    min_idle:
        Connections opened eagerly at construction and kept warm afterwards.
    connection_timeout:
        Default seconds :meth:`get` waits for a free connection.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        max_size: int = DEFAULT_MAX_SIZE,
        min_idle: int = DEFAULT_MIN_IDLE,
        connection_timeout: float = DEFAULT_CONNECTION_TIMEOUT,
    ) -> None:
        if max_size <= 0:
            raise ValueError(f"Pool size must be > 0, got {max_size}")
        if not 0 <= min_idle <= max_size:
            raise ValueError(f"min_idle must be between 0 and {max_size}, got {min_idle}")

        self._manager = manager
        self.max_size = max_size
        self.min_idle = min_idle
        self.connection_timeout = connection_timeout

        self._idle: deque[Connection] = deque()
        # Open connections, including checked‑out ones and dials in progress.
        self._num_conns = 0
        self._cond = threading.Condition(threading.Lock())
        self._closed = False
        self._refilling = False

        self._fill()

    # -- properties --------------------------------------------------------

    @property
    def endpoint(self) -> Optional[Endpoint]:
        return self._manager.opts.endpoint

    @property
    def manager(self) -> ConnectionManager:
        return self._manager

    @property
    def closed(self) -> bool:
        return self._closed

    def state(self) -> PoolState:
        with self._cond:
            return PoolState(connections=self._num_conns, idle_connections=len(self._idle))

    # -- public ------------------------------------------------------------

    def get(self, timeout: Optional[float] = None) -> Connection:
        """Check out a validated connection.

        Raises ``PoolError`` if the pool is closed or no connection frees up
        within *timeout* seconds (default ``connection_timeout``).
        """
        if timeout is None:
            timeout = self.connection_timeout
        deadline = time.monotonic() + timeout

        while True:
            conn = self._reserve(deadline)
            if conn is None:
                # A slot was reserved for a fresh dial.
                try:
                    return self._manager.create()
                except BaseException:
                    self._forget()
                    raise
            try:
                self._manager.is_valid(conn)
            except ReqlError as exc:
                logger.debug("Discarding idle connection to %s: %s", conn.endpoint, exc)
                self._discard(conn)
                continue
            if self._manager.has_broken(conn):
                self._discard(conn)
                continue
            return conn

    def release(self, conn: Connection) -> None:
        """Return *conn* to the pool, or close it if it is broken."""
        broken = self._manager.has_broken(conn)
        with self._cond:
            keep = not broken and not self._closed
            if keep:
                self._idle.append(conn)
                self._cond.notify()
        if not keep:
            if broken:
                logger.debug("Evicting broken connection to %s", conn.endpoint)
            self._discard(conn)

    @contextmanager
    def acquire(self, timeout: Optional[float] = None) -> Iterator[Connection]:
        """Check out a connection for the duration of a ``with`` block.

        Usage::

            with pool.acquire() as conn:
                ...
        """
        conn = self.get(timeout)
        try:
            yield conn
        finally:
            self.release(conn)

    def close(self) -> None:
        """Close idle connections; checked‑out ones are closed on release."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            idle = list(self._idle)
            self._idle.clear()
            self._num_conns -= len(idle)
            self._cond.notify_all()
        for conn in idle:
            conn.close()
        logger.debug("Pool for %s closed", self.endpoint)

    # -- private -----------------------------------------------------------

    def _reserve(self, deadline: float) -> Optional[Connection]:
        """Pop an idle connection, or reserve a dial slot (returns ``None``)."""
        with self._cond:
            while True:
                if self._closed:
                    raise PoolError(f"Pool for {self.endpoint} is closed")
                if self._idle:
                    return self._idle.popleft()
                if self._num_conns < self.max_size:
                    self._num_conns += 1
                    return None
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise PoolError(
                        f"Timed out waiting for a connection to {self.endpoint} "
                        f"({self._num_conns} open, max {self.max_size})"
                    )
                self._cond.wait(remaining)

    def _forget(self) -> None:
        with self._cond:
            self._num_conns -= 1
            self._cond.notify()

    def _discard(self, conn: Connection) -> None:
        conn.close()
        self._forget()
        self._schedule_refill()

    def _fill(self) -> None:
        """Open ``min_idle`` connections or fail the whole pool."""
        try:
            for _ in range(self.min_idle):
                with self._cond:
                    self._num_conns += 1
                try:
                    conn = self._manager.create()
                except BaseException:
                    self._forget()
                    raise
                with self._cond:
                    self._idle.append(conn)
        except ReqlError as exc:
            self.close()
            raise PoolError(f"Could not initialise pool for {self.endpoint}: {exc}") from exc

    def _schedule_refill(self) -> None:
        with self._cond:
            if self._closed or self._refilling or len(self._idle) >= self.min_idle:
                return
            self._refilling = True
        threading.Thread(target=self._refill, name="reql-pool-refill", daemon=True).start()

    def _refill(self) -> None:
        try:
            while True:
                with self._cond:
                    if (
                        self._closed
                        or len(self._idle) >= self.min_idle
                        or self._num_conns >= self.max_size
                    ):
                        return
                    self._num_conns += 1
                try:
                    conn = self._manager.create()
                except ReqlError as exc:
                    self._forget()
                    logger.warning("Could not refill pool for %s: %s", self.endpoint, exc)
                    return
                with self._cond:
                    if self._closed:
                        self._num_conns -= 1
                        stale: Optional[Connection] = conn
                    else:
                        self._idle.append(conn)
                        self._cond.notify()
                        stale = None
                if stale is not None:
                    stale.close()
                    return
        finally:
            with self._cond:
                self._refilling = False

    def __repr__(self) -> str:
        state = self.state()
        return (
            f"<Pool {self.endpoint} connections={state.connections} "
            f"idle={state.idle_connections} max={self.max_size}>"
        )


class PoolSet:
    """Ordered pools, one per endpoint, selected round‑robin."""

    def __init__(self, pools: list[Pool]) -> None:
        if not pools:
            raise ValueError("PoolSet needs at least one pool")
        self._pools = list(pools)
        self._counter = itertools.count()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._pools)

    def __iter__(self) -> Iterator[Pool]:
        return iter(self._pools)

    def __getitem__(self, index: int) -> Pool:
        return self._pools[index]

    def next(self) -> Pool:
        """Return the next pool in round‑robin order."""
        with self._lock:
            index = next(self._counter) % len(self._pools)
        return self._pools[index]

    @contextmanager
    def acquire(self, timeout: Optional[float] = None) -> Iterator[Connection]:
        """Check out a connection from the next pool in rotation."""
        with self.next().acquire(timeout) as conn:
            yield conn

    def close(self) -> None:
        for pool in self._pools:
            pool.close()
