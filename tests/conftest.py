"""Pytest configuration for reql tests."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any

import pytest

from reql import session

from .fakeserver import FakeRethinkServer, Script, happy_path

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def server() -> Generator[FakeRethinkServer, None, None]:
    srv = FakeRethinkServer()
    yield srv
    srv.stop()


@pytest.fixture
def make_server() -> Generator[Callable[..., FakeRethinkServer], None, None]:
    servers: list[FakeRethinkServer] = []

    def _make(script: Script = happy_path, **kwargs: Any) -> FakeRethinkServer:
        srv = FakeRethinkServer(script, **kwargs)
        servers.append(srv)
        return srv

    yield _make
    for srv in servers:
        srv.stop()


@pytest.fixture(autouse=True)
def _reset_session() -> Generator[None, None, None]:
    yield
    session.disconnect()
