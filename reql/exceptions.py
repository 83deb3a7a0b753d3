"""Custom exceptions for the reql driver.

All exceptions inherit from ReqlError to allow catching any driver error.
Passwords and SCRAM proofs are never included in exception messages.
"""

from __future__ import annotations

from typing import Optional


class ReqlError(Exception):
    """Base exception for all reql driver errors."""

    def __init__(self, message: str, *, error_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class ConnectionError(ReqlError):  # noqa: A001 — intentional shadow of builtin
    """Raised when a socket fails or the server rejects the connection."""


class DriverError(ReqlError):
    """Raised when the driver itself cannot proceed (misuse, missing setup)."""


class AuthError(DriverError):
    """Raised when the server rejects the SCRAM credentials (error codes 10‑20)."""


class ParseError(ReqlError):
    """Raised when a server message is not valid UTF‑8, JSON, or SCRAM."""


class PoolError(ReqlError):
    """Raised when a pool cannot be built, is closed, or has no free connection."""
