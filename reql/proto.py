"""Wire constants shared with the RethinkDB server protocol."""

from __future__ import annotations

from enum import IntEnum


class Version(IntEnum):
    """Magic number sent as the first four bytes of a session."""

    V1_0 = 0x34C2BDC3


class QueryType(IntEnum):
    START = 1
    CONTINUE = 2
    STOP = 3
    NOREPLY_WAIT = 4
    SERVER_INFO = 5


class ResponseType(IntEnum):
    SUCCESS_ATOM = 1
    SUCCESS_SEQUENCE = 2
    SUCCESS_PARTIAL = 3
    WAIT_COMPLETE = 4
    SERVER_INFO = 5
    CLIENT_ERROR = 16
    COMPILE_ERROR = 17
    RUNTIME_ERROR = 18


# Protocol version carried in the AuthRequest envelope.
SUB_PROTOCOL_VERSION = 0

AUTH_METHOD = "SCRAM-SHA-256"

# Inclusive range of AuthResponse error codes that denote bad credentials.
AUTH_ERROR_CODES = range(10, 21)
