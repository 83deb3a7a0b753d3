#!/usr/bin/env python3
"""Example usage of the reql connection core.

``connect()`` dials every server, authenticates with SCRAM‑SHA‑256 and keeps
warm pools; ``pools().acquire()`` checks out a validated connection.
"""

import logging

import reql
from reql import ConnectOptions

logging.basicConfig(level=logging.DEBUG)

opts = (
    ConnectOptions()
    .set_servers(["localhost:28015"])
    .set_user("admin")
    .set_password("")
)
opts.connect()

# Calling connect() again is a no-op: the first pool set stays installed.
reql.connect(opts)

try:
    pool = reql.pools().next()
    print("Pool:", pool, pool.state())

    with reql.pools().acquire() as conn:
        print("Checked out:", conn)
finally:
    reql.disconnect()
