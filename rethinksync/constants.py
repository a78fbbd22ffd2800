"""
RethinkSync Constants.

This module contains constants used in RethinkSync.
It includes the configuration document defaults, the change feed
record keys, the bulk action types and the signatures of source errors
that are known to be transient.
"""

import re

# Configuration document
RETHINKDB = "rethinkdb"
DATABASES = "databases"
DEFAULT_BACKFILL = True

# Mapping attributes
MAPPING_ATTRIBUTES = [
    "backfill",
    "index",
    "type",
]

# Change feed record keys
NEW_VAL = "new_val"
OLD_VAL = "old_val"

# Bulk action types
INDEX = "index"
DELETE = "delete"

# Transient source errors.
# Each pattern is searched for anywhere in the error message.
RECOVERABLE_ERRORS = [
    # temporary, seen right after the server starts up
    re.compile(r"(Master|Primary replica) for shard \[.*\) not available"),
    # the server shut down while we were waiting on it
    re.compile(r"Error (receiving|sending) (data|from|to)"),
    re.compile(r"Connection is closed"),
    re.compile(r"Connection interrupted (receiving from|sending to)"),
    re.compile(r"Query interrupted"),
    re.compile(r"Broken pipe"),
]

# Table worker states
CONNECTING = "connecting"
STREAMING = "streaming"
BACKFILLING = "backfilling"
RECONNECTING = "reconnecting"
TERMINATED = "terminated"

WORKER_STATES = [
    BACKFILLING,
    CONNECTING,
    RECONNECTING,
    STREAMING,
    TERMINATED,
]
