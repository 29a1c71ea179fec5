"""
SQL statements making up the advisory lock wire protocol.

All statements take a single ``:lock_id`` bind parameter produced by
:func:`pglock.hashing.key_to_lock_id`. The grant and release statements are
session-scoped: the unlock only has an effect on the connection that ran
the grant.
"""

from sqlalchemy import text

# Returns only once the lock is granted; the return itself is the signal.
ADVISORY_LOCK = text("SELECT pg_advisory_lock(:lock_id)")

# One row, one boolean: True if granted.
TRY_ADVISORY_LOCK = text("SELECT pg_try_advisory_lock(:lock_id)")

# One row, one boolean: True if this session held the lock and released it.
ADVISORY_UNLOCK = text("SELECT pg_advisory_unlock(:lock_id)")

# A single-bigint advisory lock is stored as classid (high word), objid
# (low word), objsubid = 1. Lock ids are 31-bit, so classid is always 0.
# pg_locks spans the whole cluster; advisory locks are per database.
HELD_LOCK = text(
    "SELECT 1 FROM pg_locks "
    "WHERE locktype = 'advisory' "
    "AND database = (SELECT oid FROM pg_database WHERE datname = current_database()) "
    "AND classid = 0 "
    "AND objid = CAST(:lock_id AS oid) AND objsubid = 1 AND granted "
    "LIMIT 1"
)

# Bounds the wait of a blocking grant for the current transaction only.
SET_LOCK_TIMEOUT = text("SELECT set_config('lock_timeout', :lock_timeout, true)")

# SQLSTATE raised when lock_timeout expires while waiting.
LOCK_NOT_AVAILABLE = "55P03"

__all__ = [
    "ADVISORY_LOCK",
    "TRY_ADVISORY_LOCK",
    "ADVISORY_UNLOCK",
    "HELD_LOCK",
    "SET_LOCK_TIMEOUT",
    "LOCK_NOT_AVAILABLE",
]
