"""
Mapping of string lock keys to PostgreSQL advisory lock ids.

PostgreSQL advisory locks are identified by integers, so every string key is
hashed with 32-bit FNV-1a over its UTF-8 bytes and masked into 31 bits.
Keeping the sign bit clear avoids ambiguity between signed and unsigned
representations, and keeping the high word zero makes the lock show up in
``pg_locks`` with ``classid = 0`` and ``objid = lock_id``.

Warning:
    The mapping is part of the wire contract between every process that
    locks the same keys. Changing the algorithm or mask means old and new
    deployments lock *different* ids for the same key and stop excluding
    each other. Roll such a change out with all instances stopped.

Distinct keys may collide. A collision only causes unrelated keys to
serialize against each other; it never lets two holders in at once.
"""

FNV32_OFFSET_BASIS = 0x811C9DC5
FNV32_PRIME = 0x01000193
LOCK_ID_MASK = 0x7FFFFFFF


def fnv1a_32(data: bytes) -> int:
    """Return the 32-bit FNV-1a hash of ``data``."""
    value = FNV32_OFFSET_BASIS
    for byte in data:
        value ^= byte
        value = (value * FNV32_PRIME) & 0xFFFFFFFF
    return value


def key_to_lock_id(key: str) -> int:
    """
    Convert a string key to an advisory lock id in ``[0, 2**31 - 1]``.

    Args:
        key: String key to hash (any length, any unicode)

    Returns:
        Non-negative 31-bit lock id

    Example:
        >>> key_to_lock_id("order:123") == key_to_lock_id("order:123")
        True
    """
    # surrogatepass keeps the mapping total for keys decoded with surrogateescape
    return fnv1a_32(key.encode("utf-8", "surrogatepass")) & LOCK_ID_MASK


def lock_key(namespace: str, *parts: object) -> str:
    """
    Build a namespaced lock key.

    Provides a consistent naming convention so that callers control lock
    granularity explicitly (``order`` vs ``order:123``).

    Args:
        namespace: Resource kind (e.g., "order", "cutover")
        *parts: Identifiers appended to the namespace

    Returns:
        Lock key string in format "{namespace}:{part}:{part}..."

    Example:
        >>> lock_key("order", 123)
        'order:123'
    """
    if not namespace:
        raise ValueError("namespace must be a non-empty string")
    return ":".join([namespace, *(str(part) for part in parts)])


__all__ = [
    "fnv1a_32",
    "key_to_lock_id",
    "lock_key",
]
