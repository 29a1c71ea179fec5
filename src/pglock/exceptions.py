"""Library exceptions for the pglock package."""


class LockError(Exception):
    """
    Base exception for pglock.

    Attributes:
        key: The lock key involved, if any
        error_code: Stable machine-readable code for the failure kind
    """

    error_code: str = "LOCK_ERROR"

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class LockAcquireTimeoutError(LockError):
    """
    Raised when every acquisition attempt was used up without a grant.

    Attributes:
        key: The lock key that could not be acquired
        timeout: The advisory timeout (seconds) the caller was working with
        attempts: How many attempts were made before giving up
    """

    error_code = "LOCK_ACQUIRE_TIMEOUT"

    def __init__(self, key: str, timeout: float, attempts: int = 0) -> None:
        self.timeout = timeout
        self.attempts = attempts
        super().__init__(
            f"Timed out acquiring lock '{key}' after {attempts} attempt(s) (timeout={timeout}s)",
            key,
        )


class LockAlreadyHeldError(LockError):
    """Raised when a non-blocking acquisition finds the lock taken."""

    error_code = "LOCK_ALREADY_HELD"

    def __init__(self, key: str) -> None:
        super().__init__(f"Lock '{key}' is already held", key)


class LockNotHeldError(LockError):
    """
    Describes a release of a lock that is not held.

    The coordinator treats this condition as non-fatal and only logs it,
    since PostgreSQL may drop an advisory lock on its own when the owning
    session ends.
    """

    error_code = "LOCK_NOT_HELD"

    def __init__(self, key: str) -> None:
        super().__init__(f"Lock '{key}' is not held by this session", key)


class LockConnectionError(LockError):
    """
    Raised when talking to the database fails while handling a lock.

    Attributes:
        key: The lock key being handled
        reason: Description of the underlying failure
    """

    error_code = "LOCK_CONNECTION_FAILED"

    def __init__(self, key: str, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Database error for lock '{key}': {reason}", key)


__all__ = [
    "LockError",
    "LockAcquireTimeoutError",
    "LockAlreadyHeldError",
    "LockNotHeldError",
    "LockConnectionError",
]
