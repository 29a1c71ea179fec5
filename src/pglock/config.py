"""
Configuration classes for lock acquisition.

This module provides:
- LockSettings: Process-wide defaults supplied when a coordinator is built
- LockOptions: Per-call overrides for a single acquisition
- ResolvedLockOptions: The effective values after merging the two
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0


def _validate(
    timeout: float | None,
    max_retries: int | None,
    retry_delay: float | None,
    attempt_timeout: float | None,
) -> None:
    if timeout is not None and timeout <= 0:
        raise ValueError(
            f"timeout must be positive, got {timeout}. "
            "Use a value like 30.0 (default) seconds."
        )

    if max_retries is not None and max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}. Use 0 for no retries.")

    if retry_delay is not None and retry_delay < 0:
        raise ValueError(
            f"retry_delay must be >= 0, got {retry_delay}. "
            "Use a value like 1.0 (default) seconds."
        )

    if attempt_timeout is not None and attempt_timeout <= 0:
        raise ValueError(
            f"attempt_timeout must be positive, got {attempt_timeout}. "
            "Use None to wait for the grant without a server-side limit."
        )


@dataclass(frozen=True)
class ResolvedLockOptions:
    """
    Effective options for one acquisition.

    Attributes:
        timeout: Advisory upper bound in seconds, reported in errors and spans
        wait: Block for the grant (True) or probe once (False)
        max_retries: Retries after the first attempt
        retry_delay: Fixed sleep in seconds between attempts
        attempt_timeout: Server-side ``lock_timeout`` for one blocking attempt
        retry_on_connection_error: Count database failures as retryable
    """

    timeout: float
    wait: bool
    max_retries: int
    retry_delay: float
    attempt_timeout: float | None
    retry_on_connection_error: bool

    @property
    def max_attempts(self) -> int:
        """Total number of attempts, including the first one."""
        return self.max_retries + 1


@dataclass(frozen=True)
class LockOptions:
    """
    Per-call acquisition options.

    Every field defaults to None, meaning "use the coordinator's setting".

    Attributes:
        timeout: Advisory upper bound in seconds. Not enforced against the
            blocking grant; see ``attempt_timeout`` for a server-side bound.
        wait: Whether to block until the grant (default True)
        max_retries: Retries after the first attempt (default 3)
        retry_delay: Seconds between attempts (default 1.0)
        attempt_timeout: Optional server-side limit for one blocking attempt

    Example:
        >>> options = LockOptions(wait=False)
        >>> handle = await coordinator.acquire("order:123", options)
    """

    timeout: float | None = None
    wait: bool | None = None
    max_retries: int | None = None
    retry_delay: float | None = None
    attempt_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        _validate(self.timeout, self.max_retries, self.retry_delay, self.attempt_timeout)

    def merge(self, **overrides: Any) -> LockOptions:
        """
        Return a copy with the non-None keyword overrides applied.

        Raises:
            TypeError: If an override does not name a LockOptions field
        """
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown lock option(s): {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


@dataclass(frozen=True)
class LockSettings:
    """
    Process-wide defaults for a LockCoordinator.

    Attributes:
        timeout: Default advisory timeout in seconds
        wait: Default blocking mode
        max_retries: Default retries after the first attempt
        retry_delay: Default seconds between attempts
        attempt_timeout: Default server-side limit for one blocking attempt
            (None waits indefinitely for the grant)
        retry_on_connection_error: If True, database failures during an
            attempt are retried like contention. If False they are raised
            immediately as LockConnectionError.
        holder_id: Optional identifier for this process (for debugging)

    Example:
        >>> settings = LockSettings(max_retries=5, retry_delay=0.5)
        >>> coordinator = LockCoordinator(session_factory, settings)
    """

    timeout: float = DEFAULT_TIMEOUT
    wait: bool = True
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY
    attempt_timeout: float | None = None
    retry_on_connection_error: bool = True
    holder_id: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration values."""
        _validate(self.timeout, self.max_retries, self.retry_delay, self.attempt_timeout)

    def resolve(
        self,
        options: LockOptions | None = None,
        **overrides: Any,
    ) -> ResolvedLockOptions:
        """
        Merge per-call options into these defaults.

        Precedence is keyword overrides, then ``options``, then settings.

        Args:
            options: Per-call options (optional)
            **overrides: Individual LockOptions fields

        Returns:
            ResolvedLockOptions with every value filled in
        """
        merged = (options or LockOptions()).merge(**overrides)

        def pick(value: Any, default: Any) -> Any:
            return default if value is None else value

        return ResolvedLockOptions(
            timeout=pick(merged.timeout, self.timeout),
            wait=pick(merged.wait, self.wait),
            max_retries=pick(merged.max_retries, self.max_retries),
            retry_delay=pick(merged.retry_delay, self.retry_delay),
            attempt_timeout=pick(merged.attempt_timeout, self.attempt_timeout),
            retry_on_connection_error=self.retry_on_connection_error,
        )


__all__ = [
    "DEFAULT_TIMEOUT",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAY",
    "LockOptions",
    "LockSettings",
    "ResolvedLockOptions",
]
