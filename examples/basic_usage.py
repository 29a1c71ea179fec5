"""
Basic Usage Example

This example demonstrates the fundamental ways to take a distributed lock:
- Scoped acquisition with with_lock() and lock()
- Manual acquisition with a LockHandle
- Non-blocking probes with wait=False
- Decorating service methods with @locked

The in-memory engine stands in for PostgreSQL so the example runs without a
database. Swap in ``async_sessionmaker(create_async_engine(url))`` for real
deployments.

Run with: python examples/basic_usage.py
"""

import asyncio
import logging

from pglock import (
    LockAlreadyHeldError,
    LockCoordinator,
    LockSettings,
    configure,
    lock_key,
    locked,
)
from pglock.testing import InMemoryAdvisoryLockEngine

# =============================================================================
# Step 1: Build coordinators
# =============================================================================
# Two coordinators on one engine behave like two processes sharing a database.

engine = InMemoryAdvisoryLockEngine()
settings = LockSettings(retry_delay=0.1, holder_id="example")

worker_a = LockCoordinator(engine.session_factory, settings, enable_tracing=False)
worker_b = LockCoordinator(engine.session_factory, settings, enable_tracing=False)

# The default coordinator is used by @locked functions that don't name one
configure(worker_a)


# =============================================================================
# Step 2: Decorate service methods
# =============================================================================


class OrderService:
    """Processes orders one at a time per order id."""

    def __init__(self, coordinator: LockCoordinator) -> None:
        self._lock_coordinator = coordinator
        self.processed: list[str] = []

    @locked(lambda self, order_id: lock_key("order", order_id))
    async def process_order(self, order_id: str) -> None:
        await asyncio.sleep(0.05)
        self.processed.append(order_id)


@locked("nightly-report", wait=False)
async def send_nightly_report() -> str:
    await asyncio.sleep(0.05)
    return "sent"


# =============================================================================
# Step 3: Use the locks
# =============================================================================


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    # Scoped: released on every exit path
    total = await worker_a.with_lock("order:123", lambda: 42)
    print(f"with_lock returned {total}")

    async with worker_a.lock("order:123") as info:
        print(f"Holding {info.key} (lock_id={info.lock_id})")

    # Manual: the caller owns the handle
    handle = await worker_a.acquire("order:123")
    try:
        # Another process probing the same key fails fast
        try:
            await worker_b.acquire("order:123", wait=False)
        except LockAlreadyHeldError as e:
            print(f"worker_b: {e}")
    finally:
        await handle.release()

    # Decorated methods serialize per order id
    service = OrderService(worker_b)
    await asyncio.gather(*(service.process_order("123") for _ in range(3)))
    print(f"Processed: {service.processed}")

    # Concurrent calls to a wait=False job: one runs, the rest are refused
    results = await asyncio.gather(
        send_nightly_report(),
        send_nightly_report(),
        return_exceptions=True,
    )
    outcomes = [type(r).__name__ if isinstance(r, Exception) else r for r in results]
    print(f"Nightly report: {outcomes}")


if __name__ == "__main__":
    asyncio.run(main())
