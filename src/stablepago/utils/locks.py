"""Per-user locking for confirmation ticket mutation."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

# Global lock registry: user_id -> asyncio.Lock
_user_locks: dict[int, asyncio.Lock] = {}


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


def get_user_lock(user_id: int) -> asyncio.Lock:
    """Get or create the lock for a user.

    Creation needs no lock of its own: there is no await between the
    lookup and the insert.
    """
    lock = _user_locks.get(user_id)
    if lock is None:
        lock = _user_locks[user_id] = asyncio.Lock()
    return lock


@asynccontextmanager
async def user_lock(
    user_id: int,
    timeout: Optional[float] = 10.0,
    operation: str = "ticket",
):
    """Exclusive section for one user's state.

    Args:
        user_id: Channel user id
        timeout: Maximum time to wait for the lock (None = wait forever)
        operation: Description for logging

    Example:
        async with user_lock(user_id, operation="resolve"):
            ...
    """
    lock = get_user_lock(user_id)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for user {user_id} after {timeout}s: {operation}")
        raise LockTimeoutError(f"Could not acquire lock for user {user_id} within {timeout}s")

    logger.debug(f"Lock acquired for user {user_id}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for user {user_id}: {operation}")


def clear_user_locks() -> None:
    """Clear all user locks (useful for testing)."""
    _user_locks.clear()
