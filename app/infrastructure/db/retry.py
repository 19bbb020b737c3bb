"""
Database retry utilities for transient lock failures.

Booking transitions are single conditional UPDATEs, so a deadlock or lock
timeout leaves no partial state behind and the whole unit of work can run again.
"""

import asyncio
import logging
from functools import wraps
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# MySQL error codes, PostgreSQL SQLSTATEs and the SQLite busy message
TRANSIENT_MARKERS = (
    "1213",  # MySQL deadlock
    "1205",  # MySQL lock wait timeout
    "40P01",  # PostgreSQL deadlock_detected
    "40001",  # serialization_failure
    "database is locked",
)


def is_deadlock_error(error: Exception) -> bool:
    """True when the error is a lock conflict worth retrying."""
    if not isinstance(error, (OperationalError, DBAPIError)):
        return False
    message = str(error)
    return any(marker in message for marker in TRANSIENT_MARKERS)


async def retry_on_deadlock(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 0.1,
) -> T:
    """
    Run func again when it fails on a lock conflict.

    Backoff is base_delay * 2**attempt. Any other error propagates at once.

    Example:
        async def claim():
            return await process_retry.execute(booking_id, worker_id="worker-2")

        result = await retry_on_deadlock(claim)
    """
    for attempt in range(max_attempts):
        try:
            return await func()
        except (OperationalError, DBAPIError) as error:
            if not is_deadlock_error(error) or attempt == max_attempts - 1:
                if is_deadlock_error(error):
                    logger.error(
                        "Database lock conflict persists after max retries",
                        extra={"attempts": max_attempts, "error": str(error)},
                    )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                "Database lock conflict, retrying",
                extra={
                    "attempt": attempt + 1,
                    "max_attempts": max_attempts,
                    "retry_delay": delay,
                    "error": str(error),
                },
            )
            await asyncio.sleep(delay)

    raise RuntimeError("retry_on_deadlock called with max_attempts < 1")


def with_deadlock_retry(max_attempts: int = 3, base_delay: float = 0.1):
    """Decorator form of retry_on_deadlock."""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            async def execute():
                return await func(*args, **kwargs)

            return await retry_on_deadlock(execute, max_attempts, base_delay)

        return wrapper

    return decorator
