"""Bounded retry of units of work that lose a concurrent write race."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import PersistenceConflict
from .observability import MetricsCollector

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_with_conflict_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    max_retries: int,
    backoff_seconds: float,
    in_transaction: bool = False,
) -> T:
    """
    Run ``operation`` and re-run it when it raises ``PersistenceConflict``.

    Each attempt must open its own unit of work. When the caller is already
    inside a transaction the operation runs once, since the enclosing
    transaction is the one that has to be retried.

    Args:
        operation: Zero-argument coroutine factory
        name: Operation name for logs and metrics
        max_retries: Retries after the first attempt
        backoff_seconds: Delay before the first retry, doubled on each further retry
        in_transaction: Whether the caller already holds an open unit of work

    Raises:
        PersistenceConflict: If the last attempt still conflicts
    """
    if in_transaction:
        return await operation()

    attempt = 0
    while True:
        try:
            return await operation()
        except PersistenceConflict:
            if attempt >= max_retries:
                logger.warning(
                    "Giving up after repeated persistence conflicts",
                    extra={"operation": name, "attempts": attempt + 1},
                )
                raise
            delay = backoff_seconds * (2 ** attempt)
            attempt += 1
            MetricsCollector.record_conflict_retry(name)
            logger.info(
                "Retrying after persistence conflict",
                extra={"operation": name, "attempt": attempt, "delay_seconds": delay},
            )
            await asyncio.sleep(delay)
