"""Timeout guard for awaited provider calls."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from app.core.exceptions import UpstreamTimeout
from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def _discard_result(task: asyncio.Future) -> None:
    """Consume the outcome of a task that lost the race against its timer."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned task finished with error after timeout: {exc}")


async def with_timeout(op: Awaitable[T], seconds: float, label: str) -> T:
    """
    Race an awaitable against a timer.

    The operation is abandoned (not cancelled) when the timer wins: it keeps
    running in the background and whatever it eventually produces is dropped.
    Callers only ever see the value of an operation that finished in time.

    Args:
        op: Coroutine or future to run
        seconds: Time bound
        label: Name carried on the timeout error

    Returns:
        Result of `op`

    Raises:
        UpstreamTimeout: If `op` does not finish within `seconds`
    """
    task = asyncio.ensure_future(op)
    done, _ = await asyncio.wait({task}, timeout=seconds)

    if task in done:
        return task.result()

    task.add_done_callback(_discard_result)
    logger.warning(f"{label} timed out after {seconds}s")
    raise UpstreamTimeout(label, seconds)
