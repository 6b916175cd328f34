"""
================================================================================
ChapterScout - Call Guards
================================================================================
Timeout and retry wrappers for outward-facing provider calls.

guarded_call() races a retrying call against a deadline:
  - success first  -> result
  - deadline first -> default (the in-flight attempt is abandoned, not killed)
  - retries exhausted before the deadline -> last error is re-raised
================================================================================
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderTimeout(Exception):
    """A provider call outlived its timeout budget."""


async def with_retry(
    factory: Callable[[], Awaitable[T]],
    retries: int = 2,
    base_delay: float = 1.0,
    label: str = "call"
) -> T:
    """
    Await factory() up to retries + 1 times with exponential backoff.

    Delays are base_delay * 2 ** attempt (1s, 2s, ... by default).
    """
    last_error: Exception = RuntimeError(f"{label}: no attempts made")
    for attempt in range(retries + 1):
        try:
            return await factory()
        except Exception as e:
            last_error = e
            if attempt == retries:
                break
            delay = base_delay * (2 ** attempt)
            logger.debug(f"{label} failed ({e}), retry {attempt + 1}/{retries} in {delay:.1f}s")
            await asyncio.sleep(delay)
    raise last_error


def _drain_abandoned(task: "asyncio.Task") -> None:
    """Consume the outcome of an abandoned task so it is never reported as lost."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Abandoned call finished with error: {error}")


async def with_timeout(awaitable: Awaitable[T], timeout: float, label: str = "call") -> T:
    """
    Wait at most timeout seconds for awaitable.

    On expiry the underlying task keeps running in the background and
    ProviderTimeout is raised.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task in done:
        return task.result()
    task.add_done_callback(_drain_abandoned)
    raise ProviderTimeout(f"{label} timed out after {timeout:g}s")


async def guarded_call(
    factory: Callable[[], Awaitable[T]],
    timeout: float = 10.0,
    retries: int = 2,
    base_delay: float = 1.0,
    default: Any = None,
    label: str = "call"
) -> T:
    """Race with_retry(factory) against timeout; a timeout yields default."""
    try:
        return await with_timeout(
            with_retry(factory, retries=retries, base_delay=base_delay, label=label),
            timeout,
            label=label,
        )
    except ProviderTimeout as e:
        logger.warning(str(e))
        return default
