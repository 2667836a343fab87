"""Async utilities: running coroutines from sync code and guarding steps."""

import asyncio
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

from videohub.errors import UpstreamFailure, VideoHubError
from videohub.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine in a sync context.

    Reuses the current event loop if available, otherwise creates a new one.
    The loop is not closed after use because httpx clients and worker threads
    may still be bound to it between sequential CLI calls.

    Args:
        coro: The coroutine to execute.

    Returns:
        The result of the coroutine.
    """
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


async def guarded(step: str, awaitable: Awaitable[T], timeout: float | None = None) -> T:
    """Await one store or blob call as a named step.

    A timeout, or any exception that is not already a domain error, becomes an
    ``UpstreamFailure`` carrying ``step``. Domain errors pass through, with
    ``UpstreamFailure.step`` filled in when the adapter left it empty.

    Args:
        step: Name of the step, reported on failure
        awaitable: The call to await
        timeout: Seconds before the call is abandoned; None waits forever
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error("step_timed_out", step=step, timeout=timeout)
        raise UpstreamFailure(f"{step} timed out after {timeout}s", step=step) from e
    except UpstreamFailure as e:
        if e.step is None:
            e.step = step
        raise
    except VideoHubError:
        raise
    except Exception as e:
        logger.error("step_failed", step=step, error=str(e))
        raise UpstreamFailure(f"{step} failed: {e}", step=step) from e
