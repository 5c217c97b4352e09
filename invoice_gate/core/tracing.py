import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def traced(
    name: str,
    operation: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T]]:
    """
    Wrap an async operation so each call logs its duration and failures.
    The wrapped operation's result and exceptions pass through unchanged.
    """

    async def instrumented(*args: Any, **kwargs: Any) -> T:
        started = time.perf_counter()
        logger.debug(f"{name} started")
        try:
            result = await operation(*args, **kwargs)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(f"{name} failed after {elapsed_ms:.1f}ms: {e}")
            raise
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{name} completed in {elapsed_ms:.1f}ms")
        return result

    instrumented.__name__ = f"traced_{name}"
    return instrumented
