"""
bbl/utils/async_retry.py

Provides a decorator to retry an async function a fixed number of times.

bbl never retries a reconciliation stage; this is only used for read-only
lookups (cloud API queries) where a transient failure should not abort a verb.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Coroutine, Tuple, Type
from typing_extensions import ParamSpec, TypeVar

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)


def async_retry(
    retries: int = 3,
    delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Decorates an async function to retry upon failure.

    Args:
        retries (int, optional):
            Maximum number of total attempts (not just failures). Defaults to 3.
        delay (float, optional):
            Delay in seconds between attempts. Defaults to 1.0.
        retry_on (Tuple[Type[BaseException], ...], optional):
            Exception types that trigger another attempt. Anything else
            propagates immediately.

    Returns:
        A decorator producing a wrapped coroutine function that re-raises the
        last exception once all attempts are spent.
    """

    def decorator(
        func: Callable[P, Coroutine[Any, Any, R]]
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except retry_on as exc:
                    if attempt >= retries:
                        raise
                    logger.debug(
                        "attempt %d/%d of %s failed: %s",
                        attempt,
                        retries,
                        func.__qualname__,
                        exc,
                    )
                    attempt += 1
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
