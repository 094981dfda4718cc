"""Utility decorators for error handling and resilience."""
import asyncio
import functools
import logging
import time
from typing import Callable, Iterator, Optional, Tuple, Type

from locale_engine.utils.logging import get_logger

logger = get_logger(__name__)


def retry(
    max_attempts: int = 3,
    delay: float = 0.5,
    backoff: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,)
):
    """
    Retry decorator with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts, including the first call
        delay: Initial delay between attempts in seconds
        backoff: Multiplier applied to the delay after each failure
        exceptions: Exception types that trigger another attempt

    Example:
        @retry(max_attempts=3, delay=0.2, exceptions=(httpx.HTTPError,))
        async def post_batch(events):
            ...
    """
    def decorator(func: Callable):
        name = func.__qualname__

        def schedule() -> Iterator[Optional[float]]:
            """Wait before each retry; None after the last attempt."""
            wait = delay
            for _ in range(max_attempts - 1):
                yield wait
                wait *= backoff
            yield None

        def on_failure(error: Exception, attempt: int, wait: Optional[float]) -> None:
            if wait is None:
                logger.error(
                    f"{name} failed after {attempt} attempts: {error}",
                    extra={"function": name, "error": str(error)},
                )
            else:
                logger.warning(
                    f"{name} failed (attempt {attempt}/{max_attempts}), retrying in {wait:.2f}s",
                    extra={"function": name, "error": str(error)},
                )

        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            for attempt, wait in enumerate(schedule(), start=1):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    on_failure(e, attempt, wait)
                    if wait is None:
                        raise
                    await asyncio.sleep(wait)

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            for attempt, wait in enumerate(schedule(), start=1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    on_failure(e, attempt, wait)
                    if wait is None:
                        raise
                    time.sleep(wait)

        return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper

    return decorator


def timeout(seconds: float):
    """
    Timeout decorator for async functions.

    Raises the builtin TimeoutError once `seconds` elapse; the wrapped
    coroutine is cancelled.

    Example:
        migrate = timeout(1.0)(manager.migrate_legacy)
        await migrate()
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await asyncio.wait_for(func(*args, **kwargs), timeout=seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Function {func.__name__} timed out after {seconds}s",
                    extra={"timeout": seconds}
                )
                raise TimeoutError(f"{func.__name__} exceeded timeout of {seconds}s")

        return wrapper

    return decorator


def log_execution(log_args: bool = False, log_result: bool = False, level: int = logging.INFO):
    """
    Log start, completion and failure of an async function with timing.

    Args:
        log_args: Whether to include (truncated) call arguments
        log_result: Whether to include the (truncated) result
        level: Log level for the start/completion records
    """
    def decorator(func: Callable):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            func_name = func.__qualname__

            extra = {"function": func_name}
            if log_args:
                extra["function_args"] = str(args)[:100]
                extra["function_kwargs"] = str(kwargs)[:100]
            logger.log(level, f"Starting {func_name}", extra=extra)

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start_time) * 1000
                logger.error(
                    f"Failed {func_name}",
                    extra={"function": func_name, "duration_ms": round(elapsed, 2), "error": str(e)}
                )
                raise

            elapsed = (time.perf_counter() - start_time) * 1000
            done_extra = {"function": func_name, "duration_ms": round(elapsed, 2)}
            if log_result:
                done_extra["result"] = str(result)[:100]
            logger.log(level, f"Completed {func_name}", extra=done_extra)
            return result

        return wrapper

    return decorator
