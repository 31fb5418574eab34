import asyncio
import logging
import time
from functools import wraps

logger = logging.getLogger("PromoEngine")

TRANSIENT_ERRORS = (ConnectionError, TimeoutError)
FATAL_ERRORS = (ValueError, RuntimeError, TypeError)


def smart_retry(retries=3, delay=1, backoff=2):
    """
    Decorator that retries a function or coroutine upon transient failures.
    Supports both sync and async definitions.

    ConnectionError/TimeoutError are retried with exponential backoff.
    ValueError/RuntimeError/TypeError are re-raised at once. Anything else is
    retried without growing the delay. When every attempt fails a
    ConnectionError is raised.
    """

    def _on_failure(func, attempt, exc, current_delay):
        if isinstance(exc, FATAL_ERRORS):
            logger.critical(f"🛑 {func.__name__}: non-retryable failure: {exc}")
            return None
        if isinstance(exc, TRANSIENT_ERRORS):
            logger.warning(
                f"⚠️ [Retry {attempt}/{retries}] {func.__name__}: transient error: {exc}. Waiting {current_delay}s..."
            )
            return current_delay * backoff
        logger.error(f"⚠️ {func.__name__}: unexpected error: {exc}. Retrying...")
        return current_delay

    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            current_delay = delay
            for i in range(retries):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    next_delay = _on_failure(func, i + 1, e, current_delay)
                    if next_delay is None:
                        raise
                    if i + 1 < retries:
                        await asyncio.sleep(current_delay)
                    current_delay = next_delay
            logger.error(f"❌ {func.__name__} failed after {retries} attempts.")
            raise ConnectionError("Max retries exceeded")

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            current_delay = delay
            for i in range(retries):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    next_delay = _on_failure(func, i + 1, e, current_delay)
                    if next_delay is None:
                        raise
                    if i + 1 < retries:
                        time.sleep(current_delay)
                    current_delay = next_delay
            logger.error(f"❌ {func.__name__} failed after {retries} attempts.")
            raise ConnectionError("Max retries exceeded")

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator
