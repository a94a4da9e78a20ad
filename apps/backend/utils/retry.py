import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from setup_logging_optimized import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def always_retry(error: Exception) -> bool:
    return True


class RetryExhausted(Exception):
    """Raised by RetryPolicy.run when every attempt failed"""

    def __init__(self, last_error: Exception, attempts: int, transient: bool):
        super().__init__(str(last_error))
        self.last_error = last_error
        self.attempts = attempts
        self.transient = transient


class RetryPolicy:
    """
    Exponential backoff shared by the text model and image generation call sites.

    max_attempts counts every call including the first one. The delay before
    retry n (0-based) is base_delay * 2**n. Errors rejected by is_transient
    stop the loop immediately.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        is_transient: Callable[[Exception], bool] = always_retry,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.is_transient = is_transient
        self.sleep = sleep

    def delay_for(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "operation") -> T:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                transient = self.is_transient(e)
                if not transient:
                    logger.warning(f"[RETRY] {description} failed with non-retryable error: {e}")
                    raise RetryExhausted(e, attempt + 1, transient=False) from e
                if attempt + 1 >= self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                logger.warning(
                    f"[RETRY] {description} attempt {attempt + 1}/{self.max_attempts} failed: {e}; "
                    f"retrying in {delay:.1f}s"
                )
                await self.sleep(delay)

        logger.error(f"[RETRY] {description} failed after {self.max_attempts} attempts: {last_error}")
        raise RetryExhausted(last_error, self.max_attempts, transient=True) from last_error
