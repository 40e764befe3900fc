import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from chatsync.exceptions import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay before retry number ``attempt`` (0-based): base * 2**attempt, capped."""
    return min(max_delay, base_delay * (2 ** attempt))


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retry_on: Tuple[Type[BaseException], ...],
    attempts: int = 4,
    base_delay: float = 0.2,
    max_delay: float = 5.0,
    description: str = "store operation",
) -> T:
    last_exc: BaseException | None = None
    for attempt in range(max(1, attempts)):
        try:
            return await operation()
        except retry_on as exc:
            last_exc = exc
            if attempt + 1 >= attempts:
                break
            delay = backoff_delay(attempt, base_delay, max_delay)
            logger.warning("%s failed (%s), retrying in %.2fs", description, exc, delay)
            await asyncio.sleep(delay)
    raise TransientError(
        f"{description} failed after {attempts} attempts",
        details={"reason": str(last_exc)},
    ) from last_exc
