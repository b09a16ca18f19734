import asyncio
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from shared.logger import get_logger

T = TypeVar("T")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]

logger = get_logger(__name__)


class RateLimitCooldown:
    """
    Shared deadline before which no new request should be sent.

    Every caller reads and writes the same instance. Updates happen between
    awaits on a single event loop, so no lock is needed.
    """

    def __init__(
        self,
        window: float = 8.0,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        self.window = window
        self.deadline = 0.0
        self._clock = clock
        self._sleep = sleep

    def trigger(self, now: Optional[float] = None) -> float:
        """Push the deadline to now + window; never shortens it"""
        now = self._clock() if now is None else now
        self.deadline = max(self.deadline, now + self.window)
        return self.deadline

    def remaining(self) -> float:
        return max(0.0, self.deadline - self._clock())

    def reset(self) -> None:
        self.deadline = 0.0

    async def wait_if_cooling_down(self) -> float:
        """Suspend until the deadline has passed, return seconds waited"""
        waited = 0.0
        # A concurrent caller may extend the deadline while we sleep
        remaining = self.remaining()
        while remaining > 0:
            logger.info("Waiting for rate-limit cooldown", remaining=round(remaining, 3))
            await self._sleep(remaining)
            waited += remaining
            remaining = self.remaining()
        return waited


@dataclass(frozen=True)
class BackoffPolicy:
    """Exponential backoff with additive jitter, capped at max_delay"""

    max_retries: int = 4
    base_delay: float = 1.0
    max_delay: float = 16.0
    jitter: float = 0.25

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be > 0")
        if not 0 <= self.jitter <= self.base_delay:
            # Larger jitter could make a later delay shorter than an earlier one
            raise ValueError("jitter must be between 0 and base_delay")

    def delay(self, attempt: int, rng: random.Random = random) -> float:
        """Delay before retry number `attempt` (0-based)"""
        raw = self.base_delay * (2**attempt) + rng.uniform(0, self.jitter)
        return min(raw, self.max_delay)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    is_retryable: Callable[[Exception], bool],
    policy: BackoffPolicy = BackoffPolicy(),
    sleep: Sleep = asyncio.sleep,
    rng: random.Random = random,
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> T:
    """
    Run `operation`, retrying retryable failures on the backoff schedule.

    Non-retryable errors propagate immediately. After `policy.max_retries`
    retries the last retryable error is re-raised.
    """
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                raise
            if attempt >= policy.max_retries:
                logger.warning(
                    "Retries exhausted",
                    attempts=attempt + 1,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            wait_time = policy.delay(attempt, rng)
            logger.info(
                "Retry scheduled",
                attempt=attempt + 1,
                max_retries=policy.max_retries,
                delay=round(wait_time, 3),
                error_type=type(e).__name__,
            )
            if on_retry is not None:
                on_retry(attempt, wait_time, e)

            await sleep(wait_time)
            attempt += 1
