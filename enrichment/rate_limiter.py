"""Fixed-interval pacing for calls to a rate-limited remote API."""
import logging
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class IntervalRateLimiter:
    """
    Block so that consecutive calls are at least `interval` seconds apart.

    The first acquisition never waits. The clock and sleep functions are
    injectable so callers can drive the limiter without real delays.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        if interval < 0:
            raise ValueError("interval must not be negative")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: Optional[float] = None

    @classmethod
    def from_milliseconds(cls, delay_ms: int, **kwargs) -> 'IntervalRateLimiter':
        return cls(delay_ms / 1000.0, **kwargs)

    def acquire(self) -> float:
        """
        Wait until the next call is allowed.

        Returns:
            Seconds actually slept
        """
        waited = 0.0
        if self._last_call is not None:
            remaining = self.interval - (self._clock() - self._last_call)
            if remaining > 0:
                logger.debug(f"Rate limiting: sleeping {remaining:.3f}s")
                self._sleep(remaining)
                waited = remaining
        self._last_call = self._clock()
        return waited

    def reset(self) -> None:
        self._last_call = None
