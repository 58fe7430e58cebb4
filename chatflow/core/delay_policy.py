# chatflow/core/delay_policy.py
"""
Bounded waits for Message delays, Delay nodes and simulated AI latency.

Configured durations can be hours long; a preview run must never block
that long. Every wait goes through ``DelayPolicy.wait`` which scales the
configured seconds and caps the result. ``asyncio.sleep`` is cancelled
together with the task driving the session.
"""

from typing import Awaitable, Callable, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


class DelayPolicy:
    """
    Args:
        max_wait_seconds: Hard ceiling for any single wait
        scale: Factor applied to configured seconds before capping
        sleep: Awaitable sleeper, ``asyncio.sleep`` by default
    """

    def __init__(
        self,
        max_wait_seconds: float = 2.0,
        scale: float = 0.1,
        sleep: Optional[Sleeper] = None,
    ):
        if max_wait_seconds < 0:
            raise ValueError("max_wait_seconds must not be negative")
        if scale < 0:
            raise ValueError("scale must not be negative")

        self.max_wait_seconds = max_wait_seconds
        self.scale = scale
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings) -> "DelayPolicy":
        return cls(max_wait_seconds=settings.MAX_WAIT_SECONDS, scale=settings.DELAY_SCALE)

    def bounded(self, seconds: float) -> float:
        """Real seconds a wait of ``seconds`` will take."""
        if not seconds or seconds <= 0:
            return 0.0
        return min(seconds * self.scale, self.max_wait_seconds)

    async def wait(self, seconds: float) -> float:
        """Sleep for the bounded duration and return it."""
        duration = self.bounded(seconds)
        if duration > 0:
            logger.debug(f"Waiting {duration:.2f}s for configured {seconds}s")
            await self._sleep(duration)
        return duration


class NoDelayPolicy(DelayPolicy):
    """Skips every wait. Used by tests and batch runs."""

    def __init__(self):
        super().__init__(max_wait_seconds=0.0, scale=0.0)

    async def wait(self, seconds: float) -> float:
        return 0.0
