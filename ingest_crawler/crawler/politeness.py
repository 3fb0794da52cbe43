"""
Per-origin request spacing.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional


class PolitenessScheduler:
    """
    Enforces a minimum delay between requests to the same origin.

    The effective delay for an origin is the larger of the configured
    minimum and the origin's robots Crawl-delay. Origins are paced
    independently. Requests are assumed to be issued one at a time.
    """

    def __init__(self, min_delay_ms: int = 0,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.min_delay_ms = min_delay_ms
        self.logger = logging.getLogger(__name__)
        self._clock = clock
        self._sleep = sleep
        self.last_request_at: Dict[str, float] = {}

    def wait_time_ms(self, origin: str, crawl_delay_ms: Optional[int] = None) -> int:
        delay_ms = max(self.min_delay_ms, crawl_delay_ms or 0)
        last = self.last_request_at.get(origin)
        if delay_ms <= 0 or last is None:
            return 0
        elapsed_ms = (self._clock() - last) * 1000
        return max(0, round(delay_ms - elapsed_ms))

    async def wait_for(self, origin: str, crawl_delay_ms: Optional[int] = None) -> int:
        """Suspend until the origin may be requested again; returns the wait in ms."""
        wait_ms = self.wait_time_ms(origin, crawl_delay_ms)
        if wait_ms > 0:
            self.logger.debug(f"[polite] waiting {wait_ms} ms before next request to {origin}")
            await self._sleep(wait_ms / 1000)
        return wait_ms

    def record_request(self, origin: str):
        """Record that a request to the origin has just completed."""
        self.last_request_at[origin] = self._clock()
