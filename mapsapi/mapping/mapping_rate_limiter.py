"""
Fixed-delay rate limiter for sequential API requests.

The Google Maps web services throttle clients per minute. Requests are
issued strictly one at a time, so a fixed pause between successive
requests of a batch is enough to stay under the quota.
"""

import time

from ..config.logger_module import log_info


class FixedDelayRateLimiter:
    """
    Sleeps a fixed delay between successive requests (single-threaded).

    The delay is unconditional: it does not look at elapsed time or
    response headers, and it is skipped once no requests remain.
    """

    def __init__(self, delay_seconds: float = 1.0):
        """
        Initialize the rate limiter.

        Args:
            delay_seconds: Pause inserted between two requests
        """
        if delay_seconds < 0:
            raise ValueError(f"delay_seconds cannot be negative, got {delay_seconds}")

        self.delay_seconds = delay_seconds
        self.pauses = 0

        log_info(f"RateLimiter initialized: {delay_seconds}s between requests")

    def pause(self, remaining: int) -> float:
        """
        Wait before the next request of a batch.

        Args:
            remaining: Number of requests still to be issued

        Returns:
            Seconds slept (0 when nothing remains or the delay is 0)
        """
        if remaining <= 0 or self.delay_seconds == 0:
            return 0.0

        time.sleep(self.delay_seconds)
        self.pauses += 1
        return self.delay_seconds

    def requests_per_minute(self) -> float:
        """Upper bound of the request rate this limiter allows."""
        if self.delay_seconds == 0:
            return float("inf")
        return 60.0 / self.delay_seconds
