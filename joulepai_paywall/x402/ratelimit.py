# joulepai_paywall/x402/ratelimit.py
"""
Rate limiting for remote payment verification.

Each ChargeGate owns one VerificationRateLimiter that caps how many
verify-payment calls it may issue to JoulePAI within a sliding window,
regardless of which transaction id is being checked.

Configuration:
- X402_VERIFY_RATE_LIMIT: Maximum verification calls per window (default: 30)
- X402_VERIFY_WINDOW_SECONDS: Window size in seconds (default: 60)

The limiter is consulted AFTER proof format and replay checks, so garbage
or replayed proofs never consume a slot.
"""
from collections import deque
from typing import Deque, Optional

from joulepai_paywall.core.config import settings


class VerificationRateLimiter:
    """
    In-memory sliding window rate limiter.

    Timestamps are supplied by the caller, which keeps the limiter
    independent of wall-clock time. Not thread-safe: it is only touched
    from the event loop, between suspension points.
    """

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None
    ):
        """
        Initialize the rate limiter.

        Args:
            limit: Max verification calls allowed per window. If None, uses config.
            window_seconds: Size of the sliding window in seconds. If None, uses config.
        """
        self._limit = limit if limit is not None else settings.X402_VERIFY_RATE_LIMIT
        self._window_seconds = (
            window_seconds if window_seconds is not None else settings.X402_VERIFY_WINDOW_SECONDS
        )
        if self._limit < 1:
            raise ValueError("VerificationRateLimiter limit must be at least 1")
        if self._window_seconds <= 0:
            raise ValueError("VerificationRateLimiter window_seconds must be positive")
        self._requests: Deque[float] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def record_attempt(self, now: float) -> bool:
        """
        Record a verification attempt at `now` if the window has room.

        Args:
            now: Current time in seconds

        Returns:
            True if the attempt was recorded, False if the window is full.
            A refused attempt is not recorded.
        """
        window_start = now - self._window_seconds

        # Timestamps are appended in order, so expired ones sit at the front
        while self._requests and self._requests[0] <= window_start:
            self._requests.popleft()

        if len(self._requests) >= self._limit:
            return False

        self._requests.append(now)
        return True
