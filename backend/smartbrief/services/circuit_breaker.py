"""
SmartBrief Backend — Per-Provider Circuit Breaker
===================================================

What:  Fails fast when an AI provider has failed repeatedly.
Why:   A provider that is down would otherwise hold every request for the full
       30s timeout. With the breaker open, callers get an immediate 503 and no
       credit is touched.
How:   Classic three-state machine, one instance per provider:

        CLOSED ──(threshold consecutive failures)──▶ OPEN
          ▲                                           │
          │                                (recovery timeout elapsed)
          │                                           ▼
          └──────────(test call succeeds)────────── HALF_OPEN
                                                      │
                         OPEN ◀──(test call fails)────┘

The breaker only observes outcomes; it never retries a call.

Concurrency:
    State is plain attributes mutated between awaits on one event loop, so no
    lock is needed. Each uvicorn worker process keeps its own breaker.
"""

import logging
import time
from typing import Optional

from smartbrief.exceptions import CircuitBreakerOpenError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Tracks consecutive failures of one provider."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        # Monotonic: wall-clock adjustments must not reopen or close the circuit
        self.opened_at: Optional[float] = None

    def before_call(self) -> None:
        """
        Gate a call.

        Raises:
            CircuitBreakerOpenError: circuit is OPEN and the recovery timeout
                has not elapsed yet
        """
        if self.state != self.OPEN:
            return

        elapsed = time.monotonic() - (self.opened_at or 0.0)
        if elapsed >= self.recovery_timeout:
            logger.info(
                "Circuit breaker for %s moving to HALF_OPEN after %.1fs", self.name, elapsed
            )
            self.state = self.HALF_OPEN
            return

        remaining = max(1, int(self.recovery_timeout - elapsed))
        raise CircuitBreakerOpenError(provider=self.name, recovery_time=remaining)

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Circuit breaker for %s CLOSED (provider recovered)", self.name)
        self.failure_count = 0
        self.state = self.CLOSED
        self.opened_at = None

    def record_failure(self) -> None:
        self.failure_count += 1

        if self.state == self.HALF_OPEN:
            logger.warning("Circuit breaker for %s back to OPEN (test call failed)", self.name)
            self._open()
        elif self.state == self.CLOSED and self.failure_count >= self.failure_threshold:
            logger.warning(
                "Circuit breaker for %s OPENING after %d consecutive failures",
                self.name,
                self.failure_count,
            )
            self._open()

    def _open(self) -> None:
        self.state = self.OPEN
        self.opened_at = time.monotonic()

    def snapshot(self) -> dict:
        """State summary for health and configuration reports."""
        return {"state": self.state, "failure_count": self.failure_count}
