"""
SmartBrief Backend — Circuit Breaker Unit Tests
=================================================

What:  State machine of the per-provider breaker. Time is controlled by
       patching time.monotonic, so no test sleeps.
"""

from unittest.mock import patch

import pytest

from smartbrief.exceptions import CircuitBreakerOpenError
from smartbrief.services.circuit_breaker import CircuitBreaker

CLOCK = "smartbrief.services.circuit_breaker.time.monotonic"


class TestCircuitBreaker:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker("gemini", failure_threshold=5, recovery_timeout=60)
        assert cb.state == CircuitBreaker.CLOSED
        assert cb.failure_count == 0
        cb.before_call()

    def test_stays_closed_under_threshold(self):
        cb = CircuitBreaker("gemini", failure_threshold=3, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        assert cb.state == CircuitBreaker.CLOSED
        cb.before_call()

    def test_opens_at_threshold_and_rejects(self):
        cb = CircuitBreaker("openai", failure_threshold=2, recovery_timeout=60)
        with patch(CLOCK, return_value=1000.0):
            cb.record_failure()
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        with patch(CLOCK, return_value=1010.0):
            with pytest.raises(CircuitBreakerOpenError) as exc_info:
                cb.before_call()
        assert exc_info.value.provider == "openai"
        assert exc_info.value.recovery_time == 50
        assert exc_info.value.status_code == 503

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker("gemini", failure_threshold=5, recovery_timeout=60)
        cb.record_failure()
        cb.record_failure()
        cb.record_success()
        assert cb.failure_count == 0
        assert cb.state == CircuitBreaker.CLOSED

    def test_half_open_after_recovery_then_closes_on_success(self):
        cb = CircuitBreaker("gemini", failure_threshold=1, recovery_timeout=30)
        with patch(CLOCK, return_value=100.0):
            cb.record_failure()
        with patch(CLOCK, return_value=131.0):
            cb.before_call()
        assert cb.state == CircuitBreaker.HALF_OPEN

        cb.record_success()
        assert cb.state == CircuitBreaker.CLOSED

    def test_failed_test_call_reopens(self):
        cb = CircuitBreaker("gemini", failure_threshold=1, recovery_timeout=30)
        with patch(CLOCK, return_value=100.0):
            cb.record_failure()
        with patch(CLOCK, return_value=131.0):
            cb.before_call()
            cb.record_failure()
        assert cb.state == CircuitBreaker.OPEN

        with patch(CLOCK, return_value=140.0):
            with pytest.raises(CircuitBreakerOpenError):
                cb.before_call()

    def test_snapshot(self):
        cb = CircuitBreaker("gemini", failure_threshold=4, recovery_timeout=60)
        cb.record_failure()
        assert cb.snapshot() == {"state": "closed", "failure_count": 1}
