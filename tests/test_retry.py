"""
Unit tests for the retry policy.
"""

import pytest

from zap_http.services.errors import (
    RemoteRejectedError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportFailedError,
)
from zap_http.services.retry import RetryPolicy, RetryState


class TestRetryPolicy:
    @pytest.fixture
    def policy(self):
        return RetryPolicy()

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_errors_never_retried(self, policy, status):
        error = RemoteRejectedError("nope", status=status)
        for attempt in range(0, 5):
            assert policy.should_retry(attempt, 10, error) is False

    @pytest.mark.parametrize(
        "error",
        [
            RemoteRejectedError("down", status=503),
            RemoteRejectedError("slow down", status=429),
            RemoteRejectedError("request timeout", status=408),
            TransportFailedError("reset"),
            RequestTimeoutError(),
            RequestCancelledError(),
        ],
    )
    def test_retryable_until_budget_spent(self, policy, error):
        assert policy.should_retry(0, 3, error) is True
        assert policy.should_retry(2, 3, error) is True
        assert policy.should_retry(3, 3, error) is False
        assert policy.should_retry(4, 3, error) is False

    @pytest.mark.parametrize("attempt", range(0, 8))
    def test_backoff_doubles(self, policy, attempt):
        assert policy.backoff_delay(1.5, attempt) == 1.5 * 2**attempt

    def test_backoff_ceiling(self):
        policy = RetryPolicy(max_delay=5.0)

        assert policy.backoff_delay(1.0, 2) == 4.0
        assert policy.backoff_delay(1.0, 3) == 5.0
        assert policy.backoff_delay(1.0, 10) == 5.0


class TestRetryState:
    def test_tracks_last_error(self):
        state = RetryState()
        error = TransportFailedError("reset")

        state.record_failure(error)
        state.attempt += 1

        assert state.last_error is error
        assert state.attempts_made == 2
