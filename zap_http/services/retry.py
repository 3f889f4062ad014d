"""
Retry policy with exponential backoff.

The policy is stateless; RetryState tracks a single logical call.
"""

from dataclasses import dataclass

from zap_http.services.errors import ErrorKind, ServiceError


@dataclass
class RetryState:
    """Attempt counter for one logical call."""

    attempt: int = 0  # 0-based index of the current attempt
    last_error: ServiceError | None = None

    def record_failure(self, error: ServiceError) -> None:
        self.last_error = error

    @property
    def attempts_made(self) -> int:
        return self.attempt + 1


class RetryPolicy:
    """
    Decides whether a failed attempt gets another try.

    Usage:
        policy = RetryPolicy()
        if policy.should_retry(attempts_made, max_attempts, error):
            await asyncio.sleep(policy.backoff_delay(1.0, attempt))
    """

    def __init__(self, max_delay: float | None = None):
        self.max_delay = max_delay

    def is_eligible(self, error: ServiceError) -> bool:
        """Client errors other than 408/429 are never retried."""
        if error.kind == ErrorKind.REMOTE_REJECTED and error.is_terminal:
            return False
        return True

    def should_retry(
        self,
        attempt: int,
        max_attempts: int,
        error: ServiceError,
    ) -> bool:
        """
        Args:
            attempt: Number of attempts made so far
            max_attempts: Attempt budget for the logical call
            error: Classified error from the latest attempt
        """
        if not self.is_eligible(error):
            return False
        return attempt < max_attempts

    def backoff_delay(self, base_delay: float, attempt: int) -> float:
        """Seconds to wait after the 0-based `attempt` failed."""
        delay = base_delay * (2**attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay
