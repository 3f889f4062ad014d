"""
RequestExecutor - runs one logical call through the resilience pipeline.

Per attempt:
- derive a fresh transport request from the RequestSpec
- send it under a CancellationScope (timeout + caller token)
- reconcile result-cache defaults from any Cache-Control header
- classify the outcome

Failures loop through the RetryPolicy until success, a terminal error, a
caller cancellation, or the attempt budget runs out.
"""

from typing import Any

from loguru import logger

from zap_http.services.cache import ResultCache
from zap_http.services.cache_control import CacheDefaults, parse_cache_control
from zap_http.services.cancellation import compose_cancellation, wait_or_cancel
from zap_http.services.errors import (
    ErrorKind,
    TransportFailedError,
    classify_exception,
    classify_response,
)
from zap_http.services.models import (
    AttemptOutcome,
    CacheHint,
    Failure,
    RequestSpec,
    ResponseTransformer,
    Success,
)
from zap_http.services.retry import RetryPolicy, RetryState
from zap_http.services.transport import HttpxTransport, Transport, TransportResponse
from zap_http.settings import HttpConfig


def _decode_json(response: TransportResponse) -> Any:
    if response.status_code == 204 or not response.content:
        return None
    return response.json()


class RequestExecutor:
    """
    Orchestrates retries, cancellation and cache hints for HTTP calls.

    Usage:
        executor = RequestExecutor(HttpConfig(timeout=5.0))
        data = await executor.execute(
            RequestSpec(method="GET", url="https://api.example.com/items")
        )
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        transport: Transport | None = None,
        cache_defaults: CacheDefaults | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.config = config or HttpConfig()
        self.transport = transport or HttpxTransport()
        if cache_defaults is None:
            cache = ResultCache(
                fresh_for=self.config.cache_fresh_for,
                retain_for=self.config.cache_retain_for,
            )
            cache_defaults = CacheDefaults(cache)
        self.cache_defaults = cache_defaults
        self.policy = policy or RetryPolicy(max_delay=self.config.max_retry_delay)

    @property
    def cache(self) -> ResultCache:
        return self.cache_defaults.cache

    async def execute(
        self,
        spec: RequestSpec,
        transformer: ResponseTransformer[Any] | None = None,
    ) -> Any:
        """
        Run a logical call to completion.

        Returns:
            The decoded JSON body, passed through `transformer` if given

        Raises:
            RemoteRejectedError: Terminal client error (4xx except 408/429)
            RequestCancelledError: The caller's cancel token fired
            TransportFailedError: Retries exhausted; `last_error` holds the
                final classified error
        """
        timeout = spec.timeout if spec.timeout is not None else self.config.timeout
        max_attempts = (
            spec.max_attempts if spec.max_attempts is not None else self.config.max_attempts
        )
        retry_delay = (
            spec.retry_delay if spec.retry_delay is not None else self.config.retry_delay
        )

        state = RetryState()
        while True:
            outcome = await self._attempt(spec, timeout)

            if isinstance(outcome, Success):
                if state.attempt:
                    logger.info(
                        f"{spec.method} {spec.url} succeeded on attempt {state.attempts_made}"
                    )
                return transformer(outcome.body) if transformer else outcome.body

            error = outcome.error
            state.record_failure(error)

            if error.kind == ErrorKind.CANCELLED:
                logger.info(f"{spec.method} {spec.url} cancelled by caller")
                raise error

            if not self.policy.is_eligible(error):
                logger.warning(
                    f"{spec.method} {spec.url} rejected with HTTP {error.status}: "
                    f"{error.message}"
                )
                raise error

            if not self.policy.should_retry(state.attempts_made, max_attempts, error):
                break

            delay = self.policy.backoff_delay(retry_delay, state.attempt)
            logger.warning(
                f"{spec.method} {spec.url} attempt {state.attempts_made}/{max_attempts} "
                f"failed ({error.kind.value}: {error.message}), retrying in {delay}s"
            )
            await self._wait_backoff(delay, spec)
            state.attempt += 1

        last = state.last_error
        logger.error(
            f"{spec.method} {spec.url} failed after {state.attempts_made} attempts: "
            f"{last.message if last else 'unknown error'}"
        )
        raise TransportFailedError(
            last.message if last else "Network request failed",
            last_error=last,
            attempts=state.attempts_made,
        ) from last

    async def _attempt(self, spec: RequestSpec, timeout: float) -> AttemptOutcome:
        """Run one physical exchange and classify it."""
        request = spec.to_transport_request()
        scope, release = compose_cancellation(timeout, spec.signal)
        try:
            response = await scope.run(self.transport.send(request))
        except Exception as e:
            return Failure(classify_exception(e, scope))
        finally:
            release()

        self._apply_cache_hint(response)

        if 200 <= response.status_code < 300:
            try:
                body = _decode_json(response)
            except ValueError as e:
                return Failure(
                    TransportFailedError(
                        f"Malformed response body: {e}", status=response.status_code
                    )
                )
            return Success(response.status_code, response.headers, body)

        try:
            error_body = _decode_json(response)
        except ValueError:
            error_body = None
        return Failure(classify_response(response.status_code, error_body))

    def _apply_cache_hint(self, response: TransportResponse) -> CacheHint | None:
        hint = parse_cache_control(response.headers.get("cache-control"))
        if hint is not None:
            self.cache_defaults.reconcile(hint)
        return hint

    async def _wait_backoff(self, delay: float, spec: RequestSpec) -> None:
        await wait_or_cancel(delay, spec.signal)
