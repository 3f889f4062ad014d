"""
Service layer infrastructure - resilient HTTP calls to backend services.

Provides:
- Error taxonomy: classified ServiceError subclasses
- CancellationScope / CancelToken: per-attempt timeout + caller cancellation
- RetryPolicy: exponential backoff for retryable failures
- Cache-Control interpretation feeding the shared ResultCache defaults
- RequestExecutor: the per-call retry loop
- ServiceClient: per-upstream get/post/put/patch/delete surface
"""

from zap_http.services.errors import (
    ErrorKind,
    ErrorSeverity,
    ServiceError,
    RemoteRejectedError,
    TransportFailedError,
    RequestTimeoutError,
    RequestCancelledError,
    classify_exception,
    classify_response,
    describe_error,
    CancelReason,
)
from zap_http.services.cancellation import (
    CancelToken,
    CancellationScope,
    compose_cancellation,
)
from zap_http.services.retry import RetryPolicy, RetryState
from zap_http.services.cache import ResultCache, CacheEntry, CacheResult
from zap_http.services.cache_control import CacheDefaults, parse_cache_control
from zap_http.services.models import CacheHint, RequestSpec, Success, Failure
from zap_http.services.transport import HttpxTransport, Transport
from zap_http.services.executor import RequestExecutor
from zap_http.services.client import (
    ServiceClient,
    ServiceClients,
    create_service_clients,
    check_all_services_health,
    get_service_clients,
    close_service_clients,
)

__all__ = [
    # Errors
    "ErrorKind",
    "ErrorSeverity",
    "ServiceError",
    "RemoteRejectedError",
    "TransportFailedError",
    "RequestTimeoutError",
    "RequestCancelledError",
    "classify_exception",
    "classify_response",
    "describe_error",
    # Cancellation
    "CancelReason",
    "CancelToken",
    "CancellationScope",
    "compose_cancellation",
    # Retry
    "RetryPolicy",
    "RetryState",
    # Cache
    "ResultCache",
    "CacheEntry",
    "CacheResult",
    "CacheDefaults",
    "CacheHint",
    "parse_cache_control",
    # Requests
    "RequestSpec",
    "Success",
    "Failure",
    "HttpxTransport",
    "Transport",
    "RequestExecutor",
    # Clients
    "ServiceClient",
    "ServiceClients",
    "create_service_clients",
    "check_all_services_health",
    "get_service_clients",
    "close_service_clients",
]
