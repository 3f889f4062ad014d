"""
Value types shared by the request pipeline.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping, TypeVar, Union

from zap_http.services.cancellation import CancelToken
from zap_http.services.errors import ServiceError

T = TypeVar("T")

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

ResponseTransformer = Callable[[Any], T]

DEFAULT_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class CacheHint:
    """Freshness and retention windows derived from Cache-Control."""

    fresh_for: timedelta
    retain_for: timedelta

    def __post_init__(self) -> None:
        if self.retain_for < self.fresh_for:
            object.__setattr__(self, "retain_for", self.fresh_for)


@dataclass(frozen=True)
class TransportRequest:
    """One physical request handed to the transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: Any = None
    params: dict[str, Any] | None = None


@dataclass(frozen=True)
class RequestSpec:
    """
    One logical call.

    timeout, max_attempts and retry_delay override the client config when
    set. A RequestSpec is immutable; a fresh TransportRequest is derived from it
    for every attempt.
    """

    method: str
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    params: Mapping[str, Any] | None = None
    timeout: float | None = None
    max_attempts: int | None = None
    retry_delay: float | None = None
    signal: CancelToken | None = None

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)

    def to_transport_request(self) -> TransportRequest:
        headers = {**DEFAULT_HEADERS, **self.headers}
        body = None if self.method == "GET" else self.body
        return TransportRequest(
            method=self.method,
            url=self.url,
            headers=headers,
            body=body,
            params=dict(self.params) if self.params else None,
        )


@dataclass(frozen=True)
class Success:
    """Attempt that produced a 2xx response."""

    status: int
    headers: Mapping[str, str]
    body: Any


@dataclass(frozen=True)
class Failure:
    """Attempt that failed with a classified error."""

    error: ServiceError


AttemptOutcome = Union[Success, Failure]
