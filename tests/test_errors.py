"""
Unit tests for error classification.
"""

import httpx
import pytest

from zap_http.services.cancellation import CancellationScope
from zap_http.services.errors import (
    CancelReason,
    ErrorKind,
    ErrorSeverity,
    RemoteRejectedError,
    RequestCancelledError,
    RequestTimeoutError,
    TransportFailedError,
    classify_exception,
    classify_response,
    describe_error,
    severity_for_status,
)


class TestSeverity:
    @pytest.mark.parametrize("status", [500, 502, 503, 599, 429, 408])
    def test_retryable_statuses(self, status):
        assert severity_for_status(status) == ErrorSeverity.RETRYABLE

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409, 422, 499])
    def test_terminal_statuses(self, status):
        assert severity_for_status(status) == ErrorSeverity.TERMINAL

    def test_no_status_is_retryable(self):
        assert TransportFailedError("boom").severity == ErrorSeverity.RETRYABLE


class TestClassifyResponse:
    def test_message_code_and_details(self):
        error = classify_response(
            404,
            {"message": "No such user", "code": "USER_NOT_FOUND", "details": {"id": 7}},
        )

        assert isinstance(error, RemoteRejectedError)
        assert error.kind == ErrorKind.REMOTE_REJECTED
        assert error.message == "No such user"
        assert error.status == 404
        assert error.code == "USER_NOT_FOUND"
        assert error.details == {"id": 7}
        assert error.is_terminal

    def test_error_field_used_when_message_missing(self):
        error = classify_response(500, {"error": "database down"})

        assert error.message == "database down"
        assert error.details == {"error": "database down"}
        assert not error.is_terminal

    def test_fallback_message_without_body(self):
        error = classify_response(502, None)

        assert error.message == "HTTP 502"
        assert error.code is None
        assert error.details is None

    def test_fallback_message_for_non_object_body(self):
        assert classify_response(400, ["bad"]).message == "HTTP 400"


class TestClassifyException:
    @pytest.mark.asyncio
    async def test_timeout_scope(self):
        scope = CancellationScope(timeout=5.0)
        scope._fire(CancelReason.TIMEOUT)

        error = classify_exception(RuntimeError("aborted"), scope)

        assert isinstance(error, RequestTimeoutError)
        assert error.kind == ErrorKind.TIMED_OUT
        assert error.timeout == 5.0

    @pytest.mark.asyncio
    async def test_external_scope(self):
        scope = CancellationScope(timeout=5.0)
        scope._fire(CancelReason.EXTERNAL, "user navigated away")

        error = classify_exception(RuntimeError("aborted"), scope)

        assert isinstance(error, RequestCancelledError)
        assert error.message == "user navigated away"

    def test_httpx_timeout(self):
        error = classify_exception(httpx.ReadTimeout("read timed out"))
        assert error.kind == ErrorKind.TIMED_OUT

    def test_connection_failure(self):
        error = classify_exception(httpx.ConnectError("connection refused"))

        assert isinstance(error, TransportFailedError)
        assert error.message == "connection refused"
        assert error.status == 0


class TestDescribeError:
    def test_known_codes(self):
        error = RemoteRejectedError("limit", status=429, code="RATE_LIMITED")
        assert describe_error(error) == "Too many requests. Please try again later."

    def test_unknown_code_uses_message(self):
        error = RemoteRejectedError("Bad payload", status=400, code="OTHER")
        assert describe_error(error) == "Bad payload"

    def test_kinds(self):
        assert "Network" in describe_error(TransportFailedError())
        assert "timed out" in describe_error(RequestTimeoutError())
        assert "cancelled" in describe_error(RequestCancelledError())
        assert "unexpected" in describe_error(ValueError("x"))

    def test_to_dict(self):
        data = RemoteRejectedError("nope", status=403, code="FORBIDDEN").to_dict()

        assert data["kind"] == "remote_rejected"
        assert data["severity"] == "terminal"
        assert data["status"] == 403
