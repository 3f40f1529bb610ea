"""Tests for attempt outcome classification and response decoding."""

import httpx
import pytest
from conftest import make_mock_response

from manapool.errors import APIError, ContextCancelled, NetworkError, ValidationError
from manapool.models import Account
from manapool.resilience import (
    AttemptSuccess,
    ErrorType,
    HTTPFailure,
    TransportFailure,
    classify_outcome,
    decode_response,
)


def _http_failure(status, body=b"", headers=None):
    return HTTPFailure(status=status, body=body, headers=httpx.Headers(headers or {}))


class TestClassifySuccess:
    def test_success_has_no_classification(self):
        assert classify_outcome(AttemptSuccess(status=200, body=b"{}")) is None


class TestClassifyHTTPFailure:
    """Status code table."""

    @pytest.mark.parametrize(
        "status,error_type",
        [
            (401, ErrorType.AUTHENTICATION),
            (403, ErrorType.AUTHENTICATION),
            (404, ErrorType.NOT_FOUND),
            (400, ErrorType.INVALID_REQUEST),
            (409, ErrorType.INVALID_REQUEST),
            (422, ErrorType.INVALID_REQUEST),
        ],
    )
    def test_terminal_statuses(self, status, error_type):
        classification = classify_outcome(_http_failure(status))
        assert classification.retryable is False
        assert classification.error_type == error_type
        assert isinstance(classification.error, APIError)
        assert classification.error.status_code == status

    @pytest.mark.parametrize("status", [500, 502, 503, 504, 599])
    def test_server_errors_retryable(self, status):
        classification = classify_outcome(_http_failure(status))
        assert classification.retryable is True
        assert classification.error_type == ErrorType.SERVER_ERROR
        assert classification.error.is_server_error

    def test_rate_limit_retryable_with_retry_after(self):
        classification = classify_outcome(
            _http_failure(429, headers={"Retry-After": "12"})
        )
        assert classification.retryable is True
        assert classification.error_type == ErrorType.RATE_LIMIT
        assert classification.backoff_seconds == 12.0
        assert classification.error.is_rate_limited

    def test_rate_limit_without_retry_after(self):
        classification = classify_outcome(_http_failure(429))
        assert classification.backoff_seconds is None

    def test_json_error_message_and_request_id(self):
        classification = classify_outcome(
            _http_failure(404, body=b'{"error":"account not found","request_id":"req-9"}')
        )
        error = classification.error
        assert error.is_not_found
        assert error.message == "account not found"
        assert error.request_id == "req-9"
        assert str(error) == (
            "manapool API error (status 404, request req-9): account not found"
        )

    def test_request_id_from_header(self):
        classification = classify_outcome(
            _http_failure(500, body=b"oops", headers={"X-Request-Id": "hdr-1"})
        )
        assert classification.error.request_id == "hdr-1"

    def test_unparseable_body_falls_back_to_raw_text(self):
        classification = classify_outcome(_http_failure(502, body=b"<html>Bad Gateway</html>"))
        assert classification.error.message == "HTTP 502: <html>Bad Gateway</html>"

    def test_empty_body_uses_status_phrase(self):
        classification = classify_outcome(_http_failure(503))
        assert classification.error.message == "HTTP 503 Service Unavailable"

    def test_raw_response_kept(self):
        response = make_mock_response(status_code=500)
        outcome = HTTPFailure(status=500, body=b"", headers={}, response=response)
        assert classify_outcome(outcome).error.response is response


class TestClassifyTransportFailure:
    """Transport failures are always retryable NetworkErrors."""

    def test_connect_error(self):
        cause = httpx.ConnectError("connection refused")
        classification = classify_outcome(TransportFailure(cause=cause))
        assert classification.retryable is True
        assert classification.error_type == ErrorType.NETWORK
        assert isinstance(classification.error, NetworkError)
        assert classification.error.cause is cause

    def test_timeout(self):
        classification = classify_outcome(
            TransportFailure(cause=httpx.ReadTimeout("read timed out"))
        )
        assert classification.retryable is True
        assert classification.error_type == ErrorType.TIMEOUT

    def test_cancellation(self):
        cause = ContextCancelled("deadline exceeded")
        classification = classify_outcome(TransportFailure(cause=cause))
        assert classification.error_type == ErrorType.CANCELLED
        assert "deadline exceeded" in str(classification.error)


class TestDecodeResponse:
    """Tests for decode_response."""

    def test_valid_body(self):
        account = decode_response(b'{"username":"u","email":"e@example.com"}', Account)
        assert account.username == "u"
        assert account.verified is False

    def test_invalid_json(self):
        with pytest.raises(ValidationError) as exc_info:
            decode_response(b"not json{", Account)
        assert exc_info.value.field == "response"
        assert "invalid JSON" in exc_info.value.message

    def test_wrong_shape(self):
        with pytest.raises(ValidationError) as exc_info:
            decode_response(b'{"username": 5}', Account)
        assert exc_info.value.field == "response"
        assert "Account" in exc_info.value.message

    def test_empty_body(self):
        with pytest.raises(ValidationError):
            decode_response(b"", Account)
