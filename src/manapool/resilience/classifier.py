"""Attempt outcome classification.

Maps each transport round trip to either success (None) or an
:class:`ErrorClassification` carrying the typed error and whether the
executor may try again.

Classification rules:
    - transport failure (connect, DNS, timeout, cancellation) -> NetworkError, retryable
    - 401 / 403 -> APIError, not retryable (AUTHENTICATION)
    - 404 -> APIError, not retryable (NOT_FOUND)
    - 429 -> APIError, retryable (RATE_LIMIT, Retry-After kept as backoff hint)
    - 5xx -> APIError, retryable (SERVER_ERROR)
    - any other non-2xx -> APIError, not retryable (INVALID_REQUEST)

Decoding a 2xx body into its model is handled by :func:`decode_response`,
which raises ValidationError and is never retried.
"""

from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from manapool.errors import APIError, ContextCancelled, NetworkError, ValidationError
from manapool.resilience.models import (
    AttemptOutcome,
    AttemptSuccess,
    ErrorClassification,
    ErrorType,
    HTTPFailure,
    TransportFailure,
)
from manapool.shared import (
    extract_error_message,
    extract_request_id,
    parse_retry_after,
    redact_secrets,
)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Non-retryable statuses with a dedicated error type
_STATUS_ERROR_TYPES: dict[int, ErrorType] = {
    401: ErrorType.AUTHENTICATION,
    403: ErrorType.AUTHENTICATION,
    404: ErrorType.NOT_FOUND,
}


def classify_transport_failure(cause: BaseException) -> ErrorClassification:
    """Classify an attempt that produced no response."""
    if isinstance(cause, ContextCancelled):
        return ErrorClassification(
            error=NetworkError(f"request {cause.reason}", cause=cause),
            retryable=True,
            error_type=ErrorType.CANCELLED,
        )
    if isinstance(cause, httpx.TimeoutException):
        return ErrorClassification(
            error=NetworkError("request timed out", cause=cause),
            retryable=True,
            error_type=ErrorType.TIMEOUT,
        )
    return ErrorClassification(
        error=NetworkError(
            redact_secrets(f"request failed ({type(cause).__name__})"),
            cause=cause,
        ),
        retryable=True,
        error_type=ErrorType.NETWORK,
    )


def classify_http_failure(outcome: HTTPFailure) -> ErrorClassification:
    """Classify a non-2xx response."""
    status = outcome.status
    error = APIError(
        status,
        extract_error_message(status, outcome.body),
        request_id=extract_request_id(outcome.body, outcome.headers),
        response=outcome.response,
    )

    if status == 429:
        return ErrorClassification(
            error=error,
            retryable=True,
            error_type=ErrorType.RATE_LIMIT,
            backoff_seconds=parse_retry_after(outcome.headers),
        )
    if 500 <= status < 600:
        return ErrorClassification(
            error=error,
            retryable=True,
            error_type=ErrorType.SERVER_ERROR,
        )
    return ErrorClassification(
        error=error,
        retryable=False,
        error_type=_STATUS_ERROR_TYPES.get(status, ErrorType.INVALID_REQUEST),
    )


def classify_outcome(outcome: AttemptOutcome) -> Optional[ErrorClassification]:
    """Classify one attempt outcome.

    Args:
        outcome: Result of a single transport round trip.

    Returns:
        None for success, otherwise the failure classification.
    """
    if isinstance(outcome, AttemptSuccess):
        return None
    if isinstance(outcome, TransportFailure):
        return classify_transport_failure(outcome.cause)
    return classify_http_failure(outcome)


def decode_response(body: bytes, model: Type[ModelT]) -> ModelT:
    """Decode a successful JSON response body into ``model``.

    Args:
        body: Raw 2xx response body.
        model: Pydantic model describing the expected shape.

    Returns:
        The validated model instance.

    Raises:
        ValidationError: If the body is not JSON or does not match the model.
    """
    try:
        return model.model_validate_json(body)
    except PydanticValidationError as e:
        errors = e.errors()
        if errors and errors[0].get("type") == "json_invalid":
            message = f"invalid JSON in response: {errors[0].get('msg', 'parse error')}"
        else:
            message = f"response does not match {model.__name__}: {e.error_count()} error(s)"
            if errors:
                first = errors[0]
                location = ".".join(str(part) for part in first.get("loc", ()))
                message += f" (first: {location or '<root>'}: {first.get('msg')})"
        raise ValidationError("response", message) from e
