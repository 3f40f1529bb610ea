"""Request resilience: rate limiting, backoff, classification and execution.

- TokenBucketLimiter bounds the outbound request rate
- ExponentialBackoff computes retry delays
- classify_outcome maps attempt outcomes to typed errors
- RequestExecutor runs the attempt loop
"""

from manapool.resilience.backoff import BackoffPolicy, ExponentialBackoff
from manapool.resilience.classifier import (
    classify_http_failure,
    classify_outcome,
    classify_transport_failure,
    decode_response,
)
from manapool.resilience.executor import RequestExecutor
from manapool.resilience.models import (
    AttemptOutcome,
    AttemptSuccess,
    ErrorClassification,
    ErrorType,
    HTTPFailure,
    RetryState,
    SleepFunc,
    TransportFailure,
)
from manapool.resilience.rate_limit import TokenBucketLimiter

__all__ = [
    # Models & enums
    "ErrorType",
    "ErrorClassification",
    "AttemptOutcome",
    "AttemptSuccess",
    "TransportFailure",
    "HTTPFailure",
    "RetryState",
    "SleepFunc",
    # Rate limiting
    "TokenBucketLimiter",
    # Backoff
    "BackoffPolicy",
    "ExponentialBackoff",
    # Classification
    "classify_outcome",
    "classify_transport_failure",
    "classify_http_failure",
    "decode_response",
    # Execution
    "RequestExecutor",
]
