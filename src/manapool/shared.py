"""Shared response-parsing and redaction helpers.

Pure functions used by the error classifier and the client:

    Redaction:
        - redact_secrets(text) -> str
        - redact_headers(headers) -> dict

    Response parsing:
        - parse_retry_after(headers) -> Optional[float]
        - extract_error_message(status_code, body) -> str
        - extract_request_id(body, headers) -> Optional[str]

SECURITY: everything returned from here may end up in logs or exception
messages, so access tokens and identity headers are always redacted.
"""

from __future__ import annotations

import json
import math
import re
from http import HTTPStatus
from typing import Any, Mapping, Optional

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Potential tokens in free text ("token=...", "access-token: ...", "Bearer ...")
_SECRET_PATTERN = re.compile(
    r"(?i)"
    r"(?:"
    r"(?:access[_-]?token|api[_-]?key|token|bearer|authorization|secret|password)"
    r"[\s:=]+"
    r")"
    r"['\"]?([^\s'\",}]{8,})['\"]?",
)

# Headers whose values never appear in logs or errors
_SENSITIVE_HEADERS = frozenset(
    {
        "x-manapool-access-token",
        "x-manapool-email",
        "authorization",
        "cookie",
        "set-cookie",
        "proxy-authorization",
    }
)

_REQUEST_ID_HEADERS = ("x-request-id", "x-manapool-request-id", "request-id")
_REQUEST_ID_KEYS = ("request_id", "requestId", "request-id")

# Max characters of a raw body quoted in fallback error messages
_MAX_BODY_EXCERPT = 200


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------


def redact_secrets(text: str) -> str:
    """Replace token-like values in ``text`` with ``****``.

    Args:
        text: Input text that may contain secrets.

    Returns:
        Text with secrets replaced.
    """
    if not text:
        return text

    def _replace(match: re.Match[str]) -> str:
        full = match.group(0)
        return full.replace(match.group(1), "****")

    return _SECRET_PATTERN.sub(_replace, text)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of ``headers`` with sensitive values replaced by ``****``."""
    result: dict[str, str] = {}
    for key, value in headers.items():
        if key.lower() in _SENSITIVE_HEADERS:
            result[key] = "****"
        else:
            result[key] = value
    return result


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Parse a numeric ``Retry-After`` header.

    HTTP-date values are not supported and yield None.

    Args:
        headers: Response headers (case-insensitive mapping).

    Returns:
        Seconds to wait, or None if missing, negative, non-finite or
        unparseable.
    """
    retry_after = headers.get("Retry-After") or headers.get("retry-after")
    if retry_after:
        try:
            value = float(retry_after)
        except ValueError:
            return None
        if math.isfinite(value) and value >= 0:
            return value
    return None


def _decode_json_object(body: bytes) -> Optional[dict[str, Any]]:
    if not body:
        return None
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _body_text(body: bytes) -> str:
    return body.decode("utf-8", errors="replace").strip()


def extract_error_message(status_code: int, body: bytes) -> str:
    """Build a human-readable, redacted message for an error response.

    Tries the JSON shapes the API uses (``{"error": "..."}``,
    ``{"error": {"message": "..."}}``, ``{"message": "..."}``) and falls back
    to the raw body text, or to the status phrase when the body is empty.

    Args:
        status_code: HTTP status code of the response.
        body: Raw response body.

    Returns:
        Error message safe to log.
    """
    data = _decode_json_object(body)
    if data is not None:
        error_field = data.get("error")
        msg: Any = None
        if isinstance(error_field, dict):
            msg = error_field.get("message") or error_field.get("detail")
        elif isinstance(error_field, str) and error_field:
            msg = error_field
        if not msg:
            msg = data.get("message") or data.get("detail")
        if msg:
            return redact_secrets(str(msg))

    text = _body_text(body)
    if text:
        return redact_secrets(f"HTTP {status_code}: {text[:_MAX_BODY_EXCERPT]}")

    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = "unexpected status"
    return f"HTTP {status_code} {phrase}"


def extract_request_id(body: bytes, headers: Mapping[str, str]) -> Optional[str]:
    """Find the server request identifier in the body or headers.

    Args:
        body: Raw response body (JSON keys are checked first).
        headers: Response headers.

    Returns:
        The request id, or None if the response carries none.
    """
    data = _decode_json_object(body)
    if data is not None:
        for key in _REQUEST_ID_KEYS:
            value = data.get(key)
            if value:
                return str(value)
        error_field = data.get("error")
        if isinstance(error_field, dict):
            for key in _REQUEST_ID_KEYS:
                value = error_field.get(key)
                if value:
                    return str(value)

    lowered = {k.lower(): v for k, v in headers.items()}
    for name in _REQUEST_ID_HEADERS:
        value = lowered.get(name)
        if value:
            return value
    return None
