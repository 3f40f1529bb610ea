"""Timestamp codec tolerant of the formats the API emits.

The API mostly sends RFC 3339 with a ``Z`` suffix, but some endpoints use a
numeric offset without the colon (``+0000``, ``-0500``). Both parse to an
aware ``datetime``; fractional seconds beyond microseconds are truncated.

Serialization always emits UTC with a ``Z`` suffix and trailing zeros of
the fraction trimmed, e.g. ``2025-08-05T20:38:54.549229Z``.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Optional

from pydantic import BeforeValidator, PlainSerializer

_TIMESTAMP_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"[Tt ](?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
    r"(?:\.(?P<fraction>\d{1,9}))?"
    r"(?P<offset>[Zz]|[+-]\d{2}:?\d{2})$"
)


def parse_timestamp(value: str) -> datetime:
    """Parse an API timestamp into an aware datetime.

    Raises:
        ValueError: If ``value`` is empty or in no accepted format.
    """
    if not value:
        raise ValueError("empty timestamp")
    match = _TIMESTAMP_RE.match(value.strip())
    if match is None:
        raise ValueError(f"unrecognized timestamp format: {value!r}")

    fraction = match.group("fraction") or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0

    offset = match.group("offset")
    if offset in ("Z", "z"):
        tz = timezone.utc
    else:
        sign = -1 if offset[0] == "-" else 1
        digits = offset[1:].replace(":", "")
        delta = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        tz = timezone(sign * delta) if delta else timezone.utc

    return datetime(
        int(match.group("year")),
        int(match.group("month")),
        int(match.group("day")),
        int(match.group("hour")),
        int(match.group("minute")),
        int(match.group("second")),
        microsecond,
        tzinfo=tz,
    )


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Format ``value`` as UTC RFC 3339; None stays None.

    Naive datetimes are taken to be UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    text = value.strftime("%Y-%m-%dT%H:%M:%S")
    if value.microsecond:
        text += "." + f"{value.microsecond:06d}".rstrip("0")
    return text + "Z"


def _validate(value: Any) -> Any:
    if isinstance(value, str):
        return parse_timestamp(value)
    return value


Timestamp = Annotated[
    datetime,
    BeforeValidator(_validate),
    PlainSerializer(format_timestamp, return_type=Optional[str], when_used="json"),
]
