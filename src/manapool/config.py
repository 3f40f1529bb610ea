"""Client configuration.

:class:`ClientConfig` is an immutable, validated snapshot shared read-only
by every call a client makes.

Resolution order for :meth:`ClientConfig.load` (highest first):

1. Explicit keyword overrides
2. Environment variables (``MANAPOOL_*``)
3. ``[manapool]`` table of an optional TOML file
4. Field defaults

Example TOML:

    [manapool]
    base_url = "https://manapool.com/api/v1/"
    requests_per_second = 5
    burst = 2
    max_retries = 5
    initial_backoff = 0.5
"""

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

from manapool._version import __version__
from manapool.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://manapool.com/api/v1/"
DEFAULT_USER_AGENT = f"manapool-python/{__version__}"
ACCESS_TOKEN_HEADER = "X-ManaPool-Access-Token"
EMAIL_HEADER = "X-ManaPool-Email"

TOML_SECTION = "manapool"


def _try_parse_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in {"true", "1", "yes", "on"}:
        return True
    if normalized in {"false", "0", "no", "off"}:
        return False
    return None


def _parse_optional_float(value: str) -> Optional[float]:
    if value.strip().lower() in {"", "none"}:
        return None
    return float(value)


def _parse_bool(value: str) -> bool:
    parsed = _try_parse_bool(value)
    if parsed is None:
        raise ValueError(f"not a boolean: {value!r}")
    return parsed


# field name -> accepted value types
_FIELD_TYPES: Dict[str, tuple[type, ...]] = {
    "base_url": (str,),
    "timeout": (int, float),
    "requests_per_second": (int, float),
    "burst": (int,),
    "max_retries": (int,),
    "initial_backoff": (int, float),
    "max_backoff": (int, float, type(None)),
    "backoff_jitter": (int, float),
    "honor_retry_after": (bool,),
    "user_agent": (str,),
    "access_token_header": (str,),
    "email_header": (str,),
}


def _check_type(name: str, value: Any) -> None:
    expected = _FIELD_TYPES[name]
    # bool is an int subclass but never a valid number here
    if isinstance(value, bool) and bool not in expected:
        raise ValidationError(name, f"expected {_type_names(expected)}, got bool")
    if not isinstance(value, expected):
        raise ValidationError(
            name, f"expected {_type_names(expected)}, got {type(value).__name__}"
        )


def _type_names(types: tuple[type, ...]) -> str:
    return " or ".join("None" if t is type(None) else t.__name__ for t in types)


# env var -> (field name, parser)
_ENV_VARS: Dict[str, tuple[str, Callable[[str], Any]]] = {
    "MANAPOOL_BASE_URL": ("base_url", str),
    "MANAPOOL_TIMEOUT": ("timeout", float),
    "MANAPOOL_REQUESTS_PER_SECOND": ("requests_per_second", float),
    "MANAPOOL_BURST": ("burst", int),
    "MANAPOOL_MAX_RETRIES": ("max_retries", int),
    "MANAPOOL_INITIAL_BACKOFF": ("initial_backoff", float),
    "MANAPOOL_MAX_BACKOFF": ("max_backoff", _parse_optional_float),
    "MANAPOOL_BACKOFF_JITTER": ("backoff_jitter", float),
    "MANAPOOL_HONOR_RETRY_AFTER": ("honor_retry_after", _parse_bool),
    "MANAPOOL_USER_AGENT": ("user_agent", str),
}


@dataclass(frozen=True)
class ClientConfig:
    """Resolved client settings.

    Attributes:
        base_url: Base endpoint all request paths are resolved against
        timeout: Per-attempt transport timeout in seconds
        requests_per_second: Long-run request rate of the token bucket
        burst: Token bucket capacity
        max_retries: Retries after the first attempt (0 disables retrying)
        initial_backoff: Delay before the first retry, in seconds
        max_backoff: Ceiling on any single backoff delay (None = uncapped)
        backoff_jitter: Fractional jitter applied to backoff delays (0.0-1.0)
        honor_retry_after: Wait at least the server's Retry-After on 429
        user_agent: User-Agent header value
        access_token_header: Header name carrying the access token
        email_header: Header name carrying the account email
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    requests_per_second: float = 10.0
    burst: int = 1
    max_retries: int = 3
    initial_backoff: float = 1.0
    max_backoff: Optional[float] = None
    backoff_jitter: float = 0.0
    honor_retry_after: bool = False
    user_agent: str = DEFAULT_USER_AGENT
    access_token_header: str = ACCESS_TOKEN_HEADER
    email_header: str = EMAIL_HEADER

    def __post_init__(self) -> None:
        for f in fields(self):
            _check_type(f.name, getattr(self, f.name))
        if not self.base_url:
            raise ValidationError("base_url", "must not be empty")
        if not self.base_url.startswith(("http://", "https://")):
            raise ValidationError("base_url", "must be an http(s) URL")
        if not self.base_url.endswith("/"):
            object.__setattr__(self, "base_url", self.base_url + "/")
        if self.timeout <= 0:
            raise ValidationError("timeout", "must be positive")
        if self.requests_per_second <= 0:
            raise ValidationError("requests_per_second", "must be positive")
        if self.burst < 1:
            raise ValidationError("burst", "must be at least 1")
        if self.max_retries < 0:
            raise ValidationError("max_retries", "must be non-negative")
        if self.initial_backoff < 0:
            raise ValidationError("initial_backoff", "must be non-negative")
        if self.max_backoff is not None and self.max_backoff < 0:
            raise ValidationError("max_backoff", "must be non-negative")
        if not 0.0 <= self.backoff_jitter <= 1.0:
            raise ValidationError("backoff_jitter", "must be between 0.0 and 1.0")
        if not self.user_agent:
            raise ValidationError("user_agent", "must not be empty")
        if not self.access_token_header:
            raise ValidationError("access_token_header", "must not be empty")
        if not self.email_header:
            raise ValidationError("email_header", "must not be empty")

    def with_overrides(self, **overrides: Any) -> "ClientConfig":
        """Return a copy with ``overrides`` applied (and re-validated)."""
        _check_field_names(overrides)
        return replace(self, **overrides)

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "ClientConfig":
        """Build a config from environment variables plus ``overrides``."""
        values = _values_from_env(os.environ if env is None else env)
        _check_field_names(overrides)
        values.update(overrides)
        return cls(**values)

    @classmethod
    def load(
        cls,
        path: Optional[Union[str, Path]] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "ClientConfig":
        """Resolve a config from a TOML file, the environment and overrides.

        Args:
            path: Optional TOML file with a ``[manapool]`` table.
            env: Environment mapping (defaults to ``os.environ``).
            **overrides: Field values that win over every other source.

        Returns:
            The validated config.

        Raises:
            ValidationError: If an override or file value is invalid.
        """
        values: Dict[str, Any] = {}
        if path is not None:
            values.update(_values_from_toml(Path(path)))
        values.update(_values_from_env(os.environ if env is None else env))
        _check_field_names(overrides)
        values.update(overrides)
        return cls(**values)


def _field_names() -> frozenset[str]:
    return frozenset(f.name for f in fields(ClientConfig))


def _check_field_names(values: Mapping[str, Any]) -> None:
    unknown = sorted(set(values) - _field_names())
    if unknown:
        raise ValidationError(unknown[0], "unknown configuration option")


def _values_from_env(env: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for var, (name, parser) in _ENV_VARS.items():
        raw = env.get(var)
        if raw is None:
            continue
        try:
            values[name] = parser(raw)
        except ValueError:
            logger.warning("Ignoring invalid %s=%r", var, raw)
    return values


def _values_from_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValidationError("config", f"invalid TOML in {path}: {e}") from e

    section = data.get(TOML_SECTION, {})
    if not isinstance(section, dict):
        raise ValidationError(TOML_SECTION, f"expected a table in {path}")

    known = _field_names()
    values: Dict[str, Any] = {}
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown option %r in %s", key, path)
            continue
        values[key] = value
    logger.debug("Loaded %d option(s) from %s", len(values), path)
    return values


__all__ = [
    "ClientConfig",
    "DEFAULT_BASE_URL",
    "DEFAULT_USER_AGENT",
    "ACCESS_TOKEN_HEADER",
    "EMAIL_HEADER",
]
