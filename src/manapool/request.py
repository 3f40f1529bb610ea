"""Immutable request descriptors.

A :class:`RequestDescriptor` is built once per logical call and sent
unchanged on every attempt.
"""

import json
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from manapool.shared import redact_headers

ParamValue = Union[str, int, float, bool]
Params = Union[Mapping[str, ParamValue], Iterable[tuple[str, ParamValue]]]


def _param_str(value: ParamValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class RequestDescriptor:
    """One API request.

    Attributes:
        method: HTTP method, upper-case
        path: Path relative to the client's base URL (e.g. ``"account"``)
        params: Query parameters as ordered ``(name, value)`` pairs
        body: Encoded request body, if any
        headers: Resolved request headers as ``(name, value)`` pairs
    """

    method: str
    path: str
    params: tuple[tuple[str, str], ...] = ()
    body: Optional[bytes] = None
    headers: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(
        cls,
        method: str,
        path: str,
        *,
        params: Optional[Params] = None,
        json_body: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "RequestDescriptor":
        """Normalize loose arguments into a descriptor.

        A ``json_body`` is encoded compactly and adds a
        ``Content-Type: application/json`` header.
        """
        if params is None:
            pairs: tuple[tuple[str, str], ...] = ()
        else:
            items = params.items() if isinstance(params, Mapping) else params
            pairs = tuple((str(k), _param_str(v)) for k, v in items)

        header_pairs = list((headers or {}).items())
        body = None
        if json_body is not None:
            body = json.dumps(json_body, separators=(",", ":")).encode("utf-8")
            header_pairs.append(("Content-Type", "application/json"))

        return cls(
            method=method.upper(),
            path=path.lstrip("/"),
            params=pairs,
            body=body,
            headers=tuple(header_pairs),
        )

    @property
    def identity(self) -> tuple[str, str, tuple[tuple[str, str], ...], Optional[bytes]]:
        """What makes two attempts "the same request"."""
        return (self.method, self.path, self.params, self.body)

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None

    def __repr__(self) -> str:
        return (
            f"RequestDescriptor(method={self.method!r}, path={self.path!r}, "
            f"params={self.params!r}, body={self.body!r}, "
            f"headers={redact_headers(dict(self.headers))!r})"
        )
