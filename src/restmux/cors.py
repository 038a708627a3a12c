"""CORS policy and per-pattern header aggregation."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from restmux.responses import Response, Status, text

if TYPE_CHECKING:
    from restmux.table import RouteDetail

ALLOW_ORIGIN = "Access-Control-Allow-Origin"
ALLOW_CREDENTIALS = "Access-Control-Allow-Credentials"
MAX_AGE = "Access-Control-Max-Age"
ALLOW_METHODS = "Access-Control-Allow-Methods"
ALLOW_HEADERS = "Access-Control-Allow-Headers"
EXPOSE_HEADERS = "Access-Control-Expose-Headers"


@dataclass(slots=True, frozen=True)
class CORSPolicy:
    """Router-wide CORS defaults.

    max_age of -1 means responses must not be cached.
    """

    enabled: bool = False
    origins: tuple[str, ...] = field(default=("*",))
    credentials: bool = False
    max_age: int = -1


def merge_header_names(
    existing: tuple[str, ...], new: Iterable[str]
) -> tuple[str, ...]:
    """Append header names not already present.

    Names are compared trimmed and case-insensitively; the first spelling
    registered wins.
    """
    seen = {name.strip().lower() for name in existing}
    merged = list(existing)
    for name in new:
        key = name.strip().lower()
        if key == "" or key in seen:
            continue
        seen.add(key)
        merged.append(name.strip())
    return tuple(merged)


def aggregate_headers(policy: CORSPolicy, detail: RouteDetail) -> dict[str, str]:
    """The six CORS header fields for a pattern, empty when CORS is disabled."""
    if not policy.enabled:
        return {}
    return {
        ALLOW_ORIGIN: ", ".join(policy.origins),
        ALLOW_CREDENTIALS: "true" if policy.credentials else "false",
        MAX_AGE: str(policy.max_age),
        ALLOW_METHODS: ", ".join(detail.allowed_methods),
        ALLOW_HEADERS: ", ".join(detail.required_headers),
        EXPOSE_HEADERS: ", ".join(detail.exposed_headers),
    }


def preflight(policy: CORSPolicy, detail: RouteDetail) -> Response:
    """Answer an OPTIONS request for a matched pattern."""
    if not policy.enabled:
        return text(Status.NOT_FOUND, "OPTIONS is not available, CORS is disabled")
    return Response(
        status=Status.NO_CONTENT,
        headers=tuple(aggregate_headers(policy, detail).items()),
    )
