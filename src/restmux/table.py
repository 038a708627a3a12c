"""Immutable route table with deterministic pattern matching.

Registration functions never mutate a table, they return a new one. The
``Router`` swaps its table on each registration and freezes it in
``finalize``; request service then only reads.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Literal, Never

from restmux.chain import Middleware, compose
from restmux.cors import merge_header_names
from restmux.pattern import (
    PLACEHOLDER,
    CompiledPattern,
    RouteConfigError,
    compile_pattern,
    split_path,
)

logger = logging.getLogger(__name__)

type HTTPMethod = Literal[
    "CONNECT", "DELETE", "GET", "HEAD", "PATCH", "POST", "PUT", "TRACE"
]

# OPTIONS is answered by the CORS preflight and cannot be registered.
HTTP_METHODS: frozenset[str] = frozenset(
    ("CONNECT", "DELETE", "GET", "HEAD", "PATCH", "POST", "PUT", "TRACE")
)


class FrozenDict[K, V](dict[K, V]):
    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._hash: int | None = None

    def __hash__(self) -> int:
        if self._hash is None:
            self._hash = hash(frozenset(self.items()))
        return self._hash

    def _immutable(self, *args, **kwargs) -> Never:
        msg = "FrozenDict is immutable"
        raise TypeError(msg)

    __setitem__ = __delitem__ = clear = pop = popitem = setdefault = update = _immutable


# --- errors -------------------------------------------------------------------
class DuplicateRouteError(RouteConfigError):
    def __init__(self, method: str, pattern: str) -> None:
        super().__init__(f"{method} {pattern} is already registered")


class VariableMismatchError(RouteConfigError):
    def __init__(self, pattern: str, registered: list[str], given: list[str]) -> None:
        super().__init__(
            f"pattern {pattern} is registered with variables {registered}, got {given}"
        )


class UnknownMethodError(RouteConfigError):
    def __init__(self, method: str) -> None:
        super().__init__(f"cannot register handler for http method {method!r}")


class UnknownEndpointError(RouteConfigError):
    def __init__(self, method: str, pattern: str) -> None:
        super().__init__(f"no endpoint registered for {method} {pattern}")


class RouteNotFoundError(LookupError):
    def __init__(self, path: str) -> None:
        super().__init__(f"no route matches {path!r}")
        self.path = path


class MethodNotAllowedError(LookupError):
    def __init__(self, path: str, method: str, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"{method} is not allowed for {path!r}, allowed: {', '.join(allowed)}"
        )
        self.path = path
        self.method = method
        self.allowed = allowed


# --- data ---------------------------------------------------------------------
@dataclass(slots=True, frozen=True)
class Endpoint[H]:
    method: str
    handler: H
    middleware: tuple[Middleware[H], ...] = field(default=())
    wrapped: H | None = field(default=None)  # set by finalize_table


@dataclass(slots=True, frozen=True)
class RouteDetail[H]:
    """Everything registered under one canonical pattern."""

    pattern: CompiledPattern
    endpoints: FrozenDict[str, Endpoint[H]] = field(default_factory=FrozenDict)
    allowed_methods: tuple[str, ...] = field(default=())  # registration order
    required_headers: tuple[str, ...] = field(default=())
    exposed_headers: tuple[str, ...] = field(default=())

    @property
    def route(self) -> str:
        return self.pattern.route


@dataclass(slots=True, frozen=True)
class Match[H]:
    detail: RouteDetail[H]
    variables: FrozenDict[str, str]


@dataclass(slots=True, frozen=True)
class RouteTable[H]:
    """Canonical pattern -> RouteDetail, plus a precedence index.

    ``by_length`` groups details by segment count, each group sorted by
    precedence: more literal segments first, then canonical pattern.
    """

    routes: FrozenDict[str, RouteDetail[H]] = field(default_factory=FrozenDict)
    by_length: FrozenDict[int, tuple[RouteDetail[H], ...]] = field(
        default_factory=FrozenDict
    )

    def update(self, detail: RouteDetail[H]) -> RouteTable[H]:
        """Return a table with detail inserted or replaced."""
        routes = FrozenDict(self.routes | {detail.pattern.pattern: detail})
        return RouteTable(routes=routes, by_length=_index(routes.values()))

    def endpoint_count(self) -> int:
        return sum(len(d.endpoints) for d in self.routes.values())


def _precedence(detail: RouteDetail) -> tuple[int, str]:
    return (-detail.pattern.literal_count, detail.pattern.pattern)


def _index[H](
    details: Iterable[RouteDetail[H]],
) -> FrozenDict[int, tuple[RouteDetail[H], ...]]:
    groups: dict[int, list[RouteDetail[H]]] = {}
    for detail in details:
        groups.setdefault(len(detail.pattern.segments), []).append(detail)
    return FrozenDict(
        {n: tuple(sorted(group, key=_precedence)) for n, group in groups.items()}
    )


# --- registration -------------------------------------------------------------
def add_route[H](
    table: RouteTable[H],
    method: str,
    template: str,
    handler: H,
    middleware: tuple[Middleware[H], ...] = (),
) -> tuple[RouteTable[H], str]:
    """Register handler for method on template.

    Returns the new table and the canonical pattern the endpoint lives under.
    """
    method = method.strip().upper()
    if method not in HTTP_METHODS:
        raise UnknownMethodError(method)
    compiled = compile_pattern(template)
    endpoint = Endpoint(method=method, handler=handler, middleware=middleware)

    detail = table.routes.get(compiled.pattern)
    if detail is None:
        detail = RouteDetail(
            pattern=compiled,
            endpoints=FrozenDict({method: endpoint}),
            allowed_methods=(method,),
        )
    else:
        registered = [v.name for v in detail.pattern.variables]
        given = [v.name for v in compiled.variables]
        if registered != given:
            raise VariableMismatchError(compiled.pattern, registered, given)
        if method in detail.endpoints:
            raise DuplicateRouteError(method, compiled.pattern)
        detail = replace(
            detail,
            endpoints=FrozenDict(detail.endpoints | {method: endpoint}),
            allowed_methods=(*detail.allowed_methods, method),
        )

    logger.debug("registered %s %s as %s", method, template, compiled.pattern)
    return table.update(detail), compiled.pattern


def _detail_for[H](
    table: RouteTable[H], method: str, pattern: str
) -> RouteDetail[H]:
    detail = table.routes.get(pattern)
    if detail is None or method not in detail.endpoints:
        raise UnknownEndpointError(method, pattern)
    return detail


def require_headers[H](
    table: RouteTable[H], method: str, pattern: str, headers: Iterable[str]
) -> RouteTable[H]:
    """Add request headers the endpoint needs to the pattern's CORS aggregate."""
    detail = _detail_for(table, method, pattern)
    merged = merge_header_names(detail.required_headers, headers)
    return table.update(replace(detail, required_headers=merged))


def expose_headers[H](
    table: RouteTable[H], method: str, pattern: str, headers: Iterable[str]
) -> RouteTable[H]:
    """Add response headers the endpoint exposes to the pattern's CORS aggregate."""
    detail = _detail_for(table, method, pattern)
    merged = merge_header_names(detail.exposed_headers, headers)
    return table.update(replace(detail, exposed_headers=merged))


def finalize_table[H](
    table: RouteTable[H], middleware: tuple[Middleware[H], ...]
) -> RouteTable[H]:
    """Build each endpoint's interceptor chain: router middleware, then route's."""
    routes: dict[str, RouteDetail[H]] = {}
    for pattern, detail in table.routes.items():
        endpoints = FrozenDict(
            {
                method: replace(
                    ep, wrapped=compose(middleware + ep.middleware, ep.handler)
                )
                for method, ep in detail.endpoints.items()
            }
        )
        routes[pattern] = replace(detail, endpoints=endpoints)
    frozen = FrozenDict(routes)
    return RouteTable(routes=frozen, by_length=_index(frozen.values()))


# --- matching -----------------------------------------------------------------
@lru_cache(maxsize=1024)
def match_route[H](table: RouteTable[H], path: str) -> Match[H]:
    """Find the detail whose pattern matches path.

    Literal segments compare against the lower-cased request segment, the
    placeholder matches any non-empty segment. Variable values keep the case
    they were received in. Raises RouteNotFoundError.
    """
    segments = split_path(path)
    lowered = tuple(seg.lower() for seg in segments)
    for detail in table.by_length.get(len(segments), ()):
        for expected, seg in zip(detail.pattern.segments, lowered, strict=True):
            if expected == PLACEHOLDER:
                if seg == "":
                    break
            elif expected != seg:
                break
        else:
            return Match(
                detail=detail,
                variables=FrozenDict(
                    {v.name: segments[v.position] for v in detail.pattern.variables}
                ),
            )
    raise RouteNotFoundError(path)


def find_endpoint[H](
    table: RouteTable[H], path: str, method: str
) -> tuple[Endpoint[H], Match[H]]:
    """Match path then select the endpoint for method.

    Raises RouteNotFoundError or MethodNotAllowedError.
    """
    match = match_route(table, path)
    endpoint = match.detail.endpoints.get(method.upper())
    if endpoint is None:
        raise MethodNotAllowedError(path, method, match.detail.allowed_methods)
    return endpoint, match


# --- introspection ------------------------------------------------------------
def format_routes[H](table: RouteTable[H]) -> str:
    """Format registered routes as a column-aligned list.

        GET    /items/{id}   get_item      [auth > audit]   headers: X-Token
        POST   /items        create_item
    """
    rows: list[tuple[str, str, str, str, str]] = []
    for detail in table.routes.values():
        for method, ep in detail.endpoints.items():
            mw = " > ".join(_qualname(m) for m in ep.middleware)
            cors = ""
            if detail.required_headers:
                cors = "headers: " + ", ".join(detail.required_headers)
            if detail.exposed_headers:
                cors = (cors + " " if cors else "") + "exposes: " + ", ".join(
                    detail.exposed_headers
                )
            handler = _qualname(ep.handler)
            rows.append((method, detail.route, handler, f"[{mw}]" if mw else "", cors))
    if not rows:
        return ""
    rows.sort(key=lambda r: (r[1], r[0]))

    widths = [max(len(r[i]) for r in rows) for i in range(4)]
    lines = []
    for row in rows:
        cols = [f"{row[i]:<{widths[i]}}" for i in range(4) if widths[i]]
        cols.append(row[4])
        lines.append("   ".join(cols).rstrip())
    return "\n".join(lines)


def _qualname(obj: object) -> str:
    """Extract __qualname__ from a callable, falling back to repr."""
    return str(obj.__qualname__) if hasattr(obj, "__qualname__") else repr(obj)
