"""HTTP router: registration API, dispatcher and ASGI binding.

Registration happens once at startup on a single thread. ``finalize`` freezes
the route table and builds every endpoint's interceptor chain; after that the
router is read-only and safe to share between concurrent requests.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, NoReturn, overload

from restmux.chain import Middleware
from restmux.cors import CORSPolicy, aggregate_headers, preflight
from restmux.errors import (
    ChainError,
    classify,
    internal_server_error,
    method_not_allowed,
    not_found,
    status_of,
    traces,
)
from restmux.responses import Response, error_response
from restmux.table import (
    FrozenDict,
    HTTPMethod,
    MethodNotAllowedError,
    RouteNotFoundError,
    RouteTable,
    add_route,
    expose_headers,
    find_endpoint,
    finalize_table,
    format_routes,
    match_route,
    require_headers,
)

if TYPE_CHECKING:
    from restmux.asgi import (
        HTTPReceive,
        HTTPScope,
        HTTPSend,
        LifespanReceive,
        LifespanScope,
        LifespanSend,
    )

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Request:
    """One incoming request plus the values the router resolved for it."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=FrozenDict)
    body: bytes = b""
    query_string: str = ""
    route: str = ""  # matched template, e.g. "/items/{id}"
    variables: Mapping[str, str] = field(default_factory=FrozenDict)
    cors: Mapping[str, str] = field(default_factory=FrozenDict)


type Handler = Callable[[Request], Awaitable[Response]]


def resolved_variables(request: Request) -> Mapping[str, str]:
    """Path variables for request, empty when none were resolved."""
    variables = getattr(request, "variables", None)
    return variables if variables is not None else FrozenDict()


def cors_headers(request: Request) -> Mapping[str, str]:
    """CORS header fields for request, empty when CORS is disabled."""
    headers = getattr(request, "cors", None)
    return headers if headers is not None else FrozenDict()


def fail_fast(message: str) -> NoReturn:
    """Log an unrecoverable configuration error and exit the process."""
    logger.critical(message)
    sys.exit(2)


@dataclass(slots=True, frozen=True)
class EndpointHandle:
    """Returned by registration, used to declare the endpoint's CORS headers."""

    router: Router
    method: str
    pattern: str

    def require_headers(self, *headers: str) -> EndpointHandle:
        """Request headers the endpoint needs (Access-Control-Allow-Headers)."""
        self.router._require_headers(self, headers)
        return self

    def expose_headers(self, *headers: str) -> EndpointHandle:
        """Response headers clients may read (Access-Control-Expose-Headers)."""
        self.router._expose_headers(self, headers)
        return self


class Router:
    __slots__ = ("_finalized", "_middleware", "_policy", "_table")
    _table: RouteTable[Handler]
    _middleware: tuple[Middleware[Handler], ...]
    _policy: CORSPolicy
    _finalized: bool

    def __init__(
        self,
        *,
        cors_enabled: bool = False,
        origins: tuple[str, ...] = ("*",),
        credentials: bool = False,
        max_age: int = -1,
    ) -> None:
        self._table = RouteTable()
        self._middleware = ()
        self._policy = CORSPolicy(
            enabled=cors_enabled,
            origins=origins,
            credentials=credentials,
            max_age=max_age,
        )
        self._finalized = False

    @property
    def table(self) -> RouteTable[Handler]:
        return self._table

    @property
    def policy(self) -> CORSPolicy:
        return self._policy

    # --- ASGI -----------------------------------------------------------------
    @overload
    async def __call__(
        self, scope: HTTPScope, receive: HTTPReceive, send: HTTPSend
    ) -> None: ...
    @overload
    async def __call__(
        self, scope: LifespanScope, receive: LifespanReceive, send: LifespanSend
    ) -> None: ...
    async def __call__(
        self,
        scope: HTTPScope | LifespanScope,
        receive: HTTPReceive | LifespanReceive,
        send: HTTPSend | LifespanSend,
    ) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)  # ty: ignore[invalid-argument-type]
            return
        if scope["type"] != "http":
            msg = f"unsupported ASGI scope type {scope['type']!r}"
            raise ValueError(msg)

        body = bytearray()
        while True:
            message = await receive()  # ty: ignore[call-non-callable]
            if message["type"] == "http.disconnect":
                return
            body.extend(message.get("body", b""))
            if not message.get("more_body", False):
                break

        headers = {
            k.decode("latin-1"): v.decode("latin-1") for k, v in scope["headers"]
        }
        # scope["path"] is already percent-decoded and may contain "?"
        response = await self.dispatch(
            scope["method"],
            scope["path"],
            headers,
            bytes(body),
            query_string=scope["query_string"].decode("latin-1"),
        )
        await send(  # ty: ignore[invalid-argument-type]
            {
                "type": "http.response.start",
                "status": response.status,
                "headers": [
                    (k.lower().encode("latin-1"), v.encode("latin-1"))
                    for k, v in response.headers
                ],
            }
        )
        await send(  # ty: ignore[invalid-argument-type]
            {"type": "http.response.body", "body": response.body, "more_body": False}
        )

    async def _handle_lifespan(
        self, receive: LifespanReceive, send: LifespanSend
    ) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self.finalize()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:  # noqa: BLE001  - ASGI requires reporting any failure
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    return
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # --- dispatch -------------------------------------------------------------
    async def dispatch(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
        *,
        query_string: str | None = None,
    ) -> Response:
        """Route one request and produce its response.

        Header names are lower-cased. Without query_string, anything after the
        first "?" in path is taken as the query string and stripped before
        matching; with it, path is matched as given.
        """
        self.finalize()
        method = method.upper()
        if query_string is None:
            path, _, query = path.partition("?")
        else:
            query = query_string
        header_map = {k.lower(): v for k, v in (headers or {}).items()}

        try:
            if method == "OPTIONS":
                return preflight(self._policy, match_route(self._table, path).detail)
            endpoint, match = find_endpoint(self._table, path, method)
        except RouteNotFoundError as e:
            err = not_found("resource not found").with_technical(str(e))
            return error_response(err)
        except MethodNotAllowedError as e:
            err = method_not_allowed(
                "the requested resource does not implement %s", method
            ).with_technical(str(e))
            return error_response(err, [("Allow", ", ".join(e.allowed))])

        request = Request(
            method=method,
            path=path,
            headers=FrozenDict(header_map),
            body=body,
            query_string=query,
            route=match.detail.route,
            variables=match.variables,
            cors=FrozenDict(aggregate_headers(self._policy, match.detail)),
        )
        handler = endpoint.wrapped or endpoint.handler

        try:
            return await handler(request)
        except ChainError as e:
            self._log_error(request, e)
            return error_response(e)
        except Exception as e:
            logger.exception("unhandled error in %s %s", method, request.route)
            err = internal_server_error(origin=e).with_technical(repr(e)).with_uuid()
            return error_response(err)

    def _log_error(self, request: Request, err: ChainError) -> None:
        status = status_of(err)
        if status < 500 and classify(err) is not None:
            logger.debug("%s %s -> %d: %s", request.method, request.path, status, err)
            return
        logger.warning(
            "%s %s -> %d: %s (uuid=%s) traces: %s",
            request.method,
            request.path,
            status,
            err,
            err.uuid or "-",
            " <- ".join(str(t) for t in traces(err)),
        )

    def finalize(self) -> None:
        """Freeze the route table and build each endpoint's interceptor chain.

        Idempotent. Called on ASGI lifespan startup and on first dispatch.
        """
        if self._finalized:
            return
        self._table = finalize_table(self._table, self._middleware)
        self._finalized = True
        logger.info(
            "router finalized with %d patterns and %d endpoints",
            len(self._table.routes),
            self._table.endpoint_count(),
        )

    def _check_open(self) -> None:
        if self._finalized:
            msg = "router is finalized, routes cannot be registered"
            raise RuntimeError(msg)

    # --- registration ---------------------------------------------------------
    def method(
        self,
        method: HTTPMethod,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler in table at path for method, with optional middleware.

        Raises RouteConfigError for malformed paths, duplicate method/pattern
        pairs and variable names that differ from an earlier registration of
        the same pattern.
        """
        self._check_open()
        self._table, pattern = add_route(
            self._table, method, path, handler, middleware
        )
        return EndpointHandle(
            router=self, method=method.strip().upper(), pattern=pattern
        )

    def delete(
        self,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler at path for DELETE, with optional middleware."""
        return self.method("DELETE", path, handler, middleware)

    def get(
        self,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler at path for GET, with optional middleware."""
        return self.method("GET", path, handler, middleware)

    def patch(
        self,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler at path for PATCH, with optional middleware."""
        return self.method("PATCH", path, handler, middleware)

    def post(
        self,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler at path for POST, with optional middleware."""
        return self.method("POST", path, handler, middleware)

    def put(
        self,
        path: str,
        handler: Handler,
        middleware: tuple[Middleware[Handler], ...] = (),
    ) -> EndpointHandle:
        """Registers handler at path for PUT, with optional middleware."""
        return self.method("PUT", path, handler, middleware)

    def use(self, *middleware: Middleware[Handler]) -> None:
        """Adds middleware wrapping every endpoint, outermost first."""
        self._check_open()
        self._middleware = self._middleware + middleware

    def _require_headers(
        self, handle: EndpointHandle, headers: tuple[str, ...]
    ) -> None:
        self._check_open()
        self._table = require_headers(
            self._table, handle.method, handle.pattern, headers
        )

    def _expose_headers(
        self, handle: EndpointHandle, headers: tuple[str, ...]
    ) -> None:
        self._check_open()
        self._table = expose_headers(
            self._table, handle.method, handle.pattern, headers
        )

    # --- CORS configuration ---------------------------------------------------
    def enable_cors(self) -> Router:
        """Answer preflight requests and attach CORS fields to every request."""
        self._check_open()
        self._policy = replace(self._policy, enabled=True)
        return self

    def set_allowed_origins(self, *origins: str) -> Router:
        """Access-Control-Allow-Origin, "*" by default."""
        self._check_open()
        if not origins:
            msg = "at least one allowed origin is required"
            raise ValueError(msg)
        self._policy = replace(self._policy, origins=origins)
        return self

    def set_credentials_allowed(self, allowed: bool) -> Router:  # noqa: FBT001
        """Access-Control-Allow-Credentials, false by default."""
        self._check_open()
        self._policy = replace(self._policy, credentials=allowed)
        return self

    def set_cache_duration(self, seconds: int) -> Router:
        """Access-Control-Max-Age in seconds, -1 (no caching) by default."""
        self._check_open()
        self._policy = replace(self._policy, max_age=seconds)
        return self

    def format_routes(self) -> str:
        return format_routes(self._table)
