"""ASGI 3 type definitions for the http and lifespan scopes."""

from collections.abc import Awaitable, Callable, Iterable
from typing import Literal, NotRequired, TypedDict


class HTTPScope(TypedDict):
    type: Literal["http"]
    asgi: dict[str, str]
    http_version: str
    method: str
    scheme: NotRequired[str]
    path: str
    raw_path: NotRequired[bytes]
    query_string: bytes
    root_path: NotRequired[str]
    headers: Iterable[tuple[bytes, bytes]]
    client: NotRequired[tuple[str, int] | None]
    server: NotRequired[tuple[str, int | None] | None]


class LifespanScope(TypedDict):
    type: Literal["lifespan"]
    asgi: dict[str, str]


class HTTPRequestEvent(TypedDict):
    type: Literal["http.request"]
    body: bytes
    more_body: bool


class HTTPDisconnectEvent(TypedDict):
    type: Literal["http.disconnect"]


class HTTPResponseStartEvent(TypedDict):
    type: Literal["http.response.start"]
    status: int
    headers: Iterable[tuple[bytes, bytes]]


class HTTPResponseBodyEvent(TypedDict):
    type: Literal["http.response.body"]
    body: bytes
    more_body: bool


class LifespanStartupEvent(TypedDict):
    type: Literal["lifespan.startup"]


class LifespanShutdownEvent(TypedDict):
    type: Literal["lifespan.shutdown"]


class LifespanStartupCompleteEvent(TypedDict):
    type: Literal["lifespan.startup.complete"]


class LifespanStartupFailedEvent(TypedDict):
    type: Literal["lifespan.startup.failed"]
    message: str


class LifespanShutdownCompleteEvent(TypedDict):
    type: Literal["lifespan.shutdown.complete"]


type HTTPReceive = Callable[[], Awaitable[HTTPRequestEvent | HTTPDisconnectEvent]]
type HTTPSend = Callable[
    [HTTPResponseStartEvent | HTTPResponseBodyEvent], Awaitable[None]
]
type LifespanReceive = Callable[
    [], Awaitable[LifespanStartupEvent | LifespanShutdownEvent]
]
type LifespanSend = Callable[
    [
        LifespanStartupCompleteEvent
        | LifespanStartupFailedEvent
        | LifespanShutdownCompleteEvent
    ],
    Awaitable[None],
]
