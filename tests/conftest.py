from collections.abc import Callable

from restmux.responses import ContentType, Response, respond
from restmux.router import Handler, Request


def ok(body: str = "ok") -> Handler:
    """Handler answering 200 with a fixed plain text body."""

    async def handler(request: Request) -> Response:
        return respond(200, ContentType.TEXT_PLAIN, body)

    return handler


def recording(events: list[str], name: str) -> Callable[[Handler], Handler]:
    """Middleware appending "<name>-enter" / "<name>-exit" around the next handler."""

    def middleware(handler: Handler) -> Handler:
        async def wrapped(request: Request) -> Response:
            events.append(f"{name}-enter")
            response = await handler(request)
            events.append(f"{name}-exit")
            return response

        return wrapped

    return middleware


def terminal(events: list[str]) -> Handler:
    async def handler(request: Request) -> Response:
        events.append("H")
        return respond(200, ContentType.TEXT_PLAIN, "done")

    return handler
