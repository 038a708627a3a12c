"""Chained, traceable request errors.

Handlers raise ``ChainError`` nodes. Each node records where it was created
and may point at a ``previous`` node, forming a newest-to-oldest list:

    try:
        user = load_user(uid)
    except KeyError as e:
        raise not_found("user %s does not exist", uid, origin=e).with_uuid()

    ...

    except ChainError as e:
        raise wrap(e, "while rendering profile")

The dispatcher walks the chain for the first node with a kind and answers
with that kind's status, 500 when there is none.
"""

from __future__ import annotations

import logging
import os
import random
import sys
import time
import uuid
from dataclasses import dataclass, replace
from enum import IntEnum
from pathlib import Path
from typing import Self

logger = logging.getLogger(__name__)


class ErrorKind(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    INTERNAL_SERVER_ERROR = 500


@dataclass(slots=True, frozen=True)
class Trace:
    package: str  # dotted module name
    file: str  # file name without extension
    function: str
    line: int
    observation: str = ""

    def __str__(self) -> str:
        location = f"{self.package}:{self.function}:{self.line}"
        return f"{location} {self.observation}" if self.observation else location


def _capture_trace(observation: str = "") -> Trace:
    """Trace of the nearest frame outside this module."""
    frame = sys._getframe(1)
    while frame.f_back is not None and frame.f_globals.get("__name__") == __name__:
        frame = frame.f_back
    code = frame.f_code
    return Trace(
        package=frame.f_globals.get("__name__", ""),
        file=Path(code.co_filename).stem,
        function=code.co_qualname,
        line=frame.f_lineno,
        observation=observation,
    )


def new_uuid() -> str:
    """Random v4 UUID.

    Falls back to a seeded PRNG when the OS has no randomness source. The
    fallback is only fit for correlating log lines.
    """
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        logger.warning("os.urandom is unavailable, error uuid uses a seeded PRNG")
        rng = random.Random(time.time_ns() ^ os.getpid())
        return str(uuid.UUID(int=rng.getrandbits(128), version=4))


class ChainError(Exception):
    """One node of an error chain.

    kind is None for bare trace wrappers created by ``wrap``; they are skipped
    when classifying the chain but still contribute their trace.
    """

    def __init__(
        self,
        kind: ErrorKind | None,
        message: str = "",
        *args: object,
        previous: ChainError | None = None,
        origin: BaseException | None = None,
        observation: str = "",
    ) -> None:
        if args:
            message = message % args
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = ""
        self.technical_message = ""
        self.fields: list[str] = []
        self.values: list[object] = []
        self.uuid = ""
        self.trace = _capture_trace(observation)
        self.previous = previous
        self.origin = origin
        self.__cause__ = origin if origin is not None else previous

    def __str__(self) -> str:
        if self.message:
            return self.message
        if self.previous is not None:
            return str(self.previous)
        if self.origin is not None:
            return str(self.origin)
        return "" if self.kind is None else self.kind.name.replace("_", " ").lower()

    def __repr__(self) -> str:
        kind = self.kind.name if self.kind is not None else None
        return f"ChainError(kind={kind}, message={self.message!r}, trace={self.trace})"

    @property
    def status(self) -> int | None:
        return None if self.kind is None else int(self.kind)

    def with_code(self, code: str) -> Self:
        """Attach a machine readable code."""
        self.code = code
        return self

    def with_technical(self, message: str, *args: object) -> Self:
        """Attach a developer oriented message.

        Also becomes the trace observation when that is still empty.
        """
        if args:
            message = message % args
        self.technical_message = message
        if not self.trace.observation:
            self.trace = replace(self.trace, observation=message)
        return self

    def with_fields(self, *fields: str) -> Self:
        """Name the request fields that failed validation."""
        self.fields.extend(fields)
        return self

    def with_values(self, *values: object) -> Self:
        self.values.extend(values)
        return self

    def with_uuid(self, value: str | None = None) -> Self:
        """Attach a correlation id, generated when not given."""
        self.uuid = value if value is not None else new_uuid()
        return self

    def location(self) -> tuple[str, str, int]:
        return self.trace.package, self.trace.file, self.trace.line

    def chain(self) -> list[ChainError]:
        """Every node, newest first."""
        nodes: list[ChainError] = []
        node: ChainError | None = self
        while node is not None:
            nodes.append(node)
            node = node.previous
        return nodes


# --- chain helpers ------------------------------------------------------------
def wrap(err: BaseException, observation: str = "", *args: object) -> ChainError:
    """Add a trace layer on top of err without changing its classification.

    A foreign exception becomes the origin of the new node.
    """
    if args:
        observation = observation % args
    if isinstance(err, ChainError):
        return ChainError(None, previous=err, observation=observation)
    return ChainError(None, origin=err, observation=observation)


def find(err: BaseException | None, kind: ErrorKind) -> ChainError | None:
    """First node in the chain with kind, newest first."""
    if not isinstance(err, ChainError):
        return None
    for node in err.chain():
        if node.kind is kind:
            return node
    return None


def classify(err: BaseException | None) -> ChainError | None:
    """First node in the chain carrying any kind."""
    if not isinstance(err, ChainError):
        return None
    for node in err.chain():
        if node.kind is not None:
            return node
    return None


def status_of(err: BaseException | None) -> int:
    """HTTP status for err, 500 when nothing in the chain has a kind."""
    node = classify(err)
    return int(ErrorKind.INTERNAL_SERVER_ERROR) if node is None else int(node.kind)


def traces(err: BaseException | None) -> list[Trace]:
    """Every trace in the chain, newest first."""
    if not isinstance(err, ChainError):
        return []
    return [node.trace for node in err.chain()]


def origin_of(err: BaseException | None) -> BaseException | None:
    """Nearest foreign exception recorded in the chain."""
    if not isinstance(err, ChainError):
        return None
    for node in err.chain():
        if node.origin is not None:
            return node.origin
    return None


# --- constructors -------------------------------------------------------------
def bad_request(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """400 Bad Request."""
    return ChainError(
        ErrorKind.BAD_REQUEST, message, *args, previous=previous, origin=origin
    )


def unauthorized(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """401 Unauthorized."""
    return ChainError(
        ErrorKind.UNAUTHORIZED, message, *args, previous=previous, origin=origin
    )


def forbidden(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """403 Forbidden."""
    return ChainError(
        ErrorKind.FORBIDDEN, message, *args, previous=previous, origin=origin
    )


def not_found(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """404 Not Found."""
    return ChainError(
        ErrorKind.NOT_FOUND, message, *args, previous=previous, origin=origin
    )


def method_not_allowed(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """405 Method Not Allowed."""
    return ChainError(
        ErrorKind.METHOD_NOT_ALLOWED, message, *args, previous=previous, origin=origin
    )


def payload_too_large(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """413 Payload Too Large."""
    return ChainError(
        ErrorKind.PAYLOAD_TOO_LARGE, message, *args, previous=previous, origin=origin
    )


def uri_too_long(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """414 URI Too Long."""
    return ChainError(
        ErrorKind.URI_TOO_LONG, message, *args, previous=previous, origin=origin
    )


def unsupported_media_type(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """415 Unsupported Media Type."""
    return ChainError(
        ErrorKind.UNSUPPORTED_MEDIA_TYPE,
        message,
        *args,
        previous=previous,
        origin=origin,
    )


def internal_server_error(
    message: str = "",
    *args: object,
    previous: ChainError | None = None,
    origin: BaseException | None = None,
) -> ChainError:
    """500 Internal Server Error."""
    return ChainError(
        ErrorKind.INTERNAL_SERVER_ERROR,
        message,
        *args,
        previous=previous,
        origin=origin,
    )


# --- predicates ---------------------------------------------------------------
def is_bad_request(err: BaseException | None) -> bool:
    return find(err, ErrorKind.BAD_REQUEST) is not None


def is_unauthorized(err: BaseException | None) -> bool:
    return find(err, ErrorKind.UNAUTHORIZED) is not None


def is_forbidden(err: BaseException | None) -> bool:
    return find(err, ErrorKind.FORBIDDEN) is not None


def is_not_found(err: BaseException | None) -> bool:
    return find(err, ErrorKind.NOT_FOUND) is not None


def is_method_not_allowed(err: BaseException | None) -> bool:
    return find(err, ErrorKind.METHOD_NOT_ALLOWED) is not None


def is_payload_too_large(err: BaseException | None) -> bool:
    return find(err, ErrorKind.PAYLOAD_TOO_LARGE) is not None


def is_uri_too_long(err: BaseException | None) -> bool:
    return find(err, ErrorKind.URI_TOO_LONG) is not None


def is_unsupported_media_type(err: BaseException | None) -> bool:
    return find(err, ErrorKind.UNSUPPORTED_MEDIA_TYPE) is not None


def is_internal_server_error(err: BaseException | None) -> bool:
    return find(err, ErrorKind.INTERNAL_SERVER_ERROR) is not None
