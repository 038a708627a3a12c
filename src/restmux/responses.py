"""Response value and helpers for building one."""

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum

from restmux.errors import ChainError, classify, status_of

type Headers = Mapping[str, str] | Iterable[tuple[str, str]]


class Status(IntEnum):
    OK = 200
    CREATED = 201
    NO_CONTENT = 204
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    PAYLOAD_TOO_LARGE = 413
    URI_TOO_LONG = 414
    UNSUPPORTED_MEDIA_TYPE = 415
    INTERNAL_SERVER_ERROR = 500


class ContentType(StrEnum):
    NONE = ""
    APPLICATION_JSON = "application/json; charset=utf-8"
    APPLICATION_XML = "application/xml; charset=utf-8"
    APPLICATION_RTF = "application/rtf; charset=utf-8"
    APPLICATION_PDF = "application/pdf"
    APPLICATION_GZIP = "application/gzip"
    APPLICATION_HTTP = "application/http"
    APPLICATION_MSWORD = "application/msword"
    TEXT_HTML = "text/html; charset=utf-8"
    TEXT_PLAIN = "text/plain; charset=utf-8"
    TEXT_CSV = "text/csv; charset=utf-8"
    TEXT_XML = "text/xml; charset=utf-8"
    TEXT_RTF = "text/rtf; charset=utf-8"
    IMAGE_PNG = "image/png"
    IMAGE_JPEG = "image/jpeg"
    IMAGE_GIF = "image/gif"


@dataclass(slots=True, frozen=True)
class Response:
    status: int
    headers: tuple[tuple[str, str], ...] = field(default=())
    body: bytes = b""

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup, first value wins."""
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return None


def _header_items(headers: Headers) -> list[tuple[str, str]]:
    if isinstance(headers, Mapping):
        return list(headers.items())
    return list(headers)


def respond(
    status: int,
    content_type: str,
    body: str | bytes = b"",
    headers: Headers = (),
) -> Response:
    """Build a response.

    An empty body or a 204 status always gives a body-less 204 without a
    Content-Type header.
    """
    items = _header_items(headers)
    if not body or status == Status.NO_CONTENT:
        return Response(status=Status.NO_CONTENT, headers=tuple(items))
    if isinstance(body, str):
        body = body.encode("utf-8")
    if content_type:
        items.append(("Content-Type", content_type))
    return Response(status=status, headers=tuple(items), body=body)


def text(status: int, body: str, headers: Headers = ()) -> Response:
    return respond(status, ContentType.TEXT_PLAIN, body, headers)


def json_response(status: int, data: object, headers: Headers = ()) -> Response:
    return respond(
        status,
        ContentType.APPLICATION_JSON,
        json.dumps(data, separators=(",", ":")),
        headers,
    )


def error_response(err: ChainError, headers: Headers = ()) -> Response:
    """Client facing JSON body for an error chain.

    Only the classifying node's code, message, fields and uuid are sent;
    technical messages and traces stay server side.
    """
    node = classify(err)
    status = status_of(err)
    if node is None:
        payload = {
            "code": err.code,
            "message": "internal server error",
            "fields": list(err.fields),
            "uuid": err.uuid,
        }
    else:
        payload = {
            "code": node.code,
            "message": node.message or node.kind.name.replace("_", " ").lower(),
            "fields": list(node.fields),
            "uuid": node.uuid or err.uuid,
        }
    return json_response(status, payload, headers)
