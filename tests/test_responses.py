import json

from restmux.errors import not_found, wrap
from restmux.responses import (
    ContentType,
    Response,
    Status,
    error_response,
    json_response,
    respond,
    text,
)


def test_respond_with_body() -> None:
    response = respond(200, ContentType.TEXT_HTML, "<p>hi</p>", {"X-Id": "1"})
    assert response == Response(
        status=200,
        headers=(("X-Id", "1"), ("Content-Type", "text/html; charset=utf-8")),
        body=b"<p>hi</p>",
    )


def test_respond_empty_body_is_no_content() -> None:
    response = respond(200, ContentType.APPLICATION_JSON, "", [("X-Id", "1")])
    assert response.status == Status.NO_CONTENT
    assert response.body == b""
    assert response.header("content-type") is None
    assert response.header("x-id") == "1"


def test_respond_no_content_drops_body() -> None:
    response = respond(204, ContentType.TEXT_PLAIN, "ignored")
    assert response.status == 204
    assert response.body == b""


def test_respond_without_content_type() -> None:
    response = respond(200, ContentType.NONE, b"\x00\x01")
    assert response.headers == ()
    assert response.body == b"\x00\x01"


def test_text_and_json() -> None:
    assert text(201, "made").header("Content-Type") == "text/plain; charset=utf-8"
    response = json_response(200, {"id": 1, "tags": ["a"]})
    assert response.header("content-type") == "application/json; charset=utf-8"
    assert json.loads(response.body) == {"id": 1, "tags": ["a"]}


def test_header_lookup_is_case_insensitive() -> None:
    response = Response(status=200, headers=(("ETag", "abc"), ("etag", "def")))
    assert response.header("etag") == "abc"
    assert response.header("missing") is None


def test_error_response_hides_technical_details() -> None:
    err = (
        not_found("order not found")
        .with_code("ORDER_MISSING")
        .with_fields("order_id")
        .with_technical("select returned no rows")
        .with_uuid("0b7c1d5e-8f0a-4c3b-9e2d-6a5f4b3c2d1e")
    )
    response = error_response(wrap(err, "loading order"))
    assert response.status == 404
    assert json.loads(response.body) == {
        "code": "ORDER_MISSING",
        "message": "order not found",
        "fields": ["order_id"],
        "uuid": "0b7c1d5e-8f0a-4c3b-9e2d-6a5f4b3c2d1e",
    }
    assert b"select returned" not in response.body


def test_error_response_without_kind() -> None:
    response = error_response(wrap(RuntimeError("disk full")), [("Retry-After", "5")])
    assert response.status == 500
    assert response.header("retry-after") == "5"
    assert json.loads(response.body)["message"] == "internal server error"
