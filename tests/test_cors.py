from restmux.cors import (
    ALLOW_CREDENTIALS,
    ALLOW_HEADERS,
    ALLOW_METHODS,
    ALLOW_ORIGIN,
    EXPOSE_HEADERS,
    MAX_AGE,
    CORSPolicy,
    aggregate_headers,
    merge_header_names,
    preflight,
)
from restmux.table import (
    RouteDetail,
    RouteTable,
    add_route,
    expose_headers,
    require_headers,
)


def _detail() -> RouteDetail[str]:
    table: RouteTable[str] = RouteTable()
    table, pattern = add_route(table, "GET", "/items/{id}", "get")
    table, _ = add_route(table, "POST", "/items/{id}", "post")
    table = require_headers(table, "GET", pattern, ["X-Foo"])
    table = require_headers(table, "POST", pattern, ["x-foo", "X-Bar"])
    table = expose_headers(table, "GET", pattern, ["ETag"])
    return table.routes[pattern]


def test_policy_defaults() -> None:
    policy = CORSPolicy()
    assert policy.enabled is False
    assert policy.origins == ("*",)
    assert policy.credentials is False
    assert policy.max_age == -1


def test_merge_header_names() -> None:
    merged = merge_header_names(("X-Foo",), ["x-foo", " X-Bar ", "", "x-bar", "Accept"])
    assert merged == ("X-Foo", "X-Bar", "Accept")


def test_aggregate_headers_disabled() -> None:
    assert aggregate_headers(CORSPolicy(), _detail()) == {}


def test_aggregate_headers() -> None:
    policy = CORSPolicy(
        enabled=True,
        origins=("https://a.example", "https://b.example"),
        credentials=True,
        max_age=600,
    )
    assert aggregate_headers(policy, _detail()) == {
        ALLOW_ORIGIN: "https://a.example, https://b.example",
        ALLOW_CREDENTIALS: "true",
        MAX_AGE: "600",
        ALLOW_METHODS: "GET, POST",
        ALLOW_HEADERS: "X-Foo, X-Bar",
        EXPOSE_HEADERS: "ETag",
    }


def test_preflight_enabled() -> None:
    response = preflight(CORSPolicy(enabled=True), _detail())
    assert response.status == 204
    assert response.body == b""
    assert dict(response.headers) == {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Credentials": "false",
        "Access-Control-Max-Age": "-1",
        "Access-Control-Allow-Methods": "GET, POST",
        "Access-Control-Allow-Headers": "X-Foo, X-Bar",
        "Access-Control-Expose-Headers": "ETag",
    }


def test_preflight_disabled() -> None:
    response = preflight(CORSPolicy(), _detail())
    assert response.status == 404
    assert response.header("access-control-allow-origin") is None
