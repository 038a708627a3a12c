import pytest

from restmux.pattern import EmptyRouteError, compile_pattern
from restmux.table import (
    DuplicateRouteError,
    FrozenDict,
    MethodNotAllowedError,
    RouteNotFoundError,
    RouteTable,
    UnknownEndpointError,
    UnknownMethodError,
    VariableMismatchError,
    add_route,
    expose_headers,
    find_endpoint,
    finalize_table,
    format_routes,
    match_route,
    require_headers,
)


def _table(*routes: tuple[str, str]) -> RouteTable[str]:
    table: RouteTable[str] = RouteTable()
    for method, template in routes:
        table, _ = add_route(table, method, template, f"{method} {template}")
    return table


# --- registration -------------------------------------------------------------
def test_add_route_returns_new_table() -> None:
    empty: RouteTable[str] = RouteTable()
    table, pattern = add_route(empty, "GET", "/items/{id}", "get_item")
    assert pattern == "/items/{v}"
    assert empty.routes == {}
    detail = table.routes[pattern]
    assert detail.allowed_methods == ("GET",)
    assert detail.endpoints["GET"].handler == "get_item"
    assert detail.route == "/items/{id}"


def test_add_route_shares_detail_per_pattern() -> None:
    table = _table(("GET", "/items/{id}"), ("POST", "/Items/{id}/"))
    assert list(table.routes) == ["/items/{v}"]
    assert table.routes["/items/{v}"].allowed_methods == ("GET", "POST")
    assert table.endpoint_count() == 2


def test_add_route_normalizes_method() -> None:
    table = _table(("get", "/items"))
    assert list(table.routes["/items"].endpoints) == ["GET"]


def test_duplicate_method_and_pattern() -> None:
    table = _table(("GET", "/items/{id}"))
    with pytest.raises(DuplicateRouteError):
        add_route(table, "GET", "/ITEMS/{id}/", "again")


def test_variable_names_must_match_across_pattern() -> None:
    table = _table(("GET", "/items/{id}"))
    with pytest.raises(VariableMismatchError):
        add_route(table, "POST", "/items/{key}", "create")


@pytest.mark.parametrize("method", ["OPTIONS", "FETCH", ""])
def test_unknown_method(method: str) -> None:
    with pytest.raises(UnknownMethodError):
        add_route(RouteTable(), method, "/items", "handler")


def test_malformed_template() -> None:
    with pytest.raises(EmptyRouteError):
        add_route(RouteTable(), "GET", "", "handler")


def test_cors_header_aggregation() -> None:
    table: RouteTable[str] = RouteTable()
    table, pattern = add_route(table, "GET", "/items", "list")
    table, _ = add_route(table, "POST", "/items", "create")
    table = require_headers(table, "GET", pattern, ["X-Foo"])
    table = require_headers(table, "POST", pattern, ["x-foo", "X-Bar"])
    table = expose_headers(table, "GET", pattern, ["ETag", " etag "])

    detail = table.routes[pattern]
    assert detail.required_headers == ("X-Foo", "X-Bar")
    assert detail.exposed_headers == ("ETag",)
    assert detail.allowed_methods == ("GET", "POST")


def test_require_headers_unknown_endpoint() -> None:
    table = _table(("GET", "/items"))
    with pytest.raises(UnknownEndpointError):
        require_headers(table, "POST", "/items", ["X-Foo"])
    with pytest.raises(UnknownEndpointError):
        expose_headers(table, "GET", "/other", ["X-Foo"])


def test_finalize_table_composes_middleware() -> None:
    table: RouteTable[str] = RouteTable()
    table, pattern = add_route(
        table, "GET", "/items", "list", middleware=(lambda h: f"route({h})",)
    )
    table = finalize_table(table, (lambda h: f"router({h})",))
    endpoint = table.routes[pattern].endpoints["GET"]
    assert endpoint.handler == "list"
    assert endpoint.wrapped == "router(route(list))"


# --- matching -----------------------------------------------------------------
@pytest.mark.parametrize(
    "template,path,expected",
    [
        ("/items/{id}", "/items/42", {"id": "42"}),
        (
            "/items/{id}/parts/{part}",
            "/items/a-1/parts/b_2",
            {"id": "a-1", "part": "b_2"},
        ),
        ("/{a}/{b}/{c}", "/x/y/z", {"a": "x", "b": "y", "c": "z"}),
        ("/items", "/items", {}),
        ("/", "/", {}),
    ],
)
def test_match_recovers_substituted_values(
    template: str, path: str, expected: dict[str, str]
) -> None:
    table = _table(("GET", template))
    match = match_route(table, path)
    assert match.detail.pattern == compile_pattern(template)
    assert match.variables == expected
    assert isinstance(match.variables, FrozenDict)


def test_match_ignores_leading_and_trailing_slash() -> None:
    table = _table(("GET", "/items/{id}"))
    assert match_route(table, "/items/42/").variables == {"id": "42"}
    assert match_route(table, "items/42").variables == {"id": "42"}


def test_match_literals_case_insensitive_variables_case_preserved() -> None:
    table = _table(("GET", "/Users/{name}"))
    assert match_route(table, "/USERS/Alice").variables == {"name": "Alice"}


def test_placeholder_needs_non_empty_segment() -> None:
    table = _table(("GET", "/items/{id}/parts"))
    with pytest.raises(RouteNotFoundError):
        match_route(table, "/items//parts")


@pytest.mark.parametrize("path", ["/items", "/items/1/2", "/other/1", "/"])
def test_match_not_found(path: str) -> None:
    table = _table(("GET", "/items/{id}"))
    with pytest.raises(RouteNotFoundError) as exc_info:
        match_route(table, path)
    assert exc_info.value.path == path


@pytest.mark.parametrize(
    "routes",
    [
        (("GET", "/items/{id}"), ("GET", "/items/create")),
        (("GET", "/items/create"), ("GET", "/items/{id}")),
    ],
)
def test_literal_pattern_wins_regardless_of_registration_order(
    routes: tuple[tuple[str, str], ...],
) -> None:
    table = _table(*routes)
    assert match_route(table, "/items/create").detail.pattern.pattern == "/items/create"
    assert match_route(table, "/items/other").variables == {"id": "other"}


def test_more_literals_win() -> None:
    table = _table(("GET", "/{a}/{b}/c"), ("GET", "/x/{b}/c"), ("GET", "/{a}/{b}/{c}"))
    assert match_route(table, "/x/y/c").detail.pattern.pattern == "/x/{v}/c"
    assert match_route(table, "/w/y/c").detail.pattern.pattern == "/{v}/{v}/c"
    assert match_route(table, "/w/y/z").detail.pattern.pattern == "/{v}/{v}/{v}"


def test_equal_literal_count_breaks_tie_on_pattern() -> None:
    table = _table(("GET", "/{x}/b/c"), ("GET", "/a/{y}/c"))
    assert match_route(table, "/a/b/c").detail.pattern.pattern == "/a/{v}/c"


def test_find_endpoint() -> None:
    table = _table(("GET", "/items/{id}"), ("POST", "/items/{id}"))
    endpoint, match = find_endpoint(table, "/items/7", "post")
    assert endpoint.handler == "POST /items/{id}"
    assert match.variables == {"id": "7"}


def test_find_endpoint_method_not_allowed() -> None:
    table = _table(("GET", "/items/{id}"), ("POST", "/items/{id}"))
    with pytest.raises(MethodNotAllowedError) as exc_info:
        find_endpoint(table, "/items/7", "DELETE")
    assert exc_info.value.allowed == ("GET", "POST")
    assert exc_info.value.method == "DELETE"


# --- introspection ------------------------------------------------------------
def get_item() -> None: ...


def create_item() -> None: ...


def test_format_routes() -> None:
    table: RouteTable = RouteTable()
    table, _ = add_route(table, "GET", "/items/{id}", get_item)
    table, _ = add_route(table, "POST", "/items", create_item)
    assert format_routes(table) == (
        "POST   /items        create_item\nGET    /items/{id}   get_item"
    )


def test_format_routes_with_middleware_and_cors() -> None:
    def audit(h):  # noqa: ANN001, ANN202
        return h

    table: RouteTable = RouteTable()
    table, pattern = add_route(table, "GET", "/items", get_item, middleware=(audit,))
    table = require_headers(table, "GET", pattern, ["X-Token"])
    assert format_routes(table) == (
        "GET   /items   get_item   "
        "[test_format_routes_with_middleware_and_cors.<locals>.audit]   "
        "headers: X-Token"
    )


def test_format_routes_empty() -> None:
    assert format_routes(RouteTable()) == ""
