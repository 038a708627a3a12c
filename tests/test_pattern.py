import pytest

from restmux.pattern import (
    PLACEHOLDER,
    CompiledPattern,
    DuplicateVariableNameError,
    EmptyRouteError,
    MissingVariableNameError,
    RouteConfigError,
    UnterminatedVariableError,
    VariableBinding,
    compile_pattern,
    split_path,
)


@pytest.mark.parametrize(
    "path,expected",
    [
        ("", ()),
        ("/", ()),
        ("/items", ("items",)),
        ("/items/", ("items",)),
        ("items/42", ("items", "42")),
        ("/items//parts", ("items", "", "parts")),
    ],
)
def test_split_path(path: str, expected: tuple[str, ...]) -> None:
    assert split_path(path) == expected


def test_compile_pattern() -> None:
    compiled = compile_pattern("/items/{id}/parts")
    assert compiled == CompiledPattern(
        pattern="/items/{v}/parts",
        segments=("items", PLACEHOLDER, "parts"),
        variables=(VariableBinding(position=1, name="id"),),
    )
    assert compiled.literal_count == 2
    assert compiled.route == "/items/{id}/parts"


def test_compile_pattern_multiple_variables() -> None:
    compiled = compile_pattern("/user/{id}/transaction/{tx}")
    assert compiled.pattern == "/user/{v}/transaction/{v}"
    assert compiled.variables == (
        VariableBinding(position=1, name="id"),
        VariableBinding(position=3, name="tx"),
    )


def test_compile_pattern_normalizes_literals() -> None:
    """Literal segments are trimmed and lower-cased, slashes at the ends dropped."""
    assert compile_pattern(" /Items/ Parts /").pattern == "/items/parts"
    assert compile_pattern("items/{ID}").variables == (VariableBinding(1, "id"),)


def test_templates_sharing_a_canonical_form() -> None:
    first = compile_pattern("/items/{id}")
    second = compile_pattern("/ITEMS/{key}/")
    assert first.pattern == second.pattern
    assert first.variables != second.variables


def test_compile_root() -> None:
    compiled = compile_pattern("/")
    assert compiled.pattern == "/"
    assert compiled.segments == ()
    assert compiled.variables == ()


def test_compile_is_deterministic() -> None:
    assert compile_pattern("/a/{b}/c/{d}") == compile_pattern("/a/{b}/c/{d}")


def test_empty_template() -> None:
    with pytest.raises(EmptyRouteError):
        compile_pattern("")


@pytest.mark.parametrize("template", ["/x/{}", "/x/{ }/y"])
def test_missing_variable_name(template: str) -> None:
    with pytest.raises(MissingVariableNameError):
        compile_pattern(template)


@pytest.mark.parametrize("template", ["/x/{id", "/x/{id/y", "/x/id}{"])
def test_unterminated_variable(template: str) -> None:
    with pytest.raises(UnterminatedVariableError):
        compile_pattern(template)


def test_duplicate_variable_name() -> None:
    with pytest.raises(DuplicateVariableNameError):
        compile_pattern("/x/{id}/y/{id}")


def test_config_errors_are_value_errors() -> None:
    """Registration failures share one catchable base."""
    for exc in (EmptyRouteError, MissingVariableNameError, UnterminatedVariableError):
        assert issubclass(exc, RouteConfigError)
    assert issubclass(RouteConfigError, ValueError)
