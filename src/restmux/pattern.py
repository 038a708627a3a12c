"""Route template compiler.

Turns a developer supplied template such as ``/items/{id}/parts`` into a
canonical pattern (``/items/{v}/parts``) plus the ordered variable bindings.
"""

from dataclasses import dataclass

PLACEHOLDER = "{v}"


class RouteConfigError(ValueError):
    """Base for errors found while registering routes."""


class EmptyRouteError(RouteConfigError):
    def __init__(self) -> None:
        super().__init__("route template is empty")


class MissingVariableNameError(RouteConfigError):
    def __init__(self, template: str) -> None:
        super().__init__(f"route template {template!r} has a variable without a name")


class UnterminatedVariableError(RouteConfigError):
    def __init__(self, template: str) -> None:
        super().__init__(
            f"route template {template!r} has a variable without a closing brace"
        )


class DuplicateVariableNameError(RouteConfigError):
    def __init__(self, template: str, name: str) -> None:
        super().__init__(f"route template {template!r} repeats variable {name!r}")


@dataclass(slots=True, frozen=True)
class VariableBinding:
    position: int  # zero-based segment index
    name: str


@dataclass(slots=True, frozen=True)
class CompiledPattern:
    pattern: str
    segments: tuple[str, ...]
    variables: tuple[VariableBinding, ...]

    @property
    def literal_count(self) -> int:
        return sum(1 for seg in self.segments if seg != PLACEHOLDER)

    @property
    def route(self) -> str:
        """Pattern with each placeholder replaced by its variable name."""
        names = {v.position: v.name for v in self.variables}
        return "/" + "/".join(
            "{" + names[i] + "}" if i in names else seg
            for i, seg in enumerate(self.segments)
        )


def split_path(path: str) -> tuple[str, ...]:
    """Split on "/" dropping one leading and one trailing empty segment.

    ``"/"`` and ``""`` both give ``()``.
    """
    parts = path.split("/")
    if parts and parts[0] == "":
        parts = parts[1:]
    if parts and parts[-1] == "":
        parts = parts[:-1]
    return tuple(parts)


def compile_pattern(template: str) -> CompiledPattern:
    """Compile a route template.

    Literal segments are trimmed and lower-cased. A variable segment must be
    exactly ``{name}``; it is replaced by ``PLACEHOLDER`` and recorded as a
    binding at its segment position.
    """
    if template == "":
        raise EmptyRouteError

    parts: list[str] = []
    variables: list[VariableBinding] = []
    for position, raw in enumerate(split_path(template)):
        seg = raw.strip().lower()
        if "{" not in seg:
            parts.append(seg)
            continue
        if len(seg) == 2:
            raise MissingVariableNameError(template)
        if not (seg.startswith("{") and seg.endswith("}")):
            raise UnterminatedVariableError(template)
        name = seg[1:-1]
        if name.strip() == "":
            raise MissingVariableNameError(template)
        if "{" in name or "}" in name:
            raise UnterminatedVariableError(template)
        if any(v.name == name for v in variables):
            raise DuplicateVariableNameError(template, name)
        variables.append(VariableBinding(position=position, name=name))
        parts.append(PLACEHOLDER)

    return CompiledPattern(
        pattern="/" + "/".join(parts),
        segments=tuple(parts),
        variables=tuple(variables),
    )
