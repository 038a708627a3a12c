"""Interceptor (middleware) composition.

Middleware is any ``Callable[[H], H]`` wrapping a handler. For middleware
``(f1, f2, f3)`` and handler ``h`` the composed handler is ``f1(f2(f3(h)))``:
``f1`` runs first on the way in and last on the way out.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from functools import reduce

type Middleware[H] = Callable[[H], H]


def compose[H](middleware: Sequence[Middleware[H]], handler: H | None) -> H | None:
    """Wrap handler in middleware, first element outermost. None stays None."""
    if handler is None:
        return None
    return reduce(lambda h, m: m(h), reversed(middleware), handler)


@dataclass(slots=True, frozen=True)
class Chain[H]:
    """Immutable, reusable list of middleware.

    Example:
        chain = Chain((logged, authenticated))
        router.get("/items", chain.then(list_items))
    """

    middleware: tuple[Middleware[H], ...] = field(default=())

    def use(self, *middleware: Middleware[H]) -> Chain[H]:
        """Return a new chain with middleware appended."""
        return Chain(self.middleware + middleware)

    def then(self, handler: H | None) -> H | None:
        return compose(self.middleware, handler)
