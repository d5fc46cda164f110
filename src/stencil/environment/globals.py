"""Default global functions for templates.

These are registered on every Environment and resolved after the
template's own scopes and the render context, so a context value with the
same name shadows them.

Globals:
    - `range(stop)` / `range(start, stop[, step])`: a list of integers,
      refusing to build more than MAX_RANGE items
    - `dict(**kwargs)`: a map from keyword arguments
    - `namespace(**kwargs)`: a mutable attribute bag, the only value
      templates can assign into with ``{% set ns.attr = value %}``

Usage:
    ```jinja
    {% set ns = namespace(total=0) %}
    {% for item in cart %}{% set ns.total = ns.total + item.price %}{% endfor %}
    Total: {{ ns.total }}
    ```
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from stencil.environment.exceptions import InvalidOperationError
from stencil.value.objects import Namespace

MAX_RANGE = 100_000


def range_(*args: int) -> list[int]:
    """Build a list like Python's range().

    Raises:
        InvalidOperationError: The range has more than MAX_RANGE items
    """
    if not 1 <= len(args) <= 3:
        raise InvalidOperationError(f"range() takes 1 to 3 arguments, got {len(args)}")
    for arg in args:
        if isinstance(arg, bool) or not isinstance(arg, int):
            raise InvalidOperationError(f"range() arguments must be integers, got {arg!r}")
    if len(args) == 3 and args[2] == 0:
        raise InvalidOperationError("range() step cannot be zero")
    result = range(*args)
    if len(result) > MAX_RANGE:
        raise InvalidOperationError(
            f"range() of {len(result)} items exceeds the limit of {MAX_RANGE}"
        )
    return list(result)


def dict_(value: Mapping[str, Any] | None = None, **kwargs: Any) -> dict[str, Any]:
    """``dict(a=1)`` or ``dict(other, b=2)``."""
    result = dict(value) if value is not None else {}
    result.update(kwargs)
    return result


def namespace(value: Mapping[str, Any] | None = None, **kwargs: Any) -> Namespace:
    return Namespace(value, **kwargs)


DEFAULT_GLOBALS: dict[str, Callable[..., Any]] = {
    "range": range_,
    "dict": dict_,
    "namespace": namespace,
}
