"""Template objects: values with an explicit capability set.

Hosts expose custom values to templates by subclassing TemplateObject and
declaring which operations the VM may perform on them. The VM checks the
capability before dispatching and fails with a specific error otherwise.

Example:
    >>> class Counter(TemplateObject):
    ...     capabilities = Capability.ATTRIBUTABLE | Capability.STRINGABLE
    ...     def __init__(self):
    ...         self.hits = 3
    ...     def get_attr(self, name):
    ...         return self.hits if name == "hits" else MISSING
    ...     def render(self):
    ...         return f"{self.hits} hits"

"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Flag, auto
from typing import TYPE_CHECKING, Any, ClassVar

from stencil.environment.exceptions import InvalidOperationError, NotIterableError
from stencil.value.undefined import MISSING

if TYPE_CHECKING:
    from stencil.vm.state import State


class Capability(Flag):
    """Operations a TemplateObject supports."""

    NONE = 0
    ITERABLE = auto()
    INDEXABLE = auto()
    ATTRIBUTABLE = auto()
    CALLABLE = auto()
    STRINGABLE = auto()


class TemplateObject:
    """Base class for host values with capability-checked behavior.

    Override the hooks matching the declared ``capabilities``; the default
    hooks report "nothing there".
    """

    capabilities: ClassVar[Capability] = Capability.NONE

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def get_attr(self, name: str) -> Any:
        """Return the attribute ``name`` or MISSING."""
        return MISSING

    def get_item(self, key: Any) -> Any:
        """Return the item at ``key`` or MISSING."""
        return MISSING

    def iterate(self) -> Iterator[Any]:
        raise NotIterableError(f"{type(self).__name__} does not implement iterate()")

    def length(self) -> int | None:
        """Number of items, or None when unknown."""
        return None

    def call(self, state: State, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        raise InvalidOperationError(f"{type(self).__name__} does not implement call()")

    def render(self) -> str:
        return f"<{type(self).__name__}>"

    def is_true(self) -> bool:
        length = self.length()
        return True if length is None else length > 0

    def __str__(self) -> str:
        return self.render()


class Namespace(TemplateObject):
    """Mutable attribute bag created by ``namespace()``.

    The only value templates can assign into (``{% set ns.count = 1 %}``),
    which makes it the way to carry state out of a loop body.
    """

    capabilities = Capability.ATTRIBUTABLE | Capability.INDEXABLE | Capability.ITERABLE

    __slots__ = ("_attrs",)

    def __init__(self, attrs: Mapping[str, Any] | None = None, **kwargs: Any):
        self._attrs: dict[str, Any] = dict(attrs or {}, **kwargs)

    def get_attr(self, name: str) -> Any:
        return self._attrs.get(name, MISSING)

    def get_item(self, key: Any) -> Any:
        if isinstance(key, str):
            return self._attrs.get(key, MISSING)
        return MISSING

    def set_attr(self, name: str, value: Any) -> None:
        self._attrs[name] = value

    def iterate(self) -> Iterator[Any]:
        return iter(list(self._attrs))

    def length(self) -> int:
        return len(self._attrs)

    def is_true(self) -> bool:
        return True

    def render(self) -> str:
        from stencil.value.ops import repr_value

        return f"namespace({repr_value(self._attrs)})"

    def __repr__(self) -> str:
        return f"Namespace({self._attrs!r})"
