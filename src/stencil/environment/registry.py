"""Filter, test and global registries for the Stencil environment.

Provides a Jinja2-compatible dict-like interface over the environment's
callables.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stencil.environment.core import Environment


class Registry:
    """Dict-like view of one of the environment's name tables.

    Supports:
        - env.filters['name'] = func
        - env.filters.update({'name': func})
        - func = env.filters['name']
        - 'name' in env.filters
        - del env.globals['name']

    All mutations use copy-on-write, so a lookup never sees a table
    half-updated. A render in progress resolves names on each call and
    does see later registrations; populate registries before rendering
    starts.
    """

    __slots__ = ("_attr", "_env")

    def __init__(self, env: Environment, attr: str):
        self._env = env
        self._attr = attr

    def _get_dict(self) -> dict[str, Any]:
        return getattr(self._env, self._attr)

    def _set_dict(self, d: dict[str, Any]) -> None:
        setattr(self._env, self._attr, d)

    def __getitem__(self, name: str) -> Any:
        return self._get_dict()[name]

    def __setitem__(self, name: str, value: Any) -> None:
        new = self._get_dict().copy()
        new[name] = value
        self._set_dict(new)

    def __delitem__(self, name: str) -> None:
        new = self._get_dict().copy()
        del new[name]
        self._set_dict(new)

    def __contains__(self, name: object) -> bool:
        return name in self._get_dict()

    def __iter__(self) -> Iterator[str]:
        return iter(self._get_dict())

    def __len__(self) -> int:
        return len(self._get_dict())

    def get(self, name: str, default: Any = None) -> Any:
        return self._get_dict().get(name, default)

    def update(self, mapping: Mapping[str, Any]) -> None:
        """Batch update (Jinja2 compatibility)."""
        new = self._get_dict().copy()
        new.update(mapping)
        self._set_dict(new)

    def copy(self) -> dict[str, Any]:
        """Return a copy of the underlying dict."""
        return self._get_dict().copy()

    def keys(self):
        return self._get_dict().keys()

    def values(self):
        return self._get_dict().values()

    def items(self):
        return self._get_dict().items()

    def __repr__(self) -> str:
        return f"<Registry {self._attr.lstrip('_')}: {len(self)} entries>"
