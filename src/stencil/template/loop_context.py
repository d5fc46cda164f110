"""Loop iteration metadata for Stencil ``{% for %}`` blocks."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

from stencil.value.undefined import MISSING


class LoopContext:
    """Loop iteration metadata accessible as `loop` inside `{% for %}` blocks.

    The loop reads its iterable one item ahead, so ``last`` and ``nextitem``
    work on plain iterators. ``length`` and the reverse indexes drain the
    rest of the iterator the first time they are read.

    Properties:
        index: 1-based iteration count (1, 2, 3, ...)
        index0: 0-based iteration count (0, 1, 2, ...)
        first: True on the first iteration
        last: True on the final iteration
        length: Total number of items in the sequence
        revindex: Reverse 1-based index (counts down to 1)
        revindex0: Reverse 0-based index (counts down to 0)
        previtem: Previous item in sequence (None on first)
        nextitem: Next item in sequence (None on last)
        depth: Recursion depth of a recursive loop, starting at 1
        depth0: Recursion depth starting at 0

    Methods:
        cycle(*values): Return values[index0 % len(values)]
        changed(*values): True when the values differ from the previous call

    Recursive loops:
        With ``{% for ... recursive %}`` the loop object is callable;
        ``loop(children)`` renders the loop body again over ``children``
        one level deeper and returns the output:
            ```jinja
            {% for item in tree recursive %}
                <li>{{ item.name }}
                {% if item.children %}<ul>{{ loop(item.children) }}</ul>{% endif %}
                </li>
            {% endfor %}
            ```

    Example:
            ```jinja
            <ul>
            {% for item in items %}
                <li class="{{ loop.cycle('odd', 'even') }}">
                    {{ loop.index }}/{{ loop.length }}: {{ item }}
                </li>
            {% endfor %}
            </ul>
            ```

    Output:
            ```html
            <ul>
                <li class="odd">1/3: Apple</li>
                <li class="even">2/3: Banana</li>
                <li class="odd">3/3: Cherry</li>
            </ul>
            ```

    """

    __slots__ = (
        "_current",
        "_index",
        "_iterator",
        "_last_changed",
        "_length",
        "_next",
        "_prev",
        "_recurse",
        "depth0",
    )

    def __init__(
        self,
        iterator: Iterator[Any],
        length: int | None = None,
        depth0: int = 0,
        recurse: Callable[[Any], Any] | None = None,
    ) -> None:
        self._iterator = iterator
        self._length = length
        self._index = -1
        self._current: Any = None
        self._prev: Any = None
        self._last_changed: Any = MISSING
        self._recurse = recurse
        self.depth0 = depth0
        self._next = next(self._iterator, MISSING)

    def advance(self) -> Any:
        """Move to the next item and return it, or MISSING when exhausted."""
        item = self._next
        if item is MISSING:
            return MISSING
        self._prev = self._current
        self._current = item
        self._index += 1
        self._next = next(self._iterator, MISSING)
        return item

    @property
    def iterated(self) -> bool:
        """True once at least one item has been produced."""
        return self._index >= 0

    @property
    def index(self) -> int:
        """1-based iteration count."""
        return self._index + 1

    @property
    def index0(self) -> int:
        """0-based iteration count."""
        return self._index

    @property
    def first(self) -> bool:
        """True if this is the first iteration."""
        return self._index == 0

    @property
    def last(self) -> bool:
        """True if this is the last iteration."""
        return self._next is MISSING

    @property
    def length(self) -> int:
        """Total number of items in the sequence."""
        if self._length is None:
            rest = list(self._iterator)
            self._iterator = iter(rest)
            pending = 0 if self._next is MISSING else 1
            self._length = self._index + 1 + pending + len(rest)
        return self._length

    @property
    def revindex(self) -> int:
        """Reverse 1-based index (counts down to 1)."""
        return self.length - self._index

    @property
    def revindex0(self) -> int:
        """Reverse 0-based index (counts down to 0)."""
        return self.length - self._index - 1

    @property
    def previtem(self) -> Any:
        """Previous item in the sequence, or None if first."""
        if self._index <= 0:
            return None
        return self._prev

    @property
    def nextitem(self) -> Any:
        """Next item in the sequence, or None if last."""
        if self._next is MISSING:
            return None
        return self._next

    @property
    def depth(self) -> int:
        return self.depth0 + 1

    def cycle(self, *values: Any) -> Any:
        """Cycle through the given values.

        Example:
            {{ loop.cycle('odd', 'even') }}
        """
        if not values:
            return None
        return values[self._index % len(values)]

    def changed(self, *values: Any) -> bool:
        """True on the first call and whenever ``values`` differ from the last call.

        Example:
            {% if loop.changed(entry.category) %}<h2>{{ entry.category }}</h2>{% endif %}
        """
        if values == self._last_changed:
            return False
        self._last_changed = values
        return True

    @property
    def is_recursive(self) -> bool:
        return self._recurse is not None

    def recurse(self, iterable: Any) -> Any:
        """Render the recursive loop body over ``iterable`` one level deeper."""
        if self._recurse is None:
            from stencil.environment.exceptions import InvalidOperationError

            raise InvalidOperationError(
                "loop is not recursive",
                suggestion="Add 'recursive' to the for tag: {% for x in items recursive %}",
            )
        return self._recurse(iterable)

    def __repr__(self) -> str:
        return f"<LoopContext {self.index}/{self.length if self._length is not None else '?'}>"
