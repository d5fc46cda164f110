"""Base node class for the Stencil AST."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field, fields

from stencil._types import Span


@dataclass(frozen=True, slots=True)
class Node:
    """Base class for all AST nodes.

    All nodes track their source location for error reporting.
    Nodes are immutable for thread-safety.

    """

    lineno: int
    col_offset: int
    span: Span | None = field(default=None, kw_only=True, compare=False)

    def iter_children(self) -> Iterator[Node]:
        """Yield the direct child nodes, in field order."""
        for f in fields(self):
            if f.name in ("lineno", "col_offset", "span"):
                continue
            yield from _nodes_in(getattr(self, f.name))


def _nodes_in(value: object) -> Iterator[Node]:
    if isinstance(value, Node):
        yield value
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _nodes_in(item)


def walk(node: Node) -> Iterator[Node]:
    """Depth-first traversal of ``node`` and its descendants."""
    yield node
    for child in node.iter_children():
        yield from walk(child)
