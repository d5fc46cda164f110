"""Template structure nodes for the Stencil AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from stencil.nodes.base import Node
from stencil.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Template(Node):
    """Root node representing a complete template."""

    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Extends(Node):
    """Template inheritance: {% extends "base.html" %}"""

    template: Expr


@dataclass(frozen=True, slots=True)
class Block(Node):
    """Overridable block: {% block name [scoped] %}...{% endblock %}"""

    name: str
    body: Sequence[Node]
    scoped: bool = False


@dataclass(frozen=True, slots=True)
class Include(Node):
    """Include template: {% include "partial.html" [ignore missing] [with context] %}"""

    template: Expr
    with_context: bool = True
    ignore_missing: bool = False


@dataclass(frozen=True, slots=True)
class Import(Node):
    """Import a template as a module: {% import "macros.html" as m %}"""

    template: Expr
    target: str
    with_context: bool = False


@dataclass(frozen=True, slots=True)
class FromImport(Node):
    """Import names: {% from "macros.html" import button, card as c %}"""

    template: Expr
    names: Sequence[tuple[str, str | None]]
    with_context: bool = False


@dataclass(frozen=True, slots=True)
class With(Node):
    """Scoped bindings: {% with a = x, b = y %}...{% endwith %}"""

    targets: Sequence[tuple[str, Expr]]
    body: Sequence[Node]
