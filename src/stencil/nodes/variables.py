"""Variable assignment nodes for the Stencil AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from stencil.nodes.base import Node
from stencil.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Set(Node):
    """Assignment: {% set x = value %}, {% set a, b = pair %}, {% set ns.x = 1 %}"""

    target: Expr
    value: Expr


@dataclass(frozen=True, slots=True)
class SetBlock(Node):
    """Capture assignment: {% set x | upper %}...{% endset %}

    ``filter`` is an optional Filter chain over a CaptureValue.
    """

    target: str
    body: Sequence[Node]
    filter: Expr | None = None


@dataclass(frozen=True, slots=True)
class Do(Node):
    """Evaluate and discard: {% do ns.update(count=1) %}"""

    expr: Expr
