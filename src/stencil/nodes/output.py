"""Output nodes for the Stencil AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from stencil.nodes.base import Node
from stencil.nodes.expressions import Expr


@dataclass(frozen=True, slots=True)
class Data(Node):
    """Raw text between template constructs."""

    value: str


@dataclass(frozen=True, slots=True)
class Raw(Node):
    """Contents of {% raw %}...{% endraw %}."""

    value: str


@dataclass(frozen=True, slots=True)
class Output(Node):
    """Output expression: {{ expr }}"""

    expr: Expr


@dataclass(frozen=True, slots=True)
class FilterBlock(Node):
    """Apply filters to block content: {% filter upper | trim %}...{% endfilter %}

    ``filter`` is a Filter chain whose innermost value is a CaptureValue.
    """

    filter: Expr
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class Autoescape(Node):
    """Switch escaping for a region: {% autoescape true %}...{% endautoescape %}"""

    mode: Expr
    body: Sequence[Node]
