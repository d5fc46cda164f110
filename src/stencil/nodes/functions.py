"""Macro nodes for the Stencil AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from stencil.nodes.base import Node
from stencil.nodes.expressions import Expr, FuncCall


@dataclass(frozen=True, slots=True)
class Macro(Node):
    """Macro definition: {% macro name(a, b=1) %}...{% endmacro %}

    ``defaults`` align with the trailing parameters.
    """

    name: str
    params: Sequence[str]
    defaults: Sequence[Expr]
    body: Sequence[Node]


@dataclass(frozen=True, slots=True)
class CallBlock(Node):
    """Call with a caller body: {% call(x) macro(args) %}...{% endcall %}"""

    call: FuncCall
    params: Sequence[str]
    defaults: Sequence[Expr]
    body: Sequence[Node]
