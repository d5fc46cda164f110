"""Expression nodes for the Stencil AST."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal

from stencil.nodes.base import Node


@dataclass(frozen=True, slots=True)
class Expr(Node):
    """Base class for expressions."""


@dataclass(frozen=True, slots=True)
class Const(Expr):
    """Constant value: string, number, boolean, none."""

    value: Any


@dataclass(frozen=True, slots=True)
class Name(Expr):
    """Variable reference: {{ user }}"""

    name: str
    ctx: Literal["load", "store"] = "load"


@dataclass(frozen=True, slots=True)
class Tuple(Expr):
    """Tuple expression: (a, b, c)"""

    items: Sequence[Expr]
    ctx: Literal["load", "store"] = "load"


@dataclass(frozen=True, slots=True)
class List(Expr):
    """List expression: [a, b, c]"""

    items: Sequence[Expr]


@dataclass(frozen=True, slots=True)
class Dict(Expr):
    """Dict expression: {a: b, c: d}"""

    keys: Sequence[Expr]
    values: Sequence[Expr]


@dataclass(frozen=True, slots=True)
class Getattr(Expr):
    """Attribute access: obj.attr"""

    obj: Expr
    attr: str


@dataclass(frozen=True, slots=True)
class Getitem(Expr):
    """Subscript access: obj[key]"""

    obj: Expr
    key: Expr


@dataclass(frozen=True, slots=True)
class Slice(Expr):
    """Slice expression: [start:stop:step]"""

    start: Expr | None
    stop: Expr | None
    step: Expr | None


@dataclass(frozen=True, slots=True)
class FuncCall(Expr):
    """Function call: func(args, name=value)"""

    func: Expr
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()


@dataclass(frozen=True, slots=True)
class Filter(Expr):
    """Filter application: expr | filter(args)"""

    value: Expr
    name: str
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()


@dataclass(frozen=True, slots=True)
class Test(Expr):
    """Test application: expr is [not] test(args)"""

    value: Expr
    name: str
    args: Sequence[Expr] = ()
    kwargs: Sequence[tuple[str, Expr]] = ()
    negated: bool = False


@dataclass(frozen=True, slots=True)
class BinOp(Expr):
    """Binary operation: left op right"""

    op: Literal["+", "-", "*", "/", "//", "%", "**"]
    left: Expr
    right: Expr


@dataclass(frozen=True, slots=True)
class UnaryOp(Expr):
    """Unary operation: -x, +x, not x"""

    op: Literal["-", "+", "not"]
    operand: Expr


@dataclass(frozen=True, slots=True)
class Compare(Expr):
    """One pairwise comparison: left op right.

    ``a < b < c`` parses as ``Compare(Compare(a, '<', b), '<', c)``.
    """

    left: Expr
    op: Literal["==", "!=", "<", "<=", ">", ">=", "in", "not in"]
    right: Expr


@dataclass(frozen=True, slots=True)
class BoolOp(Expr):
    """Short-circuit boolean operation: a and b, a or b"""

    op: Literal["and", "or"]
    values: Sequence[Expr]


@dataclass(frozen=True, slots=True)
class CondExpr(Expr):
    """Conditional expression: a if cond else b (else is optional)"""

    test: Expr
    if_true: Expr
    if_false: Expr | None


@dataclass(frozen=True, slots=True)
class Concat(Expr):
    """String concatenation: a ~ b ~ c"""

    nodes: Sequence[Expr]


@dataclass(frozen=True, slots=True)
class CaptureValue(Expr):
    """Placeholder for the captured body of a filter block or set block.

    Sits at the innermost position of a filter chain; the compiler leaves
    the captured string on the stack instead of evaluating anything.
    """
