"""Basic statement compilation for the Stencil compiler.

Provides mixin for compiling output, template data, raw blocks and do.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import Opcode

if TYPE_CHECKING:
    from stencil.nodes import Data, Do, Expr, Output, Raw


class BasicStatementMixin:
    """Mixin for compiling basic output statements.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _const(self, value: Any) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...

    def _compile_data(self, node: Data | Raw) -> None:
        if node.value:
            self._emit(Opcode.EMIT_RAW, self._const(node.value), node=node)

    _compile_raw = _compile_data

    def _compile_output(self, node: Output) -> None:
        self._compile_expr(node.expr)
        self._emit(Opcode.EMIT, node=node)

    def _compile_do(self, node: Do) -> None:
        self._compile_expr(node.expr)
        self._emit(Opcode.POP, node=node)
