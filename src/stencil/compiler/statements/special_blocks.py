"""Special block compilation for the Stencil compiler.

Provides mixin for compiling filter and autoescape blocks, plus the
output capture shared with set blocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import Opcode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.nodes import Autoescape, Expr, FilterBlock, Node


class SpecialBlockMixin:
    """Mixin for compiling filter and autoescape blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...

    def _compile_captured(self, body: Sequence[Node], node: Node) -> None:
        """Render ``body`` into a string left on the stack."""
        self._emit(Opcode.BEGIN_CAPTURE, node=node)
        self._code.open.append("capture")
        self._compile_body(body)
        self._code.open.pop()
        self._emit(Opcode.END_CAPTURE, 0, node=node)

    def _compile_filter_block(self, node: FilterBlock) -> None:
        self._compile_captured(node.body, node)
        self._compile_expr(node.filter)
        self._emit(Opcode.EMIT, node=node)

    def _compile_autoescape(self, node: Autoescape) -> None:
        self._compile_expr(node.mode)
        self._emit(Opcode.PUSH_AUTOESCAPE, node=node)
        self._code.open.append("autoescape")
        self._compile_body(node.body)
        self._code.open.pop()
        self._emit(Opcode.POP_AUTOESCAPE, node=node)
