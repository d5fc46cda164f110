"""With-block compilation for the Stencil compiler.

Provides mixin for compiling {% with %} scoped bindings. The values are
evaluated in the enclosing scope, so ``{% with x = x + 1 %}`` reads the
outer ``x``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import Opcode

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.nodes import Expr, Node, With


class WithBlockMixin:
    """Mixin for compiling with blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _name(self, name: str) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...

    def _compile_with(self, node: With) -> None:
        for _, value in node.targets:
            self._compile_expr(value)
        self._begin_scope(node)
        for name, _ in reversed(node.targets):
            self._emit(Opcode.STORE_NAME, self._name(name), node=node)
        self._compile_body(node.body)
        self._end_scope(node)

    def _begin_scope(self, node: Node) -> None:
        self._emit(Opcode.BEGIN_SCOPE, node=node)
        self._code.open.append("scope")

    def _end_scope(self, node: Node) -> None:
        self._code.open.pop()
        self._emit(Opcode.END_SCOPE, node=node)
