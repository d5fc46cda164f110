"""Variable assignment compilation for the Stencil compiler.

Provides mixin for compiling set, set blocks and assignment targets.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import Opcode
from stencil.nodes import Getattr, Name, Tuple

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.environment.exceptions import CompileError
    from stencil.nodes import Expr, Node, Set, SetBlock


class VariableAssignmentMixin:
    """Mixin for compiling variable assignments.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _name(self, name: str) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...
        def _compile_captured(self, body: Sequence[Node], node: Node) -> None: ...
        def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError: ...

    def _compile_set(self, node: Set) -> None:
        target = node.target
        if isinstance(target, Getattr):
            # {% set ns.attr = value %} assigns into a namespace object
            self._compile_expr(target.obj)
            self._compile_expr(node.value)
            self._emit(Opcode.SET_ATTR, self._name(target.attr), node=node)
            return
        self._compile_expr(node.value)
        self._compile_store(target)

    def _compile_set_block(self, node: SetBlock) -> None:
        self._compile_captured(node.body, node)
        if node.filter is not None:
            self._compile_expr(node.filter)
        self._emit(Opcode.STORE_NAME, self._name(node.target), node=node)

    def _compile_store(self, target: Expr) -> None:
        """Pop the top of stack into ``target``, unpacking tuples."""
        if isinstance(target, Name):
            self._emit(Opcode.STORE_NAME, self._name(target.name), node=target)
        elif isinstance(target, Tuple):
            self._emit(Opcode.UNPACK, len(target.items), node=target)
            for item in target.items:
                self._compile_store(item)
        else:
            raise self._error(f"cannot assign to {type(target).__name__}", target)
