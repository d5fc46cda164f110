"""Control flow statement compilation for the Stencil compiler.

Provides mixin for compiling if, for, break and continue.

A for loop lowers to::

        <iterable>
        PUSH_LOOP flags          ; opens the loop scope, binds ``loop``
    top:
        ITERATE exit             ; next item, or jump to exit
        <store target>
        <body>
        JUMP top
    exit:
        POP_LOOP 1               ; closes the scope, pushes "iterated?"
        JUMP_IF_TRUE end
        <else body>
    end:

An inline ``if`` filter runs first as a separate pass collecting accepted
items into a list, so ``loop.index``/``loop.length`` count accepted items
only. Recursive loops move all of this into a nested Code object that
``loop(...)`` re-enters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.codegen import LoopLabels
from stencil.compiler.instructions import LOOP_BIND_VAR, LOOP_RECURSIVE, Opcode

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.environment.exceptions import CompileError
    from stencil.nodes import Break, Continue, Expr, For, If, Node


class ControlFlowMixin:
    """Mixin for compiling control flow statements.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder
        _current_block: str | None

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...
        def _compile_store(self, target: Expr) -> None: ...
        def _nested_code(
            self, kind: str, name: str, node: Node, params: tuple[str, ...] = (), scoped: bool = False
        ) -> Iterator[int]: ...
        def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError: ...

    def _compile_if(self, node: If) -> None:
        branches = [(node.test, node.body), *node.elif_]
        end_jumps = []
        for test, body in branches:
            self._compile_expr(test)
            to_next = self._emit(Opcode.JUMP_IF_FALSE, node=test)
            self._compile_body(body)
            end_jumps.append(self._emit(Opcode.JUMP, node=node))
            self._code.patch(to_next)
        self._compile_body(node.else_)
        for index in end_jumps:
            self._code.patch(index)

    def _compile_for(self, node: For) -> None:
        self._compile_expr(node.iter)
        if not node.recursive:
            if node.test is not None:
                self._compile_loop_filter(node)
            self._compile_loop(node, LOOP_BIND_VAR)
            return
        with self._nested_code("loop", "loop", node) as index:
            if node.test is not None:
                self._compile_loop_filter(node)
            self._compile_loop(node, LOOP_BIND_VAR | LOOP_RECURSIVE)
        self._emit(Opcode.RECURSIVE_LOOP, index, node=node)

    def _compile_loop_filter(self, node: For) -> None:
        """Replace the iterable on the stack with a list of accepted items."""
        code = self._code
        self._emit(Opcode.BUILD_LIST, 0, node=node)
        self._emit(Opcode.SWAP, node=node)
        self._emit(Opcode.PUSH_LOOP, 0, node=node)
        top = self._emit(Opcode.ITERATE, node=node)
        self._emit(Opcode.DUP, node=node)
        self._compile_store(node.target)
        self._compile_expr(node.test)
        to_skip = self._emit(Opcode.JUMP_IF_FALSE, node=node.test)
        self._emit(Opcode.LIST_APPEND, node=node)
        self._emit(Opcode.JUMP, top, node=node)
        code.patch(to_skip)
        self._emit(Opcode.POP, node=node)
        self._emit(Opcode.JUMP, top, node=node)
        code.patch(top)
        self._emit(Opcode.POP_LOOP, 0, node=node)

    def _compile_loop(self, node: For, flags: int) -> None:
        code = self._code
        self._emit(Opcode.PUSH_LOOP, flags, node=node)
        top = self._emit(Opcode.ITERATE, node=node)
        self._compile_store(node.target)
        labels = LoopLabels(continue_target=top, open_depth=len(code.open))
        code.loops.append(labels)
        try:
            self._compile_body(node.body)
        finally:
            code.loops.pop()
        self._emit(Opcode.JUMP, top, node=node)
        code.patch(top)
        for index in labels.break_jumps:
            code.patch(index)
        if not node.else_:
            self._emit(Opcode.POP_LOOP, 0, node=node)
            return
        self._emit(Opcode.POP_LOOP, 1, node=node)
        to_end = self._emit(Opcode.JUMP_IF_TRUE, node=node)
        self._compile_body(node.else_)
        code.patch(to_end)

    def _innermost_loop(self, node: Node, keyword: str) -> LoopLabels:
        if not self._code.loops:
            raise self._error(f"'{keyword}' outside of a loop", node)
        return self._code.loops[-1]

    def _compile_break(self, node: Break) -> None:
        labels = self._innermost_loop(node, "break")
        self._code.unwind(labels.open_depth, node)
        labels.break_jumps.append(self._emit(Opcode.JUMP, node=node))

    def _compile_continue(self, node: Continue) -> None:
        labels = self._innermost_loop(node, "continue")
        self._code.unwind(labels.open_depth, node)
        self._emit(Opcode.JUMP, labels.continue_target, node=node)
