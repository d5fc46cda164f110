"""Macro compilation for the Stencil compiler.

Provides mixin for compiling macro definitions and call blocks.

A macro body becomes its own Code object. It starts with a prologue that
evaluates defaults for parameters the caller left out::

        IS_BOUND p
        JUMP_IF_TRUE skip
        <default for p>
        STORE_NAME p
    skip:

so defaults are evaluated at call time, inside the macro's scope, and may
refer to earlier parameters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import Opcode

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.environment.exceptions import CompileError
    from stencil.nodes import CallBlock, Expr, FuncCall, Macro, Node


class FunctionCompilationMixin:
    """Mixin for compiling macros and call blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _name(self, name: str) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...
        def _compile_call(self, node: FuncCall, extra: Any = None) -> None: ...
        def _nested_code(
            self,
            kind: str,
            name: str,
            node: Node,
            params: tuple[str, ...] = (),
            optional: int = 0,
            scoped: bool = False,
        ) -> Iterator[int]: ...
        def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError: ...

    def _compile_macro(self, node: Macro) -> None:
        index = self._compile_callable_body("macro", node.name, node)
        self._emit(Opcode.MAKE_MACRO, index, node=node)
        self._emit(Opcode.STORE_NAME, self._name(node.name), node=node)

    def _compile_call_block(self, node: CallBlock) -> None:
        """{% call macro(args) %}body{% endcall %} passes the body as ``caller``."""
        index = self._compile_callable_body("caller", "caller", node)

        def make_caller() -> None:
            self._emit(Opcode.MAKE_MACRO, index, node=node)

        self._compile_call(node.call, extra=("caller", make_caller))
        self._emit(Opcode.EMIT, node=node)

    def _compile_callable_body(self, kind: str, name: str, node: Macro | CallBlock) -> int:
        params = tuple(node.params)
        seen: set[str] = set()
        for param in params:
            if param in seen:
                raise self._error(f"duplicate parameter '{param}' in {kind} '{name}'", node)
            seen.add(param)

        optional = len(node.defaults)
        with self._nested_code(kind, name, node, params=params, optional=optional) as index:
            defaulted = params[len(params) - len(node.defaults):]
            for param, default in zip(defaulted, node.defaults, strict=True):
                name_index = self._name(param)
                self._emit(Opcode.IS_BOUND, name_index, node=default)
                to_skip = self._emit(Opcode.JUMP_IF_TRUE, node=default)
                self._compile_expr(default)
                self._emit(Opcode.STORE_NAME, name_index, node=default)
                self._code.patch(to_skip)
            self._compile_body(node.body)
        return index
