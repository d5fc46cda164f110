"""Template structure compilation for the Stencil compiler.

Provides mixin for compiling block, extends, include, import and
from-import.

Every ``{% block %}`` body becomes a Code object registered by name in
``Bytecode.blocks``; in place of the block the template emits CALL_BLOCK,
so at render time the most derived definition in the extends chain runs
and ``super()`` reaches the next one up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import INCLUDE_IGNORE_MISSING, INCLUDE_WITH_CONTEXT, Opcode

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from stencil.compiler.codegen import CodeBuilder
    from stencil.environment.exceptions import CompileError
    from stencil.nodes import Block, Expr, Extends, FromImport, Import, Include, Node


class TemplateStructureMixin:
    """Mixin for compiling template structure statements.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder
        _blocks: dict[str, int]

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _name(self, name: str) -> int: ...
        def _compile_expr(self, node: Expr, probe: bool = False) -> None: ...
        def _compile_body(self, nodes: Sequence[Node]) -> None: ...
        def _nested_code(
            self, kind: str, name: str, node: Node, params: tuple[str, ...] = (), scoped: bool = False
        ) -> Iterator[int]: ...
        def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError: ...

    def _compile_block(self, node: Block) -> None:
        if node.name in self._blocks:
            raise self._error(
                f"block '{node.name}' defined twice",
                node,
                suggestion="Block names must be unique within a template",
            )
        with self._nested_code("block", node.name, node, scoped=node.scoped) as index:
            self._blocks[node.name] = index
            self._compile_body(node.body)
        self._emit(Opcode.CALL_BLOCK, self._name(node.name), node=node)

    def _compile_extends(self, node: Extends) -> None:
        if self._code.kind != "root":
            raise self._error(
                f"'extends' cannot be used inside a {self._code.kind}",
                node,
                suggestion="Put {% extends %} at the top level of the template",
            )
        self._compile_expr(node.template)
        self._emit(Opcode.EXTENDS, node=node)

    def _compile_include(self, node: Include) -> None:
        flags = 0
        if node.ignore_missing:
            flags |= INCLUDE_IGNORE_MISSING
        if node.with_context:
            flags |= INCLUDE_WITH_CONTEXT
        self._compile_expr(node.template)
        self._emit(Opcode.INCLUDE, flags, node=node)

    def _compile_import(self, node: Import) -> None:
        self._compile_expr(node.template)
        self._emit(Opcode.IMPORT, int(node.with_context), node=node)
        self._emit(Opcode.STORE_NAME, self._name(node.target), node=node)

    def _compile_from_import(self, node: FromImport) -> None:
        self._compile_expr(node.template)
        self._emit(Opcode.IMPORT, int(node.with_context), node=node)
        for name, alias in node.names:
            self._emit(Opcode.DUP, node=node)
            self._emit(Opcode.IMPORT_NAME, self._name(name), node=node)
            self._emit(Opcode.STORE_NAME, self._name(alias or name), node=node)
        self._emit(Opcode.POP, node=node)
