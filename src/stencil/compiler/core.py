"""Stencil Compiler core.

The Compiler lowers a Stencil AST into a Bytecode program for the VM.
It uses a mixin-based design, one mixin per family of nodes.

Design Principles:
1. **Linear code**: every construct lowers to jumps over flat instruction
   ranges; nested bodies (macros, blocks, recursive loops) become separate
   Code objects addressed by index
2. **Shared pools**: one deduplicated constant pool and one name table per
   template, shared by all of its Code objects
3. **O(1) dispatch**: dict lookup from node type name to handler
4. **Located instructions**: each instruction keeps the line and span of
   the node it came from, for runtime error reporting

Example:
    >>> from stencil.compiler import compile_template
    >>> bytecode = compile_template("Hello, {{ name }}!", name="greeting")
    >>> bytecode.root.instructions[:2]
    (EMIT_RAW, LOAD_NAME)

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, cast

from stencil.compiler.codegen import CodeBuilder, const_key
from stencil.compiler.expressions import ExpressionCompilationMixin
from stencil.compiler.instructions import Bytecode, Code, Opcode
from stencil.compiler.statements import StatementCompilationMixin
from stencil.environment.exceptions import CompileError
from stencil.lexer import Lexer, LexerConfig
from stencil.parser import Parser

if TYPE_CHECKING:
    from stencil.nodes import Node
    from stencil.nodes import Template as TemplateNode

logger = logging.getLogger(__name__)


class Compiler(
    ExpressionCompilationMixin,
    StatementCompilationMixin,
):
    """Compile a Stencil AST to Bytecode.

    Attributes:
        _name: Template name for error messages
        _filename: Source file path for error messages
        _source: Template source, kept on the Bytecode for error snippets
        _code: Builder of the Code object currently being emitted
        _codes: Code objects by index (None while still being built)
        _blocks: Block name -> code index
        _current_block: Name of the block being compiled, for super()

    Node Dispatch:
        Uses O(1) dict lookup for node type -> handler:
            ```python
            handler = self._node_dispatch[type(node).__name__]
            ```

    """

    __slots__ = (
        "_blocks",
        "_code",
        "_codes",
        "_constant_index",
        "_constants",
        "_current_block",
        "_expr_handlers",
        "_filename",
        "_name_index",
        "_names",
        "_node_dispatch",
        "_source",
        "_template_name",
    )

    def __init__(self, name: str | None = None, filename: str | None = None, source: str = ""):
        self._template_name = name
        self._filename = filename
        self._source = source
        self._constants: list[Any] = []
        self._constant_index: dict[Any, int] = {}
        self._names: list[str] = []
        self._name_index: dict[str, int] = {}
        self._codes: list[Code | None] = []
        self._blocks: dict[str, int] = {}
        self._current_block: str | None = None
        self._code = CodeBuilder(name or "<template>", "root")
        self._expr_handlers = self._expr_dispatch()
        self._node_dispatch: dict[str, Callable[[Any], None]] = {
            "Data": self._compile_data,
            "Raw": self._compile_raw,
            "Output": self._compile_output,
            "If": self._compile_if,
            "For": self._compile_for,
            "Break": self._compile_break,
            "Continue": self._compile_continue,
            "Set": self._compile_set,
            "SetBlock": self._compile_set_block,
            "With": self._compile_with,
            "Do": self._compile_do,
            "Block": self._compile_block,
            "Extends": self._compile_extends,
            "Include": self._compile_include,
            "Import": self._compile_import,
            "FromImport": self._compile_from_import,
            "Macro": self._compile_macro,
            "CallBlock": self._compile_call_block,
            "FilterBlock": self._compile_filter_block,
            "Autoescape": self._compile_autoescape,
        }

    def compile(self, node: TemplateNode) -> Bytecode:
        """Compile a Template node into Bytecode."""
        self._codes.append(None)
        try:
            self._compile_body(node.body)
        except RecursionError:
            raise self._error(
                "template is nested too deeply to compile",
                node,
                suggestion="Break long filter, attribute or operator chains into set statements",
            ) from None
        self._codes[0] = self._code.build()
        codes = cast("tuple[Code, ...]", tuple(self._codes))
        return Bytecode(
            name=self._template_name,
            source=self._source,
            constants=tuple(self._constants),
            names=tuple(self._names),
            codes=codes,
            blocks=MappingProxyType(dict(self._blocks)),
        )

    # ------------------------------------------------------------------
    # Emission helpers
    # ------------------------------------------------------------------

    def _compile_body(self, nodes: Sequence[Node]) -> None:
        for node in nodes:
            self._compile_node(node)

    def _compile_node(self, node: Node) -> None:
        handler = self._node_dispatch.get(type(node).__name__)
        if handler is None:
            raise self._error(f"cannot compile statement of type {type(node).__name__}", node)
        handler(node)

    def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int:
        return self._code.emit(op, arg, arg2, node)

    def _const(self, value: Any) -> int:
        """Intern ``value`` in the constant pool and return its index."""
        key = const_key(value)
        index = self._constant_index.get(key)
        if index is None:
            index = len(self._constants)
            self._constants.append(value)
            self._constant_index[key] = index
        return index

    def _name(self, name: str) -> int:
        """Intern an identifier in the name table and return its index."""
        index = self._name_index.get(name)
        if index is None:
            index = len(self._names)
            self._names.append(name)
            self._name_index[name] = index
        return index

    @contextmanager
    def _nested_code(
        self,
        kind: str,
        name: str,
        node: Node,
        params: tuple[str, ...] = (),
        optional: int = 0,
        scoped: bool = False,
    ) -> Iterator[int]:
        """Emit into a new Code object for the duration of the block.

        Yields the code index, reserved up front so the body can refer to
        it (recursive loops re-enter their own code).
        """
        index = len(self._codes)
        self._codes.append(None)
        outer_code, outer_block = self._code, self._current_block
        self._code = CodeBuilder(
            name, kind, params=params, optional=optional, scoped=scoped, lineno=node.lineno
        )
        if kind == "block":
            self._current_block = name
        elif kind != "loop":
            self._current_block = None
        try:
            yield index
            self._codes[index] = self._code.build()
        finally:
            self._code, self._current_block = outer_code, outer_block

    def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError:
        return CompileError(
            message,
            template_name=self._template_name,
            filename=self._filename,
            span=node.span,
            source=self._source,
            suggestion=suggestion,
        )


def compile_template(
    source: str,
    name: str | None = None,
    *,
    config: LexerConfig | None = None,
    filename: str | None = None,
) -> Bytecode:
    """Lex, parse and compile ``source`` into Bytecode.

    Raises:
        TemplateSyntaxError: The source does not lex or parse
        CompileError: The template is structurally invalid
    """
    lexer = Lexer(source, config, name=name)
    parser = Parser(lexer.tokenize(), name=name, filename=filename, source=lexer.source)
    ast = parser.parse()
    bytecode = Compiler(name=name, filename=filename, source=lexer.source).compile(ast)
    logger.debug(
        "Compiled template %r: %d code objects, %d instructions, %d constants",
        name or "<string>",
        len(bytecode.codes),
        bytecode.instruction_count(),
        len(bytecode.constants),
    )
    return bytecode
