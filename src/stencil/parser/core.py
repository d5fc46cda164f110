"""Stencil Parser core.

Transforms the lexer's token stream into a Stencil AST. Statement parsing
is recursive descent; expressions use precedence climbing. The Parser is
assembled from mixins, one per concern:

- TokenNavigationMixin: lazy lookahead over the token stream
- ExpressionParsingMixin: the expression grammar
- StatementParsingMixin: bodies, output tags and statement dispatch
- *BlockParsingMixin: one mixin per family of block statements

Example:
    >>> from stencil.lexer import Lexer
    >>> lexer = Lexer("Hello, {{ name }}!")
    >>> parser = Parser(lexer.tokenize(), source=lexer.source)
    >>> ast = parser.parse()
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable

from stencil._types import Token
from stencil.nodes import Template
from stencil.parser.blocks import (
    ControlFlowBlockParsingMixin,
    FunctionBlockParsingMixin,
    SpecialBlockParsingMixin,
    TemplateStructureBlockParsingMixin,
    VariableBlockParsingMixin,
)
from stencil.parser.expressions import ExpressionParsingMixin
from stencil.parser.statements import StatementParsingMixin
from stencil.parser.tokens import TokenNavigationMixin


class Parser(
    TokenNavigationMixin,
    ControlFlowBlockParsingMixin,
    TemplateStructureBlockParsingMixin,
    FunctionBlockParsingMixin,
    VariableBlockParsingMixin,
    SpecialBlockParsingMixin,
    StatementParsingMixin,
    ExpressionParsingMixin,
):
    """Recursive descent parser producing a Template node.

    Tokens may be any iterable ending in an EOF token; the lexer's
    generator is consumed lazily so lexical errors surface in source order
    alongside parse errors.

    Attributes:
        _name: Template name for error messages
        _filename: File path for error messages
        _source: Original source for error snippets
        _block_stack: Open blocks as (kind, opening token)

    """

    __slots__ = (
        "_block_stack",
        "_buffer",
        "_depth",
        "_filename",
        "_last",
        "_name",
        "_source",
        "_stream",
    )

    def __init__(
        self,
        tokens: Iterable[Token],
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
    ):
        self._stream = iter(tokens)
        self._buffer: deque[Token] = deque()
        self._last: Token | None = None
        self._depth = 0
        self._name = name
        self._filename = filename
        self._source = source
        self._block_stack: list[tuple[str, Token]] = []

    def parse(self) -> Template:
        """Parse the whole token stream into a Template node."""
        start = self._current
        try:
            body = self._parse_body()
        except RecursionError:
            raise self._error(
                "template is nested too deeply",
                suggestion="Split deeply nested expressions or blocks into macros",
            ) from None
        return Template(**self._loc(start), body=tuple(body))
