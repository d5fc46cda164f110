"""Statement parsing for the Stencil parser.

Parses template bodies (data, output, comments, statements) and dispatches
``{% keyword ... %}`` tags to the block parsing mixins.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import Data, Node, Output, Raw

if TYPE_CHECKING:
    from stencil.nodes import Expr
    from stencil.parser.errors import ParseError

_TERMINATORS = frozenset({"elif", "else"})


class StatementParsingMixin:
    """Mixin for parsing template bodies and dispatching statements.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _block_stack: list[tuple[str, Token]]

        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _peek(self, offset: int = 0) -> Token: ...
        def _expect(self, token_type: TokenType, what: str | None = None) -> Token: ...
        def _loc(self, start: Token) -> dict: ...
        def _error(
            self,
            message: str,
            token: Token | None = None,
            suggestion: str | None = None,
        ) -> ParseError: ...
        def _unexpected_terminator(self, token: Token) -> ParseError: ...
        def _unclosed_block(self) -> ParseError: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...

        # Block parsers (from the blocks mixins)
        def _parse_if(self) -> Node: ...
        def _parse_for(self) -> Node: ...
        def _parse_break(self) -> Node: ...
        def _parse_continue(self) -> Node: ...
        def _parse_block_tag(self) -> Node: ...
        def _parse_extends(self) -> Node: ...
        def _parse_include(self) -> Node: ...
        def _parse_import(self) -> Node: ...
        def _parse_from_import(self) -> Node: ...
        def _parse_macro(self) -> Node: ...
        def _parse_call_block(self) -> Node: ...
        def _parse_set(self) -> Node: ...
        def _parse_with(self) -> Node: ...
        def _parse_do(self) -> Node: ...
        def _parse_filter_block(self) -> Node: ...
        def _parse_autoescape(self) -> Node: ...

    def _statement_dispatch(self) -> dict[str, Callable[[], Node]]:
        return {
            "if": self._parse_if,
            "for": self._parse_for,
            "break": self._parse_break,
            "continue": self._parse_continue,
            "block": self._parse_block_tag,
            "extends": self._parse_extends,
            "include": self._parse_include,
            "import": self._parse_import,
            "from": self._parse_from_import,
            "macro": self._parse_macro,
            "call": self._parse_call_block,
            "set": self._parse_set,
            "with": self._parse_with,
            "do": self._parse_do,
            "filter": self._parse_filter_block,
            "autoescape": self._parse_autoescape,
        }

    def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]:
        """Parse nodes until a tag named in ``end_keywords`` (or ``end``).

        The terminating tag is left unconsumed; the caller decides what it
        means. At the top level (no keywords) parsing stops at EOF.
        """
        body: list[Node] = []
        while True:
            token = self._current
            ttype = token.type
            if ttype is TokenType.EOF:
                if self._block_stack:
                    raise self._unclosed_block()
                return body
            if ttype is TokenType.DATA:
                self._advance()
                body.append(Data(**self._loc(token), value=token.value))
            elif ttype is TokenType.RAW:
                self._advance()
                body.append(Raw(**self._loc(token), value=token.value))
            elif ttype is TokenType.COMMENT_BEGIN:
                self._skip_comment()
            elif ttype is TokenType.VARIABLE_BEGIN:
                body.append(self._parse_output())
            elif ttype is TokenType.BLOCK_BEGIN:
                keyword = self._peek(1)
                if (
                    end_keywords
                    and keyword.type is TokenType.NAME
                    and (keyword.value in end_keywords or keyword.value == "end")
                ):
                    return body
                body.append(self._parse_statement())
            else:
                raise self._error(f"unexpected {token.describe()}")

    def _parse_statement(self) -> Node:
        """Parse one ``{% keyword ... %}`` statement including its body."""
        self._expect(TokenType.BLOCK_BEGIN)
        token = self._current
        if token.type is not TokenType.NAME:
            raise self._error(f"expected statement name, found {token.describe()}")
        handler = self._statement_dispatch().get(token.value)
        if handler is not None:
            return handler()
        if token.value.startswith("end") or token.value in _TERMINATORS:
            raise self._unexpected_terminator(token)
        raise self._error(
            f"unknown statement '{token.value}'",
            token,
            suggestion="Known statements: " + ", ".join(sorted(self._statement_dispatch())),
        )

    def _parse_output(self) -> Output:
        """Parse ``{{ expr }}``."""
        start = self._expect(TokenType.VARIABLE_BEGIN)
        if self._match(TokenType.VARIABLE_END):
            raise self._error(
                "expected an expression, found '}}'", suggestion="Remove the empty {{ }}"
            )
        expr = self._parse_expression()
        self._expect(TokenType.VARIABLE_END)
        return Output(**self._loc(start), expr=expr)

    def _skip_comment(self) -> None:
        self._expect(TokenType.COMMENT_BEGIN)
        self._expect(TokenType.COMMENT_END)

    def _end_of_tag(self) -> Token:
        """Consume the closing ``%}`` of the current statement tag."""
        return self._expect(TokenType.BLOCK_END)
