"""Variable block parsing for the Stencil parser.

Provides mixin for parsing set, set blocks, with and do, plus assignment
targets shared with for loops.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import CaptureValue, Do, Getattr, Name, Set, SetBlock, Tuple, With
from stencil.parser.blocks.core import BlockStackMixin

if TYPE_CHECKING:
    from stencil.nodes import Expr, Node

_SET_END = frozenset({"endset"})
_WITH_END = frozenset({"endwith"})
_NOT_ASSIGNABLE = frozenset({"true", "false", "none", "True", "False", "None",
                             "and", "or", "not", "in", "is", "if", "else"})


class VariableBlockParsingMixin(BlockStackMixin):
    """Mixin for parsing variable blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks. Inherits block stack management from BlockStackMixin.

    """

    if TYPE_CHECKING:
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _at_name(self, *values: str) -> bool: ...
        def _loc(self, start: Token) -> dict: ...
        def _end_of_tag(self) -> Token: ...
        def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...
        def _parse_filter_chain(self, value: Expr, start: Token) -> Expr: ...

    def _parse_set(self) -> Set | SetBlock:
        """Parse {% set target = value %} or {% set name [| filters] %}...{% endset %}."""
        start = self._expect_name("set")
        if self._current.type is TokenType.NAME and self._peek(1).type in (
            TokenType.BLOCK_END,
            TokenType.PIPE,
        ):
            return self._parse_set_block(start)
        target = self._parse_assign_target(allow_attr=True)
        self._expect(TokenType.ASSIGN, "'='")
        value_start = self._current
        value = self._parse_expression()
        if self._match(TokenType.COMMA):
            # {% set a, b = 1, 2 %}
            items = [value]
            while self._match(TokenType.COMMA):
                self._advance()
                if self._match(TokenType.BLOCK_END):
                    break
                items.append(self._parse_expression())
            value = Tuple(**self._loc(value_start), items=tuple(items))
        self._end_of_tag()
        return Set(**self._loc(start), target=target, value=value)

    def _parse_set_block(self, start: Token) -> SetBlock:
        name = self._assign_name()
        filter_expr = None
        if self._match(TokenType.PIPE):
            pipe = self._advance()
            filter_expr = self._parse_filter_chain(CaptureValue(**self._loc(pipe)), pipe)
        self._end_of_tag()
        self._push_block("set", start)
        body = self._parse_body(_SET_END)
        self._consume_end_tag("set")
        return SetBlock(**self._loc(start), target=name, body=tuple(body), filter=filter_expr)

    def _parse_with(self) -> With:
        """Parse {% with a = x, b = y %} ... {% endwith %}."""
        start = self._expect_name("with")
        targets: list[tuple[str, Expr]] = []
        while not self._match(TokenType.BLOCK_END):
            if targets:
                self._expect(TokenType.COMMA, "',' or '%}'")
            name = self._assign_name()
            self._expect(TokenType.ASSIGN, "'='")
            targets.append((name, self._parse_expression()))
        self._end_of_tag()
        self._push_block("with", start)
        body = self._parse_body(_WITH_END)
        self._consume_end_tag("with")
        return With(**self._loc(start), targets=tuple(targets), body=tuple(body))

    def _parse_do(self) -> Do:
        start = self._expect_name("do")
        expr = self._parse_expression()
        self._end_of_tag()
        return Do(**self._loc(start), expr=expr)

    # ------------------------------------------------------------------
    # Assignment targets
    # ------------------------------------------------------------------

    def _parse_assign_target(self, allow_attr: bool = False) -> Expr:
        """Parse ``name``, ``a, b``, ``(a, b)`` or (with ``allow_attr``) ``ns.attr``."""
        start = self._current
        if allow_attr and start.type is TokenType.NAME and self._peek(1).type is TokenType.DOT:
            name = self._assign_name()
            obj = Name(**self._loc(start), name=name)
            self._expect(TokenType.DOT)
            attr = self._expect(TokenType.NAME, "attribute name").value
            return Getattr(**self._loc(start), obj=obj, attr=attr)

        target = self._parse_target_atom()
        if not self._match(TokenType.COMMA):
            return target
        items = [target]
        while self._match(TokenType.COMMA):
            self._advance()
            if self._at_name("in") or self._match(TokenType.ASSIGN):
                break
            items.append(self._parse_target_atom())
        return Tuple(**self._loc(start), items=tuple(items), ctx="store")

    def _parse_target_atom(self) -> Expr:
        start = self._current
        if not self._match(TokenType.LPAREN):
            name = self._assign_name()
            return Name(**self._loc(start), name=name, ctx="store")
        self._advance()
        items = [self._parse_target_atom()]
        while self._match(TokenType.COMMA):
            self._advance()
            if self._match(TokenType.RPAREN):
                break
            items.append(self._parse_target_atom())
        self._expect(TokenType.RPAREN)
        return Tuple(**self._loc(start), items=tuple(items), ctx="store")

    def _assign_name(self) -> str:
        token = self._current
        if token.type is not TokenType.NAME or token.value in _NOT_ASSIGNABLE:
            raise self._error(f"invalid assignment target {token.describe()}")
        self._advance()
        return token.value
