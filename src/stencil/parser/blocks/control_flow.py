"""Control flow block parsing for the Stencil parser.

Provides mixin for parsing if/elif/else, for loops, break and continue.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import Break, Continue, For, If
from stencil.parser.blocks.core import BlockStackMixin

if TYPE_CHECKING:
    from stencil.nodes import Expr, Node

_IF_BRANCH_END = frozenset({"elif", "else", "endif"})
_IF_END = frozenset({"endif"})
_FOR_BODY_END = frozenset({"else", "endfor"})
_FOR_END = frozenset({"endfor"})


class ControlFlowBlockParsingMixin(BlockStackMixin):
    """Mixin for parsing control flow blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks. Inherits block stack management from BlockStackMixin.

    """

    if TYPE_CHECKING:
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _skip_name(self, value: str) -> bool: ...
        def _loc(self, start: Token) -> dict: ...
        def _end_of_tag(self) -> Token: ...
        def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...
        def _parse_assign_target(self, allow_attr: bool = False) -> Expr: ...

    def _at_branch(self, keyword: str) -> bool:
        """True if the unconsumed tag in front of us is ``{% keyword``."""
        token = self._peek(1)
        return (
            self._current.type is TokenType.BLOCK_BEGIN
            and token.type is TokenType.NAME
            and token.value == keyword
        )

    def _parse_if(self) -> If:
        """Parse {% if %} ... {% elif %} ... {% else %} ... {% endif %}."""
        start = self._expect_name("if")
        test = self._parse_expression()
        self._end_of_tag()
        self._push_block("if", start)

        body = self._parse_body(_IF_BRANCH_END)
        elif_: list[tuple[Expr, tuple[Node, ...]]] = []
        else_: tuple[Node, ...] = ()

        while self._at_branch("elif"):
            self._advance()
            self._advance()
            condition = self._parse_expression()
            self._end_of_tag()
            elif_.append((condition, tuple(self._parse_body(_IF_BRANCH_END))))

        if self._at_branch("else"):
            self._advance()
            self._advance()
            self._end_of_tag()
            else_ = tuple(self._parse_body(_IF_END))

        self._consume_end_tag("if")
        return If(
            **self._loc(start),
            test=test,
            body=tuple(body),
            elif_=tuple(elif_),
            else_=else_,
        )

    def _parse_for(self) -> For:
        """Parse {% for target in iter [if cond] [recursive] %} ... {% endfor %}.

        Optional {% else %} runs when the loop made no iterations.
        """
        start = self._expect_name("for")
        target = self._parse_assign_target()
        self._expect_name("in")
        iterable = self._parse_expression(with_condexpr=False)
        test = None
        if self._skip_name("if"):
            test = self._parse_expression(with_condexpr=False)
        recursive = self._skip_name("recursive")
        self._end_of_tag()
        self._push_block("for", start)

        body = self._parse_body(_FOR_BODY_END)
        else_: tuple[Node, ...] = ()
        if self._at_branch("else"):
            self._advance()
            self._advance()
            self._end_of_tag()
            else_ = tuple(self._parse_body(_FOR_END))

        self._consume_end_tag("for")
        return For(
            **self._loc(start),
            target=target,
            iter=iterable,
            body=tuple(body),
            else_=else_,
            recursive=recursive,
            test=test,
        )

    def _parse_break(self) -> Break:
        start = self._expect_name("break")
        self._end_of_tag()
        return Break(**self._loc(start))

    def _parse_continue(self) -> Continue:
        start = self._expect_name("continue")
        self._end_of_tag()
        return Continue(**self._loc(start))
