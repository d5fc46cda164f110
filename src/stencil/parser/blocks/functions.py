"""Macro block parsing for the Stencil parser.

Provides mixin for parsing macro definitions and call blocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import CallBlock, FuncCall, Macro
from stencil.parser.blocks.core import BlockStackMixin

if TYPE_CHECKING:
    from stencil.nodes import Expr, Node

_MACRO_END = frozenset({"endmacro"})
_CALL_END = frozenset({"endcall"})


class FunctionBlockParsingMixin(BlockStackMixin):
    """Mixin for parsing macro and call blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks. Inherits block stack management from BlockStackMixin.

    """

    if TYPE_CHECKING:
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _loc(self, start: Token) -> dict: ...
        def _end_of_tag(self) -> Token: ...
        def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...

    def _parse_macro(self) -> Macro:
        """Parse {% macro name(a, b=default) %} ... {% endmacro %}."""
        start = self._expect_name("macro")
        name = self._expect(TokenType.NAME, "macro name").value
        params, defaults = self._parse_params()
        self._end_of_tag()
        self._push_block("macro", start)
        body = self._parse_body(_MACRO_END)
        self._consume_end_tag("macro")
        return Macro(**self._loc(start), name=name, params=params, defaults=defaults, body=tuple(body))

    def _parse_call_block(self) -> CallBlock:
        """Parse {% call[(params)] callee(args) %} ... {% endcall %}.

        The body becomes a ``caller`` macro passed to the callee.
        """
        start = self._expect_name("call")
        params: tuple[str, ...] = ()
        defaults: tuple[Expr, ...] = ()
        if self._match(TokenType.LPAREN):
            params, defaults = self._parse_params()
        call_token = self._current
        call = self._parse_expression()
        if not isinstance(call, FuncCall):
            raise self._error("expected a call after 'call'", call_token,
                              suggestion="Write {% call macro_name(args) %}")
        self._end_of_tag()
        self._push_block("call", start)
        body = self._parse_body(_CALL_END)
        self._consume_end_tag("call")
        return CallBlock(
            **self._loc(start), call=call, params=params, defaults=defaults, body=tuple(body)
        )

    def _parse_params(self) -> tuple[tuple[str, ...], tuple[Expr, ...]]:
        """Parse ``(a, b=1)``; parameters with defaults must come last."""
        self._expect(TokenType.LPAREN, "'(' to start the parameter list")
        params: list[str] = []
        defaults: list[Expr] = []
        while not self._match(TokenType.RPAREN):
            if params:
                self._expect(TokenType.COMMA, "',' or ')'")
                if self._match(TokenType.RPAREN):
                    break
            token = self._expect(TokenType.NAME, "parameter name")
            params.append(token.value)
            if self._match(TokenType.ASSIGN):
                self._advance()
                defaults.append(self._parse_expression())
            elif defaults:
                raise self._error(
                    f"parameter '{token.value}' without a default follows a parameter with one",
                    token,
                )
        self._expect(TokenType.RPAREN)
        return tuple(params), tuple(defaults)
