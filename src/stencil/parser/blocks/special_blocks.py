"""Special block parsing for the Stencil parser.

Provides mixin for parsing filter and autoescape blocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token
from stencil.nodes import Autoescape, CaptureValue, FilterBlock
from stencil.parser.blocks.core import BlockStackMixin

if TYPE_CHECKING:
    from stencil.nodes import Expr, Node

_FILTER_END = frozenset({"endfilter"})
_AUTOESCAPE_END = frozenset({"endautoescape"})


class SpecialBlockParsingMixin(BlockStackMixin):
    """Mixin for parsing filter and autoescape blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks. Inherits block stack management from BlockStackMixin.

    """

    if TYPE_CHECKING:
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _loc(self, start: Token) -> dict: ...
        def _end_of_tag(self) -> Token: ...
        def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...
        def _parse_filter_chain(self, value: Expr, start: Token) -> Expr: ...

    def _parse_filter_block(self) -> FilterBlock:
        """Parse {% filter name(args) | name %} ... {% endfilter %}."""
        start = self._expect_name("filter")
        chain = self._parse_filter_chain(CaptureValue(**self._loc(start)), start)
        self._end_of_tag()
        self._push_block("filter", start)
        body = self._parse_body(_FILTER_END)
        self._consume_end_tag("filter")
        return FilterBlock(**self._loc(start), filter=chain, body=tuple(body))

    def _parse_autoescape(self) -> Autoescape:
        """Parse {% autoescape expr %} ... {% endautoescape %}.

        ``expr`` evaluates to a bool or a mode name ("html", "json", "none").
        """
        start = self._expect_name("autoescape")
        mode = self._parse_expression()
        self._end_of_tag()
        self._push_block("autoescape", start)
        body = self._parse_body(_AUTOESCAPE_END)
        self._consume_end_tag("autoescape")
        return Autoescape(**self._loc(start), mode=mode, body=tuple(body))
