"""Template structure block parsing for the Stencil parser.

Provides mixin for parsing block, extends, include, import and from-import.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token, TokenType
from stencil.nodes import Block, Extends, FromImport, Import, Include
from stencil.parser.blocks.core import BlockStackMixin

if TYPE_CHECKING:
    from stencil.nodes import Expr, Node

_BLOCK_END = frozenset({"endblock"})


class TemplateStructureBlockParsingMixin(BlockStackMixin):
    """Mixin for parsing template structure blocks.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks. Inherits block stack management from BlockStackMixin.

    """

    if TYPE_CHECKING:
        def _expect_name(self, value: str | None = None) -> Token: ...
        def _at_name(self, *values: str) -> bool: ...
        def _skip_name(self, value: str) -> bool: ...
        def _match(self, *types: TokenType) -> bool: ...
        def _loc(self, start: Token) -> dict: ...
        def _end_of_tag(self) -> Token: ...
        def _parse_body(self, end_keywords: frozenset[str] = frozenset()) -> list[Node]: ...
        def _parse_expression(self, with_condexpr: bool = True) -> Expr: ...

    def _parse_block_tag(self) -> Block:
        """Parse {% block name [scoped] %} ... {% endblock [name] %}."""
        start = self._expect_name("block")
        name = self._expect(TokenType.NAME, "block name").value
        scoped = self._skip_name("scoped")
        self._end_of_tag()
        self._push_block("block", start)
        body = self._parse_body(_BLOCK_END)
        self._consume_end_tag("block", name)
        return Block(**self._loc(start), name=name, body=tuple(body), scoped=scoped)

    def _parse_extends(self) -> Extends:
        start = self._expect_name("extends")
        template = self._parse_expression()
        self._end_of_tag()
        return Extends(**self._loc(start), template=template)

    def _parse_include(self) -> Include:
        """Parse {% include expr [ignore missing] [with context|without context] %}.

        Modifiers may appear in either order.
        """
        start = self._expect_name("include")
        template = self._parse_expression()
        with_context = True
        ignore_missing = False
        while not self._match(TokenType.BLOCK_END):
            if self._skip_name("ignore"):
                self._expect_name("missing")
                ignore_missing = True
            elif self._at_name("with", "without"):
                with_context = self._parse_context_modifier()
            else:
                raise self._error(
                    f"unexpected {self._current.describe()} in include",
                    suggestion="Use 'ignore missing', 'with context' or 'without context'",
                )
        self._end_of_tag()
        return Include(
            **self._loc(start),
            template=template,
            with_context=with_context,
            ignore_missing=ignore_missing,
        )

    def _parse_import(self) -> Import:
        """Parse {% import expr as name [with context] %}."""
        start = self._expect_name("import")
        template = self._parse_expression()
        self._expect_name("as")
        target = self._expect(TokenType.NAME, "import alias").value
        with_context = False
        if self._at_name("with", "without"):
            with_context = self._parse_context_modifier()
        self._end_of_tag()
        return Import(**self._loc(start), template=template, target=target, with_context=with_context)

    def _parse_from_import(self) -> FromImport:
        """Parse {% from expr import a [as b], c [with context] %}."""
        start = self._expect_name("from")
        template = self._parse_expression()
        self._expect_name("import")
        names: list[tuple[str, str | None]] = []
        with_context = False
        while not self._match(TokenType.BLOCK_END):
            if self._at_name("with", "without") and self._peek(1).value == "context":
                with_context = self._parse_context_modifier()
                break
            if names:
                self._expect(TokenType.COMMA, "',' or '%}'")
                if self._match(TokenType.BLOCK_END):
                    break
            token = self._expect(TokenType.NAME, "name to import")
            if token.value.startswith("_"):
                raise self._error(
                    f"cannot import '{token.value}': names starting with an underscore are private",
                    token,
                )
            alias = None
            if self._skip_name("as"):
                alias = self._expect(TokenType.NAME, "import alias").value
            names.append((token.value, alias))
        if not names:
            raise self._error("expected at least one name to import")
        self._end_of_tag()
        return FromImport(
            **self._loc(start), template=template, names=tuple(names), with_context=with_context
        )

    def _parse_context_modifier(self) -> bool:
        """Parse ``with context`` / ``without context``."""
        with_context = self._advance().value == "with"
        self._expect_name("context")
        return with_context
