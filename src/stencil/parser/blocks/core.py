"""Block stack management for the Stencil parser.

Tracks open block statements so mismatched or missing terminators are
reported against the tag that opened them. Every block accepts both its
specific terminator (``endif``) and the generic ``end``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stencil._types import Token, TokenType

if TYPE_CHECKING:
    from stencil.parser.errors import ParseError


class BlockStackMixin:
    """Mixin for block stack management.

    Host attributes are declared via inline TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _block_stack: list[tuple[str, Token]]

        @property
        def _current(self) -> Token: ...
        def _advance(self) -> Token: ...
        def _peek(self, offset: int = 0) -> Token: ...
        def _expect(self, token_type: TokenType, what: str | None = None) -> Token: ...
        def _descend(self) -> None: ...
        def _ascend(self) -> None: ...
        def _error(
            self,
            message: str,
            token: Token | None = None,
            suggestion: str | None = None,
        ) -> ParseError: ...

    def _push_block(self, kind: str, token: Token) -> None:
        """Record that a ``kind`` block opened at ``token``."""
        self._descend()
        self._block_stack.append((kind, token))

    def _consume_end_tag(self, kind: str, name: str | None = None) -> None:
        """Consume ``{% end<kind> [name] %}`` or ``{% end %}`` and pop the block.

        The body parser stops in front of the tag, so the current token is
        its BLOCK_BEGIN.
        """
        self._expect(TokenType.BLOCK_BEGIN)
        token = self._current
        if token.type is not TokenType.NAME or token.value not in (f"end{kind}", "end"):
            raise self._error(f"expected 'end{kind}', found {token.describe()}")
        self._advance()
        if kind == "block" and self._current.type is TokenType.NAME:
            closing = self._advance()
            if name is not None and closing.value != name:
                raise self._error(
                    f"mismatched block name: expected '{name}', found '{closing.value}'",
                    closing,
                )
        self._expect(TokenType.BLOCK_END)
        self._block_stack.pop()
        self._ascend()

    def _unexpected_terminator(self, token: Token) -> ParseError:
        """Error for a terminator (endX/elif/else) that closes nothing open here."""
        if self._block_stack:
            kind, opened = self._block_stack[-1]
            return self._error(
                f"unexpected '{token.value}', expected 'end{kind}' "
                f"(the '{kind}' block opened on line {opened.lineno})",
                token,
            )
        return self._error(f"unexpected '{token.value}' without an open block", token)

    def _unclosed_block(self) -> ParseError:
        kind, opened = self._block_stack[-1]
        return self._error(
            f"unexpected end of template, '{kind}' block opened on line "
            f"{opened.lineno} is never closed",
            suggestion=f"Add {{% end{kind} %}} to close the block",
        )
