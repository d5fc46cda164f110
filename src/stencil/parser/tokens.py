"""Token navigation for the Stencil parser.

The parser pulls tokens lazily from the lexer through a small lookahead
buffer, so lexing and parsing happen in one pass over the source.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from typing import TYPE_CHECKING

from stencil._types import Span, Token, TokenType
from stencil.parser.errors import ParseError

# Combined expression and block nesting. One expression level takes about a
# dozen interpreter frames to parse.
MAX_NESTING = 48


class TokenNavigationMixin:
    """Mixin for token stream navigation.

    Host attributes are declared via inline TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _stream: Iterator[Token]
        _buffer: deque[Token]
        _last: Token | None
        _depth: int
        _source: str | None
        _filename: str | None
        _name: str | None

    @property
    def _current(self) -> Token:
        """Get current token."""
        return self._peek(0)

    def _peek(self, offset: int = 0) -> Token:
        """Look ahead without consuming; past the end this is EOF."""
        buffer = self._buffer
        while len(buffer) <= offset:
            token = next(self._stream, None)
            if token is None:
                return buffer[-1] if buffer else self._eof()
            buffer.append(token)
        return buffer[offset]

    def _eof(self) -> Token:
        """EOF token for a stream that ended without one.

        A lexer generator that died mid-template (for example on a
        RecursionError) stops yielding; parsing then sees the end of input
        right after the last consumed token.
        """
        if self._last is not None:
            end = self._last.span.end_offset
            span = Span(end, end, self._last.lineno, self._last.col_offset)
        else:
            span = Span(0, 0, 1, 0)
        token = Token(TokenType.EOF, "", span)
        self._buffer.append(token)
        return token

    def _descend(self) -> None:
        """Enter one level of expression or block nesting."""
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise self._error(
                f"template is nested too deeply (more than {MAX_NESTING} levels)",
                suggestion="Split deeply nested expressions or blocks into macros",
            )

    def _ascend(self) -> None:
        self._depth -= 1

    def _advance(self) -> Token:
        """Consume and return the current token. EOF is never consumed."""
        token = self._peek(0)
        if token.type is not TokenType.EOF:
            self._buffer.popleft()
        self._last = token
        return token

    def _expect(self, token_type: TokenType, what: str | None = None) -> Token:
        """Consume a token of ``token_type`` or raise ParseError."""
        if self._current.type is not token_type:
            raise self._error(
                f"expected {what or token_type.value}, found {self._current.describe()}",
            )
        return self._advance()

    def _match(self, *types: TokenType) -> bool:
        """Check if current token matches any of the given types."""
        return self._current.type in types

    def _at_name(self, *values: str) -> bool:
        """Check for a NAME token (keywords are names) with one of ``values``."""
        token = self._current
        return token.type is TokenType.NAME and token.value in values

    def _skip_name(self, value: str) -> bool:
        """Consume the keyword ``value`` if present."""
        if self._at_name(value):
            self._advance()
            return True
        return False

    def _expect_name(self, value: str | None = None) -> Token:
        """Consume a NAME token, optionally a specific keyword."""
        token = self._current
        if token.type is not TokenType.NAME or (value is not None and token.value != value):
            what = f"'{value}'" if value is not None else "name"
            raise self._error(f"expected {what}, found {token.describe()}")
        return self._advance()

    def _span_from(self, start: Token) -> Span:
        """Span from ``start`` through the last consumed token."""
        last = self._last if self._last is not None else start
        return start.span.to(last.span)

    def _loc(self, start: Token) -> dict:
        """Location keyword arguments for a node starting at ``start``."""
        return {
            "lineno": start.lineno,
            "col_offset": start.col_offset,
            "span": self._span_from(start),
        }

    def _error(
        self,
        message: str,
        token: Token | None = None,
        suggestion: str | None = None,
    ) -> ParseError:
        """Create a ParseError with source context."""
        return ParseError(
            message=message,
            token=token or self._current,
            source=self._source,
            filename=self._filename,
            suggestion=suggestion,
            template_name=self._name,
        )
