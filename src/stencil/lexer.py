"""Lexer for Stencil templates.

Splits template source into a lazy stream of position-tagged tokens in a
single forward pass. Four modes are interleaved:

- template data (everything outside delimiters)
- expressions inside ``{{ ... }}``
- statements inside ``{% ... %}``
- comments ``{# ... #}`` (reduced to a begin/end token pair)

Whitespace control is resolved here, so the parser never sees it:

- ``{%-``, ``{{-``, ``{#-`` strip all whitespace before the tag
- ``-%}``, ``-}}``, ``-#}`` strip all whitespace after the tag
- ``trim_blocks`` drops the first newline after a block or comment tag
- ``lstrip_blocks`` drops spaces and tabs before a block or comment tag
  that starts a line
- ``{%+`` and ``+%}`` disable ``lstrip_blocks``/``trim_blocks`` for one tag

``{% raw %}...{% endraw %}`` is emitted as a single RAW token.

Example:
    >>> [t.type.name for t in tokenize("Hi {{ name }}")]
    ['DATA', 'VARIABLE_BEGIN', 'NAME', 'VARIABLE_END', 'EOF']
"""

from __future__ import annotations

import re
from bisect import bisect_right
from collections.abc import Iterator
from dataclasses import dataclass

from stencil._types import Span, Token, TokenType
from stencil.environment.exceptions import ErrorKind, TemplateSyntaxError

_BEGIN_RE = re.compile(r"\{([{%#])")
_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")
_NUMBER_RE = re.compile(
    r"[0-9](?:_?[0-9])*(?P<frac>\.[0-9](?:_?[0-9])*)?(?P<exp>[eE][+-]?[0-9](?:_?[0-9])*)?"
)
# Item access after a dot: ``x.0.1`` is two lookups, not a float
_INTEGER_RE = re.compile(r"[0-9](?:_?[0-9])*")
_WHITESPACE_RE = re.compile(r"\s+")
_RAW_BEGIN_RE = re.compile(r"\{%([-+]?)\s*raw\s*([-+]?)%\}")
_RAW_END_RE = re.compile(r"\{%([-+]?)\s*endraw\s*([-+]?)%\}")
_HEX4_RE = re.compile(r"[0-9a-fA-F]{4}")

_OPERATORS_2 = {
    "**": TokenType.POW,
    "//": TokenType.FLOORDIV,
    "==": TokenType.EQ,
    "!=": TokenType.NE,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
}

_OPERATORS_1 = {
    "+": TokenType.ADD,
    "-": TokenType.SUB,
    "*": TokenType.MUL,
    "/": TokenType.DIV,
    "%": TokenType.MOD,
    "~": TokenType.TILDE,
    "|": TokenType.PIPE,
    ".": TokenType.DOT,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    "=": TokenType.ASSIGN,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
}

_CLOSING = {")": "(", "]": "[", "}": "{"}

_SIMPLE_ESCAPES = {
    '"': '"',
    "\\": "\\",
    "/": "/",
    "'": "'",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}

# Pending whitespace handling for the next data segment
_TRIM_NONE = 0
_TRIM_ALL = 1
_TRIM_NEWLINE = 2


class LexerError(TemplateSyntaxError):
    """Malformed token in template source."""

    kind = ErrorKind.LEX_ERROR
    label = "Lexer Error"


@dataclass(frozen=True, slots=True)
class LexerConfig:
    """Whitespace options consumed by the lexer."""

    trim_blocks: bool = False
    lstrip_blocks: bool = False
    keep_trailing_newline: bool = False


def unescape(value: str) -> str:
    """Decode the escape sequences of a quoted string literal.

    Supports ``\\\\ \\' \\" \\/ \\b \\f \\n \\r \\t`` and ``\\uXXXX``; a
    surrogate pair written as two ``\\u`` escapes is combined into one
    character.

    Raises:
        ValueError: On an unknown escape, a bad ``\\u`` sequence or an
            unpaired surrogate.
    """
    if "\\" not in value:
        return value
    out: list[str] = []
    high = 0
    i = 0
    n = len(value)
    while i < n:
        char = value[i]
        if char != "\\":
            if high:
                raise ValueError("unpaired surrogate")
            out.append(char)
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError("dangling backslash")
        escape = value[i + 1]
        if escape == "u":
            digits = value[i + 2 : i + 6]
            if not _HEX4_RE.fullmatch(digits):
                raise ValueError(f"invalid unicode escape '\\u{digits}'")
            code = int(digits, 16)
            i += 6
            if 0xD800 <= code <= 0xDBFF:
                if high:
                    raise ValueError("unpaired surrogate")
                high = code
            elif 0xDC00 <= code <= 0xDFFF:
                if not high:
                    raise ValueError("unpaired surrogate")
                out.append(chr(0x10000 + ((high - 0xD800) << 10) + (code - 0xDC00)))
                high = 0
            else:
                if high:
                    raise ValueError("unpaired surrogate")
                out.append(chr(code))
            continue
        simple = _SIMPLE_ESCAPES.get(escape)
        if simple is None or high:
            raise ValueError(f"invalid escape sequence '\\{escape}'")
        out.append(simple)
        i += 2
    if high:
        raise ValueError("unpaired surrogate")
    return "".join(out)


def _strip_line_indent(data: str, at_line_start: bool) -> str:
    """Drop trailing spaces/tabs when they are the only thing on the last line."""
    newline = data.rfind("\n")
    if newline == -1 and not at_line_start:
        return data
    tail = data[newline + 1 :]
    if tail.strip(" \t"):
        return data
    return data[: newline + 1]


def _apply_trim(data: str, mode: int) -> str:
    if mode == _TRIM_ALL:
        return data.lstrip()
    if mode == _TRIM_NEWLINE:
        if data.startswith("\r\n"):
            return data[2:]
        if data.startswith("\n"):
            return data[1:]
    return data


class Lexer:
    """Tokenizer for one template source.

    The token stream is produced lazily by :meth:`tokenize`; errors are
    raised when the offending position is reached.
    """

    __slots__ = ("_config", "_line_starts", "_name", "_source")

    def __init__(
        self,
        source: str,
        config: LexerConfig | None = None,
        name: str | None = None,
    ):
        self._config = config or LexerConfig()
        if not self._config.keep_trailing_newline:
            if source.endswith("\r\n"):
                source = source[:-2]
            elif source.endswith("\n"):
                source = source[:-1]
        self._source = source
        self._name = name
        self._line_starts = [0]
        self._line_starts.extend(m.end() for m in re.finditer("\n", source))

    @property
    def source(self) -> str:
        return self._source

    def span(self, start: int, end: int) -> Span:
        """Span for source offsets ``[start, end)``."""
        line = bisect_right(self._line_starts, start)
        return Span(start, end, line, start - self._line_starts[line - 1])

    def tokenize(self) -> Iterator[Token]:
        """Yield tokens in source order, ending with EOF."""
        source = self._source
        length = len(source)
        lstrip_blocks = self._config.lstrip_blocks
        pos = 0
        pending = _TRIM_NONE

        while pos < length:
            match = _BEGIN_RE.search(source, pos)
            start = match.start() if match else length
            data = source[pos:start]
            if match:
                kind = match.group(1)
                marker = source[start + 2 : start + 3]
                if marker == "-":
                    data = data.rstrip()
                elif lstrip_blocks and kind != "{" and marker != "+":
                    at_line_start = pos == 0 or source[pos - 1] == "\n"
                    data = _strip_line_indent(data, at_line_start)
            data = _apply_trim(data, pending)
            pending = _TRIM_NONE
            if data:
                yield Token(TokenType.DATA, data, self.span(pos, start))
            if match is None:
                break

            if kind == "#":
                pos, pending = yield from self._lex_comment(start)
            elif kind == "%" and (raw := _RAW_BEGIN_RE.match(source, start)):
                pos, pending = yield from self._lex_raw(raw)
            else:
                pos, pending = yield from self._lex_tag(start, kind)

        yield Token(TokenType.EOF, "", self.span(length, length))

    # ------------------------------------------------------------------
    # Delimited regions
    # ------------------------------------------------------------------

    def _lex_comment(self, start: int) -> Iterator[Token]:
        source = self._source
        end = source.find("#}", start + 2)
        if end == -1:
            raise self._error("unclosed comment", start, len(source),
                              suggestion="Add '#}' to close the comment")
        yield Token(TokenType.COMMENT_BEGIN, "{#", self.span(start, start + 2))
        yield Token(TokenType.COMMENT_END, "#}", self.span(end, end + 2))
        marker = source[end - 1] if end - 1 > start + 1 else ""
        return end + 2, self._trailing_trim(marker, block=True)

    def _lex_raw(self, begin: re.Match[str]) -> Iterator[Token]:
        source = self._source
        content_start = begin.end()
        end = _RAW_END_RE.search(source, content_start)
        if end is None:
            raise self._error("unclosed raw block", begin.start(), len(source),
                              suggestion="Add {% endraw %} to close the raw block")
        content = source[content_start : end.start()]
        content = _apply_trim(content, self._trailing_trim(begin.group(2), block=True))
        if end.group(1) == "-":
            content = content.rstrip()
        elif self._config.lstrip_blocks and end.group(1) != "+":
            content = _strip_line_indent(content, False)
        yield Token(TokenType.RAW, content, self.span(begin.start(), end.end()))
        return end.end(), self._trailing_trim(end.group(2), block=True)

    def _lex_tag(self, start: int, kind: str) -> Iterator[Token]:
        source = self._source
        length = len(source)
        block = kind == "%"
        if block:
            begin_type, end_type, end_text = TokenType.BLOCK_BEGIN, TokenType.BLOCK_END, "%}"
        else:
            begin_type, end_type, end_text = TokenType.VARIABLE_BEGIN, TokenType.VARIABLE_END, "}}"

        pos = start + 2
        marker = source[pos : pos + 1]
        if marker == "-" or (block and marker == "+"):
            pos += 1
        yield Token(begin_type, source[start:pos], self.span(start, pos))

        brackets: list[str] = []
        after_dot = False
        while True:
            ws = _WHITESPACE_RE.match(source, pos)
            if ws:
                pos = ws.end()
            if pos >= length:
                what = "block tag" if block else "variable tag"
                raise self._error(
                    f"unclosed {what}, expected '{end_text}'",
                    start,
                    length,
                    suggestion=f"Add '{end_text}' to close the tag",
                )
            if not brackets:
                trim = ""
                if source.startswith(end_text, pos):
                    end_pos = pos + 2
                elif source.startswith("-" + end_text, pos):
                    trim, end_pos = "-", pos + 3
                elif block and source.startswith("+%}", pos):
                    trim, end_pos = "+", pos + 3
                else:
                    end_pos = -1
                if end_pos != -1:
                    yield Token(end_type, source[pos:end_pos], self.span(pos, end_pos))
                    return end_pos, self._trailing_trim(trim, block=block)
            token = self._lex_operand(pos, brackets, after_dot)
            after_dot = token.type is TokenType.DOT
            pos = token.span.end_offset
            yield token

    def _trailing_trim(self, marker: str, *, block: bool) -> int:
        if marker == "-":
            return _TRIM_ALL
        if block and marker != "+" and self._config.trim_blocks:
            return _TRIM_NEWLINE
        return _TRIM_NONE

    # ------------------------------------------------------------------
    # Tokens inside tags
    # ------------------------------------------------------------------

    def _lex_operand(self, pos: int, brackets: list[str], after_dot: bool = False) -> Token:
        source = self._source
        char = source[pos]

        if match := _NAME_RE.match(source, pos):
            return Token(TokenType.NAME, match.group(), self.span(pos, match.end()))

        if "0" <= char <= "9":
            match = (_INTEGER_RE if after_dot else _NUMBER_RE).match(source, pos)
            assert match is not None
            text = match.group().replace("_", "")
            if not after_dot and (match.group("frac") or match.group("exp")):
                return Token(TokenType.FLOAT, float(text), self.span(pos, match.end()))
            return Token(TokenType.INTEGER, int(text), self.span(pos, match.end()))

        if char in "'\"":
            return self._lex_string(pos)

        two = source[pos : pos + 2]
        if two in _OPERATORS_2:
            return Token(_OPERATORS_2[two], two, self.span(pos, pos + 2))

        token_type = _OPERATORS_1.get(char)
        if token_type is None:
            raise self._error(f"unexpected character {char!r}", pos, pos + 1)
        if char in "([{":
            brackets.append(char)
        elif char in _CLOSING:
            if not brackets or brackets[-1] != _CLOSING[char]:
                raise self._error(f"unexpected {char!r}", pos, pos + 1)
            brackets.pop()
        return Token(token_type, char, self.span(pos, pos + 1))

    def _lex_string(self, pos: int) -> Token:
        source = self._source
        length = len(source)
        quote = source[pos]
        i = pos + 1
        while i < length:
            char = source[i]
            if char == "\\":
                i += 2
                continue
            if char == quote:
                break
            i += 1
        else:
            raise self._error("unterminated string", pos, length,
                              suggestion=f"Close the string with {quote}")
        try:
            value = unescape(source[pos + 1 : i])
        except ValueError as exc:
            raise self._error(str(exc), pos, i + 1) from None
        return Token(TokenType.STRING, value, self.span(pos, i + 1))

    def _error(
        self, message: str, start: int, end: int, suggestion: str | None = None
    ) -> LexerError:
        return LexerError(
            message,
            template_name=self._name,
            span=self.span(start, end),
            source=self._source,
            suggestion=suggestion,
        )


def tokenize(
    source: str, config: LexerConfig | None = None, name: str | None = None
) -> list[Token]:
    """Tokenize ``source`` eagerly."""
    return list(Lexer(source, config, name).tokenize())


__all__ = ["Lexer", "LexerConfig", "LexerError", "tokenize", "unescape"]
