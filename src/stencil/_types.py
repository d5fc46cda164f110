"""Token and source-span types shared by the lexer, parser and compiler."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True, slots=True)
class Span:
    """Location of a construct in template source.

    Attributes:
        offset: Character offset of the first character.
        end_offset: Character offset one past the last character.
        lineno: 1-based line of the first character.
        col_offset: 0-based column of the first character.
    """

    offset: int
    end_offset: int
    lineno: int
    col_offset: int

    def to(self, other: Span) -> Span:
        """Span starting here and ending where ``other`` ends."""
        return Span(self.offset, max(self.end_offset, other.end_offset), self.lineno, self.col_offset)

    def __len__(self) -> int:
        return self.end_offset - self.offset


class TokenType(Enum):
    """Token kinds. The value doubles as the description used in errors."""

    # Template structure
    DATA = "template data"
    RAW = "raw data"
    VARIABLE_BEGIN = "'{{'"
    VARIABLE_END = "'}}'"
    BLOCK_BEGIN = "'{%'"
    BLOCK_END = "'%}'"
    COMMENT_BEGIN = "'{#'"
    COMMENT_END = "'#}'"

    # Literals and identifiers
    NAME = "name"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"

    # Operators
    ADD = "'+'"
    SUB = "'-'"
    MUL = "'*'"
    DIV = "'/'"
    FLOORDIV = "'//'"
    MOD = "'%'"
    POW = "'**'"
    TILDE = "'~'"
    PIPE = "'|'"
    DOT = "'.'"
    COMMA = "','"
    COLON = "':'"
    ASSIGN = "'='"
    EQ = "'=='"
    NE = "'!='"
    LT = "'<'"
    LE = "'<='"
    GT = "'>'"
    GE = "'>='"
    LPAREN = "'('"
    RPAREN = "')'"
    LBRACKET = "'['"
    RBRACKET = "']'"
    LBRACE = "'{'"
    RBRACE = "'}'"

    EOF = "end of template"


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token.

    ``value`` holds the source text for structural and operator tokens, the
    decoded string for STRING and the parsed number for INTEGER/FLOAT.
    """

    type: TokenType
    value: Any
    span: Span

    @property
    def lineno(self) -> int:
        return self.span.lineno

    @property
    def col_offset(self) -> int:
        return self.span.col_offset

    def describe(self) -> str:
        """Human-readable description for error messages."""
        if self.type is TokenType.NAME:
            return f"name '{self.value}'"
        if self.type in (TokenType.INTEGER, TokenType.FLOAT):
            return f"number {self.value!r}"
        if self.type is TokenType.STRING:
            return f"string {self.value!r}"
        return self.type.value

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"
