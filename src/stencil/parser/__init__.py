"""Stencil Parser: transforms tokens into the Stencil AST.

Example:
    >>> from stencil.lexer import Lexer
    >>> from stencil.parser import Parser
    >>> lexer = Lexer("{{ name | upper }}")
    >>> ast = Parser(lexer.tokenize(), source=lexer.source).parse()

"""

from stencil.parser.core import Parser
from stencil.parser.errors import ParseError

__all__ = ["ParseError", "Parser"]
