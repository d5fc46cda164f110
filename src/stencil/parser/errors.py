"""Parser error handling for Stencil.

Provides ParseError with source context and suggestions.
"""

from __future__ import annotations

from stencil._types import Token
from stencil.environment.exceptions import ErrorKind, TemplateSyntaxError


class ParseError(TemplateSyntaxError):
    """Grammar violation, located at the offending token.

    Displays errors with a source snippet and a caret, matching the format
    used by the lexer.
    """

    kind = ErrorKind.PARSE_ERROR
    label = "Parse Error"

    def __init__(
        self,
        message: str,
        token: Token,
        source: str | None = None,
        filename: str | None = None,
        suggestion: str | None = None,
        template_name: str | None = None,
    ):
        self.token = token
        super().__init__(
            message,
            template_name=template_name,
            filename=filename,
            span=token.span,
            source=source,
            suggestion=suggestion,
        )
