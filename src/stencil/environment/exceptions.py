"""Exceptions for the Stencil template engine.

Exception Hierarchy:
TemplateError (base)
├── TemplateSyntaxError           # Lexing/parsing failed
│   ├── LexerError                # (stencil.lexer)
│   └── ParseError                # (stencil.parser.errors)
├── CompileError                  # Structurally invalid template
├── TemplateNotFoundError         # Loader could not resolve a name
└── TemplateRuntimeError          # Render-time failure
    ├── UndefinedError            # Strict access to a missing value
    ├── UnknownCallableError      # Unknown function, filter or test
    ├── InvalidArgumentsError     # Arity/keyword mismatch
    ├── InvalidOperationError     # Type mismatch, bad operand
    ├── NotIterableError          # Iterating a non-iterable
    ├── TemplateRecursionError    # recursion_limit exceeded
    └── OutOfFuelError            # Instruction budget exhausted

Every error carries an ``ErrorKind``, a message, and (once known) the
template name and ``Span`` of the failing construct. Runtime errors are
raised without a location by the value layer and annotated by the VM with
the span of the executing instruction, so ``str(exc)`` is built lazily.

Example:
    ```
    Runtime Error: unable to apply '+' to string and number
      Location: page.html:3
       |
    >  3 | {{ title + 1 }}
       |    ^
    ```
"""

from __future__ import annotations

from dataclasses import dataclass
from difflib import get_close_matches
from enum import Enum
from typing import TYPE_CHECKING, ClassVar

from stencil.environment import terminal

if TYPE_CHECKING:
    from stencil._types import Span


class ErrorKind(Enum):
    """Searchable error codes.

    Format: S-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (parser), CMP (compiler), RUN (runtime),
    TPL (template loading).
    """

    LEX_ERROR = "S-LEX-001"
    PARSE_ERROR = "S-PAR-001"
    COMPILE_ERROR = "S-CMP-001"
    UNDEFINED_ERROR = "S-RUN-001"
    UNKNOWN_CALLABLE = "S-RUN-002"
    INVALID_ARGUMENTS = "S-RUN-003"
    INVALID_OPERATION = "S-RUN-004"
    NOT_ITERABLE = "S-RUN-005"
    RECURSION_ERROR = "S-RUN-006"
    OUT_OF_FUEL = "S-RUN-007"
    TEMPLATE_NOT_FOUND = "S-TPL-001"

    @property
    def category(self) -> str:
        """Error category (e.g. 'runtime', 'lexer')."""
        prefix = self.value.split("-")[1]
        return {
            "LEX": "lexer",
            "PAR": "parser",
            "CMP": "compiler",
            "RUN": "runtime",
            "TPL": "template",
        }.get(prefix, "unknown")


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


def format_template_stack(stack: list[tuple[str, int | None]] | None) -> str:
    """Format the include/import chain that led to an error.

    Example:
        >>> print(format_template_stack([("base.html", 42), ("nav.html", 12)]))
        Template stack:
          • base.html:42
          • nav.html:12
    """
    if not stack:
        return ""
    lines = [terminal.dim_text("Template stack:")]
    for template_name, lineno in stack:
        where = template_name if lineno is None else f"{template_name}:{lineno}"
        lines.append(f"  • {terminal.location(where)}")
    return "\n".join(lines)


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source lines around an error, ready for display.

    Attributes:
        lines: (line_number, line_content) pairs around the error.
        error_line: 1-based line where the error occurred.
        column: Optional 0-based column for the caret.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        """Rust-style diagnostic block with the error line highlighted."""
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            is_error = lineno == self.error_line
            parts.append(terminal.format_source_line(lineno, content, is_error=is_error))
            if is_error and self.column is not None:
                caret = " " * (self.column + 1) + "^"
                parts.append(f"{terminal.dim_text('   |')} {terminal.error_line(caret)}")
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet | None:
    """Build a SourceSnippet from template source.

    Returns None when ``error_line`` is outside the source.
    """
    all_lines = source.splitlines()
    if not 0 < error_line <= len(all_lines):
        return None
    start = max(0, error_line - 1 - context_lines)
    end = min(len(all_lines), error_line + context_lines)
    lines = tuple((i + 1, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all template errors.

    Attributes:
        kind: ErrorKind identifying the failure class.
        message: Error description without location decoration.
        template_name: Name of the template the error occurred in.
        span: Source span of the failing construct.
        source: Template source, used for snippets.
        suggestion: Optional actionable hint.
        template_stack: (template_name, lineno) pairs of the include chain.
    """

    kind: ClassVar[ErrorKind] = ErrorKind.INVALID_OPERATION
    label: ClassVar[str] = "Error"

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        span: Span | None = None,
        source: str | None = None,
        suggestion: str | None = None,
        template_stack: list[tuple[str, int | None]] | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.span = span
        self.source = source
        self.suggestion = suggestion
        self.template_stack = template_stack or []
        super().__init__(message)

    @property
    def code(self) -> ErrorKind:
        return self.kind

    @property
    def lineno(self) -> int | None:
        return self.span.lineno if self.span is not None else None

    @property
    def col_offset(self) -> int | None:
        return self.span.col_offset if self.span is not None else None

    def set_location(
        self,
        template_name: str | None,
        span: Span | None,
        source: str | None = None,
        template_stack: list[tuple[str, int | None]] | None = None,
    ) -> None:
        """Fill in location details that are still unknown.

        Called while the error propagates out of the VM; the innermost
        (most precise) location wins.
        """
        if self.span is None and span is not None:
            self.span = span
            if self.source is None:
                self.source = source
            if self.template_name is None:
                self.template_name = template_name
        if self.template_name is None:
            self.template_name = template_name
        if not self.template_stack and template_stack:
            self.template_stack = list(template_stack)

    @property
    def location(self) -> str:
        where = self.template_name or "<template>"
        if self.lineno is not None:
            where += f":{self.lineno}"
        return where

    @property
    def source_snippet(self) -> SourceSnippet | None:
        if self.source is None or self.span is None:
            return None
        return build_source_snippet(self.source, self.span.lineno, column=self.span.col_offset)

    def __str__(self) -> str:
        return self._format_message()

    def _format_message(self) -> str:
        parts = [f"{self.label}: {self.message}"]
        if self.template_name or self.span is not None:
            parts.append(f"  Location: {terminal.location(self.location)}")
        snippet = self.source_snippet
        if snippet is not None:
            parts.append(snippet.format())
        if self.template_stack:
            parts.append("")
            parts.append(format_template_stack(self.template_stack))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)

    def format_compact(self) -> str:
        """Structured summary without Python traceback noise.

        Format::

            S-RUN-001: Undefined variable 'usernme'
              Location: base.html:42
               |
            > 42 | <h1>{{ usernme }}</h1>
               |
              Hint: Did you mean 'username'?
        """
        parts = [terminal.format_error_header(self.kind.value, self.message)]
        parts.append(f"  Location: {terminal.location(self.location)}")
        snippet = self.source_snippet
        if snippet is not None:
            parts.append(snippet.format())
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Hint:')} {self.suggestion}")
        return "\n".join(parts)


class TemplateNotFoundError(TemplateError):
    """Template not found by any configured loader.

    Example:
        >>> env.get_template("nonexistent.html")
        TemplateNotFoundError: Template 'nonexistent.html' not found in: templates/
    """

    kind = ErrorKind.TEMPLATE_NOT_FOUND
    label = "Template Not Found"

    def _format_message(self) -> str:
        return self.message


class _SourceError(TemplateError):
    """Error raised before rendering, pointing at a token in the source.

    The message points at ``filename`` (or the template name) with the
    line and column of the offending token, followed by the source line
    and a caret.
    """

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        filename: str | None = None,
        span: Span | None = None,
        source: str | None = None,
        suggestion: str | None = None,
    ):
        self.filename = filename
        super().__init__(
            message,
            template_name=template_name,
            span=span,
            source=source,
            suggestion=suggestion,
        )

    @property
    def location(self) -> str:
        where = self.filename or self.template_name or "<template>"
        if self.span is not None:
            where += f":{self.span.lineno}:{self.span.col_offset}"
        return where

    def _format_message(self) -> str:
        parts = [f"{self.label}: {self.message}", f"  --> {self.location}"]
        if self.source is not None and self.span is not None:
            lines = self.source.splitlines()
            if 0 < self.span.lineno <= len(lines):
                parts.append("   |")
                parts.append(f"{self.span.lineno:>3} | {lines[self.span.lineno - 1]}")
                parts.append(f"   | {' ' * self.span.col_offset}^")
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "\n".join(parts)


class TemplateSyntaxError(_SourceError):
    """Lexing or parsing failed."""

    kind = ErrorKind.PARSE_ERROR
    label = "Syntax Error"


class CompileError(_SourceError):
    """Template parsed but is structurally invalid.

    Raised for duplicate block names, ``extends`` inside a macro or block,
    ``super()`` outside a block, ``break``/``continue`` outside a loop and
    duplicate macro parameters.
    """

    kind = ErrorKind.COMPILE_ERROR
    label = "Compile Error"


# ---------------------------------------------------------------------------
# Runtime
# ---------------------------------------------------------------------------


class TemplateRuntimeError(TemplateError):
    """Render-time error.

    Output Format:
        ```
        Runtime Error: unable to apply '+' to string and number
          Location: article.html:15
           |
        > 15 | {{ title + 1 }}
           |    ^
          Hint: Convert with the int or string filter first
        ```
    """

    kind = ErrorKind.INVALID_OPERATION
    label = "Runtime Error"


class InvalidOperationError(TemplateRuntimeError):
    """An operator or operation was applied to values that do not support it."""

    kind = ErrorKind.INVALID_OPERATION


class UndefinedError(TemplateRuntimeError):
    """Access to a missing name, attribute or item that cannot stay undefined.

    If ``available_names`` is provided a "Did you mean?" suggestion is
    added when a close match exists.

    Example:
        >>> env = Environment(undefined="strict")
        >>> env.from_string("{{ undefined_var }}").render()
        UndefinedError: Undefined variable 'undefined_var'
    """

    kind = ErrorKind.UNDEFINED_ERROR
    label = "Undefined Error"

    def __init__(
        self,
        message: str,
        *,
        name: str | None = None,
        available_names: frozenset[str] | None = None,
        **kwargs,
    ):
        self.name = name
        self._available_names = available_names
        if kwargs.get("suggestion") is None and name is not None:
            kwargs["suggestion"] = self._suggest(name, available_names)
        super().__init__(message, **kwargs)

    @classmethod
    def for_variable(
        cls, name: str, available_names: frozenset[str] | None = None
    ) -> UndefinedError:
        return cls(f"Undefined variable '{name}'", name=name, available_names=available_names)

    @staticmethod
    def _suggest(name: str, available_names: frozenset[str] | None) -> str:
        if available_names:
            matches = get_close_matches(name, available_names, n=1, cutoff=0.6)
            if matches:
                return f"Did you mean '{terminal.suggestion(matches[0])}'?"
        return f"Use {{{{ {name} | default('') }}}} for optional variables"


class UnknownCallableError(TemplateRuntimeError):
    """A function, filter or test name could not be resolved."""

    kind = ErrorKind.UNKNOWN_CALLABLE


class InvalidArgumentsError(TemplateRuntimeError):
    """Arguments do not fit the callee's parameters."""

    kind = ErrorKind.INVALID_ARGUMENTS


class NotIterableError(TemplateRuntimeError):
    """A value that cannot be iterated was used as an iterable."""

    kind = ErrorKind.NOT_ITERABLE


class TemplateRecursionError(TemplateRuntimeError):
    """The configured ``recursion_limit`` was exceeded.

    Guards macro calls, recursive loops, includes, imports and extends chains.
    """

    kind = ErrorKind.RECURSION_ERROR


class OutOfFuelError(TemplateRuntimeError):
    """The render ran out of its instruction budget (``fuel``)."""

    kind = ErrorKind.OUT_OF_FUEL


__all__ = [
    "CompileError",
    "ErrorKind",
    "InvalidArgumentsError",
    "InvalidOperationError",
    "NotIterableError",
    "OutOfFuelError",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRecursionError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UndefinedError",
    "UnknownCallableError",
    "build_source_snippet",
    "format_template_stack",
]
