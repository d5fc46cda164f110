"""Stencil: a sandboxed Jinja-style template engine with a bytecode VM.

Quickstart:
    >>> from stencil import Environment
    >>> env = Environment()
    >>> template = env.from_string("Hello, {{ name }}!")
    >>> template.render(name="World")
    'Hello, World!'

File-based templates:
    >>> from stencil import Environment, FileSystemLoader
    >>> env = Environment(loader=FileSystemLoader("templates/"))
    >>> env.get_template("index.html").render(page=page)

Architecture:
Template Source → Lexer → Parser → AST → Compiler → Bytecode → VM

Pipeline stages:
1. **Lexer**: Tokenizes template source into a position-tagged token stream
2. **Parser**: Builds an immutable AST with source spans
3. **Compiler**: Lowers the AST to linear instructions and a constant pool
4. **VM**: Executes the bytecode against a context and an Environment

Templates never run host code other than the filters, tests and globals
registered on the Environment, and every render is bounded by the
recursion limit and an optional instruction budget (``fuel``).

Thread-Safety:
Bytecode is immutable and each render allocates its own state, so one
compiled template can be rendered from many threads at once.

Undefined values:
The default policy is lenient: a missing name renders as the empty string.
Pass ``undefined="strict"`` to raise UndefinedError instead, or
``undefined="chainable"`` to let ``a.b.c`` propagate undefined values.

"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# isort: off
# The environment package loads first; every other layer raises its errors.
from stencil.environment import (
    ChoiceLoader,
    CompileError,
    DictLoader,
    Environment,
    ErrorKind,
    FileSystemLoader,
    FunctionLoader,
    InvalidArgumentsError,
    InvalidOperationError,
    NotIterableError,
    OutOfFuelError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRecursionError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    UnknownCallableError,
    pass_state,
)

# isort: on
from stencil._types import Span, Token, TokenType
from stencil.compiler import Bytecode, compile_template
from stencil.lexer import LexerConfig, LexerError
from stencil.parser import ParseError
from stencil.template import LoopContext, Template
from stencil.value import (
    AutoEscape,
    Capability,
    CustomEscape,
    Markup,
    Namespace,
    TemplateObject,
    Undefined,
    UndefinedPolicy,
    escape,
    select_autoescape,
)

__version__ = "0.1.0"


def compile(
    source: str,
    name: str | None = None,
    *,
    config: LexerConfig | None = None,
) -> Bytecode:
    """Compile template source to Bytecode.

    Raises:
        TemplateSyntaxError: The source does not lex or parse
        CompileError: The template is structurally invalid
    """
    return compile_template(source, name, config=config)


def execute(
    program: Bytecode,
    context: Mapping[str, Any] | None,
    environment: Environment,
) -> str:
    """Run compiled ``program`` against ``context`` and return the output.

    Raises:
        TemplateRuntimeError: Rendering failed; no partial output is returned
    """
    return environment.vm.render(program, context)


__all__ = [
    "AutoEscape",
    "Bytecode",
    "Capability",
    "ChoiceLoader",
    "CompileError",
    "CustomEscape",
    "DictLoader",
    "Environment",
    "ErrorKind",
    "FileSystemLoader",
    "FunctionLoader",
    "InvalidArgumentsError",
    "InvalidOperationError",
    "LexerConfig",
    "LexerError",
    "LoopContext",
    "Markup",
    "Namespace",
    "NotIterableError",
    "OutOfFuelError",
    "ParseError",
    "Span",
    "Template",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateObject",
    "TemplateRecursionError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "Undefined",
    "UndefinedError",
    "UndefinedPolicy",
    "UnknownCallableError",
    "__version__",
    "compile",
    "escape",
    "execute",
    "pass_state",
    "select_autoescape",
]
