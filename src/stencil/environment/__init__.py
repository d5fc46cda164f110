"""Stencil environment: configuration, loaders, registries and errors.

The exceptions module is imported first: the value model, the compiler and
the VM all raise its errors and are loaded while the Environment is.
"""

from stencil.environment.exceptions import (
    CompileError,
    ErrorKind,
    InvalidArgumentsError,
    InvalidOperationError,
    NotIterableError,
    OutOfFuelError,
    SourceSnippet,
    TemplateError,
    TemplateNotFoundError,
    TemplateRecursionError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    UnknownCallableError,
    build_source_snippet,
)
from stencil.environment.core import Environment
from stencil.environment.loaders import (
    ChoiceLoader,
    DictLoader,
    FileSystemLoader,
    FunctionLoader,
    Loader,
)
from stencil.environment.registry import Registry
from stencil.vm.state import pass_state

__all__ = [
    "ChoiceLoader",
    "CompileError",
    "DictLoader",
    "Environment",
    "ErrorKind",
    "FileSystemLoader",
    "FunctionLoader",
    "InvalidArgumentsError",
    "InvalidOperationError",
    "Loader",
    "NotIterableError",
    "OutOfFuelError",
    "Registry",
    "SourceSnippet",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRecursionError",
    "TemplateRuntimeError",
    "TemplateSyntaxError",
    "UndefinedError",
    "UnknownCallableError",
    "build_source_snippet",
    "pass_state",
]
