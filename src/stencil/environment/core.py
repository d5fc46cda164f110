"""Stencil Environment: configuration, registries, loading and caching.

The Environment is the caller-owned hub every render goes through:

- lexer options (trim_blocks, lstrip_blocks, keep_trailing_newline)
- the undefined policy, recursion limit and optional fuel budget
- the autoescape setting and an optional custom formatter
- the filter, test and global registries
- the loader and an LRU cache of compiled templates

Thread-Safety:
Compiled Bytecode is immutable and every render allocates its own VM
State, so one Environment can render from many threads. The template
cache is guarded by a lock. Registries use copy-on-write and should be
populated before rendering starts.

Example:
    >>> from stencil import DictLoader, Environment
    >>> env = Environment(loader=DictLoader({"hello.html": "Hi {{ name }}!"}))
    >>> env.get_template("hello.html").render(name="<b>you</b>")
    'Hi &lt;b&gt;you&lt;&#x2f;b&gt;!'

"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from stencil.compiler import compile_template
from stencil.environment.exceptions import TemplateNotFoundError
from stencil.environment.filters import DEFAULT_FILTERS
from stencil.environment.globals import DEFAULT_GLOBALS
from stencil.environment.registry import Registry
from stencil.environment.tests import DEFAULT_TESTS
from stencil.lexer import LexerConfig
from stencil.template import Template
from stencil.value.escape import EscapeMode, Formatter, coerce_auto_escape, select_autoescape
from stencil.value.undefined import UndefinedPolicy

if TYPE_CHECKING:
    from stencil.compiler import Bytecode
    from stencil.environment.loaders import Loader
    from stencil.vm import VM

logger = logging.getLogger(__name__)


def _check_limit(name: str, value: Any, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ValueError(f"{name} must be an integer >= {minimum}, got {value!r}")


class Environment:
    """Configuration and entry point for loading and rendering templates.

    Args:
        loader: Resolves template names for get_template(), extends,
            include and import
        autoescape: True/False, an AutoEscape mode or mode name, or a
            callable mapping a template name to a mode (default: choose
            from the file extension with select_autoescape)
        trim_blocks: Remove the first newline after a block tag
        lstrip_blocks: Strip whitespace before a block tag on its line
        keep_trailing_newline: Keep the final newline of the source
        undefined: "strict", "lenient" or "chainable" (or an UndefinedPolicy)
        recursion_limit: Maximum nesting of macros, includes, imports,
            extends and recursive loops. Each level uses several
            interpreter frames, so values much above the default run into
            the interpreter stack first
        fuel: Optional instruction budget per render
        cache_size: Compiled templates kept by get_template(); 0 disables
            caching
        formatter: ``(state, value, mode) -> str`` replacing the built-in
            output formatting, required for custom escape modes

    Raises:
        ValueError: On a negative limit or an unknown policy name

    """

    def __init__(
        self,
        loader: Loader | None = None,
        *,
        autoescape: bool | str | EscapeMode | Callable[[str | None], Any] = select_autoescape,
        trim_blocks: bool = False,
        lstrip_blocks: bool = False,
        keep_trailing_newline: bool = False,
        undefined: UndefinedPolicy | str = UndefinedPolicy.LENIENT,
        recursion_limit: int = 100,
        fuel: int | None = None,
        cache_size: int = 400,
        formatter: Formatter | None = None,
    ):
        _check_limit("recursion_limit", recursion_limit, minimum=1)
        if fuel is not None:
            _check_limit("fuel", fuel, minimum=0)
        _check_limit("cache_size", cache_size, minimum=0)

        self.loader = loader
        self.undefined = UndefinedPolicy.coerce(undefined)
        self.recursion_limit = recursion_limit
        self.fuel = fuel
        self.cache_size = cache_size
        self.formatter = formatter
        self.lexer_config = LexerConfig(
            trim_blocks=trim_blocks,
            lstrip_blocks=lstrip_blocks,
            keep_trailing_newline=keep_trailing_newline,
        )
        self._autoescape_fn: Callable[[str | None], Any] | None = None
        self._autoescape_mode: EscapeMode | None = None
        self.autoescape = autoescape

        self._filters: dict[str, Callable[..., Any]] = dict(DEFAULT_FILTERS)
        self._tests: dict[str, Callable[..., Any]] = dict(DEFAULT_TESTS)
        self._globals: dict[str, Any] = dict(DEFAULT_GLOBALS)
        self.filters = Registry(self, "_filters")
        self.tests = Registry(self, "_tests")
        self.globals = Registry(self, "_globals")

        self._cache: OrderedDict[str, Template] = OrderedDict()
        self._cache_lock = threading.Lock()
        self._vm: VM | None = None

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def autoescape(self) -> Any:
        return self._autoescape_fn if self._autoescape_fn is not None else self._autoescape_mode

    @autoescape.setter
    def autoescape(self, value: Any) -> None:
        if callable(value):
            self._autoescape_fn = value
            self._autoescape_mode = None
        else:
            self._autoescape_fn = None
            self._autoescape_mode = coerce_auto_escape(value)

    @property
    def trim_blocks(self) -> bool:
        return self.lexer_config.trim_blocks

    @property
    def lstrip_blocks(self) -> bool:
        return self.lexer_config.lstrip_blocks

    @property
    def keep_trailing_newline(self) -> bool:
        return self.lexer_config.keep_trailing_newline

    def auto_escape_for(self, name: str | None) -> EscapeMode:
        """The escape mode a template called ``name`` starts in."""
        if self._autoescape_fn is not None:
            return coerce_auto_escape(self._autoescape_fn(name))
        assert self._autoescape_mode is not None
        return self._autoescape_mode

    @property
    def vm(self) -> VM:
        """The VM rendering this environment's templates (created on first use)."""
        if self._vm is None:
            from stencil.vm import VM

            self._vm = VM(self)
        return self._vm

    # ------------------------------------------------------------------
    # Registries
    # ------------------------------------------------------------------

    def add_filter(self, name: str, func: Callable[..., Any]) -> None:
        """Register a filter: ``{{ value | name(args) }}``."""
        self.filters[name] = func

    def add_test(self, name: str, func: Callable[..., Any]) -> None:
        """Register a test: ``{% if value is name(args) %}``."""
        self.tests[name] = func

    def add_global(self, name: str, value: Any) -> None:
        """Register a value or function visible to every template."""
        self.globals[name] = value

    # ------------------------------------------------------------------
    # Compiling and loading
    # ------------------------------------------------------------------

    def compile(
        self,
        source: str,
        name: str | None = None,
        filename: str | None = None,
    ) -> Bytecode:
        """Compile ``source`` with this environment's lexer options.

        Raises:
            TemplateSyntaxError: The source does not lex or parse
            CompileError: The template is structurally invalid
        """
        return compile_template(source, name, config=self.lexer_config, filename=filename)

    def from_string(self, source: str, name: str | None = None) -> Template:
        """Compile a template from source; the result is not cached."""
        return Template(self, self.compile(source, name), name)

    def get_template(self, name: str) -> Template:
        """Load, compile and cache the template called ``name``.

        Raises:
            TemplateNotFoundError: No loader is configured or it does not
                know ``name``
        """
        if self.cache_size:
            with self._cache_lock:
                cached = self._cache.get(name)
                if cached is not None:
                    self._cache.move_to_end(name)
                    logger.debug("Template cache hit: %r", name)
                    return cached
            logger.debug("Template cache miss: %r", name)

        if self.loader is None:
            raise TemplateNotFoundError(
                f"Template '{name}' not found: the environment has no loader"
            )
        source, filename = self.loader.get_source(name)
        template = Template(self, self.compile(source, name, filename), name, filename)

        if self.cache_size:
            with self._cache_lock:
                # Another thread may have compiled it meanwhile; keep the first.
                existing = self._cache.get(name)
                if existing is not None:
                    return existing
                self._cache[name] = template
                while len(self._cache) > self.cache_size:
                    evicted, _ = self._cache.popitem(last=False)
                    logger.debug("Evicted template %r from cache", evicted)
        return template

    def clear_cache(self) -> None:
        """Drop every compiled template, e.g. after sources changed."""
        with self._cache_lock:
            self._cache.clear()

    # ------------------------------------------------------------------
    # Rendering shortcuts
    # ------------------------------------------------------------------

    def render(self, template_name: str, *args: Any, **kwargs: Any) -> str:
        """Load ``template_name`` and render it."""
        return self.get_template(template_name).render(*args, **kwargs)

    def render_string(self, source: str, context: Mapping[str, Any] | None = None) -> str:
        """Compile and render ``source`` in one step."""
        return self.from_string(source).render(dict(context or {}))

    def __repr__(self) -> str:
        return (
            f"<Environment loader={type(self.loader).__name__} "
            f"undefined={self.undefined.value} cache={len(self._cache)}/{self.cache_size}>"
        )
