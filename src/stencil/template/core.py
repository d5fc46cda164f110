"""Stencil Template: compiled bytecode bound to its Environment.

The Template class wraps a Bytecode program and provides the ``render()``
API. Templates are immutable and thread-safe for concurrent rendering.

Architecture:
    ```
    Template
    ├── _env_ref: WeakRef[Environment]  # Prevents circular refs
    ├── _bytecode: Bytecode             # Immutable compiled program
    └── _name, _filename                # For error messages
    ```

Memory Safety:
Uses ``weakref.ref(env)`` to break potential cycles:
``Template → (weak) → Environment → cache → Template``

Thread-Safety:
- Templates are immutable after construction
- ``render()`` allocates a fresh VM State per call
- Multiple threads can call ``render()`` concurrently

"""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from stencil.compiler.instructions import Bytecode
    from stencil.environment import Environment


class Template:
    """Compiled template ready for rendering.

    Attributes:
        name: Template identifier (for error messages)
        filename: Source file path (for error messages)
        bytecode: The compiled program

    Example:
        >>> from stencil import Environment
        >>> env = Environment()
        >>> t = env.from_string("Hello, {{ name | upper }}!")
        >>> t.render(name="World")
        'Hello, WORLD!'

        >>> t.render({"name": "World"})  # Dict context also works
        'Hello, WORLD!'

    """

    __slots__ = ("__weakref__", "_bytecode", "_env_ref", "_filename", "_name")

    def __init__(
        self,
        env: Environment,
        bytecode: Bytecode,
        name: str | None,
        filename: str | None = None,
    ):
        # Use weakref to prevent circular reference: Template <-> Environment
        self._env_ref: weakref.ref[Environment] = weakref.ref(env)
        self._bytecode = bytecode
        self._name = name
        self._filename = filename

    @property
    def _env(self) -> Environment:
        """Get the Environment (dereferences weak reference)."""
        env = self._env_ref()
        if env is None:
            raise RuntimeError(
                f"Environment has been garbage collected (template: {self._name or 'unknown'})"
            )
        return env

    @property
    def name(self) -> str | None:
        """Template name."""
        return self._name

    @property
    def filename(self) -> str | None:
        """Source filename."""
        return self._filename

    @property
    def bytecode(self) -> Bytecode:
        return self._bytecode

    @staticmethod
    def _context(method: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> dict[str, Any]:
        ctx: dict[str, Any] = {}
        if args:
            if len(args) == 1 and isinstance(args[0], Mapping):
                ctx.update(args[0])
            else:
                raise TypeError(
                    f"{method}() takes at most 1 positional argument (a dict), got {len(args)}"
                )
        ctx.update(kwargs)
        return ctx

    def render(self, *args: Any, **kwargs: Any) -> str:
        """Render template with given context.

        Args:
            *args: Single dict of context variables
            **kwargs: Context variables as keyword arguments

        Returns:
            Rendered template as string

        Raises:
            TemplateRuntimeError: Rendering failed; no partial output is returned
        """
        ctx = self._context("render", args, kwargs)
        return self._env.vm.render(self._bytecode, ctx)

    def render_block(self, block_name: str, *args: Any, **kwargs: Any) -> str:
        """Render a single block from the template.

        Raises:
            KeyError: If block doesn't exist in template
        """
        if block_name not in self._bytecode.blocks:
            raise KeyError(
                f"Block '{block_name}' not found in template '{self._name}'. "
                f"Available blocks: {self.list_blocks()}"
            )
        ctx = self._context("render_block", args, kwargs)
        return self._env.vm.render_block(self._bytecode, block_name, ctx)

    def list_blocks(self) -> list[str]:
        """Names of the blocks this template defines, in source order."""
        return list(self._bytecode.blocks)

    def __repr__(self) -> str:
        return f"<Template {self._name or '(inline)'}>"
