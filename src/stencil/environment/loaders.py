"""Template loaders for the Stencil environment.

Loaders provide template source to the Environment for get_template(),
extends, include and import. They implement `get_source(name)` returning
`(source, filename)` and raise TemplateNotFoundError when the name is
unknown.

Built-in Loaders:
- `FileSystemLoader`: Load from filesystem directories
- `DictLoader`: Load from an in-memory dictionary (testing/embedded)
- `ChoiceLoader`: Try multiple loaders in order (theme fallback)
- `FunctionLoader`: Wrap a callable as a loader (quick one-offs)

Custom Loaders:
Any object with a matching `get_source()` works:
    ```python
    class DatabaseLoader:
        def get_source(self, name: str) -> tuple[str, str | None]:
            row = db.query("SELECT source FROM templates WHERE name = ?", name)
            if not row:
                raise TemplateNotFoundError(f"Template '{name}' not found")
            return row.source, f"db://{name}"
    ```

Thread-Safety:
Loaders should be thread-safe for concurrent `get_source()` calls. The
built-in loaders keep no mutable state of their own.

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from difflib import get_close_matches
from pathlib import Path
from typing import Protocol

from stencil.environment.exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)


class Loader(Protocol):
    """What the Environment needs from a loader."""

    def get_source(self, name: str) -> tuple[str, str | None]: ...


class FileSystemLoader:
    """Load templates from filesystem directories.

    Directories are searched in order and the first matching file wins.
    Names are ``/`` separated and may not step outside a search path, so
    ``../secret.txt`` or an absolute name is reported as not found.

    Example:
        >>> loader = FileSystemLoader(["themes/custom/", "themes/default/"])
        >>> source, filename = loader.get_source("pages/about.html")

    Raises:
        TemplateNotFoundError: If template not found in any search path

    """

    __slots__ = ("_encoding", "_paths")

    def __init__(
        self,
        paths: str | Path | Sequence[str | Path],
        encoding: str = "utf-8",
    ):
        if isinstance(paths, (str, Path)):
            paths = [paths]
        self._paths = [Path(p) for p in paths]
        self._encoding = encoding

    @staticmethod
    def _split(name: str) -> list[str] | None:
        """Path segments of ``name``, or None if it escapes the search path."""
        if name.startswith(("/", "\\")):
            return None
        parts = []
        for part in name.replace("\\", "/").split("/"):
            if part == "..":
                return None
            if part and part != ".":
                parts.append(part)
        return parts or None

    def get_source(self, name: str) -> tuple[str, str]:
        """Load template source from the filesystem."""
        parts = self._split(name)
        if parts is not None:
            for base in self._paths:
                path = base.joinpath(*parts)
                if path.is_file():
                    logger.debug("Loaded template %r from %s", name, path)
                    return path.read_text(self._encoding), str(path)
        else:
            logger.debug("Rejected template name %r outside the search path", name)

        raise TemplateNotFoundError(
            f"Template '{name}' not found in: {', '.join(str(p) for p in self._paths)}"
        )

    def list_templates(self) -> list[str]:
        """List all files under the search paths."""
        templates = set()
        for base in self._paths:
            if base.is_dir():
                for path in base.rglob("*"):
                    if path.is_file() and not path.name.startswith("."):
                        templates.add(path.relative_to(base).as_posix())
        return sorted(templates)


class DictLoader:
    """Load templates from an in-memory dictionary.

    Returns `None` as filename since templates are not file-backed.

    Example:
        >>> loader = DictLoader({
        ...     "base.html": "<html>{% block content %}{% endblock %}</html>",
        ...     "page.html": "{% extends 'base.html' %}{% block content %}Hi{% endblock %}",
        ... })
        >>> env = Environment(loader=loader)
        >>> env.get_template("page.html").render()
        '<html>Hi</html>'

    Raises:
        TemplateNotFoundError: If template name not in mapping

    """

    __slots__ = ("_mapping",)

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping = mapping

    def get_source(self, name: str) -> tuple[str, None]:
        if name not in self._mapping:
            available = sorted(self._mapping.keys())
            msg = f"Template '{name}' not found"
            matches = get_close_matches(name, available, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{matches[0]}'?"
            elif available:
                msg += f". Available: {', '.join(available[:10])}"
                if len(available) > 10:
                    msg += f" ... ({len(available)} total)"
            raise TemplateNotFoundError(msg)
        return self._mapping[name], None

    def list_templates(self) -> list[str]:
        return sorted(self._mapping.keys())


class ChoiceLoader:
    """Try multiple loaders in order, returning the first match.

    Example:
        >>> custom = DictLoader({"nav.html": "<nav>Custom</nav>"})
        >>> default = DictLoader({
        ...     "nav.html": "<nav>Default</nav>",
        ...     "footer.html": "<footer>Default</footer>",
        ... })
        >>> env = Environment(loader=ChoiceLoader([custom, default]))
        >>> env.get_template("nav.html").render()
        '<nav>Custom</nav>'

    Raises:
        TemplateNotFoundError: If no loader can find the template

    """

    __slots__ = ("_loaders",)

    def __init__(self, loaders: Sequence[Loader]):
        self._loaders = list(loaders)

    def get_source(self, name: str) -> tuple[str, str | None]:
        """Try each loader in order, return first match."""
        for loader in self._loaders:
            try:
                return loader.get_source(name)
            except TemplateNotFoundError:
                continue
        raise TemplateNotFoundError(
            f"Template '{name}' not found in any of {len(self._loaders)} loaders"
        )

    def list_templates(self) -> list[str]:
        """Merge template lists from all loaders (deduplicated, sorted)."""
        templates: set[str] = set()
        for loader in self._loaders:
            if hasattr(loader, "list_templates"):
                templates.update(loader.list_templates())
        return sorted(templates)


class FunctionLoader:
    """Wrap a callable as a template loader.

    The function takes a template name and returns the source, a
    ``(source, filename)`` tuple, or ``None`` when the template does not
    exist.

    Example:
        >>> def load(name):
        ...     if name == "greeting.html":
        ...         return "Hello, {{ name }}!"
        ...     return None
        >>> env = Environment(loader=FunctionLoader(load))
        >>> env.get_template("greeting.html").render(name="World")
        'Hello, World!'

    """

    __slots__ = ("_load_func",)

    def __init__(
        self,
        load_func: Callable[[str], str | tuple[str, str | None] | None],
    ):
        self._load_func = load_func

    def get_source(self, name: str) -> tuple[str, str | None]:
        result = self._load_func(name)

        if result is None:
            raise TemplateNotFoundError(f"Template '{name}' not found")

        if isinstance(result, str):
            return result, None

        return result
