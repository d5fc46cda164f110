"""Autoescape modes and output formatting.

The VM formats every ``{{ expr }}`` through format_value() using the
active mode:

- NONE: the plain string form
- HTML: escape ``& < > " ' /``; none, booleans, numbers and undefined
  values are written as-is since they cannot contain markup
- JSON: serialize the value as compact JSON
- custom modes (CustomEscape): delegated to the environment formatter

Markup values are always written through unchanged.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from stencil.environment.exceptions import InvalidOperationError
from stencil.value.markup import Markup, html_escape
from stencil.value.objects import Capability, TemplateObject
from stencil.value.ops import to_string
from stencil.value.undefined import Undefined


class AutoEscape(Enum):
    """Built-in escape modes."""

    NONE = "none"
    HTML = "html"
    JSON = "json"


@dataclass(frozen=True, slots=True)
class CustomEscape:
    """A host-defined escape mode, handled by ``Environment.formatter``."""

    name: str


EscapeMode = AutoEscape | CustomEscape

# (state, value, mode) -> str; the state is the render State.
Formatter = Callable[[Any, Any, EscapeMode], str]

_HTML_EXTENSIONS = (".html", ".htm", ".xml")
_JSON_EXTENSIONS = (".json", ".json5", ".js", ".yaml", ".yml")


def coerce_auto_escape(value: Any) -> EscapeMode:
    """Turn a bool, mode name or mode into an EscapeMode.

    Example:
        >>> coerce_auto_escape(True)
        <AutoEscape.HTML: 'html'>
        >>> coerce_auto_escape("latex")
        CustomEscape(name='latex')
    """
    if isinstance(value, (AutoEscape, CustomEscape)):
        return value
    if value is True:
        return AutoEscape.HTML
    if value is False or value is None or isinstance(value, Undefined):
        return AutoEscape.NONE
    if isinstance(value, str):
        try:
            return AutoEscape(value.lower())
        except ValueError:
            return CustomEscape(value)
    raise InvalidOperationError(
        f"invalid autoescape mode {value!r}",
        suggestion="Use true, false, 'html', 'json' or 'none'",
    )


def select_autoescape(name: str | None) -> EscapeMode:
    """Default policy: pick a mode from the template name's extension.

    ``.j2``/``.jinja``/``.jinja2`` suffixes are ignored, so
    ``page.html.j2`` escapes like ``page.html``.
    """
    if not name:
        return AutoEscape.NONE
    lowered = name.lower()
    for suffix in (".j2", ".jinja2", ".jinja"):
        if lowered.endswith(suffix):
            lowered = lowered[: -len(suffix)]
            break
    if lowered.endswith(_HTML_EXTENSIONS):
        return AutoEscape.HTML
    if lowered.endswith(_JSON_EXTENSIONS):
        return AutoEscape.JSON
    return AutoEscape.NONE


def escape(value: Any) -> Markup:
    """HTML-escape ``value`` into Markup; safe values pass through."""
    if isinstance(value, Markup) or hasattr(value, "__html__"):
        return Markup(value)
    return Markup(html_escape(to_string(value)))


def _json_default(value: Any) -> Any:
    if isinstance(value, Undefined):
        return None
    if isinstance(value, TemplateObject):
        if value.has(Capability.ITERABLE):
            return list(value.iterate())
        return value.render()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    if isinstance(value, Mapping):
        return dict(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def to_json(value: Any, indent: int | None = None, *, html_safe: bool = False) -> str:
    """Serialize ``value`` as JSON.

    ``html_safe`` escapes ``< > & '`` as unicode escapes so the output can
    be embedded in HTML script tags and attributes.
    """
    if isinstance(value, Undefined):
        value = None
    separators = (",", ":") if indent is None else (",", ": ")
    try:
        text = json.dumps(
            value,
            default=_json_default,
            indent=indent,
            separators=separators,
            ensure_ascii=False,
            sort_keys=indent is not None,
        )
    except (TypeError, ValueError) as exc:
        raise InvalidOperationError(f"unable to format to JSON: {exc}") from exc
    if html_safe:
        text = (
            text.replace("<", "\\u003c")
            .replace(">", "\\u003e")
            .replace("&", "\\u0026")
            .replace("'", "\\u0027")
        )
    return text


def format_value(
    value: Any,
    mode: EscapeMode,
    formatter: Formatter | None = None,
    state: Any = None,
) -> str:
    """Render ``value`` for output under ``mode``."""
    if formatter is not None:
        return formatter(state, value, mode)
    return default_format(value, mode)


def default_format(value: Any, mode: EscapeMode) -> str:
    """The built-in formatting rules; custom formatters may fall back to it."""
    if isinstance(value, str) and (isinstance(value, Markup) or mode is AutoEscape.NONE):
        return str(value)
    if mode is AutoEscape.NONE:
        return to_string(value)
    if mode is AutoEscape.HTML:
        if hasattr(value, "__html__"):
            return str(value.__html__())
        if value is None or isinstance(value, (bool, int, float, Undefined)):
            return to_string(value)
        return html_escape(to_string(value))
    if mode is AutoEscape.JSON:
        return to_json(value)
    raise InvalidOperationError(
        f"autoescape mode '{mode.name}' requires a custom formatter",
        suggestion="Pass formatter= to the Environment",
    )
