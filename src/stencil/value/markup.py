"""Safe strings and HTML escaping.

A Markup string has already been escaped (or is trusted), so autoescaping
writes it through unchanged.
"""

from __future__ import annotations

from typing import Any

_HTML_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2f;",
    }
)


def html_escape(text: str) -> str:
    """Escape ``& < > " ' /`` for HTML and XML.

    Example:
        >>> html_escape("<a href='/'>")
        '&lt;a href=&#x27;&#x2f;&#x27;&gt;'
    """
    return text.translate(_HTML_ESCAPES)


class Markup(str):
    """A string that is safe to output without escaping.

    Concatenating a Markup with a plain string escapes the plain string,
    so the result stays safe.

    Example:
        >>> Markup("<b>") + "<i>"
        Markup('<b>&lt;i&gt;')
    """

    __slots__ = ()

    def __new__(cls, value: Any = "") -> Markup:
        if hasattr(value, "__html__"):
            value = value.__html__()
        return super().__new__(cls, value)

    def __html__(self) -> Markup:
        return self

    @classmethod
    def escape(cls, value: Any) -> Markup:
        """Escape ``value`` unless it is already safe."""
        if hasattr(value, "__html__"):
            return cls(value.__html__())
        return cls(html_escape(str(value)))

    def __add__(self, other: object) -> Markup:
        if isinstance(other, str):
            return Markup(str.__add__(self, Markup.escape(other)))
        return NotImplemented

    def __radd__(self, other: object) -> Markup:
        if isinstance(other, str):
            return Markup(str.__add__(Markup.escape(other), self))
        return NotImplemented

    def __mul__(self, count: Any) -> Markup:
        return Markup(str.__mul__(self, count))

    def join(self, iterable: Any) -> Markup:  # type: ignore[override]
        return Markup(str.join(self, (Markup.escape(item) for item in iterable)))

    def __repr__(self) -> str:
        return f"Markup({str.__repr__(self)})"


def _safe_method(name: str):
    original = getattr(str, name)

    def method(self: Markup, *args: Any, **kwargs: Any) -> Markup:
        args = tuple(Markup.escape(arg) if isinstance(arg, str) else arg for arg in args)
        return Markup(original(self, *args, **kwargs))

    method.__name__ = name
    method.__doc__ = original.__doc__
    return method


# String methods that keep a safe string safe; string arguments are escaped.
for _name in (
    "capitalize", "center", "expandtabs", "ljust", "lower", "lstrip",
    "replace", "rjust", "rstrip", "strip", "swapcase", "title", "upper",
    "zfill",
):
    setattr(Markup, _name, _safe_method(_name))
del _name
