"""Terminal color helpers for diagnostics.

ANSI colors with TTY detection; honours ``NO_COLOR`` and ``FORCE_COLOR``.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
}

ColorName = Literal[
    "reset", "bold", "dim", "red", "green", "yellow", "cyan",
    "bright_red", "bright_green",
]

_ANSI_RE = re.compile(r"\033\[[0-9;]*m")


def _should_use_colors() -> bool:
    """Decide once whether diagnostics are colored.

    ``FORCE_COLOR`` wins over ``NO_COLOR``; otherwise colors are used only
    when stdout is a TTY.
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def supports_color() -> bool:
    """Whether colored output is enabled for this process."""
    return _USE_COLORS


def colorize(text: str, *colors: ColorName) -> str:
    """Wrap ``text`` in the given ANSI codes when colors are enabled.

    Example:
        >>> colorize("Error", "red", "bold")  # doctest: +SKIP
        '\\033[31m\\033[1mError\\033[0m'
    """
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def strip_colors(text: str) -> str:
    """Remove ANSI escape sequences from ``text``."""
    return _ANSI_RE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def suggestion(text: str) -> str:
    """Color a "Did you mean?" candidate."""
    return colorize(text, "bright_green", "bold")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix ``message`` with a colored error code when one is given."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line; the failing line gets a ``>`` marker."""
    marker = ">" if is_error else " "
    number = line_number(f"{marker}{lineno:>3}")
    text = error_line(content) if is_error else dim_text(content)
    return f"{number} | {text}"
