"""Classification of runtime values."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

from stencil.value.markup import Markup
from stencil.value.undefined import Undefined


class ValueKind(Enum):
    """The kind of a value as templates see it."""

    UNDEFINED = "undefined"
    NONE = "none"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    BYTES = "bytes"
    SEQ = "sequence"
    MAP = "map"
    OBJECT = "object"


def kind_of(value: Any) -> ValueKind:
    """Classify ``value``; unknown Python objects count as OBJECT.

    Example:
        >>> kind_of([1, 2]).value
        'sequence'
    """
    if value is None:
        return ValueKind.NONE
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Undefined):
        return ValueKind.UNDEFINED
    if isinstance(value, (list, tuple)):
        return ValueKind.SEQ
    if isinstance(value, Mapping):
        return ValueKind.MAP
    if isinstance(value, (bytes, bytearray)):
        return ValueKind.BYTES
    return ValueKind.OBJECT


def is_safe(value: Any) -> bool:
    """True for strings already marked safe for output."""
    return isinstance(value, Markup) or hasattr(value, "__html__")
