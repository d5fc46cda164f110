"""Undefined values and the policies that govern them.

A missing name, attribute or item does not necessarily fail on the spot.
What happens depends on the environment's UndefinedPolicy:

- STRICT: the lookup itself raises UndefinedError
- LENIENT: the lookup yields an Undefined that renders as the empty string
  and is falsy, but any further access on it (``missing.attr``),
  arithmetic, ordering or iteration fails
- CHAINABLE: like LENIENT, except attribute and item access on an
  Undefined keep yielding Undefined, so ``a.b.c`` never fails

"""

from __future__ import annotations

from enum import Enum
from typing import Final


class UndefinedKind(Enum):
    """Distinguishes plain undefined values from chain-propagating ones."""

    DEFAULT = "default"
    CHAINABLE = "chainable"


class UndefinedPolicy(Enum):
    """How the VM reacts to a missing name, attribute or item."""

    STRICT = "strict"
    LENIENT = "lenient"
    CHAINABLE = "chainable"

    @classmethod
    def coerce(cls, value: UndefinedPolicy | str) -> UndefinedPolicy:
        """Accept a member or its name ("strict", "lenient", "chainable")."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        choices = ", ".join(repr(p.value) for p in cls)
        raise ValueError(f"unknown undefined policy {value!r}, expected one of {choices}")


class Undefined:
    """The value of a missing name, attribute or item.

    Falsy, renders as the empty string, and compares equal only to other
    Undefined values. ``hint`` names what was looked up, for error messages.
    """

    __slots__ = ("hint", "kind")

    def __init__(self, hint: str | None = None, kind: UndefinedKind = UndefinedKind.DEFAULT):
        self.hint = hint
        self.kind = kind

    @property
    def is_chainable(self) -> bool:
        return self.kind is UndefinedKind.CHAINABLE

    def __str__(self) -> str:
        return ""

    def __bool__(self) -> bool:
        return False

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Undefined)

    def __hash__(self) -> int:
        return hash(Undefined)

    def __repr__(self) -> str:
        if self.hint is None:
            return "Undefined"
        return f"Undefined({self.hint!r})"


class _Missing:
    """Sentinel for "lookup found nothing", distinct from None and Undefined."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


UNDEFINED: Final = Undefined()
MISSING: Final = _Missing()
