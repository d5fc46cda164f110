"""Operations on runtime values.

Every operator, conversion and lookup the VM performs goes through this
module, so template semantics live in one place:

- truthiness and string conversion (``none``, ``true``, ``false``)
- arithmetic with signed 128-bit overflow checks
- pairwise comparison and containment
- attribute/item/slice lookup that returns MISSING instead of raising
- iteration and tuple unpacking

Undefined operands never take part in arithmetic, ordering or iteration;
those raise InvalidOperationError / NotIterableError instead.
"""

from __future__ import annotations

import json
import math
import operator
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from stencil.environment.exceptions import (
    InvalidOperationError,
    NotIterableError,
)
from stencil.value.kinds import ValueKind, kind_of
from stencil.value.markup import Markup
from stencil.value.objects import Capability, TemplateObject
from stencil.value.undefined import MISSING, Undefined

I128_MIN = -(2**127)
I128_MAX = 2**127 - 1
MAX_REPEAT = 10_000_000

# Methods templates may call on builtin values; none of them mutate.
_SAFE_METHODS: dict[type, frozenset[str]] = {
    str: frozenset(
        {
            "capitalize", "count", "endswith", "find", "isalnum", "isalpha",
            "isdigit", "islower", "isspace", "isupper", "join", "lower",
            "lstrip", "partition", "replace", "rfind", "rpartition", "rsplit",
            "rstrip", "split", "splitlines", "startswith", "strip", "title",
            "upper",
        }
    ),
    list: frozenset({"count", "index"}),
    tuple: frozenset({"count", "index"}),
    dict: frozenset({"get", "items", "keys", "values"}),
}


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------


def is_true(value: Any) -> bool:
    """Template truthiness.

    ``false``, ``0``, ``0.0``, ``none``, Undefined and empty strings,
    sequences and maps are falsy; everything else is truthy.
    """
    if isinstance(value, TemplateObject):
        return value.is_true()
    try:
        return bool(value)
    except RecursionError:
        raise
    except Exception:
        return True


def to_string(value: Any) -> str:
    """Convert ``value`` to its rendered form.

    Example:
        >>> to_string(None), to_string(True), to_string([1, "a"])
        ('none', 'true', '[1, "a"]')
    """
    if isinstance(value, str):
        return value
    if value is None:
        return "none"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, Undefined):
        return ""
    if isinstance(value, (int, float)):
        return _format_number(value)
    if isinstance(value, TemplateObject):
        return value.render()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", "replace")
    if isinstance(value, (list, tuple, Mapping)):
        return repr_value(value)
    return str(value)


def repr_value(value: Any) -> str:
    """Debug representation, used for values nested inside containers."""
    if isinstance(value, str):
        return json.dumps(str(value), ensure_ascii=False)
    if isinstance(value, Undefined):
        return "undefined"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(repr_value(item) for item in value) + "]"
    if isinstance(value, Mapping):
        items = (f"{repr_value(k)}: {repr_value(v)}" for k, v in value.items())
        return "{" + ", ".join(items) + "}"
    return to_string(value)


def _format_number(value: int | float) -> str:
    if isinstance(value, float):
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"
        if math.isnan(value):
            return "NaN"
    return str(value)


def kind_name(value: Any) -> str:
    return kind_of(value).value


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float))


def _check_int(value: Any) -> Any:
    if isinstance(value, int) and not I128_MIN <= value <= I128_MAX:
        raise InvalidOperationError(
            "integer overflow", suggestion="The result does not fit in 128 bits"
        )
    return value


def _unsupported(op: str, left: Any, right: Any) -> InvalidOperationError:
    if isinstance(left, Undefined) or isinstance(right, Undefined):
        operand = left if isinstance(left, Undefined) else right
        what = f" '{operand.hint}'" if operand.hint else ""
        return InvalidOperationError(
            f"unable to apply '{op}' to undefined value{what}",
            suggestion="Give the value a default with the default filter",
        )
    return InvalidOperationError(
        f"unable to apply '{op}' to {kind_name(left)} and {kind_name(right)}"
    )


def add(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        return _check_int(left + right)
    if isinstance(left, str) and isinstance(right, str):
        return left + right
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return [*left, *right]
    raise _unsupported("+", left, right)


def sub(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        return _check_int(left - right)
    raise _unsupported("-", left, right)


def mul(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        return _check_int(left * right)
    if isinstance(left, int) and isinstance(right, (str, list, tuple)):
        left, right = right, left
    if isinstance(left, (str, list, tuple)) and isinstance(right, int) and not isinstance(right, bool):
        count = max(right, 0)
        if len(left) * count > MAX_REPEAT:
            raise InvalidOperationError(f"refusing to repeat a value to more than {MAX_REPEAT} items")
        return left * count if isinstance(left, str) else list(left) * count
    raise _unsupported("*", left, right)


def div(left: Any, right: Any) -> float:
    if _is_number(left) and _is_number(right):
        if right == 0:
            raise InvalidOperationError("division by zero")
        return left / right
    raise _unsupported("/", left, right)


def floordiv(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        if right == 0:
            raise InvalidOperationError("division by zero")
        return _check_int(left // right)
    raise _unsupported("//", left, right)


def mod(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        if right == 0:
            raise InvalidOperationError("modulo by zero")
        return left % right
    raise _unsupported("%", left, right)


def pow_(left: Any, right: Any) -> Any:
    if _is_number(left) and _is_number(right):
        if isinstance(left, int) and isinstance(right, int):
            if right < 0:
                if left == 0:
                    raise InvalidOperationError("zero cannot be raised to a negative power")
                return float(left) ** right
            # Anything past 2**127 overflows; refuse before computing it.
            if abs(left) > 1 and right > 127:
                raise InvalidOperationError("integer overflow")
            return _check_int(left**right)
        try:
            result = left**right
        except (OverflowError, ZeroDivisionError) as exc:
            raise InvalidOperationError(f"unable to apply '**': {exc}") from exc
        if isinstance(result, complex):
            raise InvalidOperationError("'**' result is not a real number")
        return result
    raise _unsupported("**", left, right)


BINARY_OPS: dict[str, Callable[[Any, Any], Any]] = {
    "+": add,
    "-": sub,
    "*": mul,
    "/": div,
    "//": floordiv,
    "%": mod,
    "**": pow_,
}


def neg(value: Any) -> Any:
    if _is_number(value):
        return _check_int(-value)
    raise InvalidOperationError(f"unable to negate {kind_name(value)}")


def pos(value: Any) -> Any:
    if _is_number(value):
        return +value
    raise InvalidOperationError(f"unable to apply unary '+' to {kind_name(value)}")


def concat(values: Iterable[Any]) -> str:
    """The ``~`` operator: stringify and join, keeping Markup safe."""
    parts = list(values)
    if any(isinstance(part, Markup) for part in parts):
        return Markup("").join(part if isinstance(part, Markup) else to_string(part) for part in parts)
    return "".join(to_string(part) for part in parts)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

_ORDERING = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def equals(left: Any, right: Any) -> bool:
    if isinstance(left, Undefined) or isinstance(right, Undefined):
        return isinstance(left, Undefined) and isinstance(right, Undefined)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        return len(left) == len(right) and all(equals(a, b) for a, b in zip(left, right, strict=True))
    try:
        return bool(left == right)
    except RecursionError:
        raise
    except Exception:
        return False


def compare(op: str, left: Any, right: Any) -> bool:
    """Evaluate one pairwise comparison."""
    if op == "==":
        return equals(left, right)
    if op == "!=":
        return not equals(left, right)
    if op == "in":
        return contains(right, left)
    if op == "not in":
        return not contains(right, left)
    left_kind, right_kind = kind_of(left), kind_of(right)
    comparable = left_kind is right_kind and left_kind in (
        ValueKind.NUMBER,
        ValueKind.STRING,
        ValueKind.SEQ,
        ValueKind.BYTES,
    )
    if not comparable and {left_kind, right_kind} <= {ValueKind.NUMBER, ValueKind.BOOL}:
        comparable = True
    if not comparable:
        raise _unsupported(op, left, right)
    try:
        return _ORDERING[op](_ordering_key(left), _ordering_key(right))
    except TypeError as exc:
        raise InvalidOperationError(f"unable to compare with '{op}': {exc}") from exc


def _ordering_key(value: Any) -> Any:
    if isinstance(value, tuple):
        return list(value)
    return value


def contains(container: Any, item: Any) -> bool:
    """The ``in`` operator with ``container`` on the right-hand side."""
    if isinstance(container, str):
        if not isinstance(item, str):
            raise InvalidOperationError(
                f"cannot check whether a string contains {kind_name(item)}"
            )
        return item in container
    if isinstance(container, (list, tuple)):
        return any(equals(item, candidate) for candidate in container)
    if isinstance(container, Mapping):
        try:
            return item in container
        except TypeError:
            return False
    if isinstance(container, TemplateObject) and container.has(Capability.ITERABLE):
        return any(equals(item, candidate) for candidate in container.iterate())
    raise InvalidOperationError(f"'in' is not supported on {kind_name(container)}")


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


def get_attr(value: Any, name: str) -> Any:
    """Attribute lookup; returns MISSING when there is nothing to find.

    Mappings are looked up by key first. Names starting with an
    underscore are never exposed from Python objects.
    """
    if isinstance(value, TemplateObject):
        if value.has(Capability.ATTRIBUTABLE):
            return value.get_attr(name)
        return MISSING
    if isinstance(value, Mapping):
        try:
            found = value[name]
        except (KeyError, TypeError):
            found = MISSING
        if found is not MISSING:
            return found
    if name.startswith("_"):
        return MISSING
    for base, methods in _SAFE_METHODS.items():
        if isinstance(value, base):
            if name in methods:
                return getattr(value, name)
            return MISSING
    if value is None or isinstance(value, (bool, int, float, list, tuple, bytes, Mapping)):
        return MISSING
    try:
        return getattr(value, name)
    except AttributeError:
        pass
    except RecursionError:
        raise
    except Exception as exc:
        raise InvalidOperationError(f"error reading attribute '{name}': {exc}") from exc
    if hasattr(value, "__getitem__"):
        try:
            return value[name]
        except (KeyError, IndexError, TypeError):
            pass
    return MISSING


def get_item(value: Any, key: Any) -> Any:
    """Subscript lookup; returns MISSING when there is nothing to find."""
    if isinstance(key, slice):
        return slice_value(value, key.start, key.stop, key.step)
    if isinstance(value, TemplateObject):
        if value.has(Capability.INDEXABLE):
            return value.get_item(key)
        if isinstance(key, str):
            return get_attr(value, key)
        return MISSING
    if isinstance(value, Mapping):
        try:
            return value[key]
        except KeyError:
            return MISSING
        except TypeError as exc:
            raise InvalidOperationError(f"unhashable key of kind {kind_name(key)}") from exc
    if isinstance(value, (str, list, tuple)):
        if isinstance(key, bool) or not isinstance(key, int):
            if isinstance(key, str):
                return get_attr(value, key)
            return MISSING
        try:
            return value[key]
        except IndexError:
            return MISSING
    if isinstance(key, str):
        return get_attr(value, key)
    if value is None or isinstance(value, (bool, int, float)):
        return MISSING
    try:
        return value[key]
    except (KeyError, IndexError, TypeError):
        return MISSING


def slice_value(value: Any, start: Any, stop: Any, step: Any) -> Any:
    """``value[start:stop:step]`` for strings and sequences."""
    bounds = []
    for part in (start, stop, step):
        if part is None or isinstance(part, Undefined):
            bounds.append(None)
        elif isinstance(part, int) and not isinstance(part, bool):
            bounds.append(part)
        else:
            raise InvalidOperationError(f"slice bounds must be integers, got {kind_name(part)}")
    if bounds[2] == 0:
        raise InvalidOperationError("slice step cannot be zero")
    if isinstance(value, str):
        return value[slice(*bounds)]
    if isinstance(value, (list, tuple)):
        return list(value[slice(*bounds)])
    if isinstance(value, TemplateObject) and value.has(Capability.ITERABLE):
        return list(value.iterate())[slice(*bounds)]
    raise InvalidOperationError(f"cannot slice {kind_name(value)}")


# ---------------------------------------------------------------------------
# Iteration
# ---------------------------------------------------------------------------


def iter_value(value: Any) -> Iterator[Any]:
    """Iterate ``value`` or raise NotIterableError.

    Strings yield characters, mappings yield keys.
    """
    if isinstance(value, Undefined):
        what = f" '{value.hint}'" if value.hint else ""
        raise NotIterableError(f"undefined value{what} is not iterable")
    if isinstance(value, TemplateObject):
        if value.has(Capability.ITERABLE):
            return iter(value.iterate())
        raise NotIterableError(f"{type(value).__name__} is not iterable")
    if value is None or isinstance(value, (bool, int, float, bytes, bytearray)):
        raise NotIterableError(f"{kind_name(value)} is not iterable")
    try:
        return iter(value)
    except TypeError:
        raise NotIterableError(f"{type(value).__name__} is not iterable") from None


def length_of(value: Any) -> int | None:
    """Length of a sized value, or None."""
    if isinstance(value, TemplateObject):
        return value.length()
    if isinstance(value, Undefined) or value is None or isinstance(value, (bool, int, float)):
        return None
    try:
        return len(value)
    except TypeError:
        return None


def unpack(value: Any, count: int) -> list[Any]:
    """Unpack ``value`` into exactly ``count`` items for tuple assignment."""
    items = list(iter_value(value))
    if len(items) != count:
        raise InvalidOperationError(
            f"cannot unpack {len(items)} values into {count} targets"
        )
    return items
