"""Built-in filters for Stencil templates.

Filters transform values with the pipe syntax: `{{ value | filter }}` or
`{{ value | filter(arg, name=value) }}`. The value is the first
positional argument of the filter function.

Categories:
**Strings**: capitalize, center, format, indent, lower, replace, split,
    striptags, title, trim, truncate, upper, urlencode, wordcount
**Escaping**: escape/e, safe, tojson
**Numbers**: abs, float, int, round
**Sequences**: batch, first, join, last, length/count, list, max, min,
    reverse, slice, sort, sum, unique
**Mappings**: dictsort, items
**Higher order**: attr, groupby, map, reject, rejectattr, select,
    selectattr
**Fallbacks**: default/d, string

Filters that apply other filters or tests by name (map, select, ...)
are decorated with pass_state() to reach the environment registries.

Undefined values:
    ``default`` is the only filter designed for undefined input. String
    filters treat undefined as the empty string; filters that iterate
    fail with NotIterableError.

Custom Filters:
    >>> env.add_filter("double", lambda value: value * 2)
    >>> env.from_string("{{ 21 | double }}").render()
    '42'

"""

from __future__ import annotations

import itertools
import math
import re
from collections.abc import Callable, Iterator, Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any
from urllib.parse import quote, urlencode

from stencil.environment.exceptions import (
    InvalidArgumentsError,
    InvalidOperationError,
    UnknownCallableError,
)
from stencil.value import ops
from stencil.value.escape import AutoEscape, escape, to_json
from stencil.value.markup import Markup
from stencil.value.objects import Capability, TemplateObject
from stencil.value.undefined import MISSING, Undefined
from stencil.vm.state import pass_state

if TYPE_CHECKING:
    from stencil.vm.state import State

_TAG_RE = re.compile(r"(<!--.*?-->|<[^>]*>)", re.DOTALL)
_WORD_RE = re.compile(r"\w+")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _text(value: Any) -> str:
    """String form of ``value``, keeping Markup as Markup."""
    return value if isinstance(value, str) else ops.to_string(value)


def _items(value: Any) -> list[Any]:
    return list(ops.iter_value(value))


def _lookup_path(item: Any, path: Any, default: Any = MISSING) -> Any:
    """Resolve ``a.b.0`` style attribute paths."""
    if isinstance(path, int) and not isinstance(path, bool):
        found = ops.get_item(item, path)
        return found if found is not MISSING else _missing(path, default)
    current = item
    for part in str(path).split("."):
        if isinstance(current, Undefined):
            return current
        found = ops.get_item(current, int(part)) if part.isdigit() else ops.get_attr(current, part)
        if found is MISSING:
            return _missing(part, default)
        current = found
    return current


def _missing(name: Any, default: Any) -> Any:
    return Undefined(str(name)) if default is MISSING else default


def _cmp(left: Any, right: Any) -> int:
    if ops.compare("<", left, right):
        return -1
    if ops.compare(">", left, right):
        return 1
    return 0


def _sort_key(
    attribute: Any = None, case_sensitive: bool = False
) -> Callable[[Any], Any]:
    def normalize(value: Any) -> Any:
        if attribute is not None:
            value = _lookup_path(value, attribute)
        if not case_sensitive and isinstance(value, str):
            value = value.lower()
        return value

    wrapped = cmp_to_key(_cmp)
    return lambda value: wrapped(normalize(value))


def _resolve(registry: Any, name: Any, kind: str) -> Callable[..., Any]:
    func = registry.get(name) if isinstance(name, str) else None
    if func is None:
        raise UnknownCallableError(f"unknown {kind} '{name}'")
    return func


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------


def _filter_capitalize(value: Any) -> str:
    return _text(value).capitalize()


def _filter_center(value: Any, width: int = 80) -> str:
    return _text(value).center(width)


def _filter_format(value: Any, *args: Any, **kwargs: Any) -> str:
    """printf-style formatting: ``{{ "%s - %s" | format("a", "b") }}``."""
    if args and kwargs:
        raise InvalidArgumentsError("format() takes positional or keyword arguments, not both")
    return _text(value) % (kwargs or args)


def _filter_indent(value: Any, width: int | str = 4, first: bool = False, blank: bool = False) -> str:
    """Indent every line but the first by ``width`` spaces (or the given string)."""
    pad = width if isinstance(width, str) else " " * width
    lines = _text(value).split("\n")
    result = []
    for index, line in enumerate(lines):
        if (index == 0 and not first) or (not line.strip() and not blank):
            result.append(line)
        else:
            result.append(pad + line)
    return "\n".join(result)


def _filter_lower(value: Any) -> str:
    return _text(value).lower()


def _filter_upper(value: Any) -> str:
    return _text(value).upper()


def _filter_title(value: Any) -> str:
    return _text(value).title()


def _filter_replace(value: Any, old: str, new: str, count: int | None = None) -> str:
    return _text(value).replace(old, new, -1 if count is None else count)


def _filter_split(value: Any, sep: str | None = None, maxsplit: int = -1) -> list[str]:
    return _text(value).split(sep, maxsplit)


def _filter_striptags(value: Any) -> str:
    """Remove tags and collapse whitespace."""
    return " ".join(_TAG_RE.sub("", _text(value)).split())


def _filter_trim(value: Any, chars: str | None = None) -> str:
    return _text(value).strip(chars)


def _filter_truncate(
    value: Any,
    length: int = 255,
    killwords: bool = False,
    end: str = "...",
    leeway: int = 5,
) -> str:
    """Shorten text to ``length`` characters, breaking at a word unless ``killwords``."""
    text = _text(value)
    if len(text) <= length + leeway:
        return text
    cut = max(length - len(end), 0)
    if killwords:
        return text[:cut] + end
    head = text[:cut]
    if " " in head:
        head = head.rsplit(" ", 1)[0]
    return head + end


def _filter_urlencode(value: Any) -> str:
    if isinstance(value, Mapping):
        return urlencode({ops.to_string(k): ops.to_string(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return urlencode([(ops.to_string(k), ops.to_string(v)) for k, v in value])
    return quote(_text(value), safe="/")


def _filter_wordcount(value: Any) -> int:
    return len(_WORD_RE.findall(_text(value)))


# ---------------------------------------------------------------------------
# Escaping
# ---------------------------------------------------------------------------


def _filter_escape(value: Any) -> Markup:
    return escape(value)


def _filter_safe(value: Any) -> Markup:
    return Markup(_text(value))


def _filter_tojson(value: Any, indent: int | None = None) -> Markup:
    """Serialize to JSON that is safe to embed in HTML."""
    return Markup(to_json(value, indent, html_safe=True))


def _filter_string(value: Any) -> str:
    return _text(value)


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def _filter_abs(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidOperationError(f"abs() requires a number, got {ops.kind_name(value)}")
    return abs(value)


def _filter_int(value: Any, default: int = 0, base: int = 10) -> int:
    """Convert to an integer, or ``default`` when that is not possible."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        text = value.strip().replace("_", "")
        try:
            return int(text, base)
        except ValueError:
            pass
        try:
            return int(float(text))
        except (ValueError, OverflowError):
            return default
    return default


def _filter_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip().replace("_", ""))
        except ValueError:
            return default
    return default


def _filter_round(value: Any, precision: int = 0, method: str = "common") -> float:
    """Round to ``precision`` digits; ``method`` is common, ceil or floor.

    ``common`` rounds halves away from zero: ``2.5 | round`` is ``3.0``.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidOperationError(f"round() requires a number, got {ops.kind_name(value)}")
    if method == "common":
        try:
            quantum = Decimal(1).scaleb(-precision)
            return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
        except InvalidOperation:
            return float(value)
    if method not in ("ceil", "floor"):
        raise InvalidArgumentsError(f"round() method must be common, ceil or floor, got {method!r}")
    func = math.ceil if method == "ceil" else math.floor
    factor = 10**precision
    return func(value * factor) / factor


# ---------------------------------------------------------------------------
# Sequences
# ---------------------------------------------------------------------------


def _filter_batch(value: Any, size: int, fill_with: Any = None) -> list[list[Any]]:
    """Split into lists of ``size`` items, padding the last with ``fill_with``."""
    if size < 1:
        raise InvalidArgumentsError("batch() size must be at least 1")
    items = _items(value)
    batches = [items[i : i + size] for i in range(0, len(items), size)]
    if batches and fill_with is not None and len(batches[-1]) < size:
        batches[-1].extend([fill_with] * (size - len(batches[-1])))
    return batches


def _filter_slice(value: Any, slices: int, fill_with: Any = None) -> list[list[Any]]:
    """Split into ``slices`` columns of near equal length."""
    if slices < 1:
        raise InvalidArgumentsError("slice() count must be at least 1")
    items = _items(value)
    per_slice, extra = divmod(len(items), slices)
    result = []
    offset = 0
    for index in range(slices):
        size = per_slice + (1 if index < extra else 0)
        column = items[offset : offset + size]
        offset += size
        if fill_with is not None and extra and index >= extra:
            column.append(fill_with)
        result.append(column)
    return result


def _filter_first(value: Any) -> Any:
    for item in ops.iter_value(value):
        return item
    return Undefined("first")


def _filter_last(value: Any) -> Any:
    items = _items(value)
    return items[-1] if items else Undefined("last")


@pass_state
def _filter_join(state: State, value: Any, d: str = "", attribute: Any = None) -> str:
    """Join items with ``d``; under HTML autoescape unsafe items are escaped."""
    items = _items(value)
    if attribute is not None:
        items = [_lookup_path(item, attribute) for item in items]
    if state.current_auto_escape is AutoEscape.HTML:
        return escape(d).join(escape(item) for item in items)
    return _text(d).join(ops.to_string(item) for item in items)


def _filter_length(value: Any) -> int:
    if isinstance(value, Undefined):
        return 0
    length = ops.length_of(value)
    if length is None:
        raise InvalidOperationError(f"cannot take the length of {ops.kind_name(value)}")
    return length


def _filter_list(value: Any) -> list[Any]:
    return _items(value)


def _filter_max(value: Any, attribute: Any = None, case_sensitive: bool = False) -> Any:
    items = _items(value)
    if not items:
        return Undefined("max")
    return max(items, key=_sort_key(attribute, case_sensitive))


def _filter_min(value: Any, attribute: Any = None, case_sensitive: bool = False) -> Any:
    items = _items(value)
    if not items:
        return Undefined("min")
    return min(items, key=_sort_key(attribute, case_sensitive))


def _filter_reverse(value: Any) -> Any:
    if isinstance(value, str):
        return value[::-1]
    return _items(value)[::-1]


def _filter_sort(
    value: Any,
    reverse: bool = False,
    case_sensitive: bool = False,
    attribute: Any = None,
) -> list[Any]:
    return sorted(_items(value), key=_sort_key(attribute, case_sensitive), reverse=reverse)


def _filter_sum(value: Any, attribute: Any = None, start: Any = 0) -> Any:
    total = start
    for item in ops.iter_value(value):
        total = ops.add(total, _lookup_path(item, attribute) if attribute is not None else item)
    return total


def _filter_unique(value: Any, case_sensitive: bool = False, attribute: Any = None) -> list[Any]:
    seen: list[Any] = []
    result = []
    for item in ops.iter_value(value):
        key = _lookup_path(item, attribute) if attribute is not None else item
        if not case_sensitive and isinstance(key, str):
            key = key.lower()
        if not any(ops.equals(key, other) for other in seen):
            seen.append(key)
            result.append(item)
    return result


# ---------------------------------------------------------------------------
# Mappings
# ---------------------------------------------------------------------------


def _filter_dictsort(
    value: Any,
    case_sensitive: bool = False,
    by: str = "key",
    reverse: bool = False,
) -> list[tuple[Any, Any]]:
    """Sort a map into (key, value) pairs by key or by value."""
    if by not in ("key", "value"):
        raise InvalidArgumentsError(f"dictsort() can sort by 'key' or 'value', not {by!r}")
    position = 0 if by == "key" else 1
    key = _sort_key(case_sensitive=case_sensitive)
    return sorted(_filter_items(value), key=lambda pair: key(pair[position]), reverse=reverse)


def _filter_items(value: Any) -> list[tuple[Any, Any]]:
    if isinstance(value, Undefined):
        return []
    if not isinstance(value, Mapping):
        raise InvalidOperationError(f"items() requires a map, got {ops.kind_name(value)}")
    return list(value.items())


# ---------------------------------------------------------------------------
# Higher order
# ---------------------------------------------------------------------------


def _filter_attr(value: Any, name: str) -> Any:
    found = ops.get_attr(value, name)
    return Undefined(name) if found is MISSING else found


class Group(TemplateObject):
    """One group produced by the ``groupby`` filter.

    Unpacks as ``(grouper, list)`` and exposes both as attributes.
    """

    capabilities = Capability.ATTRIBUTABLE | Capability.ITERABLE | Capability.INDEXABLE

    __slots__ = ("grouper", "list")

    def __init__(self, grouper: Any, items: list[Any]):
        self.grouper = grouper
        self.list = items

    def get_attr(self, name: str) -> Any:
        if name == "grouper":
            return self.grouper
        if name == "list":
            return self.list
        return MISSING

    def get_item(self, key: Any) -> Any:
        if key in (0, 1) and not isinstance(key, bool):
            return (self.grouper, self.list)[key]
        return MISSING

    def iterate(self) -> Iterator[Any]:
        return iter((self.grouper, self.list))

    def length(self) -> int:
        return 2

    def render(self) -> str:
        return f"({ops.repr_value(self.grouper)}, {ops.repr_value(self.list)})"


def _filter_groupby(value: Any, attribute: Any, default: Any = MISSING) -> list[Group]:
    """Group items by ``attribute``, sorted by the group key."""
    key = _sort_key(attribute, case_sensitive=True)
    items = sorted(_items(value), key=key)
    return [
        Group(grouper, list(members))
        for grouper, members in itertools.groupby(
            items, key=lambda item: _lookup_path(item, attribute, default)
        )
    ]


@pass_state
def _filter_map(
    state: State,
    value: Any,
    *args: Any,
    attribute: Any = None,
    default: Any = MISSING,
) -> list[Any]:
    """Apply a filter to each item, or pick ``attribute`` from each item.

    Example:
        {{ users | map(attribute='name') | join(', ') }}
        {{ names | map('upper') | list }}
    """
    items = _items(value)
    if attribute is not None:
        return [_lookup_path(item, attribute, default) for item in items]
    if not args:
        raise InvalidArgumentsError("map() requires a filter name or attribute=")
    name, rest = args[0], args[1:]
    func = _resolve(state.env.filters, name, "filter")
    return [state.call(func, (item, *rest), {}, f"filter '{name}'") for item in items]


def _select(
    state: State,
    value: Any,
    args: tuple[Any, ...],
    keep: bool,
    attribute: Any = None,
) -> list[Any]:
    test = None
    rest: tuple[Any, ...] = ()
    if args:
        test = _resolve(state.env.tests, args[0], "test")
        rest = args[1:]
    result = []
    for item in ops.iter_value(value):
        subject = _lookup_path(item, attribute) if attribute is not None else item
        if test is None:
            passed = ops.is_true(subject)
        else:
            passed = ops.is_true(state.call(test, (subject, *rest), {}, f"test '{args[0]}'"))
        if passed is keep:
            result.append(item)
    return result


@pass_state
def _filter_select(state: State, value: Any, *args: Any) -> list[Any]:
    """Keep items passing a test: ``numbers | select('odd')``."""
    return _select(state, value, args, True)


@pass_state
def _filter_reject(state: State, value: Any, *args: Any) -> list[Any]:
    return _select(state, value, args, False)


@pass_state
def _filter_selectattr(state: State, value: Any, attribute: str, *args: Any) -> list[Any]:
    """Keep items whose ``attribute`` passes a test (truthiness by default)."""
    return _select(state, value, args, True, attribute)


@pass_state
def _filter_rejectattr(state: State, value: Any, attribute: str, *args: Any) -> list[Any]:
    return _select(state, value, args, False, attribute)


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------


def _filter_default(value: Any, default_value: Any = "", boolean: bool = False) -> Any:
    """Replace undefined (or, with ``boolean``, any falsy) values.

    Example:
        {{ user.nickname | default(user.name) }}
        {{ "" | default("n/a", true) }}
    """
    if isinstance(value, Undefined) or (boolean and not ops.is_true(value)):
        return default_value
    return value


DEFAULT_FILTERS: dict[str, Callable[..., Any]] = {
    "abs": _filter_abs,
    "attr": _filter_attr,
    "batch": _filter_batch,
    "capitalize": _filter_capitalize,
    "center": _filter_center,
    "count": _filter_length,
    "d": _filter_default,
    "default": _filter_default,
    "dictsort": _filter_dictsort,
    "e": _filter_escape,
    "escape": _filter_escape,
    "first": _filter_first,
    "float": _filter_float,
    "format": _filter_format,
    "groupby": _filter_groupby,
    "indent": _filter_indent,
    "int": _filter_int,
    "items": _filter_items,
    "join": _filter_join,
    "last": _filter_last,
    "length": _filter_length,
    "list": _filter_list,
    "lower": _filter_lower,
    "map": _filter_map,
    "max": _filter_max,
    "min": _filter_min,
    "reject": _filter_reject,
    "rejectattr": _filter_rejectattr,
    "replace": _filter_replace,
    "reverse": _filter_reverse,
    "round": _filter_round,
    "safe": _filter_safe,
    "select": _filter_select,
    "selectattr": _filter_selectattr,
    "slice": _filter_slice,
    "sort": _filter_sort,
    "split": _filter_split,
    "string": _filter_string,
    "striptags": _filter_striptags,
    "sum": _filter_sum,
    "title": _filter_title,
    "tojson": _filter_tojson,
    "trim": _filter_trim,
    "truncate": _filter_truncate,
    "unique": _filter_unique,
    "upper": _filter_upper,
    "urlencode": _filter_urlencode,
    "wordcount": _filter_wordcount,
}
