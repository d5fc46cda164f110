"""Built-in tests for Stencil templates.

Tests are boolean predicates used with `is` in conditionals:
`{% if value is test %}` or `{% if value is test(arg) %}`

Categories:
**Type Tests**:
    - `defined`: Value is not undefined
    - `undefined`: Value is undefined
    - `none`: Value is none
    - `boolean`: Value is true or false
    - `string`: Value is a string
    - `number`: Value is int or float (not bool)
    - `integer` / `float`: Value is that kind of number
    - `sequence`: Value is a list or tuple
    - `mapping`: Value is a map
    - `iterable`: Value supports iteration
    - `callable`: Value can be called
    - `safe`: Value is marked safe (Markup)

**Boolean Tests**:
    - `true`: Value is exactly true
    - `false`: Value is exactly false

**Number Tests**:
    - `odd`: Integer is odd
    - `even`: Integer is even
    - `divisibleby(n)`: Integer is divisible by n

**Comparison Tests**:
    - `eq(other)` / `equalto(other)` / `==`: Equal to other
    - `ne(other)` / `!=`: Not equal to other
    - `lt(other)` / `lessthan(other)` / `<`: Less than other
    - `le(other)` / `<=`: Less than or equal
    - `gt(other)` / `greaterthan(other)` / `>`: Greater than other
    - `ge(other)` / `>=`: Greater than or equal
    - `sameas(other)`: Identity comparison
    - `in(seq)`: Value is in sequence

**String Tests**:
    - `lower`: String is all lowercase
    - `upper`: String is all uppercase
    - `startingwith(prefix)` / `endingwith(suffix)`

Comparisons use template semantics, so ``1 is lt('a')`` fails with an
InvalidOperationError instead of comparing across kinds.

Negation:
Use `is not` for negated tests:
`{% if user is not defined %}` or `{% if count is not even %}`

Example:
    ```jinja
    {% if posts is defined and posts is iterable %}
        {% for post in posts %}
            {% if loop.index is odd %}
                <div class="odd">{{ post.title }}</div>
            {% endif %}
        {% endfor %}
    {% endif %}
    ```

Custom Tests:
    >>> env.add_test('prime', lambda n: n > 1 and all(n % i for i in range(2, n)))
    >>> # {% if 17 is prime %}Yes{% endif %}

"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from stencil.value import ops
from stencil.value.kinds import ValueKind, kind_of
from stencil.value.markup import Markup
from stencil.value.objects import Capability, TemplateObject
from stencil.value.undefined import Undefined


def _test_callable(value: Any) -> bool:
    """Test if value can be called from a template."""
    if isinstance(value, TemplateObject):
        return value.has(Capability.CALLABLE)
    return callable(value) and not isinstance(value, type)


def _test_defined(value: Any) -> bool:
    return not isinstance(value, Undefined)


def _test_undefined(value: Any) -> bool:
    return isinstance(value, Undefined)


def _test_divisible_by(value: int, num: int) -> bool:
    """Test if value is divisible by num."""
    if not num:
        return False
    return ops.mod(value, num) == 0


def _test_eq(value: Any, other: Any) -> bool:
    return ops.equals(value, other)


def _test_ne(value: Any, other: Any) -> bool:
    return not ops.equals(value, other)


def _test_lt(value: Any, other: Any) -> bool:
    return ops.compare("<", value, other)


def _test_le(value: Any, other: Any) -> bool:
    return ops.compare("<=", value, other)


def _test_gt(value: Any, other: Any) -> bool:
    return ops.compare(">", value, other)


def _test_ge(value: Any, other: Any) -> bool:
    return ops.compare(">=", value, other)


def _test_in(value: Any, seq: Any) -> bool:
    """Test if value is in sequence."""
    return ops.contains(seq, value)


def _test_even(value: Any) -> bool:
    return _is_integer(value) and value % 2 == 0


def _test_odd(value: Any) -> bool:
    return _is_integer(value) and value % 2 == 1


def _test_iterable(value: Any) -> bool:
    """Test if value supports iteration in a for loop."""
    if isinstance(value, TemplateObject):
        return value.has(Capability.ITERABLE)
    if isinstance(value, (Undefined, bytes, bytearray)) or value is None:
        return False
    try:
        iter(value)
    except TypeError:
        return False
    return True


def _test_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def _test_sequence(value: Any) -> bool:
    return kind_of(value) is ValueKind.SEQ


def _test_number(value: Any) -> bool:
    """Test if value is a number."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _test_float(value: Any) -> bool:
    return isinstance(value, float)


def _test_boolean(value: Any) -> bool:
    return isinstance(value, bool)


def _test_lower(value: Any) -> bool:
    return isinstance(value, str) and value.islower()


def _test_upper(value: Any) -> bool:
    return isinstance(value, str) and value.isupper()


def _test_starting_with(value: Any, prefix: str) -> bool:
    return isinstance(value, str) and value.startswith(prefix)


def _test_ending_with(value: Any, suffix: str) -> bool:
    return isinstance(value, str) and value.endswith(suffix)


# Default tests
DEFAULT_TESTS: dict[str, Callable[..., bool]] = {
    "boolean": _test_boolean,
    "callable": _test_callable,
    "defined": _test_defined,
    "divisibleby": _test_divisible_by,
    "endingwith": _test_ending_with,
    "eq": _test_eq,
    "equalto": _test_eq,
    "==": _test_eq,
    "even": _test_even,
    "false": lambda v: v is False,
    "float": _test_float,
    "ge": _test_ge,
    ">=": _test_ge,
    "gt": _test_gt,
    ">": _test_gt,
    "greaterthan": _test_gt,
    "in": _test_in,
    "integer": _is_integer,
    "iterable": _test_iterable,
    "le": _test_le,
    "<=": _test_le,
    "lower": _test_lower,
    "lt": _test_lt,
    "<": _test_lt,
    "lessthan": _test_lt,
    "mapping": _test_mapping,
    "ne": _test_ne,
    "!=": _test_ne,
    "none": lambda v: v is None,
    "number": _test_number,
    "odd": _test_odd,
    "safe": lambda v: isinstance(v, Markup),
    "sameas": lambda v, o: v is o,
    "sequence": _test_sequence,
    "startingwith": _test_starting_with,
    "string": lambda v: isinstance(v, str),
    "true": lambda v: v is True,
    "undefined": _test_undefined,
    "upper": _test_upper,
}
