"""Test resource limits: recursion depth, instruction fuel and range size."""

import pytest

from stencil import (
    DictLoader,
    Environment,
    ErrorKind,
    InvalidOperationError,
    OutOfFuelError,
    TemplateRecursionError,
)
from stencil.environment.globals import MAX_RANGE

LOOP = "{% for i in range(50) %}{{ i }}{% endfor %}"


def minimum_fuel(loader, name):
    """Smallest fuel budget that renders template 'name'."""
    low, high = 0, 100_000
    while low < high:
        middle = (low + high) // 2
        try:
            Environment(loader=loader, fuel=middle).get_template(name).render()
        except OutOfFuelError:
            low = middle + 1
        else:
            high = middle
    return low


class TestRecursionLimit:
    def test_macro_recursion(self):
        env = Environment(recursion_limit=25)
        tmpl = env.from_string("{% macro f(n) %}{{ f(n + 1) }}{% endmacro %}{{ f(0) }}")
        with pytest.raises(TemplateRecursionError) as exc_info:
            tmpl.render()
        assert exc_info.value.message == "recursion limit of 25 exceeded in macro 'f'"
        assert exc_info.value.code is ErrorKind.RECURSION_ERROR

    def test_bounded_recursion_within_limit(self):
        env = Environment(recursion_limit=25)
        tmpl = env.from_string(
            "{% macro down(n) %}{{ n }}{% if n > 0 %}{{ down(n - 1) }}{% endif %}{% endmacro %}"
            "{{ down(5) }}"
        )
        assert tmpl.render() == "543210"

    def test_include_cycle(self):
        env = Environment(
            loader=DictLoader({"a": "{% include 'b' %}", "b": "{% include 'a' %}"}),
            recursion_limit=30,
        )
        with pytest.raises(TemplateRecursionError) as exc_info:
            env.get_template("a").render()
        assert "exceeded in include" in exc_info.value.message

    def test_extends_cycle(self):
        env = Environment(
            loader=DictLoader({"a": "{% extends 'b' %}", "b": "{% extends 'a' %}"}),
            recursion_limit=30,
        )
        with pytest.raises(TemplateRecursionError) as exc_info:
            env.get_template("a").render()
        assert "exceeded in extends" in exc_info.value.message

    def test_recursive_loop(self):
        tree = {"children": []}
        node = tree
        for _ in range(40):
            child = {"children": []}
            node["children"].append(child)
            node = child
        env = Environment(recursion_limit=10)
        tmpl = env.from_string(
            "{% for n in [tree] recursive %}.{{ loop(n.children) }}{% endfor %}"
        )
        with pytest.raises(TemplateRecursionError):
            tmpl.render(tree=tree)

    def test_default_limit_is_reachable(self):
        env = Environment()
        tmpl = env.from_string(
            "{% macro down(n) %}.{% if n > 0 %}{{ down(n - 1) }}{% endif %}{% endmacro %}"
            "{{ down(depth) }}"
        )
        limit = env.recursion_limit
        assert tmpl.render(depth=limit - 1) == "." * limit
        with pytest.raises(TemplateRecursionError) as exc_info:
            tmpl.render(depth=limit)
        assert exc_info.value.message == f"recursion limit of {limit} exceeded in macro 'down'"

    def test_depth_is_released_after_each_call(self):
        env = Environment(recursion_limit=5)
        tmpl = env.from_string(
            "{% macro f() %}x{% endmacro %}{% for i in range(20) %}{{ f() }}{% endfor %}"
        )
        assert tmpl.render() == "x" * 20

    def test_interpreter_stack_exhaustion_is_reported(self):
        env = Environment(recursion_limit=1_000_000)
        tmpl = env.from_string("{% macro f() %}{{ f() }}{% endmacro %}{{ f() }}")
        with pytest.raises(TemplateRecursionError):
            tmpl.render()


class TestFuel:
    def test_unlimited_by_default(self, env):
        assert len(env.from_string(LOOP).render()) > 0

    def test_out_of_fuel(self):
        env = Environment(fuel=20)
        with pytest.raises(OutOfFuelError) as exc_info:
            env.from_string(LOOP).render()
        assert exc_info.value.message == "template exceeded its instruction budget"
        assert exc_info.value.code is ErrorKind.OUT_OF_FUEL

    def test_enough_fuel(self):
        env = Environment(fuel=10_000)
        assert env.from_string(LOOP).render().startswith("0123")

    def test_fuel_is_per_render(self):
        env = Environment(fuel=10_000)
        tmpl = env.from_string("{% for i in range(100) %}{{ i }}{% endfor %}")
        first = tmpl.render()
        assert tmpl.render() == first

    def test_included_templates_share_the_budget(self):
        loader = DictLoader({"body": LOOP, "page": "{% include 'body' %}{% include 'body' %}"})
        fuel = minimum_fuel(loader, "body")
        env = Environment(loader=loader, fuel=fuel)
        env.get_template("body").render()
        with pytest.raises(OutOfFuelError):
            env.get_template("page").render()

    def test_zero_fuel(self):
        env = Environment(fuel=0)
        with pytest.raises(OutOfFuelError):
            env.from_string("x").render()


class TestRange:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ range(3) | join(',') }}", "0,1,2"),
            ("{{ range(1, 4) | join(',') }}", "1,2,3"),
            ("{{ range(5, 0, -2) | join(',') }}", "5,3,1"),
            ("[{{ range(0) | join }}]", "[]"),
        ],
    )
    def test_range(self, env, source, expected):
        assert env.from_string(source).render() == expected

    def test_zero_step(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ range(1, 5, 0) }}").render()
        assert exc_info.value.message == "range() step cannot be zero"

    def test_too_large(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ range(n) | length }}").render(n=MAX_RANGE + 1)
        assert exc_info.value.message == (
            f"range() of {MAX_RANGE + 1} items exceeds the limit of {MAX_RANGE}"
        )

    def test_at_the_limit(self, env):
        assert env.from_string("{{ range(n) | length }}").render(n=MAX_RANGE) == str(MAX_RANGE)

    def test_non_integer_argument(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ range('3') }}").render()
        assert exc_info.value.message == "range() arguments must be integers, got '3'"

    def test_argument_count(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ range() }}").render()
        assert exc_info.value.message == "range() takes 1 to 3 arguments, got 0"
