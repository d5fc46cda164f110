"""Test the built-in ``is`` tests."""

import pytest

from stencil import InvalidOperationError, Markup


def check(env, expr, **context):
    """Render ``{{ expr }}`` and return the boolean it printed."""
    result = env.from_string("{{ " + expr + " }}").render(**context)
    assert result in ("true", "false"), result
    return result == "true"


class TestTypeTests:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("1 is number", True),
            ("1.5 is number", True),
            ("true is number", False),
            ("'1' is number", False),
            ("1 is integer", True),
            ("1.0 is integer", False),
            ("1.0 is float", True),
            ("'s' is string", True),
            ("1 is string", False),
            ("true is boolean", True),
            ("0 is boolean", False),
            ("none is none", True),
            ("0 is none", False),
            ("[1] is sequence", True),
            ("'ab' is sequence", False),
            ("{} is mapping", True),
            ("[] is mapping", False),
            ("[] is iterable", True),
            ("'ab' is iterable", True),
            ("{} is iterable", True),
            ("1 is iterable", False),
            ("none is iterable", False),
            ("missing is iterable", False),
            ("range is callable", True),
            ("'x' is callable", False),
        ],
    )
    def test_literals(self, env, expr, expected):
        assert check(env, expr) is expected

    def test_defined(self, env):
        assert check(env, "x is defined", x=None) is True
        assert check(env, "x is defined") is False
        assert check(env, "x is undefined") is True
        assert check(env, "x is not defined") is True

    def test_safe(self, env):
        assert check(env, "v is safe", v=Markup("<b>")) is True
        assert check(env, "v is safe", v="<b>") is False
        assert check(env, "'<b>' | safe is safe") is True

    def test_macro_is_callable(self, env):
        tmpl = env.from_string("{% macro m() %}{% endmacro %}{{ m is callable }}")
        assert tmpl.render() == "true"

    def test_python_callable(self, env):
        assert check(env, "f is callable", f=len) is True
        assert check(env, "cls is callable", cls=dict) is False


class TestValueTests:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("true is true", True),
            ("1 is true", False),
            ("false is false", True),
            ("0 is false", False),
            ("3 is odd", True),
            ("4 is odd", False),
            ("4 is even", True),
            ("2.0 is even", False),
            ("9 is divisibleby 3", True),
            ("9 is divisibleby(4)", False),
            ("9 is divisibleby(0)", False),
            ("'abc' is lower", True),
            ("'aBc' is lower", False),
            ("'ABC' is upper", True),
            ("'abc' is startingwith 'ab'", True),
            ("'abc' is endingwith('bc')", True),
            ("'abc' is endingwith('ab')", False),
        ],
    )
    def test_literals(self, env, expr, expected):
        assert check(env, expr) is expected


class TestComparisonTests:
    @pytest.mark.parametrize(
        ("expr", "expected"),
        [
            ("1 is eq 1", True),
            ("1 is equalto(1.0)", True),
            ("1 is ne 2", True),
            ("1 is lt 2", True),
            ("2 is lessthan(1)", False),
            ("2 is le 2", True),
            ("3 is gt 2", True),
            ("3 is greaterthan(4)", False),
            ("2 is ge 3", False),
            ("'a' is lt 'b'", True),
            ("1 is in [1, 2]", True),
            ("3 is in([1, 2])", False),
            ("'b' is in 'abc'", True),
            ("none is sameas none", True),
        ],
    )
    def test_literals(self, env, expr, expected):
        assert check(env, expr) is expected

    def test_sameas_is_identity(self, env):
        value = [1]
        assert check(env, "a is sameas b", a=value, b=value) is True
        assert check(env, "a is sameas b", a=value, b=[1]) is False

    def test_cross_kind_ordering_fails(self, env):
        with pytest.raises(InvalidOperationError):
            env.from_string("{{ 1 is lt 'a' }}").render()

    def test_equality_across_kinds_is_false(self, env):
        assert check(env, "1 is eq '1'") is False


class TestTestSyntax:
    def test_negation(self, env):
        assert check(env, "3 is not even") is True
        assert check(env, "not 3 is even") is True

    def test_in_condition(self, env):
        tmpl = env.from_string(
            "{% for n in range(1, 6) %}{% if n is odd %}{{ n }}{% endif %}{% endfor %}"
        )
        assert tmpl.render() == "135"

    def test_test_after_filter(self, env):
        assert check(env, "items | length is even", items=[1, 2]) is True

    def test_tests_combine_with_boolean_operators(self, env):
        assert check(env, "x is defined and x is number", x=3) is True
        assert check(env, "x is defined and x is number") is False

    def test_loop_index_test(self, env):
        tmpl = env.from_string(
            "{% for item in items %}{% if loop.index is even %}[{{ item }}]{% endif %}{% endfor %}"
        )
        assert tmpl.render(items="abcd") == "[b][d]"
