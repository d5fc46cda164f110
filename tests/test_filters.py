"""Test the built-in filters."""

import pytest

from stencil import (
    InvalidArgumentsError,
    InvalidOperationError,
    Markup,
    NotIterableError,
    UnknownCallableError,
    pass_state,
)

USERS = [
    {"name": "ada", "age": 36, "active": True},
    {"name": "bob", "age": 25, "active": False},
    {"name": "cy", "age": 41, "active": True},
]


def render(env, source, **context):
    return env.from_string(source).render(**context)


class TestStringFilters:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ 'hELLO' | capitalize }}", "Hello"),
            ("{{ 'Hello' | lower }}", "hello"),
            ("{{ 'Hello' | upper }}", "HELLO"),
            ("{{ 'hello world' | title }}", "Hello World"),
            ("{{ '  x  ' | trim }}", "x"),
            ("{{ '--x--' | trim('-') }}", "x"),
            ("{{ 'a' | center(5) }}", "  a  "),
            ("{{ 'aaa' | replace('a', 'b') }}", "bbb"),
            ("{{ 'aaa' | replace('a', 'b', 2) }}", "bba"),
            ("{{ 'a,b,c' | split(',') | join('|') }}", "a|b|c"),
            ("{{ 'a b  c' | split | length }}", "3"),
            ("{{ '%s-%s' | format('a', 'b') }}", "a-b"),
            ("{{ '%(x)s!' | format(x=1) }}", "1!"),
            ("{{ 'one two, three' | wordcount }}", "3"),
            ("{{ 42 | string ~ '!' }}", "42!"),
            ("{{ none | string }}", "none"),
        ],
    )
    def test_simple(self, env, source, expected):
        assert render(env, source) == expected

    def test_format_rejects_mixed_arguments(self, env):
        with pytest.raises(InvalidArgumentsError):
            render(env, "{{ '%s' | format('a', x=1) }}")

    def test_indent(self, env):
        assert render(env, "{{ t | indent(2) }}", t="a\nb\n\nc") == "a\n  b\n\n  c"
        assert render(env, "{{ t | indent('> ', first=true) }}", t="a\nb") == "> a\n> b"
        assert render(env, "{{ t | indent(1, blank=true) }}", t="a\n") == "a\n "

    def test_striptags(self, env):
        source = "{{ html | striptags }}"
        assert render(env, source, html="<p>Hello   <b>world</b></p><!-- c -->") == "Hello world"

    def test_truncate(self, env):
        text = "hello world foo bar"
        assert render(env, "{{ t | truncate(11, leeway=0) }}", t=text) == "hello..."
        assert render(env, "{{ t | truncate(11, true, leeway=0) }}", t=text) == "hello wo..."
        assert render(env, "{{ t | truncate(11, end='~', leeway=0) }}", t=text) == "hello~"

    def test_truncate_within_leeway(self, env):
        assert render(env, "{{ 'hello world' | truncate(8) }}") == "hello world"

    def test_urlencode(self, env):
        assert render(env, "{{ 'a b&c/d' | urlencode }}") == "a%20b%26c/d"
        assert render(env, "{{ q | urlencode }}", q={"q": "a b", "n": 1}) == "q=a+b&n=1"

    def test_string_filters_keep_markup_safe(self, env_autoescape):
        assert render(env_autoescape, "{{ html | upper }}", html=Markup("<b>x</b>")) == "<B>X</B>"

    def test_string_filters_on_undefined(self, env):
        assert render(env, "[{{ missing | upper }}]") == "[]"


class TestNumberFilters:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ (-3) | abs }}", "3"),
            ("{{ '42' | int }}", "42"),
            ("{{ '3.9' | int }}", "3"),
            ("{{ 3.7 | int }}", "3"),
            ("{{ 'x' | int }}", "0"),
            ("{{ 'x' | int(7) }}", "7"),
            ("{{ '1A' | int(base=16) }}", "26"),
            ("{{ '2.5' | float }}", "2.5"),
            ("{{ 'x' | float }}", "0.0"),
            ("{{ 2.5 | round }}", "3.0"),
            ("{{ (-2.5) | round }}", "-3.0"),
            ("{{ 2.345 | round(2) }}", "2.35"),
            ("{{ 2.1 | round(method='ceil') }}", "3.0"),
            ("{{ 2.9 | round(method='floor') }}", "2.0"),
        ],
    )
    def test_simple(self, env, source, expected):
        assert render(env, source) == expected

    def test_abs_requires_number(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            render(env, "{{ 'x' | abs }}")
        assert exc_info.value.message == "abs() requires a number, got string"

    def test_round_unknown_method(self, env):
        with pytest.raises(InvalidArgumentsError):
            render(env, "{{ 1.5 | round(method='up') }}")


class TestSequenceFilters:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ [1, 2, 3] | first }}", "1"),
            ("{{ [1, 2, 3] | last }}", "3"),
            ("[{{ [] | first }}]", "[]"),
            ("{{ [1, 2] | join(', ') }}", "1, 2"),
            ("{{ 'abc' | length }}", "3"),
            ("{{ {} | count }}", "0"),
            ("{{ missing | length }}", "0"),
            ("{{ 'ab' | list }}", '["a", "b"]'),
            ("{{ 'abc' | reverse }}", "cba"),
            ("{{ [1, 2, 3] | reverse | join }}", "321"),
            ("{{ [3, 1, 2] | sort | join }}", "123"),
            ("{{ [3, 1, 2] | sort(reverse=true) | join }}", "321"),
            ("{{ ['b', 'a', 'C'] | sort | join }}", "abC"),
            ("{{ ['b', 'a', 'C'] | sort(case_sensitive=true) | join }}", "Cab"),
            ("{{ [3, 1, 2] | max }}", "3"),
            ("{{ [3, 1, 2] | min }}", "1"),
            ("{{ ['b', 'A', 'c'] | max }}", "c"),
            ("{{ ['b', 'A', 'c'] | min }}", "A"),
            ("[{{ [] | max }}]", "[]"),
            ("{{ [1, 2, 3] | sum }}", "6"),
            ("{{ [1, 2] | sum(start=10) }}", "13"),
            ("{{ ['a', 'A', 'b'] | unique | join }}", "ab"),
            ("{{ ['a', 'A', 'b'] | unique(true) | join }}", "aAb"),
            ("{{ [1, 2, 3, 4, 5] | batch(2) }}", "[[1, 2], [3, 4], [5]]"),
            ("{{ [1, 2, 3] | batch(2, 0) }}", "[[1, 2], [3, 0]]"),
            ("{{ [1, 2, 3, 4, 5] | slice(2) }}", "[[1, 2, 3], [4, 5]]"),
            ("{{ [1, 2, 3, 4, 5] | slice(2, 0) }}", "[[1, 2, 3], [4, 5, 0]]"),
        ],
    )
    def test_simple(self, env, source, expected):
        assert render(env, source) == expected

    def test_attribute_arguments(self, env):
        assert render(env, "{{ users | join(', ', attribute='name') }}", users=USERS) == (
            "ada, bob, cy"
        )
        assert render(env, "{{ (users | max(attribute='age')).name }}", users=USERS) == "cy"
        assert render(env, "{{ (users | min(attribute='age')).name }}", users=USERS) == "bob"
        assert render(env, "{{ users | sum(attribute='age') }}", users=USERS) == "102"
        sorted_names = "{{ users | sort(attribute='age') | map(attribute='name') | join }}"
        assert render(env, sorted_names, users=USERS) == "bobadacy"

    def test_sort_by_nested_path(self, env):
        rows = [{"meta": {"rank": 2}, "id": "b"}, {"meta": {"rank": 1}, "id": "a"}]
        source = "{{ rows | sort(attribute='meta.rank') | map(attribute='id') | join }}"
        assert render(env, source, rows=rows) == "ab"

    def test_sort_mixed_kinds_fails(self, env):
        with pytest.raises(InvalidOperationError):
            render(env, "{{ [1, 'a'] | sort }}")

    def test_join_escapes_under_autoescape(self, env_autoescape):
        source = "{{ items | join('<br>' | safe) }}"
        assert render(env_autoescape, source, items=["<a>", Markup("<b>")]) == "&lt;a&gt;<br><b>"

    def test_batch_size_must_be_positive(self, env):
        with pytest.raises(InvalidArgumentsError):
            render(env, "{{ [1] | batch(0) }}")

    def test_iterating_filters_reject_undefined(self, env):
        with pytest.raises(NotIterableError):
            render(env, "{{ missing | sort }}")

    def test_length_of_number_fails(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            render(env, "{{ 5 | length }}")
        assert exc_info.value.message == "cannot take the length of number"


class TestMappingFilters:
    def test_dictsort(self, env):
        source = "{% for k, v in d | dictsort %}{{ k }}={{ v }};{% endfor %}"
        assert render(env, source, d={"b": 1, "a": 2}) == "a=2;b=1;"

    def test_dictsort_by_value(self, env):
        source = "{% for k, v in d | dictsort(by='value', reverse=true) %}{{ k }}{% endfor %}"
        assert render(env, source, d={"a": 1, "b": 3, "c": 2}) == "bca"

    def test_dictsort_bad_key(self, env):
        with pytest.raises(InvalidArgumentsError):
            render(env, "{{ {} | dictsort(by='size') }}")

    def test_items(self, env):
        source = "{% for k, v in d | items %}{{ k }}{{ v }}{% endfor %}"
        assert render(env, source, d={"x": 1, "y": 2}) == "x1y2"

    def test_items_on_undefined_is_empty(self, env):
        assert render(env, "{{ missing | items | length }}") == "0"

    def test_items_requires_map(self, env):
        with pytest.raises(InvalidOperationError):
            render(env, "{{ [1] | items }}")


class TestHigherOrderFilters:
    def test_attr(self, env):
        assert render(env, "{{ user | attr('name') }}", user={"name": "ada"}) == "ada"

    def test_map_filter_name(self, env):
        assert render(env, "{{ ['a', 'b'] | map('upper') | join(',') }}") == "A,B"

    def test_map_filter_with_arguments(self, env):
        assert render(env, "{{ ['aa', 'ba'] | map('replace', 'a', 'x') | join(',') }}") == "xx,bx"

    def test_map_attribute(self, env):
        assert render(env, "{{ users | map(attribute='name') | join(',') }}", users=USERS) == (
            "ada,bob,cy"
        )

    def test_map_attribute_default(self, env):
        rows = [{"n": 1}, {}]
        source = "{{ rows | map(attribute='n', default=0) | join(',') }}"
        assert render(env, source, rows=rows) == "1,0"

    def test_map_custom_filter(self, env):
        env.add_filter("double", lambda value: value * 2)
        assert render(env, "{{ [1, 2] | map('double') | join(',') }}") == "2,4"

    def test_map_unknown_filter(self, env):
        with pytest.raises(UnknownCallableError) as exc_info:
            render(env, "{{ [1] | map('nope') }}")
        assert exc_info.value.message == "unknown filter 'nope'"

    def test_map_without_arguments(self, env):
        with pytest.raises(InvalidArgumentsError):
            render(env, "{{ [1] | map }}")

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("{{ range(1, 7) | select('odd') | join }}", "135"),
            ("{{ range(1, 7) | reject('odd') | join }}", "246"),
            ("{{ range(1, 7) | select('divisibleby', 3) | join }}", "36"),
            ("{{ [0, 1, '', 'a', none] | select | list }}", '[1, "a"]'),
            ("{{ [0, 1, '', 'a'] | reject | length }}", "2"),
        ],
    )
    def test_select_reject(self, env, source, expected):
        assert render(env, source) == expected

    def test_selectattr(self, env):
        source = "{{ users | selectattr('active') | map(attribute='name') | join(',') }}"
        assert render(env, source, users=USERS) == "ada,cy"

    def test_rejectattr(self, env):
        source = "{{ users | rejectattr('active') | map(attribute='name') | join(',') }}"
        assert render(env, source, users=USERS) == "bob"

    def test_selectattr_with_test(self, env):
        source = "{{ users | selectattr('age', 'gt', 30) | map(attribute='name') | join(',') }}"
        assert render(env, source, users=USERS) == "ada,cy"

    def test_select_unknown_test(self, env):
        with pytest.raises(UnknownCallableError) as exc_info:
            render(env, "{{ [1] | select('prime') }}")
        assert exc_info.value.message == "unknown test 'prime'"

    def test_groupby(self, env):
        people = [
            {"city": "B", "n": "x"},
            {"city": "A", "n": "y"},
            {"city": "B", "n": "z"},
        ]
        source = (
            "{% for city, members in people | groupby('city') %}"
            "{{ city }}:{{ members | map(attribute='n') | join(',') }};"
            "{% endfor %}"
        )
        assert render(env, source, people=people) == "A:y;B:x,z;"

    def test_groupby_attributes(self, env):
        source = (
            "{% for group in items | groupby('k') %}"
            "{{ group.grouper }}={{ group.list | length }} "
            "{% endfor %}"
        )
        assert render(env, source, items=[{"k": 1}, {"k": 2}, {"k": 1}]) == "1=2 2=1 "


class TestDefaultFilter:
    def test_undefined_uses_default(self, env):
        assert render(env, "{{ missing | default('x') }}") == "x"
        assert render(env, "{{ missing | d('y') }}") == "y"

    def test_defined_value_is_kept(self, env):
        assert render(env, "{{ v | default('x') }}", v="") == ""
        assert render(env, "{{ v | default('x') }}", v=None) == "none"

    def test_boolean_mode(self, env):
        assert render(env, "{{ v | default('x', true) }}", v="") == "x"
        assert render(env, "{{ v | default('x', boolean=true) }}", v=0) == "x"

    def test_default_argument_is_empty_string(self, env_strict):
        assert render(env_strict, "[{{ missing | default }}]") == "[]"


class TestCustomFilters:
    def test_pass_state(self, env):
        @pass_state
        def template_name(state, value):
            return f"{value}@{state.name}"

        env.add_filter("where", template_name)
        tmpl = env.from_string("{{ 'here' | where }}", name="page.txt")
        assert tmpl.render() == "here@page.txt"

    def test_filter_block_uses_filter(self, env):
        env.add_filter("shout", lambda value: value.upper() + "!")
        assert render(env, "{% filter shout %}hey{% endfilter %}") == "HEY!"

    def test_chained_filters_in_filter_block(self, env):
        assert render(env, "{% filter trim | upper %}  hey  {% endfilter %}") == "HEY"

    def test_filter_errors_are_wrapped(self, env):
        def explode(value):
            raise KeyError(value)

        env.add_filter("explode", explode)
        with pytest.raises(InvalidOperationError) as exc_info:
            render(env, "{{ 'k' | explode }}")
        assert exc_info.value.message == "filter 'explode' failed: 'k'"
        assert isinstance(exc_info.value.__cause__, KeyError)
