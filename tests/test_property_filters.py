"""Property-based tests for Stencil built-in filters.

Uses hypothesis to verify filter composition invariants that must hold
for all inputs:

- Idempotence (trim of trim == trim)
- Length consistency (length filter matches Python len)
- Sort correctness (sort filter produces sorted output)
- Default absorption (defined value ignores default)
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from stencil import Environment

from .strategies import ascii_lowercase_text, sortable_int_list, string_filter_chain

_env = Environment()


def _render(template: str, **ctx: object) -> str:
    """Compile and render a one-shot template."""
    return _env.from_string(template).render(**ctx)


def _numbers(rendered: str) -> list[int]:
    return [int(v) for v in rendered.split(",") if v]


class TestFilterProperties:
    """Algebraic properties of built-in filters."""

    @given(s=st.text(min_size=0, max_size=100))
    @settings(max_examples=200)
    def test_trim_idempotence(self, s: str) -> None:
        once = _render("{{ s | trim }}", s=s)
        twice = _render("{{ s | trim | trim }}", s=s)
        assert once == twice == s.strip()

    @given(s=st.text(min_size=0, max_size=100))
    @settings(max_examples=200)
    def test_upper_idempotence(self, s: str) -> None:
        once = _render("{{ s | upper }}", s=s)
        twice = _render("{{ s | upper | upper }}", s=s)
        assert once == twice

    @given(items=st.lists(st.integers(min_value=-100, max_value=100), max_size=20))
    @settings(max_examples=200)
    def test_length_consistency(self, items: list[int]) -> None:
        assert _render("{{ items | length }}", items=items) == str(len(items))

    @given(items=sortable_int_list)
    @settings(max_examples=200)
    def test_sort_correctness(self, items: list[int]) -> None:
        result = _render("{% for x in items | sort %}{{ x }},{% endfor %}", items=items)
        assert _numbers(result) == sorted(items)

    @given(items=sortable_int_list)
    @settings(max_examples=200)
    def test_sort_reverse(self, items: list[int]) -> None:
        result = _render(
            "{% for x in items | sort(reverse=true) %}{{ x }},{% endfor %}", items=items
        )
        assert _numbers(result) == sorted(items, reverse=True)

    @given(items=sortable_int_list)
    @settings(max_examples=200)
    def test_reverse_involution(self, items: list[int]) -> None:
        result = _render(
            "{% for x in items | reverse | reverse %}{{ x }},{% endfor %}", items=items
        )
        assert _numbers(result) == items

    @given(items=sortable_int_list)
    @settings(max_examples=100)
    def test_unique_keeps_first_occurrences(self, items: list[int]) -> None:
        result = _render("{{ items | unique | join(',') }}", items=items)
        assert _numbers(result) == list(dict.fromkeys(items))

    @given(items=sortable_int_list)
    @settings(max_examples=100)
    def test_sum_matches_python(self, items: list[int]) -> None:
        assert _render("{{ items | sum }}", items=items) == str(sum(items))

    @given(x=st.integers(min_value=-10000, max_value=10000))
    @settings(max_examples=200)
    def test_default_absorption_when_defined(self, x: int) -> None:
        assert _render("{{ x | default('FALLBACK') }}", x=x) == str(x)

    def test_default_activates_when_undefined(self) -> None:
        assert _render("{{ missing | default('FALLBACK') }}") == "FALLBACK"

    @given(s=ascii_lowercase_text)
    @settings(max_examples=200)
    def test_title_preserves_words(self, s: str) -> None:
        result = _render("{{ s | title }}", s=s)
        assert len(result.split()) == len(s.split())

    @given(s=ascii_lowercase_text, chain=string_filter_chain)
    @settings(max_examples=200)
    def test_string_filter_chains_keep_letters(self, s: str, chain: str) -> None:
        """Case filters keep ASCII letters in place; trim only drops outer spaces."""
        result = _render("{{ s | " + chain + " }}", s=s)
        assert len(result) <= len(s)
        assert result.lower().strip() == s.strip()

    @given(items=st.lists(st.integers(min_value=0, max_value=100), min_size=1, max_size=20))
    @settings(max_examples=200)
    def test_first_last_in_list(self, items: list[int]) -> None:
        assert _render("{{ items | first }}", items=items) == str(items[0])
        assert _render("{{ items | last }}", items=items) == str(items[-1])

    @given(items=sortable_int_list, size=st.integers(min_value=1, max_value=7))
    @settings(max_examples=100)
    def test_batch_partitions_items(self, items: list[int], size: int) -> None:
        result = _render(
            "{% for row in items | batch(size) %}{{ row | length }};{% endfor %}",
            items=items,
            size=size,
        )
        lengths = [int(v) for v in result.split(";") if v]
        assert sum(lengths) == len(items)
        assert all(length <= size for length in lengths)
