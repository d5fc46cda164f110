"""Test rendering from many threads at once.

Compiled templates are immutable and every render gets its own VM state,
so concurrent renders of one template must never see each other's
variables, loop state or output.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from stencil import DictLoader, Environment, UndefinedError

WORKERS = 8
ITERATIONS = 50

TEMPLATES = {
    "base.html": "<ul>{% block items %}{% endblock %}</ul>",
    "list.html": (
        "{% extends 'base.html' %}{% from 'macros.html' import item %}"
        "{% block items %}{% for v in values %}{{ item(v, loop.index) }}{% endfor %}{% endblock %}"
    ),
    "macros.html": "{% macro item(v, i) %}<li>{{ i }}:{{ v }}</li>{% endmacro %}",
}


def expected_list(values):
    return "<ul>" + "".join(f"<li>{i}:{v}</li>" for i, v in enumerate(values, 1)) + "</ul>"


@pytest.fixture
def env_shared():
    return Environment(loader=DictLoader(TEMPLATES))


def run_in_threads(func):
    """Run ``func(worker_id)`` on every worker and return the results in order."""
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        return list(pool.map(func, range(WORKERS)))


class TestConcurrentRendering:
    def test_same_template_different_contexts(self, env_shared):
        tmpl = env_shared.get_template("list.html")

        def work(worker_id):
            mismatches = []
            for i in range(ITERATIONS):
                values = [f"w{worker_id}", f"i{i}"]
                result = tmpl.render(values=values)
                if result != expected_list(values):
                    mismatches.append(result)
            return mismatches

        assert run_in_threads(work) == [[] for _ in range(WORKERS)]

    def test_concurrent_get_template_returns_one_instance(self):
        env = Environment(loader=DictLoader(TEMPLATES))

        def work(worker_id):
            return env.get_template("list.html")

        templates = run_in_threads(work)
        assert all(t is templates[0] for t in templates)
        assert env.get_template("list.html") is templates[0]

    def test_errors_stay_in_their_thread(self):
        env = Environment(undefined="strict")
        tmpl = env.from_string("{{ value }}")

        def work(worker_id):
            outcomes = []
            for i in range(ITERATIONS):
                if (worker_id + i) % 2:
                    try:
                        tmpl.render()
                    except UndefinedError:
                        outcomes.append("error")
                else:
                    outcomes.append(tmpl.render(value=worker_id))
            return outcomes

        for worker_id, outcomes in enumerate(run_in_threads(work)):
            for i, outcome in enumerate(outcomes):
                assert outcome == ("error" if (worker_id + i) % 2 else str(worker_id))

    def test_namespaces_are_per_render(self, env):
        tmpl = env.from_string(
            "{% set ns = namespace(total=0) %}"
            "{% for n in values %}{% set ns.total = ns.total + n %}{% endfor %}"
            "{{ ns.total }}"
        )

        def work(worker_id):
            return [tmpl.render(values=[worker_id] * 10) for _ in range(ITERATIONS)]

        for worker_id, results in enumerate(run_in_threads(work)):
            assert set(results) == {str(worker_id * 10)}
