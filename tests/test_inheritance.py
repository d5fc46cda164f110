"""Test template inheritance: extends, blocks, super() and render_block."""

import pytest

from stencil import DictLoader, Environment, InvalidOperationError, ParseError


def make_env(**templates):
    return Environment(loader=DictLoader(templates))


class TestExtends:
    def test_child_overrides_block(self, env_with_loader):
        tmpl = env_with_loader.get_template("child.html")
        assert tmpl.render() == "<html><head></head><body>Hello World</body></html>"

    def test_parent_default_block_content(self):
        env = make_env(
            base="<{% block a %}A{% endblock %}|{% block b %}B{% endblock %}>",
            child="{% extends 'base' %}{% block b %}b{% endblock %}",
        )
        assert env.get_template("child").render() == "<A|b>"

    def test_output_outside_blocks_is_dropped(self):
        env = make_env(
            base="[{% block body %}{% endblock %}]",
            child="ignored{% extends 'base' %}also ignored{% block body %}x{% endblock %}",
        )
        assert env.get_template("child").render() == "[x]"

    def test_top_level_set_is_visible_to_parent(self):
        env = make_env(
            base="<title>{{ title }}</title>{% block body %}{% endblock %}",
            child=(
                "{% extends 'base' %}{% set title = 'Home' %}"
                "{% block body %}{{ title }}{% endblock %}"
            ),
        )
        assert env.get_template("child").render() == "<title>Home</title>Home"

    def test_context_reaches_blocks(self):
        env = make_env(
            base="{% block greeting %}{% endblock %}",
            child="{% extends 'base' %}{% block greeting %}Hi {{ name }}{% endblock %}",
        )
        assert env.get_template("child").render(name="Ada") == "Hi Ada"

    def test_three_levels(self):
        env = make_env(
            root="({% block x %}root{% endblock %})",
            middle="{% extends 'root' %}{% block x %}middle{% endblock %}",
            leaf="{% extends 'middle' %}{% block x %}leaf{% endblock %}",
        )
        assert env.get_template("leaf").render() == "(leaf)"
        assert env.get_template("middle").render() == "(middle)"

    def test_leaf_inherits_unchanged_block_from_middle(self):
        env = make_env(
            root="{% block a %}ra{% endblock %}{% block b %}rb{% endblock %}",
            middle="{% extends 'root' %}{% block a %}ma{% endblock %}",
            leaf="{% extends 'middle' %}{% block b %}lb{% endblock %}",
        )
        assert env.get_template("leaf").render() == "malb"

    def test_child_only_block_is_not_rendered(self):
        env = make_env(
            base="{% block a %}A{% endblock %}",
            child="{% extends 'base' %}{% block extra %}never{% endblock %}",
        )
        assert env.get_template("child").render() == "A"

    def test_nested_blocks(self):
        env = make_env(
            base="{% block outer %}<{% block inner %}i{% endblock %}>{% endblock %}",
            child="{% extends 'base' %}{% block inner %}I{% endblock %}",
        )
        assert env.get_template("child").render() == "<I>"

    def test_dynamic_parent_name(self):
        env = make_env(
            one="1{% block b %}{% endblock %}",
            two="2{% block b %}{% endblock %}",
            child="{% extends layout %}{% block b %}!{% endblock %}",
        )
        tmpl = env.get_template("child")
        assert tmpl.render(layout="one") == "1!"
        assert tmpl.render(layout="two") == "2!"

    def test_parent_as_template_object(self):
        env = make_env(base="[{% block b %}{% endblock %}]")
        child = env.from_string("{% extends parent %}{% block b %}x{% endblock %}")
        assert child.render(parent=env.get_template("base")) == "[x]"

    def test_conditional_extends(self):
        env = make_env(
            base="[{% block b %}{% endblock %}]",
            child="{% if wrap %}{% extends 'base' %}{% endif %}{% block b %}x{% endblock %}",
        )
        tmpl = env.get_template("child")
        assert tmpl.render(wrap=True) == "[x]"
        assert tmpl.render(wrap=False) == "x"

    def test_double_extends(self):
        env = make_env(
            a="{% block b %}{% endblock %}",
            b="{% block b %}{% endblock %}",
            child="{% extends 'a' %}{% extends 'b' %}",
        )
        with pytest.raises(InvalidOperationError) as exc_info:
            env.get_template("child").render()
        assert exc_info.value.message == "template extends more than one parent"

    def test_extends_undefined_name(self):
        env = make_env(child="{% extends layout %}")
        with pytest.raises(InvalidOperationError) as exc_info:
            env.get_template("child").render()
        assert exc_info.value.message == "template name is undefined"


class TestSuper:
    def test_super_renders_parent_block(self):
        env = make_env(
            base="{% block head %}<base>{% endblock %}",
            child="{% extends 'base' %}{% block head %}{{ super() }}<child>{% endblock %}",
        )
        assert env.get_template("child").render() == "<base><child>"

    def test_super_chain(self):
        env = make_env(
            root="{% block x %}r{% endblock %}",
            middle="{% extends 'root' %}{% block x %}m{{ super() }}{% endblock %}",
            leaf="{% extends 'middle' %}{% block x %}l{{ super() }}{% endblock %}",
        )
        assert env.get_template("leaf").render() == "lmr"

    def test_super_called_twice(self):
        env = make_env(
            base="{% block x %}p{% endblock %}",
            child="{% extends 'base' %}{% block x %}{{ super() }}{{ super() }}{% endblock %}",
        )
        assert env.get_template("child").render() == "pp"

    def test_super_is_not_escaped_again(self):
        env = Environment(
            loader=DictLoader(
                {
                    "base.html": "{% block x %}<b>{{ v }}</b>{% endblock %}",
                    "child.html": (
                        "{% extends 'base.html' %}{% block x %}{{ super() }}{% endblock %}"
                    ),
                }
            ),
            autoescape=True,
        )
        assert env.get_template("child.html").render(v="<") == "<b>&lt;</b>"

    def test_super_without_parent_block(self):
        env = make_env(
            base="{% block other %}{% endblock %}",
            child="{% extends 'base' %}{% block x %}{{ super() }}{% endblock %}",
        )
        # The child block is never called by the parent, so nothing fails.
        assert env.get_template("child").render() == ""

    def test_super_in_root_template(self, env):
        tmpl = env.from_string("{% block x %}{{ super() }}{% endblock %}")
        with pytest.raises(InvalidOperationError) as exc_info:
            tmpl.render()
        assert exc_info.value.message == "no parent block 'x' to call super() on"


class TestBlockScoping:
    def test_unscoped_block_cannot_see_loop_variable(self):
        env = make_env(
            base="{% for item in items %}{% block row %}[{{ item }}]{% endblock %}{% endfor %}"
        )
        assert env.get_template("base").render(items=[1, 2]) == "[][]"

    def test_scoped_block_sees_loop_variable(self):
        env = make_env(
            base=(
                "{% for item in items %}{% block row scoped %}[{{ item }}]{% endblock %}"
                "{% endfor %}"
            )
        )
        assert env.get_template("base").render(items=[1, 2]) == "[1][2]"

    def test_scoped_override(self):
        env = make_env(
            base="{% for item in items %}{% block row scoped %}{% endblock %}{% endfor %}",
            child="{% extends 'base' %}{% block row %}<{{ item }}>{% endblock %}",
        )
        # Scoping is decided by the definition that runs.
        assert env.get_template("child").render(items=[1]) == "<>"

    def test_set_inside_block_stays_in_block(self, env):
        tmpl = env.from_string("{% block a %}{% set x = 1 %}{{ x }}{% endblock %}[{{ x }}]")
        assert tmpl.render() == "1[]"

    def test_block_sees_top_level_set(self, env):
        tmpl = env.from_string("{% set x = 'top' %}{% block a %}{{ x }}{% endblock %}")
        assert tmpl.render() == "top"

    def test_named_endblock(self, env):
        assert env.from_string("{% block a %}x{% endblock a %}").render() == "x"

    def test_mismatched_endblock(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.from_string("{% block a %}x{% endblock b %}")
        assert exc_info.value.message == "mismatched block name: expected 'a', found 'b'"


class TestRenderBlock:
    def test_render_single_block(self, env):
        tmpl = env.from_string("before{% block a %}A {{ v }}{% endblock %}after")
        assert tmpl.render_block("a", v=1) == "A 1"

    def test_render_block_with_dict_context(self, env):
        tmpl = env.from_string("{% block a %}{{ v }}{% endblock %}")
        assert tmpl.render_block("a", {"v": "x"}) == "x"

    def test_render_block_includes_nested_blocks(self, env):
        tmpl = env.from_string("{% block outer %}<{% block inner %}i{% endblock %}>{% endblock %}")
        assert tmpl.render_block("outer") == "<i>"
        assert tmpl.render_block("inner") == "i"

    def test_missing_block(self, env):
        tmpl = env.from_string("{% block a %}{% endblock %}", name="page")
        with pytest.raises(KeyError, match="Block 'missing' not found in template 'page'"):
            tmpl.render_block("missing")

    def test_list_blocks(self, env):
        tmpl = env.from_string("{% block b %}{% endblock %}{% block a %}{% endblock %}")
        assert tmpl.list_blocks() == ["b", "a"]

    def test_render_block_sees_only_own_definitions(self):
        env = make_env(
            base="{% block a %}base{% endblock %}",
            child="{% extends 'base' %}{% block a %}child {{ super() }}{% endblock %}",
        )
        with pytest.raises(InvalidOperationError):
            env.get_template("child").render_block("a")
