"""Test error reporting: kinds, codes, locations, snippets and wrapping."""

import pytest

from stencil import (
    CompileError,
    DictLoader,
    Environment,
    ErrorKind,
    InvalidArgumentsError,
    InvalidOperationError,
    LexerError,
    ParseError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    TemplateSyntaxError,
    UndefinedError,
    UnknownCallableError,
)
from stencil.environment.exceptions import build_source_snippet, format_template_stack
from stencil.environment.terminal import strip_colors


class TestErrorKinds:
    @pytest.mark.parametrize(
        ("kind", "category"),
        [
            (ErrorKind.LEX_ERROR, "lexer"),
            (ErrorKind.PARSE_ERROR, "parser"),
            (ErrorKind.COMPILE_ERROR, "compiler"),
            (ErrorKind.UNDEFINED_ERROR, "runtime"),
            (ErrorKind.OUT_OF_FUEL, "runtime"),
            (ErrorKind.TEMPLATE_NOT_FOUND, "template"),
        ],
    )
    def test_category(self, kind, category):
        assert kind.category == category

    def test_codes_are_unique(self):
        values = [kind.value for kind in ErrorKind]
        assert len(values) == len(set(values))

    def test_hierarchy(self):
        assert issubclass(LexerError, TemplateSyntaxError)
        assert issubclass(ParseError, TemplateSyntaxError)
        assert issubclass(CompileError, TemplateError)
        assert issubclass(UndefinedError, TemplateRuntimeError)
        assert issubclass(TemplateNotFoundError, TemplateError)

    def test_code_property(self, env):
        with pytest.raises(UnknownCallableError) as exc_info:
            env.from_string("{{ x | nope }}").render()
        assert exc_info.value.code is ErrorKind.UNKNOWN_CALLABLE


class TestSyntaxErrors:
    def test_lexer_error_location(self, env):
        with pytest.raises(LexerError) as exc_info:
            env.from_string("ok\n{{ name", name="page.html")
        error = exc_info.value
        assert error.message == "unclosed variable tag, expected '}}'"
        assert error.lineno == 2
        assert error.location.startswith("page.html:2:")
        assert error.kind is ErrorKind.LEX_ERROR

    def test_lexer_error_message_has_caret(self, env):
        with pytest.raises(LexerError) as exc_info:
            env.from_string("{{ 'open }}")
        text = str(exc_info.value)
        assert "unterminated string" in text
        assert "^" in text

    def test_parse_error_location(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.from_string("{% if %}{% endif %}")
        assert exc_info.value.lineno == 1
        assert exc_info.value.kind is ErrorKind.PARSE_ERROR

    def test_unknown_tag(self, env):
        with pytest.raises(ParseError):
            env.from_string("{% frobnicate %}")

    def test_unexpected_end_tag(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.from_string("{% endfor %}")
        assert exc_info.value.message == "unexpected 'endfor' without an open block"

    def test_mismatched_end_tag(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.from_string("{% if x %}\n{% endfor %}")
        message = exc_info.value.message
        assert "expected 'endif'" in message
        assert "opened on line 1" in message

    def test_empty_output_tag(self, env):
        with pytest.raises(ParseError) as exc_info:
            env.from_string("{{ }}")
        assert exc_info.value.suggestion == "Remove the empty {{ }}"

    def test_filename_preferred_in_location(self, tmp_path):
        from stencil import FileSystemLoader

        (tmp_path / "bad.html").write_text("{% if %}")
        env = Environment(loader=FileSystemLoader(tmp_path))
        with pytest.raises(ParseError) as exc_info:
            env.get_template("bad.html")
        error = exc_info.value
        assert error.filename.endswith("bad.html")
        assert error.location.startswith(f"{error.filename}:1:")

    def test_deep_nesting_is_a_parse_error(self, env):
        source = "{{ " + "(" * 5000 + "1" + ")" * 5000 + " }}"
        with pytest.raises(TemplateSyntaxError):
            env.from_string(source)

    def test_nesting_within_limit_renders(self, env):
        source = "{% if true %}" * 40 + "x" + "{% endif %}" * 40
        assert env.from_string(source).render() == "x"
        assert env.from_string("{{ " + "[" * 40 + "]" * 40 + " | length }}").render() == "1"

    @pytest.mark.parametrize(
        "source",
        [
            "{{ x" + " | upper" * 2000 + " }}",
            "{{ x" + ".a" * 2000 + " }}",
            "{{ 1" + " + 1" * 2000 + " }}",
        ],
        ids=["filters", "attributes", "additions"],
    )
    def test_long_chain_is_a_compile_error(self, env, source):
        with pytest.raises(CompileError) as exc_info:
            env.from_string(source)
        assert exc_info.value.message == "template is nested too deeply to compile"
        assert exc_info.value.code is ErrorKind.COMPILE_ERROR

    def test_moderate_chain_compiles(self, env):
        assert env.from_string("{{ x" + " | upper" * 100 + " }}").render(x="a") == "A"


class TestRuntimeErrors:
    def test_location_points_at_failing_line(self, env):
        tmpl = env.from_string("a\nb\n{{ 1 + 'x' }}", name="calc.html")
        with pytest.raises(InvalidOperationError) as exc_info:
            tmpl.render()
        error = exc_info.value
        assert error.template_name == "calc.html"
        assert error.lineno == 3
        assert error.location == "calc.html:3"
        assert "{{ 1 + 'x' }}" in strip_colors(str(error))

    def test_callable_errors_are_wrapped(self, env):
        def boom():
            raise ValueError("bad input")

        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ boom() }}").render(boom=boom)
        assert exc_info.value.message == "function 'boom' failed: bad input"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_template_errors_from_callables_pass_through(self, env):
        def strict():
            raise UndefinedError("nothing here")

        with pytest.raises(UndefinedError):
            env.from_string("{{ strict() }}").render(strict=strict)

    def test_invalid_filter_arguments(self, env):
        with pytest.raises(InvalidArgumentsError) as exc_info:
            env.from_string("{{ 'x' | upper(1) }}").render()
        assert exc_info.value.message.startswith("invalid arguments for filter 'upper'")

    def test_unknown_filter_suggestion(self, env):
        with pytest.raises(UnknownCallableError) as exc_info:
            env.from_string("{{ 'x' | uper }}").render()
        assert exc_info.value.message == "unknown filter 'uper'"
        assert exc_info.value.suggestion == "Did you mean 'upper'?"

    def test_unknown_test(self, env):
        with pytest.raises(UnknownCallableError) as exc_info:
            env.from_string("{{ 1 is prime }}").render()
        assert exc_info.value.message == "unknown test 'prime'"

    def test_calling_non_callable(self, env):
        with pytest.raises(InvalidOperationError) as exc_info:
            env.from_string("{{ value() }}").render(value=3)
        assert "is not callable" in exc_info.value.message

    def test_failed_render_returns_nothing(self, env):
        tmpl = env.from_string("partial output {{ 1 // 0 }}")
        with pytest.raises(InvalidOperationError):
            tmpl.render()
        # A later successful render starts from a clean buffer.
        assert env.from_string("fine").render() == "fine"

    def test_template_stack_through_include(self):
        env = Environment(
            loader=DictLoader({"outer": "line\n{% include 'inner' %}", "inner": "{{ 1 + none }}"})
        )
        with pytest.raises(InvalidOperationError) as exc_info:
            env.get_template("outer").render()
        error = exc_info.value
        assert error.template_name == "inner"
        assert error.template_stack == [("outer", 2)]
        text = strip_colors(str(error))
        assert "Template stack:" in text
        assert "outer:2" in text

    def test_format_compact(self, env_strict):
        tmpl = env_strict.from_string("{{ usernme }}", name="base.html")
        with pytest.raises(UndefinedError) as exc_info:
            tmpl.render(username="ada")
        compact = strip_colors(exc_info.value.format_compact())
        assert compact.startswith("S-RUN-001: Undefined variable 'usernme'")
        assert "Location: base.html:1" in compact
        assert "Did you mean 'username'?" in compact


class TestTemplateNotFound:
    def test_str_is_message(self, env_with_loader):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            env_with_loader.get_template("missing.html")
        assert str(exc_info.value) == exc_info.value.message

    def test_dict_loader_suggests_close_match(self, env_with_loader):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            env_with_loader.get_template("bse.html")
        assert "Did you mean 'base.html'?" in exc_info.value.message

    def test_no_loader(self, env):
        with pytest.raises(TemplateNotFoundError) as exc_info:
            env.get_template("x.html")
        assert exc_info.value.message == (
            "Template 'x.html' not found: the environment has no loader"
        )


class TestSnippets:
    def test_build_source_snippet(self):
        snippet = build_source_snippet("a\nb\nc\nd\ne", 3, context_lines=1, column=0)
        assert snippet.lines == ((2, "b"), (3, "c"), (4, "d"))
        assert snippet.error_line == 3
        text = strip_colors(snippet.format())
        assert "c" in text
        assert "^" in text

    def test_snippet_out_of_range(self):
        assert build_source_snippet("one line", 5) is None

    def test_format_template_stack(self):
        text = strip_colors(format_template_stack([("base.html", 42), ("nav.html", None)]))
        assert text.splitlines() == ["Template stack:", "  • base.html:42", "  • nav.html"]

    def test_format_empty_stack(self):
        assert format_template_stack([]) == ""
