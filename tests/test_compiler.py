"""Tests for the bytecode compiler: program shape and structural errors."""

import pytest

from stencil import Bytecode, CompileError, ErrorKind, compile
from stencil.compiler import Opcode


def opcodes(bytecode: Bytecode, index: int = 0) -> list[Opcode]:
    return [instr.op for instr in bytecode.codes[index].instructions]


class TestBytecodeShape:
    """The compiled program is linear code over shared pools."""

    def test_simple_output(self):
        bytecode = compile("Hello, {{ name }}!", name="greeting")
        assert bytecode.name == "greeting"
        assert opcodes(bytecode) == [
            Opcode.EMIT_RAW,
            Opcode.LOAD_NAME,
            Opcode.EMIT,
            Opcode.EMIT_RAW,
        ]
        assert "name" in bytecode.names

    def test_constant_pool_is_deduplicated(self):
        bytecode = compile("{{ 'a' }}{{ 'a' }}{{ 1 }}{{ 1.0 }}{{ true }}")
        assert bytecode.constants.count("a") == 1
        assert len(bytecode.constants) == 4

    def test_constant_list_is_folded(self):
        bytecode = compile("{{ [1, 2, 3] }}")
        assert opcodes(bytecode) == [Opcode.LOAD_CONST, Opcode.EMIT]
        assert (1, 2, 3) in bytecode.constants

    def test_non_constant_list_is_built(self):
        assert Opcode.BUILD_LIST in opcodes(compile("{{ [x, 1] }}"))

    def test_negative_literal_is_folded(self):
        bytecode = compile("{{ -5 }}")
        assert opcodes(bytecode) == [Opcode.LOAD_CONST, Opcode.EMIT]
        assert -5 in bytecode.constants

    def test_macro_gets_own_code(self):
        bytecode = compile("{% macro m(a) %}{{ a }}{% endmacro %}")
        assert len(bytecode.codes) == 2
        macro = bytecode.codes[1]
        assert macro.kind == "macro"
        assert macro.params == ("a",)
        assert Opcode.MAKE_MACRO in opcodes(bytecode)

    def test_macro_defaults_count_as_optional(self):
        bytecode = compile("{% macro m(a, b=1, c=2) %}{% endmacro %}")
        assert bytecode.codes[1].optional == 2

    def test_blocks_are_registered(self):
        bytecode = compile("{% block head %}{% endblock %}{% block body scoped %}{% endblock %}")
        assert list(bytecode.blocks) == ["head", "body"]
        assert bytecode.codes[bytecode.blocks["body"]].scoped
        assert opcodes(bytecode).count(Opcode.CALL_BLOCK) == 2

    def test_recursive_loop_gets_own_code(self):
        bytecode = compile("{% for x in xs recursive %}{{ loop(x) }}{% endfor %}")
        assert Opcode.RECURSIVE_LOOP in opcodes(bytecode)
        assert any(code.kind == "loop" for code in bytecode.codes)

    def test_jump_targets_are_in_range(self):
        bytecode = compile(
            "{% for x in xs if x %}{% if x > 1 %}{% break %}{% endif %}{{ x }}"
            "{% else %}empty{% endfor %}"
        )
        for code in bytecode.codes:
            for instr in code.instructions:
                if instr.jump_target is not None:
                    assert 0 <= instr.jump_target <= len(code)

    def test_instructions_carry_lines(self):
        bytecode = compile("line\n{{ x }}")
        load = next(i for i in bytecode.root.instructions if i.op is Opcode.LOAD_NAME)
        assert load.lineno == 2
        assert load.span is not None

    def test_bytecode_is_immutable(self):
        bytecode = compile("{{ x }}")
        with pytest.raises(AttributeError):
            bytecode.name = "other"  # type: ignore[misc]

    def test_probe_flag_for_default_filter(self):
        bytecode = compile("{{ x | default('y') }}")
        load = next(i for i in bytecode.root.instructions if i.op is Opcode.LOAD_NAME)
        assert load.arg2 == 1

    def test_repr(self):
        assert "instructions" in repr(compile("{{ x }}", name="t"))


class TestCompileErrors:
    """Structurally invalid templates fail before rendering."""

    def test_duplicate_block(self):
        with pytest.raises(CompileError) as exc_info:
            compile("{% block a %}{% endblock %}{% block a %}{% endblock %}")
        assert exc_info.value.message == "block 'a' defined twice"
        assert exc_info.value.kind is ErrorKind.COMPILE_ERROR

    def test_extends_inside_block(self):
        with pytest.raises(CompileError) as exc_info:
            compile("{% block a %}{% extends 'base.html' %}{% endblock %}")
        assert "'extends' cannot be used inside a block" in exc_info.value.message

    def test_extends_inside_macro(self):
        with pytest.raises(CompileError):
            compile("{% macro m() %}{% extends 'base.html' %}{% endmacro %}")

    def test_super_outside_block(self):
        with pytest.raises(CompileError) as exc_info:
            compile("{{ super() }}")
        assert exc_info.value.message == "super() can only be used inside a block"

    def test_super_with_arguments(self):
        with pytest.raises(CompileError) as exc_info:
            compile("{% block a %}{{ super(1) }}{% endblock %}")
        assert exc_info.value.message == "super() takes no arguments"

    def test_super_inside_macro_in_block(self):
        with pytest.raises(CompileError):
            compile("{% block a %}{% macro m() %}{{ super() }}{% endmacro %}{% endblock %}")

    @pytest.mark.parametrize("keyword", ["break", "continue"])
    def test_loop_control_outside_loop(self, keyword):
        with pytest.raises(CompileError) as exc_info:
            compile("{% " + keyword + " %}")
        assert exc_info.value.message == f"'{keyword}' outside of a loop"

    def test_break_inside_macro_inside_loop(self):
        """A macro body is its own code; the enclosing loop is not visible."""
        with pytest.raises(CompileError):
            compile("{% for x in xs %}{% macro m() %}{% break %}{% endmacro %}{% endfor %}")

    def test_duplicate_macro_parameter(self):
        with pytest.raises(CompileError) as exc_info:
            compile("{% macro m(a, a) %}{% endmacro %}")
        assert exc_info.value.message == "duplicate parameter 'a' in macro 'm'"

    def test_error_carries_location(self):
        with pytest.raises(CompileError) as exc_info:
            compile("first\n{% break %}", name="page.html")
        err = exc_info.value
        assert err.template_name == "page.html"
        assert err.lineno == 2
        assert "page.html:2" in err.location
