"""Stencil virtual machine.

The VM executes Bytecode one instruction at a time against a State. Each
Code object runs in its own Frame (operand stack, instruction pointer and
loop stack); macros, blocks, super() and recursive loop() calls start a
nested Frame over the same State.

Design Principles:
1. **Shared programs, private state**: Bytecode and the Environment are
   only read; everything a render mutates lives in its State
2. **O(1) dispatch**: a table from Opcode to bound handler method
3. **Atomic failure**: an error abandons the render; no partial output
   is returned
4. **Located errors**: the first location attached to an error is the
   span of the instruction that raised it

"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from difflib import get_close_matches
from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import (
    COMPARE_OPS,
    INCLUDE_IGNORE_MISSING,
    INCLUDE_WITH_CONTEXT,
    LOOP_BIND_VAR,
    LOOP_RECURSIVE,
    Instruction,
    Opcode,
)
from stencil.environment.exceptions import (
    InvalidArgumentsError,
    InvalidOperationError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRecursionError,
    UndefinedError,
    UnknownCallableError,
)
from stencil.template.loop_context import LoopContext
from stencil.value import ops
from stencil.value.escape import EscapeMode, coerce_auto_escape, format_value
from stencil.value.markup import Markup
from stencil.value.objects import Namespace, TemplateObject
from stencil.value.undefined import MISSING, Undefined, UndefinedPolicy
from stencil.vm.macro import Macro, Module
from stencil.vm.state import Fuel, State

if TYPE_CHECKING:
    from stencil.compiler.instructions import Bytecode, Code
    from stencil.environment import Environment

logger = logging.getLogger(__name__)

_BINARY: dict[Opcode, Callable[[Any, Any], Any]] = {
    Opcode.BINARY_ADD: ops.add,
    Opcode.BINARY_SUB: ops.sub,
    Opcode.BINARY_MUL: ops.mul,
    Opcode.BINARY_DIV: ops.div,
    Opcode.BINARY_FLOORDIV: ops.floordiv,
    Opcode.BINARY_MOD: ops.mod,
    Opcode.BINARY_POW: ops.pow_,
}


class Frame:
    """Execution of one Code object."""

    __slots__ = (
        "block_level",
        "block_name",
        "bytecode",
        "code",
        "code_index",
        "loop_depth",
        "loops",
        "pc",
        "stack",
    )

    def __init__(
        self,
        bytecode: Bytecode,
        code_index: int,
        stack: list[Any] | None = None,
        loop_depth: int = 0,
        block_name: str | None = None,
        block_level: int = 0,
    ):
        self.bytecode = bytecode
        self.code_index = code_index
        self.code: Code = bytecode.codes[code_index]
        self.stack: list[Any] = stack if stack is not None else []
        self.pc = 0
        self.loops: list[LoopContext] = []
        self.loop_depth = loop_depth
        self.block_name = block_name
        self.block_level = block_level

    def pop_n(self, count: int) -> list[Any]:
        if count == 0:
            return []
        items = self.stack[-count:]
        del self.stack[-count:]
        return items

    def __repr__(self) -> str:
        return f"<Frame {self.code.kind} {self.code.name} pc={self.pc}>"


class VM:
    """Executes compiled templates for one Environment.

    Holds no per-render state; one VM serves every render of its
    environment, from any thread.

    Example:
        >>> from stencil import Environment, compile
        >>> env = Environment()
        >>> env.vm.render(compile("{{ a ~ b }}"), {"a": 1, "b": 2})
        '12'

    """

    __slots__ = ("_handlers", "env")

    def __init__(self, env: Environment):
        self.env = env
        self._handlers: dict[Opcode, Callable[[State, Frame, Instruction], None]] = {
            op: getattr(self, f"_op_{op.name.lower()}") for op in Opcode
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def new_state(
        self,
        name: str | None,
        context: Mapping[str, Any],
        auto_escape: EscapeMode | None = None,
    ) -> State:
        env = self.env
        mode = auto_escape if auto_escape is not None else env.auto_escape_for(name)
        fuel = Fuel(env.fuel) if env.fuel is not None else None
        return State(self, env, name, context, mode, fuel=fuel)

    def render(
        self,
        bytecode: Bytecode,
        context: Mapping[str, Any] | None = None,
        *,
        auto_escape: EscapeMode | None = None,
    ) -> str:
        """Render ``bytecode`` and return the output.

        Raises:
            TemplateRuntimeError: Rendering failed; nothing is returned
        """
        state = self.new_state(bytecode.name, context or {}, auto_escape)
        with _python_recursion_guard(bytecode):
            self.run_template(state, bytecode)
        return state.output.result()

    def render_block(
        self,
        bytecode: Bytecode,
        block_name: str,
        context: Mapping[str, Any] | None = None,
    ) -> str:
        """Render one block of ``bytecode`` on its own."""
        state = self.new_state(bytecode.name, context or {})
        self._register_blocks(state, bytecode)
        with _python_recursion_guard(bytecode):
            self._run_block(state, block_name, 0, scoped_from=None)
        return state.output.result()

    def run_template(self, state: State, bytecode: Bytecode) -> None:
        """Run a template body, following its ``extends`` chain."""
        current = bytecode
        entered = 0
        try:
            while True:
                self._register_blocks(state, current)
                state.output.begin_capture()
                self.execute(state, current, 0)
                text = state.output.end_capture()
                parent = state.pending_parent
                if parent is None:
                    state.output.write(text)
                    return
                # Output of an extending template outside its blocks is dropped.
                state.pending_parent = None
                state.enter(f"extends '{parent.name}'")
                entered += 1
                current = parent
        finally:
            for _ in range(entered):
                state.leave()

    def execute(
        self,
        state: State,
        bytecode: Bytecode,
        code_index: int,
        stack: list[Any] | None = None,
        *,
        loop_depth: int = 0,
        block_name: str | None = None,
        block_level: int = 0,
    ) -> list[Any]:
        """Run one Code object to completion and return its final stack."""
        frame = Frame(bytecode, code_index, stack, loop_depth, block_name, block_level)
        instructions = frame.code.instructions
        end = len(instructions)
        handlers = self._handlers
        fuel = state.fuel
        instr: Instruction | None = None
        try:
            while frame.pc < end:
                instr = instructions[frame.pc]
                frame.pc += 1
                if fuel is not None:
                    fuel.consume()
                handlers[instr.op](state, frame, instr)
        except TemplateError as exc:
            exc.set_location(
                bytecode.name,
                instr.span if instr is not None else None,
                bytecode.source,
                state.template_stack,
            )
            raise
        return frame.stack

    # ------------------------------------------------------------------
    # Macros, blocks and templates
    # ------------------------------------------------------------------

    def call_macro(
        self,
        state: State,
        macro: Macro,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
    ) -> str:
        """Run a macro body over its closure with the arguments bound."""
        code = macro.bytecode.codes[macro.code_index]
        params = code.params
        if len(args) > len(params):
            raise InvalidArgumentsError(
                f"macro '{macro.name}' takes at most {len(params)} arguments, got {len(args)}"
            )
        scope: dict[str, Any] = dict(zip(params, args, strict=False))
        for key, value in kwargs.items():
            if key in scope:
                raise InvalidArgumentsError(
                    f"macro '{macro.name}' got multiple values for argument '{key}'"
                )
            if key not in params and key != "caller":
                raise InvalidArgumentsError(
                    f"macro '{macro.name}' got an unexpected keyword argument '{key}'"
                )
            scope[key] = value
        for param in params[: len(params) - code.optional]:
            if param not in scope:
                scope[param] = state.undefined(param)

        saved_scopes, saved_ctx = state.scopes, state.ctx
        state.enter(f"macro '{macro.name}'")
        state.output.begin_capture()
        try:
            state.scopes = [*macro.closure, scope]
            state.ctx = macro.context
            self.execute(state, macro.bytecode, macro.code_index)
        finally:
            text = state.output.end_capture()
            state.scopes, state.ctx = saved_scopes, saved_ctx
            state.leave()
        return Markup(text) if state.escaping else text

    def _register_blocks(self, state: State, bytecode: Bytecode) -> None:
        for name, index in bytecode.blocks.items():
            state.blocks.setdefault(name, []).append((bytecode, index))

    def _run_block(
        self,
        state: State,
        name: str,
        level: int,
        scoped_from: list[dict[str, Any]] | None,
    ) -> None:
        """Run definition ``level`` of block ``name`` (0 is the most derived)."""
        levels = state.blocks.get(name)
        if not levels:
            raise InvalidOperationError(f"block '{name}' is not defined")
        if level >= len(levels):
            raise InvalidOperationError(
                f"no parent block '{name}' to call super() on",
                suggestion="super() needs a block of the same name in a parent template",
            )
        bytecode, index = levels[level]
        code = bytecode.codes[index]
        saved = state.scopes
        if code.scoped and scoped_from is not None:
            state.scopes = [*scoped_from, {}]
        else:
            state.scopes = [saved[0], {}]
        state.enter(f"block '{name}'")
        try:
            self.execute(state, bytecode, index, block_name=name, block_level=level)
        finally:
            state.scopes = saved
            state.leave()

    def _load(self, value: Any) -> Bytecode:
        """Resolve a template reference (name, Template or Bytecode) to Bytecode."""
        bytecode = getattr(value, "bytecode", None)
        if bytecode is not None:
            return bytecode
        if hasattr(value, "codes"):
            return value
        if isinstance(value, Undefined):
            raise InvalidOperationError("template name is undefined")
        if not isinstance(value, str):
            raise InvalidOperationError(
                f"template name must be a string, got {ops.kind_name(value)}"
            )
        return self.env.get_template(value).bytecode

    def _load_first(self, value: Any) -> Bytecode:
        """Like _load(), but a sequence of names picks the first that exists."""
        if isinstance(value, (list, tuple)):
            for candidate in value:
                try:
                    return self._load(candidate)
                except TemplateNotFoundError:
                    continue
            raise TemplateNotFoundError(
                f"none of the templates {', '.join(map(repr, value))} were found"
            )
        return self._load(value)

    def _child_context(self, state: State, with_context: bool) -> dict[str, Any]:
        if not with_context:
            return {}
        ctx = dict(state.ctx)
        for scope in state.scopes:
            ctx.update(scope)
        return ctx

    def _recursive_loop(self, state: State, frame: Frame, depth: int) -> Callable[[Any], Any]:
        bytecode, code_index = frame.bytecode, frame.code_index
        block_name, block_level = frame.block_name, frame.block_level

        def recurse(iterable: Any) -> Any:
            state.enter("recursive loop")
            state.output.begin_capture()
            try:
                self.execute(
                    state,
                    bytecode,
                    code_index,
                    [iterable],
                    loop_depth=depth + 1,
                    block_name=block_name,
                    block_level=block_level,
                )
            finally:
                text = state.output.end_capture()
                state.leave()
            return Markup(text) if state.escaping else text

        return recurse

    # ------------------------------------------------------------------
    # Loads and stores
    # ------------------------------------------------------------------

    def _op_load_const(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(frame.bytecode.constants[instr.arg])

    def _op_load_undefined(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(state.undefined())

    def _op_load_name(self, state: State, frame: Frame, instr: Instruction) -> None:
        name = frame.bytecode.names[instr.arg]
        value = state.lookup(name)
        if value is MISSING:
            if state.policy is UndefinedPolicy.STRICT and not instr.arg2:
                raise UndefinedError.for_variable(name, state.available_names())
            value = state.undefined(name)
        frame.stack.append(value)

    def _op_store_name(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.store(frame.bytecode.names[instr.arg], frame.stack.pop())

    def _op_is_bound(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(frame.bytecode.names[instr.arg] in state.scopes[-1])

    def _op_set_attr(self, state: State, frame: Frame, instr: Instruction) -> None:
        value = frame.stack.pop()
        target = frame.stack.pop()
        name = frame.bytecode.names[instr.arg]
        if not isinstance(target, Namespace):
            raise InvalidOperationError(
                f"cannot assign attribute '{name}' on {ops.kind_name(target)}",
                suggestion="Only namespace() objects support {% set ns.attr = value %}",
            )
        target.set_attr(name, value)

    # ------------------------------------------------------------------
    # Stack manipulation
    # ------------------------------------------------------------------

    def _op_dup(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(frame.stack[-1])

    def _op_pop(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.pop()

    def _op_swap(self, state: State, frame: Frame, instr: Instruction) -> None:
        stack = frame.stack
        stack[-1], stack[-2] = stack[-2], stack[-1]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _undefined_lookup(
        self, state: State, obj: Undefined, label: str, path: str, probe: bool
    ) -> Undefined:
        """Result of looking something up on an undefined value.

        ``label`` describes the lookup for messages ("attribute 'x'"),
        ``path`` extends the undefined value's hint (".x", "[0]").
        """
        if obj.is_chainable or state.policy is UndefinedPolicy.CHAINABLE or probe:
            hint = f"{obj.hint}{path}" if obj.hint else path.lstrip(".")
            return Undefined(hint, obj.kind)
        subject = f" '{obj.hint}'" if obj.hint else ""
        raise UndefinedError(
            f"cannot look up {label} on undefined value{subject}",
            name=obj.hint,
            available_names=state.available_names(),
        )

    def _missing_lookup(self, state: State, obj: Any, label: str, hint: str, probe: bool) -> Any:
        if state.policy is UndefinedPolicy.STRICT and not probe:
            raise UndefinedError(f"{ops.kind_name(obj)} has no {label}")
        return state.undefined(hint)

    def _op_get_attr(self, state: State, frame: Frame, instr: Instruction) -> None:
        obj = frame.stack.pop()
        name = frame.bytecode.names[instr.arg]
        label = f"attribute '{name}'"
        if isinstance(obj, Undefined):
            frame.stack.append(
                self._undefined_lookup(state, obj, label, f".{name}", bool(instr.arg2))
            )
            return
        value = ops.get_attr(obj, name)
        if value is MISSING:
            value = self._missing_lookup(state, obj, label, name, bool(instr.arg2))
        frame.stack.append(value)

    def _op_get_item(self, state: State, frame: Frame, instr: Instruction) -> None:
        key = frame.stack.pop()
        obj = frame.stack.pop()
        label = f"item {ops.repr_value(key)}"
        path = f"[{ops.repr_value(key)}]"
        if isinstance(obj, Undefined):
            frame.stack.append(self._undefined_lookup(state, obj, label, path, bool(instr.arg2)))
            return
        value = ops.get_item(obj, key)
        if value is MISSING:
            value = self._missing_lookup(state, obj, label, path, bool(instr.arg2))
        frame.stack.append(value)

    def _op_slice(self, state: State, frame: Frame, instr: Instruction) -> None:
        obj, start, stop, step = frame.pop_n(4)
        frame.stack.append(ops.slice_value(obj, start, stop, step))

    # ------------------------------------------------------------------
    # Building values
    # ------------------------------------------------------------------

    def _op_build_list(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(frame.pop_n(instr.arg))

    def _op_build_tuple(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(tuple(frame.pop_n(instr.arg)))

    def _op_build_map(self, state: State, frame: Frame, instr: Instruction) -> None:
        items = frame.pop_n(instr.arg * 2)
        result: dict[Any, Any] = {}
        for key, value in zip(items[::2], items[1::2], strict=True):
            try:
                result[key] = value
            except TypeError:
                raise InvalidOperationError(
                    f"{ops.kind_name(key)} cannot be used as a map key"
                ) from None
        frame.stack.append(result)

    def _op_build_kwargs(self, state: State, frame: Frame, instr: Instruction) -> None:
        items = frame.pop_n(instr.arg * 2)
        kwargs: dict[str, Any] = {}
        for key, value in zip(items[::2], items[1::2], strict=True):
            if key in kwargs:
                raise InvalidArgumentsError(f"duplicate keyword argument '{key}'")
            kwargs[key] = value
        frame.stack.append(kwargs)

    def _op_unpack(self, state: State, frame: Frame, instr: Instruction) -> None:
        items = ops.unpack(frame.stack.pop(), instr.arg)
        frame.stack.extend(reversed(items))

    def _op_list_append(self, state: State, frame: Frame, instr: Instruction) -> None:
        value = frame.stack.pop()
        frame.stack[-1].append(value)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _op_unary_neg(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(ops.neg(frame.stack.pop()))

    def _op_unary_pos(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(ops.pos(frame.stack.pop()))

    def _op_unary_not(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(not ops.is_true(frame.stack.pop()))

    def _binary(self, state: State, frame: Frame, instr: Instruction) -> None:
        right = frame.stack.pop()
        left = frame.stack.pop()
        frame.stack.append(_BINARY[instr.op](left, right))

    _op_binary_add = _binary
    _op_binary_sub = _binary
    _op_binary_mul = _binary
    _op_binary_div = _binary
    _op_binary_floordiv = _binary
    _op_binary_mod = _binary
    _op_binary_pow = _binary

    def _op_compare(self, state: State, frame: Frame, instr: Instruction) -> None:
        right = frame.stack.pop()
        left = frame.stack.pop()
        frame.stack.append(ops.compare(COMPARE_OPS[instr.arg], left, right))

    def _op_string_concat(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.stack.append(ops.concat(frame.pop_n(instr.arg)))

    # ------------------------------------------------------------------
    # Jumps
    # ------------------------------------------------------------------

    def _op_jump(self, state: State, frame: Frame, instr: Instruction) -> None:
        frame.pc = instr.arg

    def _op_jump_if_false(self, state: State, frame: Frame, instr: Instruction) -> None:
        if not ops.is_true(frame.stack.pop()):
            frame.pc = instr.arg

    def _op_jump_if_true(self, state: State, frame: Frame, instr: Instruction) -> None:
        if ops.is_true(frame.stack.pop()):
            frame.pc = instr.arg

    def _op_jump_if_false_or_pop(self, state: State, frame: Frame, instr: Instruction) -> None:
        if ops.is_true(frame.stack[-1]):
            frame.stack.pop()
        else:
            frame.pc = instr.arg

    def _op_jump_if_true_or_pop(self, state: State, frame: Frame, instr: Instruction) -> None:
        if ops.is_true(frame.stack[-1]):
            frame.pc = instr.arg
        else:
            frame.stack.pop()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _op_emit_raw(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.output.write(frame.bytecode.constants[instr.arg])

    def _op_emit(self, state: State, frame: Frame, instr: Instruction) -> None:
        value = frame.stack.pop()
        if isinstance(value, Undefined) and state.policy is UndefinedPolicy.STRICT:
            raise UndefinedError(
                f"cannot render undefined value '{value.hint}'"
                if value.hint
                else "cannot render an undefined value",
                name=value.hint,
                available_names=state.available_names(),
            )
        state.output.write(
            format_value(value, state.current_auto_escape, self.env.formatter, state)
        )

    def _op_begin_capture(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.output.begin_capture()

    def _op_end_capture(self, state: State, frame: Frame, instr: Instruction) -> None:
        text = state.output.end_capture()
        if not instr.arg:
            frame.stack.append(Markup(text) if state.escaping else text)

    def _op_push_autoescape(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.auto_escape.append(coerce_auto_escape(frame.stack.pop()))

    def _op_pop_autoescape(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.auto_escape.pop()

    # ------------------------------------------------------------------
    # Scopes and loops
    # ------------------------------------------------------------------

    def _op_begin_scope(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.scopes.append({})

    def _op_end_scope(self, state: State, frame: Frame, instr: Instruction) -> None:
        state.scopes.pop()

    def _op_push_loop(self, state: State, frame: Frame, instr: Instruction) -> None:
        iterable = frame.stack.pop()
        recurse = None
        if instr.arg & LOOP_RECURSIVE:
            recurse = self._recursive_loop(state, frame, frame.loop_depth)
        loop = LoopContext(
            ops.iter_value(iterable),
            ops.length_of(iterable),
            depth0=frame.loop_depth,
            recurse=recurse,
        )
        frame.loops.append(loop)
        state.scopes.append({"loop": loop} if instr.arg & LOOP_BIND_VAR else {})

    def _op_iterate(self, state: State, frame: Frame, instr: Instruction) -> None:
        item = frame.loops[-1].advance()
        if item is MISSING:
            frame.pc = instr.arg
        else:
            frame.stack.append(item)

    def _op_pop_loop(self, state: State, frame: Frame, instr: Instruction) -> None:
        loop = frame.loops.pop()
        state.scopes.pop()
        if instr.arg:
            frame.stack.append(loop.iterated)

    def _op_recursive_loop(self, state: State, frame: Frame, instr: Instruction) -> None:
        self.execute(
            state,
            frame.bytecode,
            instr.arg,
            [frame.stack.pop()],
            loop_depth=0,
            block_name=frame.block_name,
            block_level=frame.block_level,
        )

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def _call_arguments(self, frame: Frame, argc: int) -> tuple[tuple[Any, ...], dict[str, Any]]:
        kwargs = frame.stack.pop()
        return tuple(frame.pop_n(argc)), kwargs

    def _op_call_function(self, state: State, frame: Frame, instr: Instruction) -> None:
        args, kwargs = self._call_arguments(frame, instr.arg2)
        name = frame.bytecode.names[instr.arg]
        func = state.lookup(name)
        if func is MISSING:
            raise UnknownCallableError(f"unknown function '{name}'")
        frame.stack.append(state.call(func, args, kwargs, f"function '{name}'"))

    def _op_call_object(self, state: State, frame: Frame, instr: Instruction) -> None:
        args, kwargs = self._call_arguments(frame, instr.arg2)
        func = frame.stack.pop()
        what = f"macro '{func.name}'" if isinstance(func, Macro) else ops.kind_name(func)
        frame.stack.append(state.call(func, args, kwargs, what))

    def _op_apply_filter(self, state: State, frame: Frame, instr: Instruction) -> None:
        args, kwargs = self._call_arguments(frame, instr.arg2)
        value = frame.stack.pop()
        name = frame.bytecode.names[instr.arg]
        func = self.env.filters.get(name)
        if func is None:
            raise UnknownCallableError(
                f"unknown filter '{name}'", suggestion=_close_match(name, self.env.filters)
            )
        frame.stack.append(state.call(func, (value, *args), kwargs, f"filter '{name}'"))

    def _op_apply_test(self, state: State, frame: Frame, instr: Instruction) -> None:
        args, kwargs = self._call_arguments(frame, instr.arg2)
        value = frame.stack.pop()
        name = frame.bytecode.names[instr.arg]
        func = self.env.tests.get(name)
        if func is None:
            raise UnknownCallableError(
                f"unknown test '{name}'", suggestion=_close_match(name, self.env.tests)
            )
        result = state.call(func, (value, *args), kwargs, f"test '{name}'")
        frame.stack.append(ops.is_true(result))

    def _op_call_super(self, state: State, frame: Frame, instr: Instruction) -> None:
        if frame.block_name is None:
            raise InvalidOperationError("super() can only be used inside a block")
        state.output.begin_capture()
        try:
            self._run_block(
                state, frame.block_name, frame.block_level + 1, scoped_from=state.scopes
            )
        finally:
            text = state.output.end_capture()
        frame.stack.append(Markup(text))

    def _op_make_macro(self, state: State, frame: Frame, instr: Instruction) -> None:
        code = frame.bytecode.codes[instr.arg]
        frame.stack.append(
            Macro(code.name, frame.bytecode, instr.arg, list(state.scopes), state.ctx)
        )

    # ------------------------------------------------------------------
    # Template composition
    # ------------------------------------------------------------------

    def _op_extends(self, state: State, frame: Frame, instr: Instruction) -> None:
        if state.pending_parent is not None:
            raise InvalidOperationError(
                "template extends more than one parent",
                suggestion="Use a single {% extends %} tag per template",
            )
        state.pending_parent = self._load(frame.stack.pop())

    def _op_call_block(self, state: State, frame: Frame, instr: Instruction) -> None:
        if state.pending_parent is not None:
            return
        self._run_block(state, frame.bytecode.names[instr.arg], 0, scoped_from=state.scopes)

    def _op_include(self, state: State, frame: Frame, instr: Instruction) -> None:
        target = frame.stack.pop()
        try:
            bytecode = self._load_first(target)
        except TemplateNotFoundError:
            if instr.arg & INCLUDE_IGNORE_MISSING:
                logger.debug("Skipping missing include %r in %r", target, frame.bytecode.name)
                return
            raise
        ctx = self._child_context(state, bool(instr.arg & INCLUDE_WITH_CONTEXT))
        child = state.child(
            bytecode.name, ctx, self.env.auto_escape_for(bytecode.name), lineno=instr.lineno
        )
        state.enter(f"include '{bytecode.name}'")
        try:
            self.run_template(child, bytecode)
        finally:
            state.leave()

    def _op_import(self, state: State, frame: Frame, instr: Instruction) -> None:
        bytecode = self._load(frame.stack.pop())
        ctx = self._child_context(state, bool(instr.arg))
        child = state.child(
            bytecode.name,
            ctx,
            self.env.auto_escape_for(bytecode.name),
            lineno=instr.lineno,
            share_output=False,
        )
        state.enter(f"import '{bytecode.name}'")
        try:
            self.run_template(child, bytecode)
        finally:
            state.leave()
        frame.stack.append(Module(bytecode.name, child.exports()))

    def _op_import_name(self, state: State, frame: Frame, instr: Instruction) -> None:
        module = frame.stack.pop()
        name = frame.bytecode.names[instr.arg]
        value = module.get_attr(name) if isinstance(module, TemplateObject) else MISSING
        if value is MISSING:
            source = module.name if isinstance(module, Module) else None
            raise UndefinedError(
                f"template '{source or '<template>'}' does not export '{name}'",
                name=name,
                available_names=frozenset(module.iterate()) if isinstance(module, Module) else None,
            )
        frame.stack.append(value)


@contextmanager
def _python_recursion_guard(bytecode: Bytecode) -> Iterator[None]:
    """Turn Python's RecursionError into TemplateRecursionError.

    Deeply nested templates can exhaust the interpreter stack before the
    environment's ``recursion_limit`` is reached.
    """
    try:
        yield
    except RecursionError as exc:
        raise TemplateRecursionError(
            "maximum recursion depth exceeded while rendering",
            template_name=bytecode.name,
            suggestion="Lower recursion_limit or reduce template nesting",
        ) from exc


def _close_match(name: str, registry: Any) -> str | None:
    matches = get_close_matches(name, list(registry.keys()), n=1, cutoff=0.6)
    if matches:
        return f"Did you mean '{matches[0]}'?"
    return None
