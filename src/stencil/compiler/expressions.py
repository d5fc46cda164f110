"""Expression compilation for the Stencil compiler.

Provides mixin for lowering expression nodes to stack instructions. Every
expression leaves exactly one value on the operand stack.

Names that are the direct subject of ``default``/``d`` or of ``is defined``
/ ``is undefined`` (including attribute and item chains off such a name)
are compiled in probe mode: a missing value becomes Undefined even under
the strict policy, so those constructs can test for it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.compiler.instructions import BINARY_OPCODES, COMPARE_OPS, UNARY_OPCODES, Opcode
from stencil.nodes import Const, Name, Slice, Tuple

if TYPE_CHECKING:
    from stencil.compiler.codegen import CodeBuilder
    from stencil.environment.exceptions import CompileError
    from stencil.nodes import (
        BinOp,
        BoolOp,
        Compare,
        Concat,
        CondExpr,
        Dict,
        Expr,
        Filter,
        FuncCall,
        Getattr,
        Getitem,
        List,
        Node,
        Test,
        UnaryOp,
    )

_PROBING_FILTERS = frozenset({"default", "d"})
_PROBING_TESTS = frozenset({"defined", "undefined"})


class ExpressionCompilationMixin:
    """Mixin for compiling expressions.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks.

    """

    if TYPE_CHECKING:
        _code: CodeBuilder
        _current_block: str | None
        _expr_handlers: dict[str, Any]

        def _emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int: ...
        def _const(self, value: Any) -> int: ...
        def _name(self, name: str) -> int: ...
        def _error(self, message: str, node: Node, suggestion: str | None = None) -> CompileError: ...

    def _expr_dispatch(self) -> dict[str, Any]:
        return {
            "Const": self._compile_const,
            "Name": self._compile_name,
            "Getattr": self._compile_getattr,
            "Getitem": self._compile_getitem,
            "Tuple": self._compile_tuple,
            "List": self._compile_list,
            "Dict": self._compile_dict,
            "FuncCall": self._compile_call,
            "Filter": self._compile_filter,
            "Test": self._compile_test,
            "BinOp": self._compile_binop,
            "UnaryOp": self._compile_unaryop,
            "Compare": self._compile_compare,
            "BoolOp": self._compile_boolop,
            "CondExpr": self._compile_condexpr,
            "Concat": self._compile_concat,
            "CaptureValue": self._compile_capture_value,
        }

    def _compile_expr(self, node: Expr, probe: bool = False) -> None:
        """Emit code leaving the value of ``node`` on the stack."""
        kind = type(node).__name__
        if kind in ("Name", "Getattr", "Getitem"):
            self._expr_handlers[kind](node, probe)
            return
        handler = self._expr_handlers.get(kind)
        if handler is None:
            raise self._error(f"cannot compile expression of type {kind}", node)
        handler(node)

    # ------------------------------------------------------------------
    # Leaves and lookups
    # ------------------------------------------------------------------

    def _compile_const(self, node: Const) -> None:
        self._emit(Opcode.LOAD_CONST, self._const(node.value), node=node)

    def _compile_name(self, node: Name, probe: bool = False) -> None:
        self._emit(Opcode.LOAD_NAME, self._name(node.name), int(probe), node=node)

    def _compile_getattr(self, node: Getattr, probe: bool = False) -> None:
        self._compile_expr(node.obj, probe)
        self._emit(Opcode.GET_ATTR, self._name(node.attr), int(probe), node=node)

    def _compile_getitem(self, node: Getitem, probe: bool = False) -> None:
        self._compile_expr(node.obj, probe)
        key = node.key
        if isinstance(key, Slice):
            for part in (key.start, key.stop, key.step):
                if part is None:
                    self._emit(Opcode.LOAD_CONST, self._const(None), node=key)
                else:
                    self._compile_expr(part)
            self._emit(Opcode.SLICE, node=node)
            return
        self._compile_expr(key)
        self._emit(Opcode.GET_ITEM, 0, int(probe), node=node)

    # ------------------------------------------------------------------
    # Literals
    # ------------------------------------------------------------------

    def _folded(self, items: Any) -> tuple[Any, ...] | None:
        """Constant tuple for ``items`` when every item is a constant."""
        values = []
        for item in items:
            if isinstance(item, Const):
                values.append(item.value)
            elif isinstance(item, Tuple):
                nested = self._folded(item.items)
                if nested is None:
                    return None
                values.append(nested)
            else:
                return None
        return tuple(values)

    def _compile_tuple(self, node: Tuple) -> None:
        folded = self._folded(node.items)
        if folded is not None:
            self._emit(Opcode.LOAD_CONST, self._const(folded), node=node)
            return
        for item in node.items:
            self._compile_expr(item)
        self._emit(Opcode.BUILD_TUPLE, len(node.items), node=node)

    def _compile_list(self, node: List) -> None:
        folded = self._folded(node.items)
        if folded is not None:
            self._emit(Opcode.LOAD_CONST, self._const(folded), node=node)
            return
        for item in node.items:
            self._compile_expr(item)
        self._emit(Opcode.BUILD_LIST, len(node.items), node=node)

    def _compile_dict(self, node: Dict) -> None:
        for key, value in zip(node.keys, node.values, strict=True):
            self._compile_expr(key)
            self._compile_expr(value)
        self._emit(Opcode.BUILD_MAP, len(node.keys), node=node)

    # ------------------------------------------------------------------
    # Calls, filters and tests
    # ------------------------------------------------------------------

    def _compile_arguments(self, args: Any, kwargs: Any, node: Node, extra: Any = None) -> int:
        """Push positional arguments then one kwargs mapping; return argc.

        ``extra`` is an optional ``(name, emitter)`` keyword appended last.
        """
        for arg in args:
            self._compile_expr(arg)
        for name, value in kwargs:
            self._emit(Opcode.LOAD_CONST, self._const(name), node=value)
            self._compile_expr(value)
        count = len(kwargs)
        if extra is not None:
            name, emit_value = extra
            self._emit(Opcode.LOAD_CONST, self._const(name), node=node)
            emit_value()
            count += 1
        self._emit(Opcode.BUILD_KWARGS, count, node=node)
        return len(args)

    def _compile_call(self, node: FuncCall, extra: Any = None) -> None:
        func = node.func
        if isinstance(func, Name) and func.name == "super":
            self._compile_super(node)
            return
        if isinstance(func, Name):
            argc = self._compile_arguments(node.args, node.kwargs, node, extra)
            self._emit(Opcode.CALL_FUNCTION, self._name(func.name), argc, node=node)
            return
        self._compile_expr(func)
        argc = self._compile_arguments(node.args, node.kwargs, node, extra)
        self._emit(Opcode.CALL_OBJECT, 0, argc, node=node)

    def _compile_super(self, node: FuncCall) -> None:
        if self._current_block is None:
            raise self._error(
                "super() can only be used inside a block",
                node,
                suggestion="Call {{ super() }} inside {% block %} ... {% endblock %}",
            )
        if node.args or node.kwargs:
            raise self._error("super() takes no arguments", node)
        self._emit(Opcode.CALL_SUPER, node=node)

    def _compile_filter(self, node: Filter) -> None:
        self._compile_expr(node.value, probe=node.name in _PROBING_FILTERS)
        argc = self._compile_arguments(node.args, node.kwargs, node)
        self._emit(Opcode.APPLY_FILTER, self._name(node.name), argc, node=node)

    def _compile_test(self, node: Test) -> None:
        self._compile_expr(node.value, probe=node.name in _PROBING_TESTS)
        argc = self._compile_arguments(node.args, node.kwargs, node)
        self._emit(Opcode.APPLY_TEST, self._name(node.name), argc, node=node)
        if node.negated:
            self._emit(Opcode.UNARY_NOT, node=node)

    def _compile_capture_value(self, node: Node) -> None:
        """The captured body is already on the stack (filter and set blocks)."""

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def _compile_binop(self, node: BinOp) -> None:
        self._compile_expr(node.left)
        self._compile_expr(node.right)
        self._emit(BINARY_OPCODES[node.op], node=node)

    def _compile_unaryop(self, node: UnaryOp) -> None:
        operand = node.operand
        if (
            node.op == "-"
            and isinstance(operand, Const)
            and isinstance(operand.value, (int, float))
            and not isinstance(operand.value, bool)
        ):
            self._emit(Opcode.LOAD_CONST, self._const(-operand.value), node=node)
            return
        self._compile_expr(operand)
        self._emit(UNARY_OPCODES[node.op], node=node)

    def _compile_compare(self, node: Compare) -> None:
        self._compile_expr(node.left)
        self._compile_expr(node.right)
        self._emit(Opcode.COMPARE, COMPARE_OPS.index(node.op), node=node)

    def _compile_boolop(self, node: BoolOp) -> None:
        """``and``/``or`` short-circuit and yield the deciding operand."""
        jump = Opcode.JUMP_IF_FALSE_OR_POP if node.op == "and" else Opcode.JUMP_IF_TRUE_OR_POP
        jumps = []
        for value in node.values[:-1]:
            self._compile_expr(value)
            jumps.append(self._emit(jump, node=node))
        self._compile_expr(node.values[-1])
        for index in jumps:
            self._code.patch(index)

    def _compile_condexpr(self, node: CondExpr) -> None:
        self._compile_expr(node.test)
        to_else = self._emit(Opcode.JUMP_IF_FALSE, node=node)
        self._compile_expr(node.if_true)
        to_end = self._emit(Opcode.JUMP, node=node)
        self._code.patch(to_else)
        if node.if_false is None:
            self._emit(Opcode.LOAD_UNDEFINED, node=node)
        else:
            self._compile_expr(node.if_false)
        self._code.patch(to_end)

    def _compile_concat(self, node: Concat) -> None:
        for part in node.nodes:
            self._compile_expr(part)
        self._emit(Opcode.STRING_CONCAT, len(node.nodes), node=node)
