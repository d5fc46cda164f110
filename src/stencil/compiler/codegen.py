"""Instruction emission for one Code object.

CodeBuilder collects instructions, patches forward jumps and tracks what
is open at the current position (scopes, captures, autoescape regions and
loops) so ``break``/``continue`` can unwind exactly what the loop body
opened.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from stencil.compiler.instructions import Code, Instruction, Opcode

# Instruction that closes each kind of open region when unwinding.
_CLOSERS: dict[str, tuple[Opcode, int]] = {
    "scope": (Opcode.END_SCOPE, 0),
    "capture": (Opcode.END_CAPTURE, 1),
    "autoescape": (Opcode.POP_AUTOESCAPE, 0),
}


@dataclass(slots=True)
class LoopLabels:
    """Jump targets of the innermost loop being compiled."""

    continue_target: int
    open_depth: int
    break_jumps: list[int] = field(default_factory=list)


class CodeBuilder:
    """Accumulates the instructions of one Code object."""

    __slots__ = (
        "instructions", "kind", "lineno", "loops", "name", "open", "optional", "params", "scoped",
    )

    def __init__(
        self,
        name: str,
        kind: str,
        params: tuple[str, ...] = (),
        optional: int = 0,
        scoped: bool = False,
        lineno: int = 0,
    ):
        self.name = name
        self.kind = kind
        self.params = params
        self.optional = optional
        self.scoped = scoped
        self.lineno = lineno
        self.instructions: list[Instruction] = []
        self.loops: list[LoopLabels] = []
        self.open: list[str] = []

    @property
    def position(self) -> int:
        """Index of the next instruction to be emitted."""
        return len(self.instructions)

    def emit(self, op: Opcode, arg: int = 0, arg2: int = 0, node: Any = None) -> int:
        """Append an instruction and return its index."""
        lineno = getattr(node, "lineno", 0) if node is not None else 0
        span = getattr(node, "span", None) if node is not None else None
        self.instructions.append(Instruction(op, arg, arg2, lineno, span))
        return len(self.instructions) - 1

    def patch(self, index: int, target: int | None = None) -> None:
        """Point the jump at ``index`` to ``target`` (default: the current position)."""
        if target is None:
            target = self.position
        self.instructions[index] = replace(self.instructions[index], arg=target)

    def unwind(self, depth: int, node: Any = None) -> None:
        """Emit closers for everything opened above ``depth``, innermost first."""
        for kind in reversed(self.open[depth:]):
            op, arg = _CLOSERS[kind]
            self.emit(op, arg, node=node)

    def build(self) -> Code:
        return Code(
            name=self.name,
            kind=self.kind,
            instructions=tuple(self.instructions),
            params=self.params,
            optional=self.optional,
            scoped=self.scoped,
            lineno=self.lineno,
        )


def const_key(value: Any) -> tuple[str, Any]:
    """Pool key that keeps ``1``, ``1.0``, ``True`` and ``-0.0`` apart."""
    if isinstance(value, tuple):
        return ("tuple", tuple(const_key(item) for item in value))
    if isinstance(value, float):
        return ("float", repr(value))
    return (type(value).__name__, value)
