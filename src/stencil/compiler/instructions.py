"""Bytecode definitions for the Stencil VM.

A compiled template is a Bytecode: a constant pool and a name table shared
by a flat tuple of Code objects. Code 0 is the template body; macros,
call-block callers, named blocks and recursive loops get their own Code,
addressed by index. Everything here is immutable once built, so one
Bytecode can be rendered from many threads at once.

Stack effects use ``[before] -> [after]`` with the top of stack on the
right.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from types import MappingProxyType
from typing import Any

from stencil._types import Span


class Opcode(IntEnum):
    """VM operation codes."""

    # Loads and stores
    LOAD_CONST = 1          # [] -> [const]                      arg: const index
    LOAD_UNDEFINED = 2      # [] -> [undefined]
    LOAD_NAME = 3           # [] -> [value]                      arg: name, arg2: probe
    STORE_NAME = 4          # [value] -> []                      arg: name
    IS_BOUND = 5            # [] -> [bool]                       arg: name (innermost scope)
    SET_ATTR = 6            # [namespace, value] -> []           arg: attribute name

    # Stack manipulation
    DUP = 10
    POP = 11
    SWAP = 12

    # Lookup
    GET_ATTR = 20           # [obj] -> [value]                   arg: name, arg2: probe
    GET_ITEM = 21           # [obj, key] -> [value]              arg2: probe
    SLICE = 22              # [obj, start, stop, step] -> [value]

    # Building values
    BUILD_LIST = 30         # [a, b, ...] -> [list]              arg: count
    BUILD_TUPLE = 31        # [a, b, ...] -> [tuple]             arg: count
    BUILD_MAP = 32          # [k1, v1, ...] -> [dict]            arg: pair count
    BUILD_KWARGS = 33       # [k1, v1, ...] -> [kwargs]          arg: pair count
    UNPACK = 34             # [seq] -> [..., b, a]               arg: count
    LIST_APPEND = 35        # [list, value] -> [list]

    # Operators
    UNARY_NEG = 40
    UNARY_POS = 41
    UNARY_NOT = 42
    BINARY_ADD = 43
    BINARY_SUB = 44
    BINARY_MUL = 45
    BINARY_DIV = 46
    BINARY_FLOORDIV = 47
    BINARY_MOD = 48
    BINARY_POW = 49
    COMPARE = 50            # [a, b] -> [bool]                   arg: COMPARE_OPS index
    STRING_CONCAT = 51      # [a, b, ...] -> [str]               arg: count

    # Control flow; jump targets are absolute instruction indexes
    JUMP = 60
    JUMP_IF_FALSE = 61      # pops the condition
    JUMP_IF_TRUE = 62       # pops the condition
    JUMP_IF_FALSE_OR_POP = 63   # keeps the value when jumping
    JUMP_IF_TRUE_OR_POP = 64    # keeps the value when jumping

    # Output
    EMIT_RAW = 70           # []                                 arg: const index of the text
    EMIT = 71               # [value] -> []
    BEGIN_CAPTURE = 72
    END_CAPTURE = 73        # [] -> [str]                        arg: 1 discards the capture
    PUSH_AUTOESCAPE = 74    # [mode] -> []
    POP_AUTOESCAPE = 75

    # Scopes and loops
    BEGIN_SCOPE = 80
    END_SCOPE = 81
    PUSH_LOOP = 82          # [iterable] -> []                   arg: LOOP_* flags
    ITERATE = 83            # [] -> [item], or jump to arg when exhausted
    POP_LOOP = 84           # [] -> [] or [iterated]             arg: 1 pushes whether it iterated
    RECURSIVE_LOOP = 85     # [iterable] -> []                   arg: code index

    # Calls
    CALL_FUNCTION = 90      # [args..., kwargs] -> [result]      arg: name, arg2: argc
    CALL_OBJECT = 91        # [callee, args..., kwargs] -> [result]   arg2: argc
    APPLY_FILTER = 92       # [value, args..., kwargs] -> [result]    arg: name, arg2: argc
    APPLY_TEST = 93         # [value, args..., kwargs] -> [bool]      arg: name, arg2: argc
    CALL_SUPER = 94         # [] -> [markup]
    MAKE_MACRO = 95         # [] -> [macro]                      arg: code index

    # Template composition
    EXTENDS = 100           # [name] -> []
    CALL_BLOCK = 101        # []                                 arg: name
    INCLUDE = 102           # [name] -> []                       arg: INCLUDE_* flags
    IMPORT = 103            # [name] -> [module]                 arg: 1 passes the context
    IMPORT_NAME = 104       # [module] -> [value]                arg: name


COMPARE_OPS: tuple[str, ...] = ("==", "!=", "<", "<=", ">", ">=", "in", "not in")

BINARY_OPCODES: dict[str, Opcode] = {
    "+": Opcode.BINARY_ADD,
    "-": Opcode.BINARY_SUB,
    "*": Opcode.BINARY_MUL,
    "/": Opcode.BINARY_DIV,
    "//": Opcode.BINARY_FLOORDIV,
    "%": Opcode.BINARY_MOD,
    "**": Opcode.BINARY_POW,
}

UNARY_OPCODES: dict[str, Opcode] = {
    "-": Opcode.UNARY_NEG,
    "+": Opcode.UNARY_POS,
    "not": Opcode.UNARY_NOT,
}

JUMP_OPCODES = frozenset(
    {
        Opcode.JUMP,
        Opcode.JUMP_IF_FALSE,
        Opcode.JUMP_IF_TRUE,
        Opcode.JUMP_IF_FALSE_OR_POP,
        Opcode.JUMP_IF_TRUE_OR_POP,
        Opcode.ITERATE,
    }
)

LOOP_BIND_VAR = 1
LOOP_RECURSIVE = 2

INCLUDE_IGNORE_MISSING = 1
INCLUDE_WITH_CONTEXT = 2


@dataclass(frozen=True, slots=True)
class Instruction:
    """One instruction with up to two integer operands and its source location."""

    op: Opcode
    arg: int = 0
    arg2: int = 0
    lineno: int = 0
    span: Span | None = field(default=None, compare=False)

    @property
    def jump_target(self) -> int | None:
        return self.arg if self.op in JUMP_OPCODES else None

    def __repr__(self) -> str:
        if self.op in JUMP_OPCODES:
            return f"{self.op.name} -> {self.arg}"
        if self.arg2:
            return f"{self.op.name} {self.arg} {self.arg2}"
        if self.arg:
            return f"{self.op.name} {self.arg}"
        return self.op.name


@dataclass(frozen=True, slots=True)
class Code:
    """A compiled body: the template root, a macro, a caller, a block or a recursive loop.

    ``params`` lists macro parameters in order, the last ``optional`` of
    which have defaults. ``scoped`` marks blocks that see the enclosing
    scopes instead of only the template's top level.
    """

    name: str
    kind: str
    instructions: tuple[Instruction, ...]
    params: tuple[str, ...] = ()
    optional: int = 0
    scoped: bool = False
    lineno: int = 0

    def __len__(self) -> int:
        return len(self.instructions)


@dataclass(frozen=True, slots=True)
class Bytecode:
    """A compiled template.

    Attributes:
        name: Template name, used in error messages
        source: Template source, used for error snippets
        constants: Deduplicated constant pool
        names: Interned identifiers
        codes: Code objects; index 0 is the template body
        blocks: Block name -> code index

    """

    name: str | None
    source: str
    constants: tuple[Any, ...]
    names: tuple[str, ...]
    codes: tuple[Code, ...]
    blocks: MappingProxyType[str, int]

    @property
    def root(self) -> Code:
        return self.codes[0]

    @property
    def block_names(self) -> list[str]:
        return list(self.blocks)

    def instruction_count(self) -> int:
        return sum(len(code) for code in self.codes)

    def __repr__(self) -> str:
        return (
            f"<Bytecode {self.name or '<template>'}: {len(self.codes)} codes, "
            f"{self.instruction_count()} instructions, {len(self.constants)} constants>"
        )
