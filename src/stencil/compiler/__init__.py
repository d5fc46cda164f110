"""Stencil Compiler: lowers the AST to bytecode for the VM.

Example:
    >>> from stencil.compiler import compile_template
    >>> bytecode = compile_template("{{ 1 + 2 }}")
    >>> bytecode.root.instructions
    (LOAD_CONST, LOAD_CONST 1, BINARY_ADD, EMIT)

"""

from stencil.compiler.core import Compiler, compile_template
from stencil.compiler.instructions import Bytecode, Code, Instruction, Opcode

__all__ = ["Bytecode", "Code", "Compiler", "Instruction", "Opcode", "compile_template"]
