"""Stencil virtual machine: executes compiled Bytecode.

Example:
    >>> from stencil import Environment
    >>> env = Environment()
    >>> env.vm.render(env.compile("{{ 1 + 2 }}"), {})
    '3'

"""

from stencil.vm.core import VM, Frame
from stencil.vm.macro import Macro, Module
from stencil.vm.output import Output
from stencil.vm.state import State, pass_state

__all__ = ["VM", "Frame", "Macro", "Module", "Output", "State", "pass_state"]
