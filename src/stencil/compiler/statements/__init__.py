"""Statement compilation for the Stencil compiler.

Provides mixins for lowering statement nodes to instructions.

The statements package is organized into logical modules:
- basic: Output, data, raw text and do
- control_flow: if, for (plain, filtered and recursive), break, continue
- variables: set, set blocks and assignment targets
- with_blocks: with-block scoped bindings
- functions: macros and call blocks
- template_structure: block, extends, include, import, from-import
- special_blocks: filter and autoescape blocks

Uses inline TYPE_CHECKING declarations for host attributes.

"""

from __future__ import annotations

from stencil.compiler.statements.basic import BasicStatementMixin
from stencil.compiler.statements.control_flow import ControlFlowMixin
from stencil.compiler.statements.functions import FunctionCompilationMixin
from stencil.compiler.statements.special_blocks import SpecialBlockMixin
from stencil.compiler.statements.template_structure import TemplateStructureMixin
from stencil.compiler.statements.variables import VariableAssignmentMixin
from stencil.compiler.statements.with_blocks import WithBlockMixin


class StatementCompilationMixin(
    BasicStatementMixin,
    ControlFlowMixin,
    VariableAssignmentMixin,
    TemplateStructureMixin,
    FunctionCompilationMixin,
    WithBlockMixin,
    SpecialBlockMixin,
):
    """Combined mixin for compiling all statement types.

    Host attributes and cross-mixin dependencies are declared via inline
    TYPE_CHECKING blocks in each individual mixin.

    """
