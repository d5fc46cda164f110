"""Stencil Template package: compiled templates ready for rendering."""

from stencil.template.core import Template
from stencil.template.loop_context import LoopContext

__all__ = [
    "LoopContext",
    "Template",
]
