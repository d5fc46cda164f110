"""Stencil AST nodes.

Immutable, frozen dataclasses produced by the parser and consumed by the
compiler. Every node carries ``lineno``, ``col_offset`` and a ``span``.
"""

from stencil.nodes.base import Node, walk
from stencil.nodes.control_flow import Break, Continue, For, If
from stencil.nodes.expressions import (
    BinOp,
    BoolOp,
    CaptureValue,
    Compare,
    Concat,
    CondExpr,
    Const,
    Dict,
    Expr,
    Filter,
    FuncCall,
    Getattr,
    Getitem,
    List,
    Name,
    Slice,
    Test,
    Tuple,
    UnaryOp,
)
from stencil.nodes.functions import CallBlock, Macro
from stencil.nodes.output import Autoescape, Data, FilterBlock, Output, Raw
from stencil.nodes.structure import Block, Extends, FromImport, Import, Include, Template, With
from stencil.nodes.variables import Do, Set, SetBlock

__all__ = [
    "Autoescape",
    "BinOp",
    "Block",
    "BoolOp",
    "Break",
    "CallBlock",
    "CaptureValue",
    "Compare",
    "Concat",
    "CondExpr",
    "Const",
    "Continue",
    "Data",
    "Dict",
    "Do",
    "Expr",
    "Extends",
    "Filter",
    "FilterBlock",
    "For",
    "FromImport",
    "FuncCall",
    "Getattr",
    "Getitem",
    "If",
    "Import",
    "Include",
    "List",
    "Macro",
    "Name",
    "Node",
    "Output",
    "Raw",
    "Set",
    "SetBlock",
    "Slice",
    "Template",
    "Test",
    "Tuple",
    "UnaryOp",
    "With",
    "walk",
]
