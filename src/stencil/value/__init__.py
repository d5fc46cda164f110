"""Runtime value model.

Templates operate on plain Python values plus a few engine types:
Undefined for missing lookups, Markup for safe strings and TemplateObject
for host values with an explicit capability set.
"""

from stencil.value.escape import (
    AutoEscape,
    CustomEscape,
    EscapeMode,
    coerce_auto_escape,
    default_format,
    escape,
    format_value,
    select_autoescape,
    to_json,
)
from stencil.value.kinds import ValueKind, is_safe, kind_of
from stencil.value.markup import Markup, html_escape
from stencil.value.objects import Capability, Namespace, TemplateObject
from stencil.value.ops import is_true, repr_value, to_string
from stencil.value.undefined import MISSING, UNDEFINED, Undefined, UndefinedKind, UndefinedPolicy

__all__ = [
    "MISSING",
    "UNDEFINED",
    "AutoEscape",
    "Capability",
    "CustomEscape",
    "EscapeMode",
    "Markup",
    "Namespace",
    "TemplateObject",
    "Undefined",
    "UndefinedKind",
    "UndefinedPolicy",
    "ValueKind",
    "coerce_auto_escape",
    "default_format",
    "escape",
    "format_value",
    "html_escape",
    "is_safe",
    "is_true",
    "kind_of",
    "repr_value",
    "select_autoescape",
    "to_json",
    "to_string",
]
