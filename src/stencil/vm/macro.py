"""Runtime objects created by templates: macros and imported modules."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from stencil.value.objects import Capability, TemplateObject
from stencil.value.undefined import MISSING

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from stencil.compiler.instructions import Bytecode
    from stencil.vm.state import State


class Macro(TemplateObject):
    """A ``{% macro %}`` (or call-block ``caller``) bound to its defining scopes.

    ``closure`` holds references to the scope dicts that were live where the
    macro was defined, so names assigned there later (including the macro's
    own name, for recursion) are visible when it runs.
    """

    capabilities = Capability.CALLABLE | Capability.ATTRIBUTABLE | Capability.STRINGABLE

    __slots__ = ("bytecode", "closure", "code_index", "context", "name", "params")

    def __init__(
        self,
        name: str,
        bytecode: Bytecode,
        code_index: int,
        closure: list[dict[str, Any]],
        context: Mapping[str, Any],
    ):
        self.name = name
        self.bytecode = bytecode
        self.code_index = code_index
        self.closure = closure
        self.context = context
        self.params = bytecode.codes[code_index].params

    def call(self, state: State, args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
        return state.vm.call_macro(state, self, args, kwargs)

    def get_attr(self, name: str) -> Any:
        if name == "name":
            return self.name
        if name == "arguments":
            return self.params
        return MISSING

    def render(self) -> str:
        return f"<macro {self.name}>"

    def __repr__(self) -> str:
        return f"<Macro {self.name}({', '.join(self.params)})>"


class Module(TemplateObject):
    """The exports of an imported template: its top-level names and macros.

    Names starting with an underscore are private and not exported.
    """

    capabilities = Capability.ATTRIBUTABLE | Capability.ITERABLE | Capability.STRINGABLE

    __slots__ = ("_exports", "name")

    def __init__(self, name: str | None, exports: dict[str, Any]):
        self.name = name
        self._exports = exports

    def get_attr(self, name: str) -> Any:
        return self._exports.get(name, MISSING)

    def iterate(self) -> Iterator[Any]:
        return iter(self._exports)

    def length(self) -> int:
        return len(self._exports)

    def render(self) -> str:
        return f"<module {self.name or '<template>'}>"

    def __repr__(self) -> str:
        return f"<Module {self.name!r}: {', '.join(sorted(self._exports))}>"
