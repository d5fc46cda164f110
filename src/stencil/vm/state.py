"""Per-render VM state.

A State holds everything one render mutates: the scope stack, the
autoescape stack, the output sink, block overrides for template
inheritance and the recursion/fuel counters. Compiled Bytecode and the
Environment are only read, so any number of States can run over the same
template at once.

Callables registered on the environment receive plain values. Decorate a
callable with pass_state() to receive the State as its first argument
(e.g. to read the active autoescape mode or call back into macros).
"""

from __future__ import annotations

import inspect
import types
from collections.abc import Callable, Mapping
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TypeVar

from stencil.environment.exceptions import (
    InvalidArgumentsError,
    InvalidOperationError,
    OutOfFuelError,
    TemplateError,
    TemplateRecursionError,
    UnknownCallableError,
)
from stencil.template.loop_context import LoopContext
from stencil.value.escape import AutoEscape, EscapeMode
from stencil.value.objects import Capability, TemplateObject
from stencil.value.undefined import MISSING, Undefined, UndefinedKind, UndefinedPolicy
from stencil.vm.output import Output

if TYPE_CHECKING:
    from stencil.compiler.instructions import Bytecode
    from stencil.environment import Environment
    from stencil.vm.core import VM

F = TypeVar("F", bound=Callable[..., Any])


def pass_state(func: F) -> F:
    """Mark ``func`` to receive the render State as its first argument.

    Example:
        >>> @pass_state
        ... def escape_mode(state):
        ...     return str(state.auto_escape)
        >>> env.add_global("escape_mode", escape_mode)
    """
    func.stencil_pass_state = True  # type: ignore[attr-defined]
    return func


@lru_cache(maxsize=512)
def _function_signature(func: types.FunctionType) -> inspect.Signature:
    return inspect.signature(func)


def signature_of(func: Callable[..., Any]) -> inspect.Signature | None:
    """Signature used to check template call arguments, or None if unknown."""
    try:
        if isinstance(func, types.FunctionType):
            return _function_signature(func)
        return inspect.signature(func)
    except (TypeError, ValueError):
        return None


class Fuel:
    """Instruction budget shared by a render and everything it includes."""

    __slots__ = ("remaining",)

    def __init__(self, amount: int):
        self.remaining = amount

    def consume(self, amount: int = 1) -> None:
        self.remaining -= amount
        if self.remaining < 0:
            raise OutOfFuelError(
                "template exceeded its instruction budget",
                suggestion="Raise the environment's fuel setting or simplify the template",
            )


class State:
    """Mutable render state.

    Attributes:
        vm: The VM executing this render
        env: The Environment (read-only during the render)
        name: Name of the template being rendered
        ctx: Root context passed by the caller; never written to
        scopes: Stack of binding dicts, innermost last
        auto_escape: Stack of active escape modes
        blocks: Block name -> definitions from the most derived template up
        template_stack: (template name, line) pairs of includes in progress

    """

    __slots__ = (
        "_depth",
        "auto_escape",
        "blocks",
        "ctx",
        "env",
        "fuel",
        "name",
        "output",
        "pending_parent",
        "policy",
        "recursion_limit",
        "scopes",
        "template_stack",
        "vm",
    )

    def __init__(
        self,
        vm: VM,
        env: Environment,
        name: str | None,
        ctx: Mapping[str, Any],
        auto_escape: EscapeMode,
        *,
        depth: list[int] | None = None,
        fuel: Fuel | None = None,
        output: Output | None = None,
        template_stack: list[tuple[str, int | None]] | None = None,
    ):
        self.vm = vm
        self.env = env
        self.name = name
        self.ctx = ctx
        self.scopes: list[dict[str, Any]] = [{}]
        self.auto_escape: list[EscapeMode] = [auto_escape]
        self.policy: UndefinedPolicy = env.undefined
        self.recursion_limit: int = env.recursion_limit
        self.blocks: dict[str, list[tuple[Bytecode, int]]] = {}
        self.pending_parent: Any = None
        self.output = output if output is not None else Output()
        self.template_stack = template_stack if template_stack is not None else []
        # Shared with child states so includes and imports count against one limit.
        self._depth = depth if depth is not None else [0]
        self.fuel = fuel

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def lookup(self, name: str) -> Any:
        """Resolve ``name`` through the scopes, the context, then globals."""
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        if name in self.ctx:
            return self.ctx[name]
        return self.env.globals.get(name, MISSING)

    def store(self, name: str, value: Any) -> None:
        self.scopes[-1][name] = value

    def available_names(self) -> frozenset[str]:
        names: set[str] = set(self.ctx)
        for scope in self.scopes:
            names.update(scope)
        names.update(self.env.globals)
        return frozenset(names)

    def exports(self) -> dict[str, Any]:
        """Top-level names of this render that an import may see."""
        return {key: value for key, value in self.scopes[0].items() if not key.startswith("_")}

    def undefined(self, hint: str | None = None) -> Undefined:
        if self.policy is UndefinedPolicy.CHAINABLE:
            return Undefined(hint, UndefinedKind.CHAINABLE)
        return Undefined(hint)

    @property
    def current_auto_escape(self) -> EscapeMode:
        return self.auto_escape[-1]

    @property
    def escaping(self) -> bool:
        return self.auto_escape[-1] is not AutoEscape.NONE

    # ------------------------------------------------------------------
    # Depth and fuel
    # ------------------------------------------------------------------

    @property
    def depth(self) -> int:
        return self._depth[0]

    def enter(self, what: str) -> None:
        self._depth[0] += 1
        if self._depth[0] > self.recursion_limit:
            self._depth[0] -= 1
            raise TemplateRecursionError(
                f"recursion limit of {self.recursion_limit} exceeded in {what}",
                suggestion="Check for a macro, include or recursive loop that never terminates",
            )

    def leave(self) -> None:
        self._depth[0] -= 1

    def child(
        self,
        name: str | None,
        ctx: Mapping[str, Any],
        auto_escape: EscapeMode,
        *,
        lineno: int | None = None,
        share_output: bool = True,
    ) -> State:
        """A State for an included or imported template."""
        stack = list(self.template_stack)
        stack.append((self.name or "<template>", lineno))
        child = State(
            self.vm,
            self.env,
            name,
            ctx,
            auto_escape,
            depth=self._depth,
            fuel=self.fuel,
            output=self.output if share_output else None,
            template_stack=stack,
        )
        child.policy = self.policy
        child.recursion_limit = self.recursion_limit
        return child

    # ------------------------------------------------------------------
    # Calls
    # ------------------------------------------------------------------

    def call(
        self,
        func: Any,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        what: str = "function",
    ) -> Any:
        """Invoke a template-visible callable.

        Raises:
            UnknownCallableError: ``func`` is undefined
            InvalidArgumentsError: The arguments do not fit the signature
            InvalidOperationError: ``func`` is not callable, or raised
        """
        if isinstance(func, TemplateObject):
            if not func.has(Capability.CALLABLE):
                raise InvalidOperationError(f"{what} of type {type(func).__name__} is not callable")
            return func.call(self, args, kwargs)
        if isinstance(func, LoopContext):
            if kwargs or len(args) != 1:
                raise InvalidArgumentsError("loop() takes exactly one argument, the next iterable")
            return func.recurse(args[0])
        if isinstance(func, Undefined):
            hint = f" '{func.hint}'" if func.hint else ""
            raise UnknownCallableError(f"{what}{hint} is undefined and cannot be called")
        if not callable(func):
            raise InvalidOperationError(f"{what} is not callable")

        if getattr(func, "stencil_pass_state", False):
            args = (self, *args)
        signature = signature_of(func)
        if signature is not None:
            try:
                signature.bind(*args, **kwargs)
            except TypeError as exc:
                raise InvalidArgumentsError(f"invalid arguments for {what}: {exc}") from None
        try:
            return func(*args, **kwargs)
        except (TemplateError, RecursionError):
            raise
        except Exception as exc:
            raise InvalidOperationError(f"{what} failed: {exc}") from exc

    def __repr__(self) -> str:
        return f"<State {self.name or '<template>'} depth={self.depth}>"
