"""Binding value types shared by the registry, dispatcher and verifier."""

from __future__ import annotations

import inspect
import types
from dataclasses import dataclass
from typing import Any, Callable, NamedTuple, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class BindingKey(NamedTuple):
    target: str
    name: str
    arity: int

    def label(self) -> str:
        return f"{self.target}.{self.name}/{self.arity}"


class UseDefault:
    """Sentinel substitute: route the call to the effect's default implementation.

    `arity` is only needed when binding a target that has no declared effects
    (for declared effects the catalog supplies it).
    """

    __slots__ = ("arity",)

    def __init__(self, arity: Optional[int] = None) -> None:
        self.arity = arity

    def __eq__(self, other: object) -> bool:
        return isinstance(other, UseDefault)

    def __hash__(self) -> int:
        return hash(UseDefault)

    def __repr__(self) -> str:
        return "DEFAULT" if self.arity is None else f"default({self.arity})"


DEFAULT = UseDefault()

Substitute = Union[Callable[..., Any], UseDefault]


def default(arity: Optional[int] = None) -> UseDefault:
    """Return a use-default substitute, optionally pinned to `arity`."""
    return UseDefault(arity)


class BindOptions(BaseModel):
    """Options accepted by bind/expect. `calls=None` means unbounded."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    calls: Optional[StrictInt] = Field(default=None, ge=0)

    @property
    def bounded(self) -> bool:
        return self.calls is not None


@dataclass
class BindingEntry:
    """One link of a binding chain."""

    substitute: Substitute
    expected_calls: Optional[int] = None
    consumed_calls: int = 0

    @property
    def bounded(self) -> bool:
        return self.expected_calls is not None

    @property
    def available(self) -> bool:
        return self.expected_calls is None or self.consumed_calls < self.expected_calls

    @property
    def uses_default(self) -> bool:
        return isinstance(self.substitute, UseDefault)


def target_name(target: object) -> str:
    """Normalise a binding target to a dotted name.

    Modules map to `__name__`, classes to `module.QualName`, strings are used
    as given.
    """
    if isinstance(target, str):
        return target
    if isinstance(target, types.ModuleType):
        return target.__name__
    if isinstance(target, type):
        return f"{target.__module__}.{target.__qualname__}"
    raise TypeError(f"cannot bind effects of {target!r}; expected a module, class or name")


def positional_bounds(fn: Callable[..., Any]) -> Tuple[int, Optional[int]]:
    """Return (required, maximum) positional argument counts of `fn`.

    Maximum is None when the callable takes *args.
    """
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"cannot inspect signature of {fn!r}") from exc
    required = 0
    maximum: Optional[int] = 0
    for param in sig.parameters.values():
        if param.kind in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            if maximum is not None:
                maximum += 1
            if param.default is param.empty:
                required += 1
        elif param.kind is param.VAR_POSITIONAL:
            maximum = None
        elif param.kind is param.KEYWORD_ONLY and param.default is param.empty:
            # a required keyword-only argument can never be satisfied positionally
            return required, -1
    return required, maximum


def accepts_arity(fn: Callable[..., Any], arity: int) -> bool:
    """True when `fn` takes exactly `arity` positional arguments."""
    required, maximum = positional_bounds(fn)
    return required == arity and maximum == arity


def substitute_arity(substitute: Substitute) -> Optional[int]:
    """Exact arity implied by a substitute, or None when it cannot be pinned."""
    if isinstance(substitute, UseDefault):
        return substitute.arity
    required, maximum = positional_bounds(substitute)
    if maximum is not None and maximum == required:
        return required
    return None


__all__ = [
    "BindingKey",
    "BindingEntry",
    "BindOptions",
    "UseDefault",
    "DEFAULT",
    "Substitute",
    "default",
    "target_name",
    "positional_bounds",
    "accepts_arity",
    "substitute_arity",
]
