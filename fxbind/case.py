"""Test-facing surface for binding effects.

An `EffectCase` brackets one test run: `init` at setup, `bind`/`expect` in the
test body, `close` (verify, then teardown) at the end. The pytest plugin
creates one per test; other runners can drive it directly or use it as a
context manager:

    with EffectCase() as fx:
        fx.bind(rates, "fetch_rates", lambda currency: 1.1, calls=1)
        assert convert(10, "EUR") == 11

Binding rules:

- A module whose effects are not bound at all runs its default
  implementations.
- Bind all effects of a module or none. Once any effect of a module is bound,
  calling one of its unbound effects raises `CoverageError`; use `DEFAULT` to
  keep an individual effect on its default implementation.
- Multiple binds for one effect are consumed in order; each bounded bind
  serves exactly `calls` invocations before the next one takes over, and an
  unbounded bind serves every call after that.
- Every `calls` count is verified at teardown, both unmet and exceeded.

In scoped mode (the default) the case owns a fresh identity and bindings are
visible to the test and to workers started through `fxbind.propagate` /
`fxbind.spawn_thread`. In global mode bindings are visible to every caller
that is not inside a scoped case, so global tests must not run concurrently
with each other.
"""

from __future__ import annotations

import contextvars
import logging
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from fxbind.effects import effects_of, lookup_effect
from fxbind.errors import InvalidOptionsError, MissingCallsError, UnknownEffectError
from fxbind.logic import inmemory_state, verification
from fxbind.logic.identity import GLOBAL_OWNER, Identity, Mode, activate, child_identity, deactivate
from fxbind.logic.registry import BindingRegistry
from fxbind.models.binding import (
    BindingEntry,
    BindingKey,
    BindOptions,
    Substitute,
    substitute_arity,
    target_name,
)
from fxbind.models.report import OwnerSnapshot

logger = logging.getLogger(__name__)

_MISSING: Any = object()

Pairs = Union[Mapping[str, Substitute], Iterable[Tuple[str, Substitute]]]


class EffectCase:
    def __init__(
        self,
        scoped: bool = True,
        registry: Optional[BindingRegistry] = None,
        label: Optional[str] = None,
    ) -> None:
        self.mode = Mode.SCOPED if scoped else Mode.GLOBAL
        self.registry = registry or inmemory_state.REGISTRY
        self.label = label
        self._owner: Optional[Identity] = None
        self._token: Optional[contextvars.Token] = None

    @property
    def scoped(self) -> bool:
        return self.mode is Mode.SCOPED

    @property
    def owner(self) -> Identity:
        if self._owner is None:
            raise RuntimeError("EffectCase.init() has not been called")
        return self._owner

    @property
    def active(self) -> bool:
        return self._owner is not None

    # -- lifecycle ---------------------------------------------------------

    def init(self) -> "EffectCase":
        """Register the owner for this run and make it current."""
        if self._owner is not None:
            raise RuntimeError("EffectCase is already initialised")
        if self.scoped:
            owner = child_identity(self.label)
            self._token = activate(owner)
        else:
            owner = GLOBAL_OWNER
            # a previous global test may have leaked state; start empty
            self.registry.purge_globals()
        self.registry.init(owner)
        self._owner = owner
        logger.debug("case:init owner=%s mode=%s", owner.label, self.mode.value)
        return self

    def verify(self) -> None:
        verification.verify(self.owner, self.registry)

    def teardown(self) -> None:
        """Drop this run's bindings and restore the previous identity."""
        owner = self._owner
        if owner is None:
            return
        self.registry.clear(owner)
        if not self.scoped:
            self.registry.purge_globals()
        self._release()

    def close(self) -> None:
        """Verify call budgets, then tear down even if verification fails."""
        owner = self._owner
        if owner is None:
            return
        try:
            verification.verify_and_teardown(owner, self.mode, self.registry)
        finally:
            self._release()

    def _release(self) -> None:
        if self._token is not None:
            deactivate(self._token)
            self._token = None
        self._owner = None

    def __enter__(self) -> "EffectCase":
        return self.init()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            logger.debug("case:exit skipping verification after %s", exc_type.__name__)
            self.teardown()
            return
        self.close()

    # -- binding -----------------------------------------------------------

    def bind(self, target: object, name: str, substitute: Substitute, calls: Optional[int] = None) -> BindingEntry:
        """Bind effect `name` of `target`; `calls=None` binds it without a budget."""
        options = _options(target, name, calls)
        key = self._key(target, name, substitute)
        entry = self.registry.add_binding(self.owner, key, substitute, options.calls)
        logger.info("case:bind owner=%s key=%s calls=%s", self.owner.label, key.label(), options.calls)
        return entry

    def expect(self, target: object, name: str, substitute: Substitute, calls: int = _MISSING) -> BindingEntry:
        """Like `bind`, but the number of expected calls is mandatory."""
        if calls is _MISSING or calls is None:
            raise MissingCallsError(target_name(target), name)
        return self.bind(target, name, substitute, calls=calls)

    def setup_effects(self, target: object, pairs: Pairs = (), **named: Substitute) -> None:
        """Bind several effects of `target` at once, each without a budget."""
        items = list(pairs.items()) if isinstance(pairs, Mapping) else list(pairs)
        items.extend(named.items())
        for name, substitute in items:
            self.bind(target, name, substitute)

    def snapshot(self) -> OwnerSnapshot:
        return self.registry.snapshot(self.owner)

    def _key(self, target: object, name: str, substitute: Substitute) -> BindingKey:
        target_str = target_name(target)
        spec = lookup_effect(target_str, name)
        if spec is not None:
            return BindingKey(target_str, name, spec.arity)
        declared = effects_of(target_str)
        if declared:
            raise UnknownEffectError(
                f"{target_str} declares no effect named {name!r}; declared: "
                f"{', '.join(sorted(s.name for s in declared))}",
                target=target_str,
                name=name,
            )
        try:
            arity = substitute_arity(substitute)
        except TypeError:
            arity = None
        if arity is None:
            raise UnknownEffectError(
                f"{target_str} declares no effect named {name!r} and the arity of "
                f"{substitute!r} cannot be inferred; pass default(arity) or declare the effect",
                target=target_str,
                name=name,
            )
        return BindingKey(target_str, name, arity)


def _options(target: object, name: str, calls: Optional[int]) -> BindOptions:
    try:
        return BindOptions(calls=calls)
    except PydanticValidationError as e:
        logger.error("case:bind invalid options target=%s name=%s calls=%r", target_name(target), name, calls)
        raise InvalidOptionsError(
            f"invalid options for {target_name(target)}.{name}: calls must be a non-negative integer, got {calls!r}",
            errors=e.errors(),
        ) from e


__all__ = ["EffectCase"]
