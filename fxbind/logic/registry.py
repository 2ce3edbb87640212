"""Binding registry: owner -> binding key -> ordered chain of entries.

The registry is process-wide and run-scoped. Each owner's state carries its
own lock; the scan-and-increment in `take_call` holds it so concurrent
descendant workers never claim the same budgeted call twice. The owner map
itself is guarded by a separate lock that is only taken on init/clear.
"""

from __future__ import annotations

import enum
import logging
import threading
from typing import Dict, List, NamedTuple, Optional, Set

from fxbind.errors import (
    ArityMismatchError,
    OwnerNotInitializedError,
    UnreachableBindingError,
)
from fxbind.logic.identity import GLOBAL_OWNER, Identity
from fxbind.models.binding import (
    BindingEntry,
    BindingKey,
    Substitute,
    UseDefault,
    accepts_arity,
    positional_bounds,
)
from fxbind.models.report import ChainReport, EntryReport, OwnerSnapshot

logger = logging.getLogger(__name__)


class TakeStatus(enum.Enum):
    FOUND = "found"
    EXHAUSTED = "exhausted"
    UNBOUND = "unbound"


class TakeResult(NamedTuple):
    status: TakeStatus
    substitute: Optional[Substitute] = None


UNBOUND = TakeResult(TakeStatus.UNBOUND)


class _OwnerState:
    __slots__ = ("lock", "chains")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.chains: Dict[BindingKey, List[BindingEntry]] = {}


class BindingRegistry:
    def __init__(self) -> None:
        self._owners: Dict[Identity, _OwnerState] = {}
        self._guard = threading.Lock()

    # -- lifecycle ---------------------------------------------------------

    def init(self, owner: Identity) -> None:
        """Create empty binding state for `owner`."""
        with self._guard:
            if owner in self._owners:
                logger.warning("registry:init replacing live state owner=%s", owner.label)
            self._owners[owner] = _OwnerState()
        logger.debug("registry:init owner=%s", owner.label)

    def is_live(self, owner: Identity) -> bool:
        return owner in self._owners

    def clear(self, owner: Identity) -> None:
        with self._guard:
            state = self._owners.pop(owner, None)
        if state is not None:
            logger.debug("registry:clear owner=%s chains=%d", owner.label, len(state.chains))

    def purge_globals(self) -> None:
        """Drop all state held under the global owner."""
        with self._guard:
            state = self._owners.pop(GLOBAL_OWNER, None)
        if state is not None:
            logger.info("registry:purge_globals chains=%d", len(state.chains))

    def owners(self) -> List[Identity]:
        return list(self._owners)

    def _state(self, owner: Identity) -> _OwnerState:
        state = self._owners.get(owner)
        if state is None:
            raise OwnerNotInitializedError(owner)
        return state

    # -- registration ------------------------------------------------------

    def add_binding(
        self,
        owner: Identity,
        key: BindingKey,
        substitute: Substitute,
        expected_calls: Optional[int] = None,
    ) -> BindingEntry:
        """Append an entry to the chain for (owner, key)."""
        state = self._state(owner)
        _check_arity(key, substitute)
        entry = BindingEntry(substitute=substitute, expected_calls=expected_calls)
        with state.lock:
            for other in state.chains:
                if other.target == key.target and other.name == key.name and other.arity != key.arity:
                    raise ArityMismatchError(key.target, key.name, other.arity, f"a rebind with arity {key.arity}")
            chain = state.chains.setdefault(key, [])
            if chain and not chain[-1].bounded:
                logger.error("registry:bind unreachable owner=%s key=%s", owner.label, key.label())
                raise UnreachableBindingError(key.target, key.name, key.arity)
            chain.append(entry)
        logger.debug(
            "registry:bind owner=%s key=%s position=%d calls=%s",
            owner.label,
            key.label(),
            len(chain) - 1,
            expected_calls,
        )
        return entry

    # -- lookup ------------------------------------------------------------

    def has_target(self, owner: Identity, target: str) -> bool:
        state = self._owners.get(owner)
        if state is None:
            return False
        with state.lock:
            return any(key.target == target for key in state.chains)

    def bound_names(self, owner: Identity, target: str) -> List[str]:
        state = self._owners.get(owner)
        if state is None:
            return []
        with state.lock:
            names: Set[str] = {f"{k.name}/{k.arity}" for k in state.chains if k.target == target}
        return sorted(names)

    def take_call(self, owner: Identity, key: BindingKey) -> TakeResult:
        """Consume one call from the chain for (owner, key)."""
        state = self._owners.get(owner)
        if state is None:
            return UNBOUND
        with state.lock:
            chain = state.chains.get(key)
            if not chain:
                return UNBOUND
            for entry in chain:
                if entry.available:
                    entry.consumed_calls += 1
                    return TakeResult(TakeStatus.FOUND, entry.substitute)
            # budget exceeded: charge the last entry so the verifier reports it
            last = chain[-1]
            last.consumed_calls += 1
        logger.warning(
            "registry:take exhausted owner=%s key=%s consumed=%d expected=%s",
            owner.label,
            key.label(),
            last.consumed_calls,
            last.expected_calls,
        )
        return TakeResult(TakeStatus.EXHAUSTED, last.substitute)

    def snapshot(self, owner: Identity) -> OwnerSnapshot:
        state = self._state(owner)
        with state.lock:
            chains = [
                ChainReport(
                    target=key.target,
                    name=key.name,
                    arity=key.arity,
                    entries=[
                        EntryReport(
                            position=i,
                            expected=entry.expected_calls,
                            consumed=entry.consumed_calls,
                            uses_default=entry.uses_default,
                        )
                        for i, entry in enumerate(chain)
                    ],
                )
                for key, chain in state.chains.items()
            ]
        return OwnerSnapshot(owner=owner.label, chains=chains)


def _check_arity(key: BindingKey, substitute: Substitute) -> None:
    if isinstance(substitute, UseDefault):
        if substitute.arity is not None and substitute.arity != key.arity:
            raise ArityMismatchError(key.target, key.name, key.arity, f"default({substitute.arity})")
        return
    if not callable(substitute):
        raise ArityMismatchError(key.target, key.name, key.arity, f"non-callable {substitute!r}")
    try:
        accepted = accepts_arity(substitute, key.arity)
    except TypeError as exc:
        raise ArityMismatchError(key.target, key.name, key.arity, f"uninspectable {substitute!r}") from exc
    if not accepted:
        required, maximum = positional_bounds(substitute)
        got = f"{required}" if maximum == required else f"{required}..{'*' if maximum is None else maximum}"
        raise ArityMismatchError(key.target, key.name, key.arity, got)


__all__ = [
    "BindingRegistry",
    "TakeResult",
    "TakeStatus",
    "UNBOUND",
]
