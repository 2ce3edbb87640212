"""Call dispatcher invoked by every intercepted effect call site.

Resolution order for one call:

1. take the caller identity of the running context;
2. pick the mode from the caller: scoped when it descends from a live owner,
   global when it does not and a non-scoped test is live;
3. walk the search path and use the first owner whose chain for this key
   serves the call (nearest binding wins);
4. when no owner has a chain for the key but one of them binds other effects
   of the same target, the call is a coverage error;
5. when nothing on the path binds the target at all, the default runs.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from fxbind.errors import CoverageError
from fxbind.logic import inmemory_state
from fxbind.logic.identity import GLOBAL_OWNER, Identity, Mode, ancestors, current_identity, resolve_search_path
from fxbind.logic.registry import BindingRegistry, TakeStatus
from fxbind.models.binding import BindingKey, UseDefault

logger = logging.getLogger(__name__)


def active_mode(registry: BindingRegistry, caller: Optional[Identity] = None) -> Mode:
    """Mode of the test the caller belongs to."""
    if any(owner is not GLOBAL_OWNER and registry.is_live(owner) for owner in ancestors(caller)):
        return Mode.SCOPED
    return Mode.GLOBAL if registry.is_live(GLOBAL_OWNER) else Mode.SCOPED


def dispatch(
    target: str,
    name: str,
    arity: int,
    args: Sequence[Any],
    default_impl: Callable[..., Any],
    registry: Optional[BindingRegistry] = None,
) -> Any:
    """Run one effect call through whichever binding applies to the caller."""
    registry = registry or inmemory_state.REGISTRY
    key = BindingKey(target, name, arity)
    caller = current_identity()
    path = resolve_search_path(caller, active_mode(registry, caller))

    for owner in path:
        result = registry.take_call(owner, key)
        if result.status is TakeStatus.UNBOUND:
            continue
        substitute = result.substitute
        logger.debug(
            "dispatch:call owner=%s key=%s status=%s default=%s",
            owner.label,
            key.label(),
            result.status.value,
            isinstance(substitute, UseDefault),
        )
        if isinstance(substitute, UseDefault):
            return default_impl(*args)
        return substitute(*args)

    for owner in path:
        if registry.has_target(owner, target):
            bound = registry.bound_names(owner, target)
            logger.error("dispatch:coverage owner=%s key=%s bound=%s", owner.label, key.label(), bound)
            raise CoverageError(target, name, arity, owner, bound)

    return default_impl(*args)


__all__ = ["dispatch", "active_mode"]
