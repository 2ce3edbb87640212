"""Effect declaration: turn a plain function into an interceptable call site.

    from fxbind import effect

    @effect
    def fetch_rates(currency):
        return http_get(f"/rates/{currency}")

Calling `fetch_rates("EUR")` routes through the dispatcher, which picks the
substitute bound by the enclosing test or falls back to the body above. The
decorated function's module (or enclosing class, for effects declared in a
class body) is the binding target.
"""

from __future__ import annotations

import functools
import inspect
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, TypeVar

from fxbind.errors import UnknownEffectError
from fxbind.logic.dispatch import dispatch
from fxbind.models.binding import target_name

F = TypeVar("F", bound=Callable[..., Any])


@dataclass(frozen=True)
class EffectSpec:
    target: str
    name: str
    arity: int
    default: Callable[..., Any]


# target -> name -> spec
EFFECT_CATALOG: Dict[str, Dict[str, EffectSpec]] = {}
_CATALOG_LOCK = threading.Lock()


def _declared_target(fn: Callable[..., Any]) -> str:
    qualname = getattr(fn, "__qualname__", fn.__name__)
    if "." in qualname and "<locals>" not in qualname:
        owner = qualname.rsplit(".", 1)[0]
        return f"{fn.__module__}.{owner}"
    return fn.__module__


def _effect_arity(fn: Callable[..., Any]) -> int:
    sig = inspect.signature(fn)
    arity = 0
    for param in sig.parameters.values():
        if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            raise TypeError(
                f"effect {fn.__qualname__} may only take positional parameters; "
                f"{param.name!r} is {param.kind.description}"
            )
        arity += 1
    return arity


def effect(fn: Optional[F] = None, *, target: Optional[str] = None, name: Optional[str] = None) -> Any:
    """Declare `fn` as an effect. Usable bare or as `@effect(target=..., name=...)`."""

    def decorate(func: F) -> F:
        spec = EffectSpec(
            target=target or _declared_target(func),
            name=name or func.__name__,
            arity=_effect_arity(func),
            default=func,
        )
        sig = inspect.signature(func)
        register_effect(spec)

        @functools.wraps(func)
        def call_site(*args: Any, **kwargs: Any) -> Any:
            if kwargs or len(args) != spec.arity:
                bound = sig.bind(*args, **kwargs)
                bound.apply_defaults()
                args = bound.args
            return dispatch(spec.target, spec.name, spec.arity, args, spec.default)

        call_site.__fxbind_effect__ = spec  # type: ignore[attr-defined]
        return call_site  # type: ignore[return-value]

    if fn is not None:
        return decorate(fn)
    return decorate


def register_effect(spec: EffectSpec) -> None:
    with _CATALOG_LOCK:
        EFFECT_CATALOG.setdefault(spec.target, {})[spec.name] = spec


def effects_of(target: object) -> List[EffectSpec]:
    """Return the effects declared for `target` (module, class or dotted name)."""
    return list(EFFECT_CATALOG.get(target_name(target), {}).values())


def lookup_effect(target: object, name: str) -> Optional[EffectSpec]:
    return EFFECT_CATALOG.get(target_name(target), {}).get(name)


def require_effect(target: object, name: str) -> EffectSpec:
    spec = lookup_effect(target, name)
    if spec is None:
        raise UnknownEffectError(
            f"{target_name(target)} declares no effect named {name!r}",
            target=target_name(target),
            name=name,
        )
    return spec


__all__ = [
    "EffectSpec",
    "EFFECT_CATALOG",
    "effect",
    "register_effect",
    "effects_of",
    "lookup_effect",
    "require_effect",
]
