"""Caller identities and ancestry lookup.

Bindings are registered under an owner identity and resolved by walking the
caller's ancestry: the caller itself, its parent, grandparent and so on up to
the root. Ancestry is threaded explicitly through `contextvars`: a test enters
an owner identity, and workers started through `propagate` or `spawn_thread`
run under a child of whatever identity was current when they were created.
asyncio tasks copy the context on creation and so inherit the caller identity
unchanged.

In non-scoped mode the search path is the single `GLOBAL_OWNER` regardless of
who is calling.
"""

from __future__ import annotations

import contextvars
import enum
import functools
import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_COUNTER = itertools.count(1)


class Identity:
    """An owner/caller identity. Compared and hashed by object identity."""

    __slots__ = ("label", "parent", "__weakref__")

    def __init__(self, label: str, parent: Optional["Identity"] = None) -> None:
        self.label = label
        self.parent = parent

    def __repr__(self) -> str:
        return f"<Identity {self.label}>"


class Mode(str, enum.Enum):
    SCOPED = "scoped"
    GLOBAL = "global"


GLOBAL_OWNER = Identity("global")

_CURRENT: contextvars.ContextVar[Optional[Identity]] = contextvars.ContextVar(
    "fxbind_current_identity", default=None
)


def new_identity(label: Optional[str] = None, parent: Optional[Identity] = None) -> Identity:
    return Identity(label or f"id-{next(_COUNTER)}", parent)


def current_identity() -> Optional[Identity]:
    """Return the identity of the running context, or None outside any owner."""
    return _CURRENT.get()


def child_identity(label: Optional[str] = None) -> Identity:
    """Create an identity whose parent is the current one."""
    return new_identity(label, current_identity())


def ancestors(caller: Optional[Identity]) -> List[Identity]:
    """Return [caller, parent, grandparent, ...] ending at the root."""
    chain: List[Identity] = []
    node = caller
    while node is not None:
        chain.append(node)
        node = node.parent
    return chain


def resolve_search_path(caller: Optional[Identity], mode: Mode = Mode.SCOPED) -> List[Identity]:
    """Return the ordered owner candidates for a call made by `caller`."""
    if mode is Mode.GLOBAL:
        return [GLOBAL_OWNER]
    return ancestors(caller)


@contextmanager
def enter_identity(identity: Identity) -> Iterator[Identity]:
    """Make `identity` current for the body of the with-block."""
    token = _CURRENT.set(identity)
    try:
        yield identity
    finally:
        _CURRENT.reset(token)


def activate(identity: Optional[Identity]) -> contextvars.Token:
    """Set the current identity without a with-block; undo with `deactivate`."""
    return _CURRENT.set(identity)


def deactivate(token: contextvars.Token) -> None:
    _CURRENT.reset(token)


def propagate(fn: Callable[..., T], label: Optional[str] = None) -> Callable[..., T]:
    """Wrap `fn` so it runs under a child of the identity current right now.

    Use this for anything handed to a thread or executor, which would
    otherwise start without the caller's ancestry.
    """
    parent = current_identity()

    @functools.wraps(fn)
    def runner(*args: Any, **kwargs: Any) -> T:
        child = new_identity(label, parent)
        ctx = contextvars.copy_context()
        return ctx.run(_run_as, child, fn, args, kwargs)

    return runner


def _run_as(identity: Identity, fn: Callable[..., T], args: tuple, kwargs: dict) -> T:
    _CURRENT.set(identity)
    return fn(*args, **kwargs)


def spawn_thread(target: Callable[..., Any], *args: Any, name: Optional[str] = None, **kwargs: Any) -> threading.Thread:
    """Start a daemon thread running `target` as a descendant of the caller."""
    thread = threading.Thread(
        target=propagate(target, label=name),
        args=args,
        kwargs=kwargs,
        name=name,
        daemon=True,
    )
    thread.start()
    logger.debug("identity:spawn_thread parent=%s thread=%s", current_identity(), thread.name)
    return thread


__all__ = [
    "Identity",
    "Mode",
    "GLOBAL_OWNER",
    "new_identity",
    "current_identity",
    "child_identity",
    "ancestors",
    "resolve_search_path",
    "enter_identity",
    "activate",
    "deactivate",
    "propagate",
    "spawn_thread",
]
