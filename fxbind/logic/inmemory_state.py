"""Process-wide binding state.

Single source of truth for the registry shared by the dispatcher, the verifier
and the test-facing surface. Lives for the whole test process; per-test state
inside it is created on init and removed on teardown.
"""

from __future__ import annotations

from fxbind.logic.registry import BindingRegistry

# owner identity -> binding key -> chain
REGISTRY: BindingRegistry = BindingRegistry()


def reset_state() -> None:
    """Drop every owner's bindings. Intended for test harness cleanup only."""
    for owner in REGISTRY.owners():
        REGISTRY.clear(owner)


__all__ = ["REGISTRY", "reset_state"]
