"""End-of-test verification of call budgets."""

from __future__ import annotations

import logging
from typing import List, Optional

from fxbind.errors import BudgetViolation, VerificationError
from fxbind.logic import inmemory_state
from fxbind.logic.identity import Identity, Mode
from fxbind.logic.registry import BindingRegistry

logger = logging.getLogger(__name__)


def collect_violations(owner: Identity, registry: Optional[BindingRegistry] = None) -> List[BudgetViolation]:
    """Return every bounded entry whose consumed count differs from its budget.

    Unbounded entries are catch-alls and are never checked.
    """
    registry = registry or inmemory_state.REGISTRY
    if not registry.is_live(owner):
        return []
    violations: List[BudgetViolation] = []
    for chain in registry.snapshot(owner).chains:
        for entry in chain.entries:
            if entry.expected is None or entry.consumed == entry.expected:
                continue
            violations.append(
                BudgetViolation(
                    target=chain.target,
                    name=chain.name,
                    arity=chain.arity,
                    position=entry.position,
                    expected=entry.expected,
                    actual=entry.consumed,
                )
            )
    return violations


def verify(owner: Identity, registry: Optional[BindingRegistry] = None) -> None:
    """Raise one aggregated VerificationError if any budget is unmet."""
    violations = collect_violations(owner, registry)
    if violations:
        logger.error("verify:failed owner=%s violations=%d", owner.label, len(violations))
        raise VerificationError(owner, violations)
    logger.debug("verify:ok owner=%s", owner.label)


def verify_and_teardown(owner: Identity, mode: Mode, registry: Optional[BindingRegistry] = None) -> None:
    """Verify `owner`, then clear its state whether or not verification passed."""
    registry = registry or inmemory_state.REGISTRY
    try:
        verify(owner, registry)
    finally:
        registry.clear(owner)
        if mode is Mode.GLOBAL:
            registry.purge_globals()


__all__ = ["collect_violations", "verify", "verify_and_teardown"]
