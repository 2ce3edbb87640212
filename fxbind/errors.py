"""Exception taxonomy for effect bindings.

Registration and coverage errors abort the running test immediately since they
point at a test-authoring mistake. Call budget violations are collected by the
verifier and raised once, at teardown, as a single `VerificationError`.

Each exception carries a stable `code` taken from `ERROR_CODES` so callers can
match on it without parsing messages.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence


ERROR_CODES: Dict[str, str] = {
    "arity_mismatch": "REG_ARITY_MISMATCH",
    "missing_calls": "REG_EXPECT_CALLS_MISSING",
    "unreachable": "REG_ENTRY_UNREACHABLE",
    "invalid_options": "REG_OPTIONS_INVALID",
    "owner_not_initialized": "REG_OWNER_NOT_INITIALIZED",
    "unknown_effect": "REG_EFFECT_UNKNOWN",
    "coverage": "CALL_UNBOUND_EFFECT",
    "budget": "VERIFY_CALL_BUDGET",
}


class EffectBindingError(Exception):
    """Base class for every error raised by fxbind."""

    code: str = "FXBIND_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = dict(context)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# ---------------------------------------------------------------------------
# Registration errors (raised by bind / expect)
# ---------------------------------------------------------------------------


class RegistrationError(EffectBindingError):
    """A binding could not be registered."""

    code = "REG_ERROR"


class ArityMismatchError(RegistrationError):
    code = ERROR_CODES["arity_mismatch"]

    def __init__(self, target: str, name: str, expected: int, got: object) -> None:
        super().__init__(
            f"substitute for {target}.{name}/{expected} must accept exactly "
            f"{expected} positional argument(s), got {got}",
            target=target,
            name=name,
            expected=expected,
            got=got,
        )


class MissingCallsError(RegistrationError):
    code = ERROR_CODES["missing_calls"]

    def __init__(self, target: str, name: str) -> None:
        super().__init__(
            f"expect() for {target}.{name} requires an explicit 'calls' count",
            target=target,
            name=name,
        )


class UnreachableBindingError(RegistrationError):
    """An entry was appended after an unbounded one and could never be selected."""

    code = ERROR_CODES["unreachable"]

    def __init__(self, target: str, name: str, arity: int) -> None:
        super().__init__(
            f"{target}.{name}/{arity} already has an unbounded binding; "
            "bindings registered after it are unreachable",
            target=target,
            name=name,
            arity=arity,
        )


class InvalidOptionsError(RegistrationError):
    code = ERROR_CODES["invalid_options"]


class OwnerNotInitializedError(RegistrationError):
    code = ERROR_CODES["owner_not_initialized"]

    def __init__(self, owner: object) -> None:
        super().__init__(f"no binding state initialised for owner {owner!r}", owner=owner)


class UnknownEffectError(RegistrationError):
    code = ERROR_CODES["unknown_effect"]


# ---------------------------------------------------------------------------
# Call-time errors
# ---------------------------------------------------------------------------


class CoverageError(EffectBindingError):
    """A module has bound effects but the called one is not among them."""

    code = ERROR_CODES["coverage"]

    def __init__(self, target: str, name: str, arity: int, owner: object, bound: Sequence[str]) -> None:
        bound_txt = ", ".join(sorted(bound)) or "-"
        super().__init__(
            f"{target}.{name}/{arity} is not bound, but other effects of {target} are "
            f"({bound_txt}); bind it explicitly or bind it to the default implementation",
            target=target,
            name=name,
            arity=arity,
            owner=owner,
            bound=list(bound),
        )


# ---------------------------------------------------------------------------
# Teardown errors
# ---------------------------------------------------------------------------


class BudgetViolation:
    """One bounded binding whose consumed count differs from its expected count."""

    __slots__ = ("target", "name", "arity", "position", "expected", "actual")

    def __init__(self, target: str, name: str, arity: int, position: int, expected: int, actual: int) -> None:
        self.target = target
        self.name = name
        self.arity = arity
        self.position = position
        self.expected = expected
        self.actual = actual

    @property
    def kind(self) -> str:
        return "exceeded" if self.actual > self.expected else "unsatisfied"

    def describe(self) -> str:
        return (
            f"{self.target}.{self.name}/{self.arity} binding #{self.position + 1}: "
            f"expected {self.expected} call(s), got {self.actual} ({self.kind})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BudgetViolation):
            return NotImplemented
        return all(getattr(self, slot) == getattr(other, slot) for slot in self.__slots__)

    def __repr__(self) -> str:
        return f"BudgetViolation({self.describe()!r})"


class VerificationError(EffectBindingError, AssertionError):
    """Raised at teardown when one or more call budgets were not met."""

    code = ERROR_CODES["budget"]

    def __init__(self, owner: object, violations: List[BudgetViolation]) -> None:
        lines = [v.describe() for v in violations]
        message = "effect call budgets not met:\n  " + "\n  ".join(lines)
        super().__init__(message, owner=owner)
        self.violations: List[BudgetViolation] = list(violations)

    def for_key(self, target: str, name: str) -> Optional[BudgetViolation]:
        for violation in self.violations:
            if violation.target == target and violation.name == name:
                return violation
        return None


__all__ = [
    "ERROR_CODES",
    "EffectBindingError",
    "RegistrationError",
    "ArityMismatchError",
    "MissingCallsError",
    "UnreachableBindingError",
    "InvalidOptionsError",
    "OwnerNotInitializedError",
    "UnknownEffectError",
    "CoverageError",
    "BudgetViolation",
    "VerificationError",
]
