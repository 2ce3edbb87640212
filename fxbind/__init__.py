"""fxbind: test-scoped substitutes for effect functions.

Effects are impure boundary calls (I/O, randomness, time, external services)
declared with `@effect`. Tests replace them with substitutes through an
`EffectCase` (or the `effects` pytest fixture) and every declared call budget
is verified when the test ends.
"""

from __future__ import annotations

from fxbind.case import EffectCase
from fxbind.effects import EffectSpec, effect, effects_of
from fxbind.errors import (
    ArityMismatchError,
    BudgetViolation,
    CoverageError,
    EffectBindingError,
    InvalidOptionsError,
    MissingCallsError,
    RegistrationError,
    UnknownEffectError,
    UnreachableBindingError,
    VerificationError,
)
from fxbind.logic.identity import (
    GLOBAL_OWNER,
    Identity,
    Mode,
    current_identity,
    enter_identity,
    propagate,
    spawn_thread,
)
from fxbind.models.binding import DEFAULT, UseDefault, default

__version__ = "0.1.0"

__all__ = [
    "EffectCase",
    "EffectSpec",
    "effect",
    "effects_of",
    "DEFAULT",
    "UseDefault",
    "default",
    "GLOBAL_OWNER",
    "Identity",
    "Mode",
    "current_identity",
    "enter_identity",
    "propagate",
    "spawn_thread",
    "EffectBindingError",
    "RegistrationError",
    "ArityMismatchError",
    "MissingCallsError",
    "UnreachableBindingError",
    "InvalidOptionsError",
    "UnknownEffectError",
    "CoverageError",
    "BudgetViolation",
    "VerificationError",
]
