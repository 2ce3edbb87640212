"""Value types for bindings and registry snapshots."""

from __future__ import annotations

from fxbind.models.binding import (
    DEFAULT,
    BindingEntry,
    BindingKey,
    BindOptions,
    UseDefault,
    default,
    target_name,
)
from fxbind.models.report import ChainReport, EntryReport, OwnerSnapshot

__all__ = [
    "DEFAULT",
    "BindingEntry",
    "BindingKey",
    "BindOptions",
    "UseDefault",
    "default",
    "target_name",
    "ChainReport",
    "EntryReport",
    "OwnerSnapshot",
]
