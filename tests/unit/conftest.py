"""Unit test bootstrap: keep the process-wide registry and default-call log clean."""

from __future__ import annotations

import pytest

import sample_effects
from fxbind.logic.inmemory_state import reset_state
from fxbind.logic.registry import BindingRegistry


@pytest.fixture(autouse=True)
def clean_state():
    sample_effects.CALLS.clear()
    yield
    reset_state()


@pytest.fixture
def registry() -> BindingRegistry:
    """A private registry, isolated from the process-wide one."""
    return BindingRegistry()
