"""pytest integration.

Registered through the `pytest11` entry point. Provides:

- the `effects` fixture: an initialised `EffectCase` whose call budgets are
  verified when the test finishes;
- the `effects` marker selecting the binding mode for a test group, e.g.
  `pytestmark = pytest.mark.effects(scoped=False)` for a module of global
  (non-concurrent) tests;
- the `fxbind_mode` ini option (`scoped` or `global`) as the project default;
- `setup_effects(target, ...)`, which builds an autouse fixture binding the
  given effects before every test of the module or class that assigns it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

import pytest

from fxbind.case import EffectCase, Pairs
from fxbind.config import FxConfig, load_config
from fxbind.logging_setup import configure_logging
from fxbind.logic.identity import Mode
from fxbind.models.binding import Substitute

logger = logging.getLogger(__name__)

_CONFIG_KEY = pytest.StashKey[FxConfig]()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addini(
        "fxbind_mode",
        help="default effect binding mode: 'scoped' (per test, concurrent-safe) or 'global'",
        default=None,
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "effects(scoped=True): select scoped (per-test) or global effect bindings for a test group",
    )
    cfg = load_config()
    ini_mode = config.getini("fxbind_mode")
    if ini_mode:
        cfg = FxConfig(mode=ini_mode, log_level=cfg.log_level)
    config.stash[_CONFIG_KEY] = cfg
    configure_logging(cfg.log_level)


def _scoped_for(request: pytest.FixtureRequest) -> bool:
    marker = request.node.get_closest_marker("effects")
    if marker is not None:
        if "scoped" in marker.kwargs:
            return bool(marker.kwargs["scoped"])
        if marker.args:
            return bool(marker.args[0])
    cfg: Optional[FxConfig] = request.config.stash.get(_CONFIG_KEY, None)
    return (cfg or load_config()).mode is Mode.SCOPED


@pytest.fixture
def effects(request: pytest.FixtureRequest) -> Iterator[EffectCase]:
    """Per-test effect bindings, verified at teardown."""
    case = EffectCase(scoped=_scoped_for(request), label=request.node.nodeid)
    case.init()
    try:
        yield case
    finally:
        case.close()


def setup_effects(target: object, pairs: Pairs = (), **named: Substitute) -> Any:
    """Return an autouse fixture that binds `pairs` of `target` for every test.

        rates_stubs = setup_effects(rates, fetch_rates=lambda currency: 1.0)
    """

    @pytest.fixture(autouse=True)
    def _setup_effects(effects: EffectCase) -> EffectCase:
        effects.setup_effects(target, pairs, **named)
        return effects

    return _setup_effects


__all__ = ["effects", "setup_effects", "pytest_addoption", "pytest_configure"]
