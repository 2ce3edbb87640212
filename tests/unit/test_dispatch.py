"""Call dispatch: substitute selection, defaults, coverage and ancestry."""

from __future__ import annotations

import pytest

import sample_effects
from fxbind import DEFAULT, CoverageError, EffectCase, propagate, spawn_thread
from fxbind.logic.dispatch import active_mode, dispatch
from fxbind.logic.identity import GLOBAL_OWNER, Mode, enter_identity, new_identity
from fxbind.logic.inmemory_state import REGISTRY
from fxbind.models.binding import BindingKey
from sample_effects import Mailer, Store


def test_unbound_module_runs_default():
    with EffectCase():
        assert Store.get() == ["default"]
    assert sample_effects.CALLS == ["get"]


def test_call_outside_any_case_runs_default():
    assert sample_effects.now() == 1700000000.0


def test_bound_substitute_replaces_default():
    with EffectCase() as fx:
        fx.bind(Store, "get", lambda: [1, 2, 3])
        fx.bind(Store, "put", lambda item: "fake")
        fx.bind(Store, "scale", lambda value, factor: value)
        assert Store.get() == [1, 2, 3]
        assert Store.put("x") == "fake"
    assert sample_effects.CALLS == []


def test_default_sentinel_runs_default_and_counts():
    with EffectCase() as fx:
        fx.bind(Store, "get", lambda: [])
        fx.bind(Store, "put", DEFAULT, calls=1)
        fx.bind(Store, "scale", DEFAULT)
        assert Store.put("x") == "stored"
        assert Store.scale(3) == 6
        chain = fx.snapshot().chain(fx_target(Store), "put")
        assert chain.entries[0].consumed == 1
    assert sample_effects.CALLS == ["put", "scale"]


def test_partially_bound_module_raises_coverage_error():
    with pytest.raises(CoverageError) as exc:
        with EffectCase() as fx:
            fx.bind(Store, "get", lambda: [1])
            Store.put("x")

    err = exc.value
    assert err.code == "CALL_UNBOUND_EFFECT"
    assert err.context["name"] == "put"
    assert err.context["bound"] == ["get/0"]
    assert "put" not in sample_effects.CALLS


def test_coverage_is_per_module():
    with EffectCase() as fx:
        fx.bind(Store, "get", lambda: [1])
        fx.bind(Store, "put", DEFAULT)
        fx.bind(Store, "scale", DEFAULT)
        assert Mailer.send("a@b", "hi") == "sent"
        assert sample_effects.now() == 1700000000.0


def test_binding_found_from_descendant_worker():
    with EffectCase() as fx:
        fx.bind(sample_effects, "now", lambda: 1.0)
        fx.bind(sample_effects, "random_int", DEFAULT)
        seen = []
        thread = spawn_thread(lambda: seen.append(sample_effects.now()))
        thread.join(timeout=5)
        nested = propagate(propagate(sample_effects.now))
        assert seen == [1.0]
        assert nested() == 1.0


def test_binding_not_visible_from_sibling_branch(registry):
    root = new_identity("root")
    parent = new_identity("parent", root)
    child = new_identity("child", parent)
    sibling = new_identity("sibling", root)
    registry.init(parent)
    registry.add_binding(parent, BindingKey("m", "f", 1), lambda x: "bound")
    default_impl = lambda x: "default"  # noqa: E731

    with enter_identity(child):
        assert dispatch("m", "f", 1, (0,), default_impl, registry) == "bound"
    with enter_identity(sibling):
        assert dispatch("m", "f", 1, (0,), default_impl, registry) == "default"


def test_nearest_owner_wins(registry):
    parent = new_identity("parent")
    child = new_identity("child", parent)
    registry.init(parent)
    registry.init(child)
    key = BindingKey("m", "f", 0)
    registry.add_binding(parent, key, lambda: "parent")
    registry.add_binding(child, key, lambda: "child")

    with enter_identity(child):
        assert dispatch("m", "f", 0, (), lambda: "default", registry) == "child"
    with enter_identity(parent):
        assert dispatch("m", "f", 0, (), lambda: "default", registry) == "parent"


def test_ancestor_chain_serves_key_the_nearer_owner_lacks(registry):
    parent = new_identity("parent")
    child = new_identity("child", parent)
    registry.init(parent)
    registry.init(child)
    registry.add_binding(parent, BindingKey("m", "f", 0), lambda: "parent-f")
    registry.add_binding(child, BindingKey("m", "g", 0), lambda: "child-g")

    with enter_identity(child):
        assert dispatch("m", "f", 0, (), lambda: "default", registry) == "parent-f"
        assert dispatch("m", "g", 0, (), lambda: "default", registry) == "child-g"


def test_coverage_error_names_nearest_owner_binding_the_module(registry):
    parent = new_identity("parent")
    child = new_identity("child", parent)
    registry.init(parent)
    registry.init(child)
    registry.add_binding(parent, BindingKey("m", "f", 0), lambda: "parent-f")
    registry.add_binding(child, BindingKey("m", "g", 0), lambda: "child-g")

    with enter_identity(child):
        with pytest.raises(CoverageError) as exc:
            dispatch("m", "h", 0, (), lambda: "default", registry)
    assert exc.value.context["owner"] is child
    assert exc.value.context["bound"] == ["g/0"]


def test_global_mode_serves_callers_outside_scoped_owners(registry):
    registry.init(GLOBAL_OWNER)
    registry.add_binding(GLOBAL_OWNER, BindingKey("m", "f", 0), lambda: "global")

    assert active_mode(registry) is Mode.GLOBAL
    assert dispatch("m", "f", 0, (), lambda: "default", registry) == "global"
    with enter_identity(new_identity("unrelated")):
        assert dispatch("m", "f", 0, (), lambda: "default", registry) == "global"


def test_scoped_case_keeps_its_bindings_while_global_owner_is_live():
    REGISTRY.init(GLOBAL_OWNER)
    REGISTRY.add_binding(GLOBAL_OWNER, BindingKey(sample_effects.__name__, "now", 0), lambda: 99.0)

    with EffectCase() as fx:
        fx.bind(sample_effects, "now", lambda: 1.0)
        fx.bind(sample_effects, "random_int", DEFAULT)
        assert active_mode(REGISTRY, fx.owner) is Mode.SCOPED
        assert sample_effects.now() == 1.0
        assert sample_effects.random_int(1, 2) == 1

    assert sample_effects.now() == 99.0


def test_exhausted_budget_keeps_serving_last_substitute(caplog):
    with pytest.raises(AssertionError):
        with EffectCase() as fx:
            fx.bind(sample_effects, "now", lambda: 5.0, calls=1)
            fx.bind(sample_effects, "random_int", DEFAULT)
            with caplog.at_level("WARNING", logger="fxbind"):
                assert [sample_effects.now(), sample_effects.now()] == [5.0, 5.0]
    assert "exhausted" in caplog.text


def test_keyword_arguments_are_normalised_to_positional():
    with EffectCase() as fx:
        fx.bind(Store, "get", DEFAULT)
        fx.bind(Store, "put", DEFAULT)
        fx.bind(Store, "scale", lambda value, factor: (value, factor))
        assert Store.scale(value=2) == (2, 2)
        assert Store.scale(2, factor=5) == (2, 5)


def fx_target(cls) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"
