"""EffectCase: the test-facing bind/expect/setup surface and its lifecycle."""

from __future__ import annotations

import pytest

import sample_effects
from fxbind import (
    DEFAULT,
    GLOBAL_OWNER,
    ArityMismatchError,
    EffectCase,
    InvalidOptionsError,
    MissingCallsError,
    UnknownEffectError,
    UnreachableBindingError,
    VerificationError,
    current_identity,
    default,
)
from fxbind.logic.inmemory_state import REGISTRY
from sample_effects import Store


def _bind_rest_of_store(fx):
    fx.bind(Store, "put", DEFAULT)
    fx.bind(Store, "scale", DEFAULT)


def test_chained_binds_serve_in_order_then_fall_back_to_unbounded():
    with EffectCase() as fx:
        fx.bind(Store, "get", lambda: [1, 2, 3], calls=1)
        fx.bind(Store, "get", lambda: [], calls=2)
        fx.bind(Store, "get", lambda: [1, 2])
        _bind_rest_of_store(fx)

        results = [Store.get() for _ in range(5)]

    assert results == [[1, 2, 3], [], [], [1, 2], [1, 2]]


def test_expect_verifies_exact_call_count():
    with EffectCase() as fx:
        fx.expect(Store, "get", lambda: [1], calls=2)
        _bind_rest_of_store(fx)
        Store.get()
        Store.get()


@pytest.mark.parametrize("made, expected_kind", [(1, "unsatisfied"), (3, "exceeded")])
def test_wrong_call_count_fails_at_close(made, expected_kind):
    fx = EffectCase().init()
    fx.expect(Store, "get", lambda: [1], calls=2)
    _bind_rest_of_store(fx)
    for _ in range(made):
        Store.get()

    with pytest.raises(VerificationError) as exc:
        fx.close()

    (violation,) = exc.value.violations
    assert (violation.expected, violation.actual, violation.kind) == (2, made, expected_kind)
    assert not fx.active
    assert current_identity() is None


def test_expect_requires_calls():
    with EffectCase() as fx:
        with pytest.raises(MissingCallsError):
            fx.expect(Store, "get", lambda: [1])
        with pytest.raises(MissingCallsError):
            fx.expect(Store, "get", lambda: [1], calls=None)


@pytest.mark.parametrize("calls", [-1, "2", 1.5, True])
def test_invalid_calls_are_rejected(calls):
    with EffectCase() as fx:
        with pytest.raises(InvalidOptionsError):
            fx.bind(Store, "get", lambda: [1], calls=calls)


def test_arity_comes_from_declared_effect():
    with EffectCase() as fx:
        with pytest.raises(ArityMismatchError):
            fx.bind(Store, "put", lambda: None)
        with pytest.raises(ArityMismatchError):
            fx.bind(Store, "put", default(2))


def test_bind_after_unbounded_is_rejected():
    with EffectCase() as fx:
        fx.bind(Store, "get", lambda: [1])
        with pytest.raises(UnreachableBindingError):
            fx.bind(Store, "get", lambda: [2], calls=1)


def test_undeclared_target_infers_arity_from_substitute():
    with EffectCase() as fx:
        entry = fx.bind("external.service", "ping", lambda host: "pong")
        assert entry.expected_calls is None
        with pytest.raises(UnknownEffectError):
            fx.bind("external.service", "pong", DEFAULT)
        fx.bind("external.service", "pong", default(0))
        labels = [chain.label for chain in fx.snapshot().chains]
    assert labels == ["external.service.ping/1", "external.service.pong/0"]


def test_undeclared_name_on_declared_target_is_rejected():
    with EffectCase() as fx:
        with pytest.raises(UnknownEffectError) as exc:
            fx.bind(Store, "gett", lambda: [])
        assert "get, put, scale" in str(exc.value)
        assert fx.snapshot().chains == []


def test_uninspectable_substitute_for_undeclared_target_is_rejected():
    class Opaque:
        __signature__ = 42

        def __call__(self):
            return None

    with EffectCase() as fx:
        with pytest.raises(UnknownEffectError):
            fx.bind("external.service", "ping", Opaque())


def test_setup_effects_binds_each_pair_unbounded():
    with EffectCase() as fx:
        fx.setup_effects(Store, {"get": lambda: ["setup"]}, put=lambda item: "ok", scale=DEFAULT)
        assert Store.get() == ["setup"]
        assert Store.put(1) == "ok"
        assert Store.scale(2) == 4
        assert all(e.expected is None for c in fx.snapshot().chains for e in c.entries)


def test_scoped_cases_do_not_see_each_other():
    first = EffectCase(label="first").init()
    first.bind(sample_effects, "now", lambda: 1.0)
    first.bind(sample_effects, "random_int", DEFAULT)
    first_owner = first.owner
    first._release()  # leave the first test's context, keep its bindings live

    with EffectCase(label="second"):
        assert sample_effects.now() == 1700000000.0

    assert REGISTRY.is_live(first_owner)
    REGISTRY.clear(first_owner)


def test_scoped_owner_is_current_during_case():
    with EffectCase(label="run") as fx:
        assert current_identity() is fx.owner
        assert fx.owner.label == "run"
    assert current_identity() is None


def test_global_case_is_visible_to_any_caller_and_purged():
    with EffectCase(scoped=False) as fx:
        assert fx.owner is GLOBAL_OWNER
        fx.bind(sample_effects, "now", lambda: 2.0)
        fx.bind(sample_effects, "random_int", DEFAULT)
        assert current_identity() is None
        assert sample_effects.now() == 2.0
    assert not REGISTRY.is_live(GLOBAL_OWNER)

    with EffectCase(scoped=False) as fx:
        assert fx.snapshot().chains == []
        assert sample_effects.now() == 1700000000.0


def test_global_case_starts_empty_after_leak():
    REGISTRY.init(GLOBAL_OWNER)
    with EffectCase(scoped=False) as fx:
        assert fx.snapshot().chains == []


def test_exception_in_body_skips_verification_but_tears_down():
    fx = EffectCase()
    with pytest.raises(RuntimeError):
        with fx:
            fx.expect(Store, "get", lambda: [1], calls=5)
            owner = fx.owner
            raise RuntimeError("boom")
    assert not REGISTRY.is_live(owner)


def test_lifecycle_misuse():
    fx = EffectCase()
    with pytest.raises(RuntimeError):
        fx.bind(Store, "get", lambda: [1])
    fx.init()
    with pytest.raises(RuntimeError):
        fx.init()
    fx.close()
    fx.close()
