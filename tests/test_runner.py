from __future__ import annotations

import logging

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from conftest import count_gen, make_count, make_tally, tally_gen
from ot_fuzzer.core.config import Settings
from ot_fuzzer.core.errors import LawViolation, TypeContractError
from ot_fuzzer.core.metrics import collect_stats
from ot_fuzzer.core.rng import with_seed
from ot_fuzzer.services.runner import run


def quiet_settings(**overrides) -> Settings:
    return Settings(**{"seed": 42, "iterations": 100, **overrides})


def test_count_type_passes_default_run():
    report = run(make_count(), count_gen, 2000, settings=quiet_settings())

    assert report.type_name == "count"
    assert report.seed == 42
    assert report.iterations == 2000
    assert set(report.calls) == {"transform", "compose", "apply"}
    assert report.calls["apply"] > 0


def test_full_featured_type_counts_prune_calls():
    report = run(make_tally(), tally_gen, rng=with_seed(8), settings=quiet_settings())

    assert report.seed == 8
    assert report.iterations == 100
    # two sides per trial
    assert report.calls["prune"] == 200


@hypothesis_settings(max_examples=10, deadline=None)
@given(st.integers(min_value=0, max_value=2**31))
def test_any_seed_passes_for_count(seed):
    run(make_count(), count_gen, 50, rng=with_seed(seed), settings=quiet_settings())


def recording(gen, seen):
    def wrapper(snapshot, rng):
        op, result = gen(snapshot, rng)
        seen.append(op)
        return op, result

    return wrapper


def test_same_settings_seed_generates_same_ops():
    first, second, replay = [], [], []
    run(make_tally(), recording(tally_gen, first), 30, settings=quiet_settings(seed=42))
    run(make_tally(), recording(tally_gen, second), 30, settings=quiet_settings(seed=42))
    run(make_tally(), recording(tally_gen, replay), 30, rng=with_seed(42), settings=quiet_settings(seed=1))

    assert first == second == replay
    assert any(op != 0 for op in first)


def test_environment_seed_drives_generator(monkeypatch):
    monkeypatch.setenv("OT_FUZZER_SEED", "9")
    first, second = [], []
    run(make_tally(), recording(tally_gen, first), 20, settings=Settings(iterations=5))
    run(make_tally(), recording(tally_gen, second), 20, rng=with_seed(9), settings=Settings(iterations=5))

    assert first == second


def test_missing_transform_fails_before_any_trial():
    calls = []

    def gen(doc, rng):
        calls.append(doc)
        return [doc, 1], doc + 1

    with pytest.raises(TypeContractError):
        run(make_count(transform=None), gen, settings=quiet_settings())
    assert calls == []


def test_violation_aborts_run_with_seed_and_restores_functions():
    broken = make_tally(invert=lambda op: op)
    original_apply = broken.apply
    with pytest.raises(LawViolation) as info:
        run(broken, tally_gen, settings=quiet_settings(seed=3))

    assert info.value.law == "invert"
    assert info.value.seed == 3
    assert "seed: 3" in str(info.value)
    assert broken.apply is original_apply


def test_collect_stats_restores_on_error():
    t = make_tally()
    original = t.transform

    with pytest.raises(RuntimeError):
        with collect_stats(t) as stats:
            t.transform(1, 2, "left")
            t.transform(1, 2, "right")
            raise RuntimeError("boom")

    assert stats.summary()["transform"] == 2
    assert stats.summary()["apply"] == 0
    assert t.transform is original


def test_seed_from_settings_is_used():
    report = run(make_count(), count_gen, 10, settings=quiet_settings(seed=555))
    assert report.seed == 555


def test_generator_failure_aborts_run_with_seed():
    def gen(doc, rng):
        raise RuntimeError("generator exhausted")

    with pytest.raises(LawViolation) as info:
        run(make_count(), gen, 5, settings=quiet_settings(seed=12))

    assert info.value.law == "generate"
    assert info.value.seed == 12
    assert "client" in info.value.trial


def test_run_leaves_root_logger_alone():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level

    run(make_count(), count_gen, 5, settings=quiet_settings(log_level="DEBUG"))

    assert root.handlers == handlers
    assert root.level == level
