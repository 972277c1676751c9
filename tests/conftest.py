from __future__ import annotations

from types import SimpleNamespace

import pytest

from ot_fuzzer.core.config import get_settings
from ot_fuzzer.core.log import configure_logging
from ot_fuzzer.core.rng import RngContext
from ot_fuzzer.services.ot_type import OTType


# Each op is [expected_snapshot, increment].
def count_apply(snapshot, op):
    v, inc = op
    if snapshot != v:
        raise ValueError(f"Op {v} != snapshot {snapshot}")
    return snapshot + inc


def count_transform(op1, op2, side):
    if op1[0] != op2[0]:
        raise ValueError(f"Op1 {op1[0]} != op2 {op2[0]}")
    return [op1[0] + op2[1], op1[1]]


def count_compose(op1, op2):
    if op1[0] + op1[1] != op2[0]:
        raise ValueError(f"Op1 {op1} + 1 != op2 {op2}")
    return [op1[0], op1[1] + op2[1]]


def make_count(**overrides):
    members = dict(
        name="count",
        create=lambda: 1,
        apply=count_apply,
        transform=count_transform,
        compose=count_compose,
    )
    members.update(overrides)
    return SimpleNamespace(**members)


def count_gen(doc, rng):
    return [doc, 1], doc + 1


# Snapshot is {"total": n}, op is an integer delta. apply() consumes its input
# so any missing clone in the checker shows up as a spurious failure.
def tally_apply(snapshot, op):
    snapshot["total"] += op
    return snapshot


def tally_shatter(op):
    step = 1 if op > 0 else -1
    return [step] * abs(op)


def make_tally(**overrides) -> OTType:
    members = dict(
        name="tally",
        create=lambda: {"total": 0},
        apply=tally_apply,
        transform=lambda op, other, side: op,
        compose=lambda a, b: a + b,
        invert=lambda op: -op,
        diff=lambda a, b: b["total"] - a["total"],
        diff_x=lambda a, b: (a["total"] - b["total"], b["total"] - a["total"]),
        shatter=tally_shatter,
        prune=lambda op, other, side: op,
        serialize=lambda s: {"total": s["total"]},
        deserialize=lambda data: dict(data),
        tp2=True,
    )
    members.update(overrides)
    return OTType(**members)


def tally_gen(snapshot, rng: RngContext):
    delta = rng.random_int(7) - 3
    return delta, {"total": snapshot["total"] + delta}


@pytest.fixture(scope="session", autouse=True)
def logging_setup():
    configure_logging(get_settings().log_level)


@pytest.fixture
def tally_type():
    return make_tally()
