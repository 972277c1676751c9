from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from ot_fuzzer.core.errors import LawViolation
from ot_fuzzer.core.rng import RngContext
from ot_fuzzer.services.clone import assert_snapshots_eq, clone
from ot_fuzzer.services.ot_type import SIDES, OTType
from ot_fuzzer.services.transform import apply_all, compose_list, transform_lists, transform_x


logger = logging.getLogger(__name__)

# gen_random_op(snapshot, rng) -> (op, snapshot after op). All randomness must
# come from rng so the run seed replays the op stream.
OpGenerator = Callable[[Any, RngContext], Tuple[Any, Any]]


@dataclass
class OpSet:
    """One party's divergent edit history within a trial."""

    name: str
    result: Any
    ops: List[Any] = field(default_factory=list)
    composed: Optional[Any] = None

    def state(self) -> Dict[str, Any]:
        return {"ops": list(self.ops), "result": self.result, "composed": self.composed}


@dataclass
class Trial:
    initial: Any
    client: OpSet
    client2: OpSet
    server: OpSet

    @property
    def opsets(self) -> Tuple[OpSet, OpSet, OpSet]:
        return (self.client, self.client2, self.server)

    def state(self) -> Dict[str, Any]:
        return {
            "initial": self.initial,
            **{s.name: s.state() for s in self.opsets},
        }

    @classmethod
    def from_ops(
        cls,
        ot_type: OTType,
        initial: Any,
        *,
        client: Sequence[Any] = (),
        client2: Sequence[Any] = (),
        server: Sequence[Any] = (),
    ) -> "Trial":
        """Build a trial from known op lists, for replaying a counterexample."""
        sets = []
        for name, ops in (("client", client), ("client2", client2), ("server", server)):
            result = apply_all(ot_type, clone(initial, ot_type), ops)
            sets.append(OpSet(name, result, list(ops)))
        return cls(initial, *sets)


def build_trial(
    ot_type: OTType,
    gen_random_op: OpGenerator,
    initial: Any,
    rng: RngContext,
    ops_per_trial: int = 2,
) -> Trial:
    """Three timelines from one origin; each new op lands on a random one."""
    trial = Trial(
        initial,
        OpSet("client", initial),
        OpSet("client2", initial),
        OpSet("server", initial),
    )
    for _ in range(ops_per_trial):
        target = trial.opsets[rng.random_int(3)]
        try:
            op, target.result = gen_random_op(clone(target.result, ot_type), rng)
        except LawViolation:
            raise
        except Exception as exc:
            raise LawViolation(
                "generate",
                f"op generator for {ot_type.name} raised {type(exc).__name__}: {exc}",
                trial=trial.state(),
                details={"opset": target.name, "snapshot": target.result},
            ) from exc
        target.ops.append(op)
    return trial


class TrialChecker:
    """Runs every law the type claims against one trial."""

    def __init__(
        self,
        ot_type: OTType,
        trial: Trial,
        gen_random_op: Optional[OpGenerator] = None,
        rng: Optional[RngContext] = None,
        *,
        check_transform_lists: bool = False,
    ) -> None:
        self.ot_type = ot_type
        self.trial = trial
        self.gen_random_op = gen_random_op
        self.rng = rng
        self.check_transform_lists_enabled = check_transform_lists

    def run(self) -> None:
        t = self.ot_type
        self.check_apply()
        if t.has("shatter"):
            self.check_shatter()
        if t.has("invert"):
            for opset in self.trial.opsets:
                self.check_invert(opset)
        if t.has("diff"):
            self.check_diff()
        if t.has("diff_x"):
            self.check_diff_x()
        if t.has("compose"):
            self.check_compose()
            if t.has("invert"):
                for opset in self.trial.opsets:
                    if opset.composed is not None:
                        self.check_invert(opset, [opset.composed])
            transformed = self.check_diamond()
            if transformed is not None and t.tp2:
                self.check_tp2(*transformed)
        if t.has("prune") and self.gen_random_op is not None and self.rng is not None:
            self.check_prune()
        if self.check_transform_lists_enabled:
            self.check_transform_lists()

    # Helpers
    @contextmanager
    def _law(self, law: str, **details: Any) -> Iterator[None]:
        # Anything the type throws mid-check is a counterexample for that law
        try:
            yield
        except LawViolation:
            raise
        except Exception as exc:
            raise LawViolation(
                law,
                f"{self.ot_type.name} raised {type(exc).__name__}: {exc}",
                trial=self.trial.state(),
                details=details,
            ) from exc

    def _snapshots_eq(self, actual: Any, expected: Any, law: str, **details: Any) -> None:
        assert_snapshots_eq(
            actual, expected, self.ot_type, law=law, trial=self.trial.state(), **details
        )

    def _ops_eq(self, actual: Any, expected: Any, law: str, **details: Any) -> None:
        if actual == expected:
            return
        raise LawViolation(
            law,
            f"{self.ot_type.name}: ops differ",
            trial=self.trial.state(),
            details={**details, "expected": expected, "actual": actual},
        )

    # Checks
    def check_apply(self) -> None:
        t = self.ot_type
        for opset in self.trial.opsets:
            with self._law("apply", opset=opset.name):
                s = apply_all(t, clone(self.trial.initial, t), opset.ops)
            self._snapshots_eq(s, opset.result, "apply", opset=opset.name)

    def check_shatter(self) -> None:
        t = self.ot_type
        for opset in self.trial.opsets:
            with self._law("shatter", opset=opset.name):
                s = clone(self.trial.initial, t)
                for op in opset.ops:
                    s = apply_all(t, s, list(t.shatter(op)))
            self._snapshots_eq(s, opset.result, "shatter", opset=opset.name)

    def check_invert(self, opset: OpSet, ops: Optional[Sequence[Any]] = None) -> None:
        """Undo ``ops`` (default: the opset's ops) from its result, newest first."""
        t = self.ot_type
        if ops is None:
            ops = opset.ops
        with self._law("invert", opset=opset.name, ops=list(ops)):
            snapshot = clone(opset.result, t)
            for op in reversed(list(ops)):
                snapshot = t.apply(snapshot, t.invert(op))
        self._snapshots_eq(snapshot, self.trial.initial, "invert", opset=opset.name, ops=list(ops))

    def check_diff(self) -> None:
        t = self.ot_type
        initial = self.trial.initial
        for opset in self.trial.opsets:
            with self._law("diff", opset=opset.name):
                op = t.diff(clone(initial, t), clone(opset.result, t))
                result = t.apply(clone(initial, t), op)
            self._snapshots_eq(result, opset.result, "diff", opset=opset.name, diff=op)

    def check_diff_x(self) -> None:
        t = self.ot_type
        initial = self.trial.initial
        for opset in self.trial.opsets:
            with self._law("diffX", opset=opset.name):
                backward, forward = t.diff_x(clone(initial, t), clone(opset.result, t))
                undone = t.apply(clone(opset.result, t), backward)
                redone = t.apply(clone(initial, t), forward)
            self._snapshots_eq(undone, initial, "diffX", opset=opset.name, op=backward)
            self._snapshots_eq(redone, opset.result, "diffX", opset=opset.name, op=forward)

    def check_compose(self) -> None:
        t = self.ot_type
        for opset in self.trial.opsets:
            if not opset.ops:
                continue
            with self._law("compose", opset=opset.name):
                opset.composed = compose_list(t, opset.ops)
                actual = t.apply(clone(self.trial.initial, t), opset.composed)
            self._snapshots_eq(actual, opset.result, "compose", opset=opset.name)

    def check_diamond(self) -> Optional[Tuple[Any, Any]]:
        """Both orders of two concurrent composed ops must converge.

        Returns ``(server_, client_)``, the cross-transformed ops, or ``None``
        when either side made no edits.
        """
        t = self.ot_type
        client, server = self.trial.client, self.trial.server
        if client.composed is None or server.composed is None:
            return None
        with self._law("diamond"):
            server_, client_ = transform_x(t, server.composed, client.composed)
            s_c = t.apply(clone(server.result, t), client_)
            c_s = t.apply(clone(client.result, t), server_)
        logger.debug(
            "diamond server=%r client=%r -> server_=%r client_=%r",
            server.composed,
            client.composed,
            server_,
            client_,
        )
        self._snapshots_eq(
            s_c,
            c_s,
            "diamond",
            server_transformed=server_,
            client_transformed=client_,
        )
        return server_, client_

    def check_tp2(self, server_: Any, client_: Any) -> None:
        t = self.ot_type
        client, client2, server = self.trial.client, self.trial.client2, self.trial.server

        # T(T(x, A), B) == T(x, A.B): intermediate ops can be collapsed
        with self._law("tp2-sequence"):
            x1 = server.composed
            for c in client.ops:
                x1 = t.transform(x1, c, "left")
            x2 = t.transform(server.composed, client.composed, "left")
        self._ops_eq(x1, x2, "tp2-sequence")

        if client2.composed is None:
            return
        # T(op3, op1 . T(op2, op1)) == T(op3, op2 . T(op1, op2))
        with self._law("tp2"):
            lhs = t.transform(client2.composed, t.compose(client.composed, server_), "left")
            rhs = t.transform(client2.composed, t.compose(server.composed, client_), "left")
        self._ops_eq(lhs, rhs, "tp2")

    def check_prune(self) -> None:
        t = self.ot_type
        initial = self.trial.initial
        with self._law("prune"):
            op1, _ = self.gen_random_op(clone(initial, t), self.rng)
            op2, _ = self.gen_random_op(clone(initial, t), self.rng)
        for side in SIDES:
            with self._law("prune", op1=op1, op2=op2, side=side):
                transformed = t.transform(op1, op2, side)
                pruned = t.prune(transformed, op2, side)
            self._ops_eq(pruned, op1, "prune", op2=op2, side=side, transformed=transformed)

    def check_transform_lists(self) -> None:
        t = self.ot_type
        client, server = self.trial.client, self.trial.server
        if not client.ops or not server.ops:
            return
        with self._law("transform-lists"):
            server_ops, client_ops = transform_lists(t, server.ops, client.ops)
            s_c = apply_all(t, clone(server.result, t), client_ops)
            c_s = apply_all(t, clone(client.result, t), server_ops)
        self._snapshots_eq(
            s_c, c_s, "transform-lists", server_ops=server_ops, client_ops=client_ops
        )

        if not t.has("invert"):
            return
        with self._law("transform-lists-invert"):
            server_result = apply_all(t, clone(s_c, t), [t.invert(c) for c in reversed(client_ops)])
        self._snapshots_eq(server_result, server.result, "transform-lists-invert")
        with self._law("transform-lists-invert"):
            origin = apply_all(t, server_result, [t.invert(s) for s in reversed(server.ops)])
        self._snapshots_eq(origin, self.trial.initial, "transform-lists-invert")


def run_trial(
    ot_type: OTType,
    gen_random_op: OpGenerator,
    initial: Any,
    rng: RngContext,
    *,
    ops_per_trial: int = 2,
    check_transform_lists: bool = False,
) -> Any:
    """Generate and check one trial; returns the client result to carry forward."""
    if initial is None:
        initial = ot_type.create()
    trial = build_trial(ot_type, gen_random_op, initial, rng, ops_per_trial)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("trial %r", trial.state())
    TrialChecker(
        ot_type, trial, gen_random_op, rng, check_transform_lists=check_transform_lists
    ).run()
    return trial.client.result
