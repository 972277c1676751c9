from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ot_fuzzer.core.config import Settings, get_settings
from ot_fuzzer.core.errors import LawViolation
from ot_fuzzer.core.metrics import collect_stats
from ot_fuzzer.core.rng import RngContext, default_seed, with_seed
from ot_fuzzer.services.checker import OpGenerator, run_trial
from ot_fuzzer.services.ot_type import OTType


logger = logging.getLogger(__name__)

# Capabilities whose absence silently shrinks the test matrix
NOTED_CAPABILITIES = ("invert", "compose", "diff", "diff_x", "shatter", "prune")


@dataclass
class RunReport:
    type_name: str
    seed: int
    iterations: int
    calls: Dict[str, int]
    elapsed_s: float


def resolve_rng(rng: Optional[RngContext], settings: Settings) -> RngContext:
    if rng is not None:
        return rng
    seed = settings.seed
    if seed is None:
        seed = default_seed(window_hours=settings.seed_window_hours)
    return with_seed(seed, settings.words_path)


def run(
    ot_type: Any,
    gen_random_op: OpGenerator,
    iterations: Optional[int] = None,
    *,
    rng: Optional[RngContext] = None,
    settings: Optional[Settings] = None,
) -> RunReport:
    """Run randomized law checks against ``ot_type``.

    Trials run one after another, each starting from the previous trial's
    client result. ``gen_random_op`` is called as ``gen(snapshot, rng)`` with
    the run's context, so the seed alone fixes the op stream. The first law
    violation aborts the run and is re-raised with the seed attached; pass the
    same seed via ``rng=with_seed(seed)`` (or ``OT_FUZZER_SEED``) to replay it.

    Logging is left to the host; see ``ot_fuzzer.core.log.configure_logging``.
    """
    settings = settings or get_settings()
    t = OTType.from_object(ot_type)
    if iterations is None:
        iterations = settings.iterations
    rng = resolve_rng(rng, settings)

    logger.info("Running %d randomized tests for type %s (seed: %d)", iterations, t.name, rng.seed)
    for member in NOTED_CAPABILITIES:
        if not t.has(member):
            logger.info("Not running %s tests because %s does not define %s()", member, t.name, member)

    started = time.perf_counter()
    doc = t.create()
    progress_every = max(iterations // 10, 1)
    with collect_stats(t) as stats:
        for n in range(iterations):
            try:
                doc = run_trial(
                    t,
                    gen_random_op,
                    doc,
                    rng,
                    ops_per_trial=settings.ops_per_trial,
                    check_transform_lists=settings.check_transform_lists,
                )
            except LawViolation as exc:
                exc.seed = rng.seed
                logger.error("Trial %d of %s failed (seed: %d)\n%s", n, t.name, rng.seed, exc)
                raise
            if (n + 1) % progress_every == 0:
                logger.info("%s: %d%% (%d/%d)", t.name, (n + 1) * 100 // iterations, n + 1, iterations)

    elapsed = time.perf_counter() - started
    calls = stats.summary()
    logger.info("Performed in %.2fs:", elapsed)
    for fn_name, count in calls.items():
        logger.info("\t%ss: %d", fn_name, count)
    return RunReport(
        type_name=t.name,
        seed=rng.seed,
        iterations=iterations,
        calls=calls,
        elapsed_s=elapsed,
    )
