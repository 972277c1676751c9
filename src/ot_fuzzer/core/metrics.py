from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator

COUNTED = ("transform", "compose", "apply", "prune")


class CallStats:
    def __init__(self) -> None:
        self.calls: Dict[str, int] = {}

    def track(self, fn_name: str) -> None:
        self.calls.setdefault(fn_name, 0)

    def record_call(self, fn_name: str) -> None:
        self.calls[fn_name] = self.calls.get(fn_name, 0) + 1

    def summary(self) -> Dict[str, int]:
        return dict(self.calls)


def _counting(stats: CallStats, fn_name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
    def wrapper(*args: Any) -> Any:
        stats.record_call(fn_name)
        return fn(*args)

    wrapper.__wrapped__ = fn  # type: ignore[attr-defined]
    return wrapper


@contextmanager
def collect_stats(ot_type: Any) -> Iterator[CallStats]:
    """Count calls to the type's hot functions for the duration of the block.

    The originals are put back on every exit path, including a law violation
    raised from inside the block.
    """
    stats = CallStats()
    originals: Dict[str, Callable[..., Any]] = {}
    for fn_name in COUNTED:
        fn = getattr(ot_type, fn_name, None)
        if fn is not None:
            originals[fn_name] = fn
            stats.track(fn_name)
    try:
        for fn_name, fn in originals.items():
            setattr(ot_type, fn_name, _counting(stats, fn_name, fn))
        yield stats
    finally:
        for fn_name, fn in originals.items():
            setattr(ot_type, fn_name, fn)
