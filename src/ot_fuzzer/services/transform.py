from __future__ import annotations

from functools import reduce
from typing import Any, List, Sequence, Tuple

from ot_fuzzer.services.ot_type import OTType


def transform_x(ot_type: OTType, left: Any, right: Any) -> Tuple[Any, Any]:
    """Cross-transform two concurrent ops.

    Returns ``(left transformed by right, right transformed by left)``. The
    side label is only threaded through; the type decides priority.
    """
    return (
        ot_type.transform(left, right, "left"),
        ot_type.transform(right, left, "right"),
    )


def transform_lists(
    ot_type: OTType, server_ops: Sequence[Any], client_ops: Sequence[Any]
) -> Tuple[List[Any], List[Any]]:
    """Transform a list of server ops by a list of client ops.

    Returns ``(server_ops', client_ops')``. Costs
    ``len(server_ops) * len(client_ops)`` transform calls.
    """
    client: List[Any] = list(client_ops)
    server: List[Any] = []
    for s in server_ops:
        transformed_client: List[Any] = []
        for c in client:
            s, c_ = transform_x(ot_type, s, c)
            transformed_client.append(c_)
        client = transformed_client
        server.append(s)
    return server, client


def compose_list(ot_type: OTType, ops: Sequence[Any]) -> Any:
    if ot_type.compose is None:
        raise ValueError(f"type {ot_type.name!r} cannot compose")
    if not ops:
        raise ValueError("cannot compose an empty op list")
    return reduce(lambda a, b: ot_type.compose(a, b), ops)


def apply_all(ot_type: OTType, snapshot: Any, ops: Sequence[Any]) -> Any:
    for op in ops:
        snapshot = ot_type.apply(snapshot, op)
    return snapshot
