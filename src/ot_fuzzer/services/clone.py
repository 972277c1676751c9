from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from ot_fuzzer.core.errors import LawViolation
from ot_fuzzer.services.ot_type import OTType


def clone(snapshot: Any, ot_type: OTType) -> Any:
    """Structurally independent copy of ``snapshot``.

    ``apply`` is allowed to consume its input, so every snapshot that is still
    needed for a later comparison is cloned before being handed to the type.
    """
    value = snapshot
    if ot_type.serialize is not None:
        value = ot_type.serialize(value)
    value = copy.deepcopy(value)
    if ot_type.deserialize is not None:
        value = ot_type.deserialize(value)
    return value


def canonical(snapshot: Any, ot_type: OTType) -> Any:
    if ot_type.serialize is not None:
        return ot_type.serialize(snapshot)
    return snapshot


def snapshots_equal(a: Any, b: Any, ot_type: OTType) -> bool:
    return canonical(a, ot_type) == canonical(b, ot_type)


def assert_snapshots_eq(
    actual: Any,
    expected: Any,
    ot_type: OTType,
    *,
    law: str,
    trial: Optional[Dict[str, Any]] = None,
    **details: Any,
) -> None:
    if snapshots_equal(actual, expected, ot_type):
        return
    raise LawViolation(
        law,
        f"{ot_type.name}: snapshots differ",
        trial=trial,
        details={
            **details,
            "expected": canonical(expected, ot_type),
            "actual": canonical(actual, ot_type),
        },
    )
