from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, FrozenSet, Mapping, Optional

from ot_fuzzer.core.errors import TypeContractError


Fn = Callable[..., Any]

REQUIRED = ("create", "apply", "transform")
OPTIONAL = (
    "compose",
    "invert",
    "diff",
    "diff_x",
    "shatter",
    "prune",
    "serialize",
    "deserialize",
)
# Spellings used by JavaScript-style type objects
ALIASES = {"diffX": "diff_x"}

SIDES = ("left", "right")


@dataclass
class OTType:
    """Capability record for the OT type under test.

    Optional members are ``None`` when the type does not provide them; each
    law check is gated on ``has()`` for the member it needs.
    """

    create: Fn
    apply: Fn
    transform: Fn
    name: str = "anonymous"
    compose: Optional[Fn] = None
    invert: Optional[Fn] = None
    diff: Optional[Fn] = None
    diff_x: Optional[Fn] = None
    shatter: Optional[Fn] = None
    prune: Optional[Fn] = None
    serialize: Optional[Fn] = None
    deserialize: Optional[Fn] = None
    tp2: bool = False

    def __post_init__(self) -> None:
        for member in REQUIRED:
            if not callable(getattr(self, member)):
                raise TypeContractError(f"type {self.name!r} must define {member}()")
        for member in OPTIONAL:
            value = getattr(self, member)
            if value is not None and not callable(value):
                raise TypeContractError(f"{self.name}.{member} is not callable")

    def has(self, member: str) -> bool:
        if member not in OPTIONAL:
            raise ValueError(f"unknown capability {member!r}")
        return getattr(self, member) is not None

    @property
    def capabilities(self) -> FrozenSet[str]:
        return frozenset(m for m in OPTIONAL if getattr(self, m) is not None)

    @classmethod
    def from_object(cls, obj: Any) -> "OTType":
        """Adapt a duck-typed type object (module, namespace or mapping)."""
        if isinstance(obj, cls):
            return obj
        if isinstance(obj, Mapping):
            get = obj.get
            keys = set(obj.keys())
        else:
            get = lambda key, default=None: getattr(obj, key, default)  # noqa: E731
            keys = {k for k in dir(obj) if not k.startswith("_")}

        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for key in keys:
            target = ALIASES.get(key, key)
            if target in known:
                kwargs[target] = get(key)

        for member in REQUIRED:
            if kwargs.get(member) is None:
                raise TypeContractError(f"type {kwargs.get('name', obj)!r} must define {member}()")

        kwargs["name"] = str(kwargs.get("name") or getattr(obj, "__name__", "anonymous"))
        kwargs["tp2"] = bool(kwargs.get("tp2", False))
        return cls(**kwargs)
