from __future__ import annotations

import pprint
from typing import Any, Dict, Optional


class FuzzerError(Exception):
    """Base class for everything the fuzzer raises on its own behalf."""


class TypeContractError(FuzzerError):
    """The type under test lacks a required capability."""


class LawViolation(FuzzerError, AssertionError):
    """A randomized trial produced a counterexample to an OT law.

    Carries the whole trial so the failure can be studied without
    re-running. ``seed`` is filled in by the runner before re-raising.
    """

    def __init__(
        self,
        law: str,
        message: str,
        *,
        trial: Optional[Dict[str, Any]] = None,
        details: Optional[Dict[str, Any]] = None,
        seed: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.law = law
        self.message = message
        self.trial = trial or {}
        self.details = details or {}
        self.seed = seed

    def __str__(self) -> str:
        lines = [f"[{self.law}] {self.message}"]
        if self.seed is not None:
            lines.append(f"seed: {self.seed}")
        for key, value in self.details.items():
            lines.append(f"{key}: {pprint.pformat(value)}")
        if self.trial:
            lines.append("trial:")
            lines.append(pprint.pformat(self.trial, indent=2))
        return "\n".join(lines)
