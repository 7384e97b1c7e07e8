from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(valid=False, error=error)


def percent_complete(completed: int, total: int) -> int:
    """Whole-number percentage, rounding halves up; 0 when there is nothing to complete."""
    if total <= 0:
        return 0
    return int(math.floor(completed / total * 100 + 0.5))


def entry_field(entry: Any, name: str) -> Any:
    """Read ``name`` from a submission entry given as a mapping or an object."""
    if isinstance(entry, dict):
        return entry.get(name)
    return getattr(entry, name)
