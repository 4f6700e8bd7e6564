"""Data-layer failure kinds surfaced to the error normalizer."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

UNIQUE_VIOLATION_SQLSTATE = "23505"
_UNIQUE_VIOLATION_MARKERS = ("duplicate key", "unique constraint")


@dataclass(frozen=True)
class FieldIssue:
    """One failed model-level check."""

    field: str
    message: str


class ModelValidationError(ValueError):
    """Raised by model validators when one or more fields are invalid."""

    def __init__(self, issues: Sequence[FieldIssue]) -> None:
        self.issues = tuple(issues)
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)
        super().__init__(summary or "Validation error")


def is_unique_violation(exc: BaseException) -> bool:
    """Return whether ``exc`` is an integrity error caused by a uniqueness constraint."""
    if not isinstance(exc, IntegrityError):
        return False

    original = exc.orig
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if sqlstate == UNIQUE_VIOLATION_SQLSTATE:
        return True

    text = str(original if original is not None else exc).lower()
    return any(marker in text for marker in _UNIQUE_VIOLATION_MARKERS)
