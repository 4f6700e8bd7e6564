"""Identifier parsing for path and query values."""

from __future__ import annotations

from typing import Any


class CastError(ValueError):
    """Raised when a raw identifier cannot be converted to its expected type."""

    def __init__(self, path: str, value: Any) -> None:
        self.path = path
        self.value = value
        super().__init__(f"Invalid {path}: {value}")


def parse_identifier(value: Any, path: str = "id") -> int:
    """Convert ``value`` to a positive integer identifier or raise ``CastError``."""
    if isinstance(value, bool):
        raise CastError(path, value)
    if isinstance(value, int):
        parsed = value
    else:
        try:
            parsed = int(str(value).strip())
        except ValueError:
            raise CastError(path, value) from None
    if parsed < 1:
        raise CastError(path, value)
    return parsed
