"""Error envelope schemas shared across API handlers."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class FieldError(BaseModel):
    """Single field-level validation issue."""

    field: str
    message: str


class ErrorDebug(BaseModel):
    """Diagnostic detail included only in development."""

    name: str
    stack: str


class ErrorEnvelope(BaseModel):
    """Top-level API error response envelope."""

    success: Literal[False] = False
    message: str
    errors: list[FieldError] | None = None
    error: ErrorDebug | None = None

    def to_content(self) -> dict:
        """Serialize without the optional keys that do not apply."""
        return self.model_dump(exclude_none=True)
