"""Error envelope schemas shared across API handlers."""

from __future__ import annotations

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field


class FieldError(BaseModel):
    """Single field-level validation issue, addressed by its external path."""

    model_config = ConfigDict(frozen=True)

    field: str
    message: str
    path: str


class ErrorResponse(BaseModel):
    """Top-level API error response envelope."""

    model_config = ConfigDict(frozen=True)

    message: str = Field(min_length=1)
    details: str
    errors: list[FieldError] | None = None
