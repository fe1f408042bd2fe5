"""
Common Pydantic schema mixins for infrastructure-level patterns.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class IdMixin(BaseModel):
    """Mixin for schemas that include a unique identifier."""

    id: str = Field(..., description="Unique identifier for the record")


class TimestampMixin(BaseModel):
    """Mixin for schemas that include creation and update timestamps."""

    created_at: datetime = Field(..., description="Timestamp when the record was created")
    updated_at: datetime = Field(..., description="Timestamp when the record was last updated")


def reject_explicit_nulls(data: dict, nullable: frozenset) -> dict:
    """Refuse ``None`` for fields that cannot be cleared by a partial update."""
    if isinstance(data, dict):
        for key, value in data.items():
            if value is None and key not in nullable:
                raise ValueError(f"{key} cannot be null")
    return data
