from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class SeriesCreate(BaseModel):
    company: str = Field(..., description="Company the tracked metric belongs to")
    place: str = Field(..., description="Location of the tracked metric")
    min_bound: Optional[float] = Field(None, description="Forecasts are raised to at least this value")
    max_bound: Optional[float] = Field(None, description="Forecasts are lowered to at most this value")
    owner_id: Optional[str] = Field(None, max_length=64, description="Owning entity reference")

    @field_validator("company", "place")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be blank")
        return v
