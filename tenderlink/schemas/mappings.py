"""
schemas/mappings.py — Pydantic models for department mapping endpoints

Business Rules:
- source_pattern and canonical_department are required and non-blank
- match_type is one of: exact, contains, regex, fuzzy (default exact)
- confidence lies in [0, 1] (default 1.0)
- Manually created mappings are approved by default

Called by: routers/mappings.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

MatchType = Literal["exact", "contains", "regex", "fuzzy"]


class MappingCreate(BaseModel):
    source_pattern: str
    canonical_department: str
    match_type: MatchType = "exact"
    canonical_agency: str | None = None
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    is_approved: bool = True

    @field_validator("source_pattern")
    @classmethod
    def pattern_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Source pattern is required")
        return v

    @field_validator("canonical_department")
    @classmethod
    def department_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Canonical department is required")
        return v


class MappingUpdate(BaseModel):
    source_pattern: str | None = None
    canonical_department: str | None = None
    match_type: MatchType | None = None
    canonical_agency: str | None = None
    confidence: float | None = Field(None, ge=0.0, le=1.0)
    is_approved: bool | None = None

    @field_validator("source_pattern", "canonical_department")
    @classmethod
    def not_blank_if_given(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Value cannot be blank")
        return v


class MappingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    source_pattern: str
    match_type: str
    canonical_department: str
    canonical_agency: str | None = None
    confidence: float = 1.0
    is_approved: bool = False
    is_auto_generated: bool = False
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UnmappedEntitiesResponse(BaseModel):
    entities: list[str] = Field(default_factory=list)
    total: int = 0
