"""
schemas/organisations.py — Response models for buying-organisation aggregates

Called by: routers/organisations.py
Depends on: pydantic
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

OrganisationSort = Literal["name", "opportunity_count", "open_opportunity_count", "last_opportunity_date"]


class OrganisationOut(BaseModel):
    name: str
    canonical_department: str | None = None
    canonical_agency: str | None = None
    opportunity_count: int = 0
    open_opportunity_count: int = 0
    first_opportunity_date: str | None = None
    last_opportunity_date: str | None = None
    common_categories: list[str] = Field(default_factory=list)
    common_working_arrangements: list[str] = Field(default_factory=list)
    common_locations: list[str] = Field(default_factory=list)
    contact_emails: list[str] = Field(default_factory=list)
    contact_names: list[str] = Field(default_factory=list)


class OrganisationOpportunity(BaseModel):
    id: int
    external_reference: str
    title: str
    category: str | None = None
    status: str | None = None
    closing_date: str | None = None
    is_open: bool = False
    contact_emails: list[str] = Field(default_factory=list)


class OrganisationDetail(OrganisationOut):
    opportunities: list[OrganisationOpportunity] = Field(default_factory=list)


class OrganisationListResponse(BaseModel):
    organisations: list[OrganisationOut] = Field(default_factory=list)
    total: int = 0
