"""
schemas/opportunities.py — Response models for opportunity, contact and stats reads

Called by: routers/opportunities.py, routers/contacts.py, routers/stats.py
Depends on: pydantic
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from .responses import PaginatedResponse


# ── Opportunities ────────────────────────────────────────────────────


class OpportunityContactOut(BaseModel):
    contact_id: int
    email: str
    name: str | None = None
    source_type: str
    source_detail: str | None = None
    extraction_confidence: float | None = None
    role_label: str | None = None


class OpportunityOut(BaseModel, extra="allow"):
    id: int
    tenant_id: str
    external_reference: str
    title: str
    buyer_entity_raw: str | None = None
    canonical_department: str | None = None
    canonical_agency: str | None = None
    mapping_confidence: float | None = None
    mapping_approved: bool | None = None
    status: str | None = None
    closing_date: str | None = None
    contacts_count: int = 0


class OpportunityDetail(OpportunityOut):
    contacts: list[OpportunityContactOut] = Field(default_factory=list)


class OpportunityListResponse(PaginatedResponse):
    opportunities: list[OpportunityOut] = Field(default_factory=list)


# ── Contacts ─────────────────────────────────────────────────────────


class LinkedOpportunity(BaseModel):
    opportunity_id: int
    external_reference: str
    title: str


class ProvenanceOut(LinkedOpportunity):
    source_type: str
    source_detail: str | None = None
    extraction_confidence: float | None = None
    role_label: str | None = None


class ContactOut(BaseModel):
    id: int
    email: str
    name: str | None = None
    phone: str | None = None
    linked_departments: list[str] = Field(default_factory=list)
    opportunity_count: int = 0
    first_seen_at: str | None = None
    last_seen_at: str | None = None
    opportunities: list[LinkedOpportunity] = Field(default_factory=list)
    provenance: list[ProvenanceOut] = Field(default_factory=list)


class ContactListResponse(PaginatedResponse):
    contacts: list[ContactOut] = Field(default_factory=list)


# ── Dashboard ────────────────────────────────────────────────────────


class DashboardStats(BaseModel):
    total_opportunities: int = 0
    open_opportunities: int = 0
    total_contacts: int = 0
    unique_departments: int = 0
    unmapped_entities: int = 0
    closing_this_week: int = 0
