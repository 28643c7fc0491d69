"""
schemas/sync.py — Pydantic models for the ingestion endpoints

Validates the crawler webhook envelope, the canonical per-record
OpportunityRecord, and the sync report returned to the caller.

Business Rules:
- Envelope fields are optional at parse time so the service can reject
  missing tenantId / empty batches with a single 400 code path
- Each opportunity is validated individually inside the sync loop, so one
  malformed record never rejects the whole batch
- external_reference and title are required and non-blank per record
- Response stats use the crawler's camelCase keys

Called by: routers/sync.py, services/record_mapper.py, services/sync_service.py
Depends on: pydantic
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# ── Per-record ───────────────────────────────────────────────────────


class Attachment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    type: str = ""
    size: int | None = None
    url: str | None = None

    @field_validator("size", mode="before")
    @classmethod
    def size_or_none(cls, v: Any) -> int | None:
        # Portals report sizes like "1.2 MB"; only byte counts are kept
        try:
            return int(v) if v is not None else None
        except (TypeError, ValueError):
            return None


class OpportunityRecord(BaseModel):
    """One opportunity after alias mapping. The only shape the pipeline handles."""

    model_config = ConfigDict(extra="ignore")

    external_reference: str
    title: str
    buyer_entity_raw: str | None = None
    category: str | None = None
    description: str | None = None
    publish_date: str | None = None
    closing_date: str | None = None
    status: str | None = None
    contact_text_raw: str | None = None
    source_url: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)

    rfq_id: str | None = None
    rfq_type: str | None = None
    engagement_type: str | None = None
    opportunity_type: str | None = None
    location: str | None = None
    working_arrangement: str | None = None
    deadline_for_questions: str | None = None
    estimated_start_date: str | None = None
    initial_contract_duration: str | None = None
    requirements: str | None = None
    key_duties: str | None = None
    criteria: list[str] = Field(default_factory=list)
    experience_level: str | None = None
    max_hours: str | None = None
    security_clearance: str | None = None

    @field_validator("external_reference")
    @classmethod
    def reference_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("external reference is required")
        return v

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v


# ── Webhook envelope ─────────────────────────────────────────────────


class SyncWebhookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tenant_id: str | None = Field(
        default=None, validation_alias=AliasChoices("tenantId", "spaceId", "tenant_id")
    )
    opportunities: list[Any] | None = None
    scraped_at: str | None = Field(
        default=None, validation_alias=AliasChoices("scrapedAt", "scraped_at")
    )
    total_count: int | None = Field(
        default=None, validation_alias=AliasChoices("totalCount", "total_count")
    )
    sync_type: Literal["full", "incremental", "upload"] = Field(
        default="full", validation_alias=AliasChoices("syncType", "sync_type")
    )


# ── Responses ────────────────────────────────────────────────────────


class SyncStatsOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    opportunities_added: int = Field(0, alias="opportunitiesAdded")
    opportunities_updated: int = Field(0, alias="opportunitiesUpdated")
    contacts_found: int = Field(0, alias="contactsFound")
    emails_extracted: int = Field(0, alias="emailsExtracted")
    errors: int = 0


class SyncWebhookResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    stats: SyncStatsOut
    sync_job_id: int | None = Field(None, alias="syncJobId")
    status: str | None = None
    error_messages: list[str] = Field(default_factory=list, alias="errorMessages")


class SyncJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: str
    integration_id: int | None = None
    status: str
    sync_type: str
    stats: dict = Field(default_factory=dict)
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_by: str | None = None
    created_at: datetime | None = None


class SyncJobListResponse(BaseModel):
    jobs: list[SyncJobOut] = Field(default_factory=list)
    is_syncing: bool = False
