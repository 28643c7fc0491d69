"""Opportunity upsert — merge one incoming record keyed by (tenant, reference).

Updates are a full overwrite: every mutable column is rewritten from the
incoming record, so a field missing from the new payload is cleared.
The row is touched on every ingestion even when nothing changed; the
payload hash only tells the caller whether anything did.
"""

import hashlib
import json
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from ..database import utcnow
from ..models import Opportunity
from ..schemas.sync import OpportunityRecord
from ..utils.normalization import parse_date

log = logging.getLogger("tenderlink.upsert")

DEFAULT_STATUS = "Open"

# Record fields copied verbatim onto the row
_PASSTHROUGH_FIELDS = (
    "title",
    "buyer_entity_raw",
    "category",
    "description",
    "contact_text_raw",
    "source_url",
    "rfq_id",
    "rfq_type",
    "engagement_type",
    "opportunity_type",
    "location",
    "working_arrangement",
    "deadline_for_questions",
    "estimated_start_date",
    "initial_contract_duration",
    "requirements",
    "key_duties",
    "experience_level",
    "max_hours",
    "security_clearance",
)


@dataclass(frozen=True)
class UpsertResult:
    id: int
    was_inserted: bool
    changed: bool  # payload hash differs from the last sync (always True on insert)


def payload_hash(record: OpportunityRecord) -> str:
    """SHA-256 over the canonical JSON of the record."""
    canonical = json.dumps(record.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def record_to_columns(record: OpportunityRecord) -> dict:
    """Column values for a full overwrite of an Opportunity row."""
    values = {f: getattr(record, f) for f in _PASSTHROUGH_FIELDS}
    values.update(
        publish_date=parse_date(record.publish_date),
        closing_date=parse_date(record.closing_date),
        status=record.status or DEFAULT_STATUS,
        attachments=[a.model_dump(exclude_none=True) for a in record.attachments],
        criteria=list(record.criteria),
    )
    return values


def upsert_opportunity(
    db: Session,
    tenant_id: str,
    record: OpportunityRecord,
    sync_job_id: int | None = None,
) -> UpsertResult:
    """Insert or fully overwrite the tenant's opportunity for record.external_reference.

    Flushes but does not commit; datastore errors propagate to the caller.
    """
    values = record_to_columns(record)
    digest = payload_hash(record)
    now = utcnow()

    existing = (
        db.query(Opportunity)
        .filter(
            Opportunity.tenant_id == tenant_id,
            Opportunity.external_reference == record.external_reference,
        )
        .first()
    )

    if existing:
        changed = existing.source_hash != digest
        for column, value in values.items():
            setattr(existing, column, value)
        existing.source_hash = digest
        existing.last_synced_at = now
        existing.sync_job_id = sync_job_id
        existing.updated_at = now
        db.flush()
        return UpsertResult(id=existing.id, was_inserted=False, changed=changed)

    opp = Opportunity(
        tenant_id=tenant_id,
        external_reference=record.external_reference,
        source_hash=digest,
        last_synced_at=now,
        sync_job_id=sync_job_id,
        created_at=now,
        updated_at=now,
        **values,
    )
    db.add(opp)
    db.flush()
    log.debug(f"Inserted opportunity {record.external_reference} for tenant {tenant_id}")
    return UpsertResult(id=opp.id, was_inserted=True, changed=True)
