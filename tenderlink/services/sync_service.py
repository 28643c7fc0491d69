"""Sync orchestrator — one batch of scraped opportunities, start to finish.

Flow for run_sync():
  1. Reject a missing tenant / empty batch (InvalidInput) before any write.
  2. Get-or-create the tenant's Integration (degrades on failure).
  3. Open a SyncJob in "running" (degrades on failure; the report then
     carries no job id).
  4. For each record, in order, as its own unit of work:
     alias mapping → validation → upsert → email extraction from the
     contact field and the description → contact registry.
     A failure rolls back that record only and is recorded by position
     and reference.
  5. Close the job: "failed" only when every record failed, else
     "completed" (partial success is success).
  6. Mark the Integration connected with a fresh last_sync_at, whatever
     the job outcome.

Counters travel through the loop as an immutable SyncStats value, one
RecordOutcome per record, so nothing here depends on shared mutable state.

Usage:
    report = run_sync(db, "tenant-1", payload["opportunities"], sync_type="full")
"""

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Sequence

from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..database import utcnow
from ..exceptions import (
    IntegrationSetupError,
    InvalidInput,
    InvalidJobTransition,
    JobPersistenceError,
    RecordProcessingError,
)
from ..models import Integration, SyncJob
from ..models.sync import SYNC_TYPES
from .contact_registry import record_contact
from .email_extractor import extract_contacts
from .opportunity_upsert import upsert_opportunity
from .record_mapper import map_aliases, to_record

log = logging.getLogger("tenderlink.sync")

# Connection-level failures during setup abort the call instead of degrading
_DATASTORE_DOWN = (OperationalError, InterfaceError, DisconnectionError)

_TRANSITIONS = {
    "pending": {"running", "failed"},
    "running": {"completed", "failed"},
    "completed": set(),
    "failed": set(),
}

# Which record field feeds which provenance source type
_EMAIL_SOURCES = (
    ("contact_text_raw", "structured_field"),
    ("description", "page_text"),
)


# ═══════════════════════════════════════════════════════════════════════
#  ACCUMULATOR
# ═══════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RecordOutcome:
    was_inserted: bool = False
    changed: bool = False
    contacts_new: int = 0
    emails_extracted: int = 0
    error: str | None = None


@dataclass(frozen=True)
class SyncStats:
    processed: int = 0
    opportunities_added: int = 0
    opportunities_updated: int = 0
    opportunities_unchanged: int = 0
    contacts_found: int = 0
    emails_extracted: int = 0
    error_count: int = 0
    errors: tuple[str, ...] = ()
    error_cap: int = 5

    def record(self, outcome: RecordOutcome) -> "SyncStats":
        """Return a new SyncStats with one more record folded in."""
        if outcome.error is not None:
            errors = self.errors
            if len(errors) < self.error_cap:
                errors = errors + (outcome.error,)
            return replace(
                self,
                processed=self.processed + 1,
                error_count=self.error_count + 1,
                errors=errors,
            )
        return replace(
            self,
            processed=self.processed + 1,
            opportunities_added=self.opportunities_added + int(outcome.was_inserted),
            opportunities_updated=self.opportunities_updated + int(not outcome.was_inserted),
            opportunities_unchanged=self.opportunities_unchanged
            + int(not outcome.was_inserted and not outcome.changed),
            contacts_found=self.contacts_found + outcome.contacts_new,
            emails_extracted=self.emails_extracted + outcome.emails_extracted,
        )

    @property
    def all_failed(self) -> bool:
        return self.processed > 0 and self.error_count == self.processed

    @property
    def error_summary(self) -> str | None:
        return "; ".join(self.errors) if self.errors else None

    def to_job_stats(self, duration_ms: int | None = None) -> dict:
        stats = {
            "opportunities_added": self.opportunities_added,
            "opportunities_updated": self.opportunities_updated,
            "opportunities_unchanged": self.opportunities_unchanged,
            "contacts_found": self.contacts_found,
            "emails_extracted": self.emails_extracted,
            "errors": self.error_count,
            "error_messages": list(self.errors),
        }
        if duration_ms is not None:
            stats["duration_ms"] = duration_ms
        return stats

    def to_response(self) -> dict:
        return {
            "opportunitiesAdded": self.opportunities_added,
            "opportunitiesUpdated": self.opportunities_updated,
            "contactsFound": self.contacts_found,
            "emailsExtracted": self.emails_extracted,
            "errors": self.error_count,
        }


@dataclass(frozen=True)
class SyncReport:
    success: bool
    status: str
    stats: SyncStats
    sync_job_id: int | None


# ═══════════════════════════════════════════════════════════════════════
#  JOB LIFECYCLE
# ═══════════════════════════════════════════════════════════════════════


def transition(job: SyncJob, new_status: str) -> None:
    """Move a job forward. Terminal states are immutable."""
    current = job.status or "pending"
    if new_status not in _TRANSITIONS.get(current, set()):
        raise InvalidJobTransition(current, new_status)
    job.status = new_status


def _ensure_integration(
    db: Session, tenant_id: str, integration_id: int | None, sync_type: str
) -> int:
    try:
        q = db.query(Integration).filter(Integration.tenant_id == tenant_id)
        if integration_id is not None:
            q = q.filter(Integration.id == integration_id)
        integration = q.first()
        if integration is None and integration_id is not None:
            raise IntegrationSetupError(
                f"Integration {integration_id} does not belong to tenant {tenant_id}"
            )
        if integration is None:
            integration = Integration(
                tenant_id=tenant_id,
                connection_method="upload" if sync_type == "upload" else "api",
                connection_status="connected",
                config={},
            )
            db.add(integration)
            db.commit()
            log.info(f"Created integration {integration.id} for tenant {tenant_id}")
        return integration.id
    except _DATASTORE_DOWN:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise IntegrationSetupError(f"Integration setup failed for tenant {tenant_id}: {e}") from e


def _open_job(
    db: Session, tenant_id: str, integration_id: int | None, sync_type: str, created_by: str
) -> int:
    try:
        job = SyncJob(
            tenant_id=tenant_id,
            integration_id=integration_id,
            status="pending",
            sync_type=sync_type,
            stats={},
            created_by=created_by,
        )
        db.add(job)
        db.flush()
        transition(job, "running")
        job.started_at = utcnow()
        db.commit()
        return job.id
    except _DATASTORE_DOWN:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise JobPersistenceError(f"Could not open sync job for tenant {tenant_id}: {e}") from e


def _close_job(db: Session, job_id: int, status: str, stats: SyncStats, duration_ms: int) -> None:
    try:
        job = db.get(SyncJob, job_id)
        if job is None:
            raise JobPersistenceError(f"Sync job {job_id} disappeared before completion")
        transition(job, status)
        job.stats = stats.to_job_stats(duration_ms)
        job.error = stats.error_summary
        job.completed_at = utcnow()
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise JobPersistenceError(f"Could not close sync job {job_id}: {e}") from e


def _touch_integration(db: Session, integration_id: int, stats: SyncStats) -> None:
    try:
        integration = db.get(Integration, integration_id)
        if integration is None:
            raise IntegrationSetupError(f"Integration {integration_id} disappeared during sync")
        integration.connection_status = "connected"
        integration.last_sync_at = utcnow()
        integration.last_sync_error = stats.error_summary
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise IntegrationSetupError(f"Could not update integration {integration_id}: {e}") from e


# ═══════════════════════════════════════════════════════════════════════
#  PER-RECORD UNIT OF WORK
# ═══════════════════════════════════════════════════════════════════════


def _raw_reference(raw: Any) -> str | None:
    if isinstance(raw, dict):
        return map_aliases(raw).get("external_reference")
    return None


def process_record(
    db: Session, tenant_id: str, job_id: int | None, raw: Any, position: int
) -> RecordOutcome:
    """Upsert one record and register its contacts; commit or roll back as a unit."""
    try:
        record = to_record(raw, position)
        result = upsert_opportunity(db, tenant_id, record, sync_job_id=job_id)

        contacts_new = 0
        emails = 0
        for field, source_type in _EMAIL_SOURCES:
            for found in extract_contacts(getattr(record, field), source_type):
                emails += 1
                contact = record_contact(
                    db,
                    tenant_id,
                    found.email,
                    result.id,
                    found.source_type,
                    source_detail=found.source_detail,
                    confidence=found.confidence,
                    role_label=found.role_label,
                    name=found.name,
                    department=record.buyer_entity_raw,
                )
                contacts_new += int(contact.created)

        db.commit()
        return RecordOutcome(
            was_inserted=result.was_inserted,
            changed=result.changed,
            contacts_new=contacts_new,
            emails_extracted=emails,
        )
    except RecordProcessingError as e:
        db.rollback()
        log.warning(f"Skipping record {e.summary}")
        return RecordOutcome(error=e.summary)
    except Exception as e:
        db.rollback()
        message = (str(e).splitlines() or [""])[0] or type(e).__name__
        err = RecordProcessingError(position, _raw_reference(raw), message)
        log.warning(f"Record failed {err.summary}")
        return RecordOutcome(error=err.summary)


# ═══════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ═══════════════════════════════════════════════════════════════════════


def run_sync(
    db: Session,
    tenant_id: str | None,
    records: Sequence[Any] | None,
    sync_type: str = "full",
    integration_id: int | None = None,
    created_by: str = "system",
) -> SyncReport:
    """Ingest one batch for a tenant and return the aggregate report.

    Raises:
        InvalidInput: missing tenant, empty/oversized batch, unknown sync type.
    """
    tenant_id = (tenant_id or "").strip()
    if not tenant_id:
        raise InvalidInput("tenantId is required")
    if not records:
        raise InvalidInput("opportunities must be a non-empty list")
    if len(records) > settings.max_batch_size:
        raise InvalidInput(
            f"Batch of {len(records)} exceeds the limit of {settings.max_batch_size}"
        )
    if sync_type not in SYNC_TYPES:
        raise InvalidInput(f"Unknown sync type: {sync_type!r}")

    started = time.monotonic()
    log.info(f"Sync started: tenant={tenant_id} type={sync_type} records={len(records)}")

    try:
        integration_id = _ensure_integration(db, tenant_id, integration_id, sync_type)
    except IntegrationSetupError as e:
        log.error(f"{e}; continuing without integration")
        integration_id = None

    try:
        job_id = _open_job(db, tenant_id, integration_id, sync_type, created_by)
    except JobPersistenceError as e:
        log.error(f"{e}; continuing without a job record")
        job_id = None

    stats = SyncStats(error_cap=settings.sync_error_cap)
    for position, raw in enumerate(records, start=1):
        stats = stats.record(process_record(db, tenant_id, job_id, raw, position))

    status = "failed" if stats.all_failed else "completed"
    duration_ms = int((time.monotonic() - started) * 1000)

    if job_id is not None:
        try:
            _close_job(db, job_id, status, stats, duration_ms)
        except JobPersistenceError as e:
            log.error(str(e))

    if integration_id is not None:
        try:
            _touch_integration(db, integration_id, stats)
        except IntegrationSetupError as e:
            log.error(str(e))

    log.info(
        f"Sync {status}: tenant={tenant_id} job={job_id} "
        f"added={stats.opportunities_added} updated={stats.opportunities_updated} "
        f"contacts_new={stats.contacts_found} emails={stats.emails_extracted} "
        f"errors={stats.error_count} in {duration_ms}ms"
    )
    return SyncReport(
        success=status != "failed",
        status=status,
        stats=stats,
        sync_job_id=job_id,
    )


def recent_jobs(db: Session, tenant_id: str, limit: int = 10) -> list[SyncJob]:
    return (
        db.query(SyncJob)
        .filter(SyncJob.tenant_id == tenant_id)
        .order_by(SyncJob.created_at.desc(), SyncJob.id.desc())
        .limit(limit)
        .all()
    )
