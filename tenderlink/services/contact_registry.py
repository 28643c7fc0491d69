"""Contact registry — dedup contacts by email per tenant, track provenance.

A contact is one lower-cased email inside one tenant. Every extraction
bumps last_seen_at; opportunity_count counts distinct opportunities the
address has been linked to. The (opportunity, contact, source_type) link
row records where the address was found and is refreshed, never duplicated.

Usage:
    from tenderlink.services.contact_registry import record_contact
"""

import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..database import utcnow
from ..exceptions import InvalidInput
from ..models import Contact, OpportunityContact
from ..utils.normalization import normalize_email

log = logging.getLogger("tenderlink.contacts")

SOURCE_TYPES = ("structured_field", "page_text", "attachment")


@dataclass(frozen=True)
class ContactResult:
    contact_id: int
    created: bool  # a new Contact row was inserted
    linked: bool  # a new provenance link row was inserted


def _find_contact(db: Session, tenant_id: str, email: str) -> Contact | None:
    return (
        db.query(Contact)
        .filter(Contact.tenant_id == tenant_id, Contact.email == email)
        .first()
    )


def _has_any_link(db: Session, opportunity_id: int, contact_id: int) -> bool:
    return (
        db.query(OpportunityContact.id)
        .filter(
            OpportunityContact.opportunity_id == opportunity_id,
            OpportunityContact.contact_id == contact_id,
        )
        .first()
        is not None
    )


def _upsert_link(
    db: Session,
    opportunity_id: int,
    contact_id: int,
    source_type: str,
    source_detail: str | None,
    confidence: float,
    role_label: str | None,
    now,
) -> bool:
    """Insert or refresh the provenance link. Returns True when inserted."""
    link = (
        db.query(OpportunityContact)
        .filter(
            OpportunityContact.opportunity_id == opportunity_id,
            OpportunityContact.contact_id == contact_id,
            OpportunityContact.source_type == source_type,
        )
        .first()
    )
    if link:
        link.last_seen_at = now
        if role_label and not link.role_label:
            link.role_label = role_label
        return False

    db.add(
        OpportunityContact(
            opportunity_id=opportunity_id,
            contact_id=contact_id,
            source_type=source_type,
            source_detail=source_detail,
            extraction_confidence=confidence,
            role_label=role_label,
            last_seen_at=now,
            created_at=now,
        )
    )
    return True


def _with_department(departments: list | None, department: str | None) -> list:
    current = list(departments or [])
    if department and department not in current:
        current.append(department)
    return current


def record_contact(
    db: Session,
    tenant_id: str,
    email: str,
    opportunity_id: int,
    source_type: str,
    source_detail: str | None = None,
    confidence: float = 1.0,
    role_label: str | None = None,
    name: str | None = None,
    department: str | None = None,
) -> ContactResult:
    """Create or update the tenant's contact for email and link it to the opportunity.

    Flushes but does not commit; the caller owns the unit of work.
    """
    normalized = normalize_email(email)
    if not normalized:
        raise InvalidInput(f"Not an email address: {email!r}")
    if source_type not in SOURCE_TYPES:
        raise InvalidInput(f"Unknown contact source type: {source_type!r}")

    now = utcnow()
    contact = _find_contact(db, tenant_id, normalized)
    created = contact is None

    if created:
        contact = Contact(
            tenant_id=tenant_id,
            email=normalized,
            name=name,
            linked_departments=_with_department([], department),
            opportunity_count=1,
            first_seen_at=now,
            last_seen_at=now,
        )
        db.add(contact)
        db.flush()
        log.debug(f"New contact {normalized} for tenant {tenant_id}")
    else:
        first_link_to_opp = not _has_any_link(db, opportunity_id, contact.id)
        values = {"last_seen_at": now}
        if first_link_to_opp:
            # SQL-side increment so two writers can't lose an update
            values["opportunity_count"] = Contact.opportunity_count + 1
        db.execute(
            update(Contact)
            .where(Contact.id == contact.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(contact)
        if name and not contact.name:
            contact.name = name
        merged = _with_department(contact.linked_departments, department)
        if merged != (contact.linked_departments or []):
            contact.linked_departments = merged

    linked = _upsert_link(
        db, opportunity_id, contact.id, source_type, source_detail, confidence, role_label, now
    )
    db.flush()
    return ContactResult(contact_id=contact.id, created=created, linked=linked)
