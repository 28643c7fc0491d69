"""Read side — opportunity, contact, organisation and dashboard queries for the UI.

Business Rules:
- Canonical department is resolved at read time for every row, so mapping
  edits show up immediately without re-ingesting.
- Unresolved rows keep their raw buyer entity; callers display that.
- Opportunities sort by closing date ascending with undated rows last.
- Contacts sort by last_seen_at descending.
- The department filter matches the canonical name, or the raw buyer entity
  when no rule resolves it.

Called by: routers/opportunities.py, routers/contacts.py, routers/stats.py,
           routers/organisations.py
Depends on: models, services/department_resolver.py
"""

import csv
import io
from datetime import datetime, timedelta

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..database import utcnow
from ..exceptions import InvalidInput
from ..models import Contact, Opportunity, OpportunityContact
from .department_resolver import DepartmentResolver, list_unmapped_entities, load_rules

CONTACT_EXPORT_HEADERS = [
    "Email",
    "Name",
    "Departments",
    "Opportunity Count",
    "Linked Opportunities",
    "First Seen",
    "Last Seen",
]


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def _contact_counts(db: Session, opportunity_ids: list[int]) -> dict[int, int]:
    if not opportunity_ids:
        return {}
    rows = (
        db.query(
            OpportunityContact.opportunity_id,
            func.count(func.distinct(OpportunityContact.contact_id)),
        )
        .filter(OpportunityContact.opportunity_id.in_(opportunity_ids))
        .group_by(OpportunityContact.opportunity_id)
        .all()
    )
    return {opp_id: count for opp_id, count in rows}


def opportunity_to_dict(opp: Opportunity, resolver: DepartmentResolver, contacts_count: int = 0) -> dict:
    match = resolver.resolve(opp.buyer_entity_raw)
    return {
        "id": opp.id,
        "tenant_id": opp.tenant_id,
        "external_reference": opp.external_reference,
        "title": opp.title,
        "buyer_entity_raw": opp.buyer_entity_raw,
        "canonical_department": match.department if match else None,
        "canonical_agency": match.agency if match else None,
        "mapping_confidence": match.confidence if match else None,
        "mapping_approved": match.approved if match else None,
        "category": opp.category,
        "description": opp.description,
        "publish_date": _iso(opp.publish_date),
        "closing_date": _iso(opp.closing_date),
        "status": opp.status,
        "contact_text_raw": opp.contact_text_raw,
        "source_url": opp.source_url,
        "attachments": opp.attachments or [],
        "location": opp.location,
        "rfq_type": opp.rfq_type,
        "working_arrangement": opp.working_arrangement,
        "security_clearance": opp.security_clearance,
        "criteria": opp.criteria or [],
        "last_synced_at": _iso(opp.last_synced_at),
        "contacts_count": contacts_count,
    }


# ── Opportunities ─────────────────────────────────────────────────────


def list_opportunities(
    db: Session,
    tenant_id: str,
    status: str | None = None,
    search: str | None = None,
    department: str | None = None,
    has_contacts: bool | None = None,
    closing_from: datetime | None = None,
    closing_to: datetime | None = None,
) -> list[dict]:
    query = db.query(Opportunity).filter(Opportunity.tenant_id == tenant_id)
    if status:
        query = query.filter(func.lower(Opportunity.status) == status.strip().lower())
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Opportunity.title.ilike(pattern),
                Opportunity.external_reference.ilike(pattern),
                Opportunity.buyer_entity_raw.ilike(pattern),
                Opportunity.description.ilike(pattern),
            )
        )
    if closing_from:
        query = query.filter(Opportunity.closing_date >= closing_from)
    if closing_to:
        query = query.filter(Opportunity.closing_date <= closing_to)

    opps = query.order_by(
        Opportunity.closing_date.is_(None),
        Opportunity.closing_date.asc(),
        Opportunity.id.asc(),
    ).all()

    counts = _contact_counts(db, [o.id for o in opps])
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    rows = [opportunity_to_dict(o, resolver, counts.get(o.id, 0)) for o in opps]

    if has_contacts is not None:
        rows = [r for r in rows if (r["contacts_count"] > 0) == has_contacts]
    if department and department.strip():
        wanted = department.strip().casefold()
        rows = [
            r for r in rows
            if (r["canonical_department"] or r["buyer_entity_raw"] or "").casefold() == wanted
        ]
    return rows


def get_opportunity(db: Session, tenant_id: str, opportunity_id: int) -> dict | None:
    """One opportunity with its resolved department and linked contacts."""
    opp = (
        db.query(Opportunity)
        .filter(Opportunity.tenant_id == tenant_id, Opportunity.id == opportunity_id)
        .first()
    )
    if not opp:
        return None

    links = (
        db.query(OpportunityContact, Contact)
        .join(Contact, Contact.id == OpportunityContact.contact_id)
        .filter(OpportunityContact.opportunity_id == opp.id)
        .order_by(OpportunityContact.extraction_confidence.desc(), Contact.email)
        .all()
    )
    contacts = [
        {
            "contact_id": contact.id,
            "email": contact.email,
            "name": contact.name,
            "source_type": link.source_type,
            "source_detail": link.source_detail,
            "extraction_confidence": link.extraction_confidence,
            "role_label": link.role_label,
        }
        for link, contact in links
    ]
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    row = opportunity_to_dict(opp, resolver, len({c["contact_id"] for c in contacts}))
    row["contacts"] = contacts
    return row


# ── Contacts ──────────────────────────────────────────────────────────


def _links_by_contact(db: Session, contact_ids: list[int]) -> dict[int, list[dict]]:
    if not contact_ids:
        return {}
    rows = (
        db.query(OpportunityContact, Opportunity.external_reference, Opportunity.title)
        .join(Opportunity, Opportunity.id == OpportunityContact.opportunity_id)
        .filter(OpportunityContact.contact_id.in_(contact_ids))
        .order_by(OpportunityContact.contact_id, Opportunity.external_reference, OpportunityContact.id)
        .all()
    )
    out: dict[int, list[dict]] = {}
    for link, reference, title in rows:
        out.setdefault(link.contact_id, []).append(
            {
                "opportunity_id": link.opportunity_id,
                "external_reference": reference,
                "title": title,
                "source_type": link.source_type,
                "source_detail": link.source_detail,
                "extraction_confidence": link.extraction_confidence,
                "role_label": link.role_label,
            }
        )
    return out


def list_contacts(
    db: Session,
    tenant_id: str,
    search: str | None = None,
    min_opportunities: int | None = None,
    department: str | None = None,
) -> list[dict]:
    query = db.query(Contact).filter(Contact.tenant_id == tenant_id)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Contact.email.ilike(pattern), Contact.name.ilike(pattern)))
    if min_opportunities:
        query = query.filter(Contact.opportunity_count >= min_opportunities)
    contacts = query.order_by(Contact.last_seen_at.desc(), Contact.id.desc()).all()

    if department and department.strip():
        wanted = department.strip().casefold()
        contacts = [
            c for c in contacts
            if any(wanted in (d or "").casefold() for d in (c.linked_departments or []))
        ]
    links = _links_by_contact(db, [c.id for c in contacts])
    rows = []
    for c in contacts:
        provenance = links.get(c.id, [])
        # One entry per opportunity, however many sources it was seen in
        opportunities = list(
            {p["opportunity_id"]: {k: p[k] for k in ("opportunity_id", "external_reference", "title")}
             for p in provenance}.values()
        )
        rows.append(
            {
                "id": c.id,
                "email": c.email,
                "name": c.name,
                "phone": c.phone,
                "linked_departments": c.linked_departments or [],
                "opportunity_count": c.opportunity_count,
                "first_seen_at": _iso(c.first_seen_at),
                "last_seen_at": _iso(c.last_seen_at),
                "opportunities": opportunities,
                "provenance": provenance,
            }
        )
    return rows


def _au_date(value: str | None) -> str:
    if not value:
        return ""
    return datetime.fromisoformat(value).strftime("%d/%m/%Y")


def export_contacts_csv(db: Session, tenant_id: str, **filters) -> str:
    """Contacts as CSV text, one row per contact, dates as DD/MM/YYYY."""
    out = io.StringIO()
    writer = csv.writer(out, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CONTACT_EXPORT_HEADERS)
    for c in list_contacts(db, tenant_id, **filters):
        writer.writerow(
            [
                c["email"],
                c["name"] or "",
                "; ".join(c["linked_departments"]),
                c["opportunity_count"],
                " | ".join(f"{o['external_reference']}: {o['title']}" for o in c["opportunities"]),
                _au_date(c["first_seen_at"]),
                _au_date(c["last_seen_at"]),
            ]
        )
    return out.getvalue()


# ── Dashboard ─────────────────────────────────────────────────────────


def dashboard_stats(db: Session, tenant_id: str) -> dict:
    opps = (
        db.query(Opportunity.status, Opportunity.closing_date, Opportunity.buyer_entity_raw)
        .filter(Opportunity.tenant_id == tenant_id)
        .all()
    )
    total_contacts = db.query(func.count(Contact.id)).filter(Contact.tenant_id == tenant_id).scalar()

    now = utcnow()
    week_later = now + timedelta(days=7)
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    departments = set()
    for raw in {o.buyer_entity_raw for o in opps if o.buyer_entity_raw}:
        match = resolver.resolve(raw)
        if match:
            departments.add(match.department)

    return {
        "total_opportunities": len(opps),
        "open_opportunities": sum(1 for o in opps if (o.status or "").lower() == "open"),
        "total_contacts": total_contacts or 0,
        "unique_departments": len(departments),
        "unmapped_entities": len(list_unmapped_entities(db, tenant_id)),
        "closing_this_week": sum(
            1 for o in opps if o.closing_date and now <= o.closing_date <= week_later
        ),
    }


# ── Organisations ─────────────────────────────────────────────────────

ORGANISATION_SORTS = ("name", "opportunity_count", "open_opportunity_count", "last_opportunity_date")
MIN_ORGANISATION_NAME = 3


def _is_open(opp: Opportunity, now: datetime) -> bool:
    return (opp.status or "").lower() == "open" or bool(opp.closing_date and opp.closing_date > now)


def _distinct(values) -> list[str]:
    return sorted({v.strip() for v in values if v and v.strip()}, key=str.casefold)


def _contacts_by_opportunity(db: Session, opportunity_ids: list[int]) -> dict[int, list[tuple[str, str | None]]]:
    if not opportunity_ids:
        return {}
    rows = (
        db.query(OpportunityContact.opportunity_id, Contact.email, Contact.name)
        .join(Contact, Contact.id == OpportunityContact.contact_id)
        .filter(OpportunityContact.opportunity_id.in_(opportunity_ids))
        .all()
    )
    out: dict[int, list[tuple[str, str | None]]] = {}
    for opp_id, email, name in rows:
        out.setdefault(opp_id, []).append((email, name))
    return out


def _organisation_groups(db: Session, tenant_id: str) -> dict[str, list[Opportunity]]:
    opps = (
        db.query(Opportunity)
        .filter(Opportunity.tenant_id == tenant_id, Opportunity.buyer_entity_raw.isnot(None))
        .order_by(Opportunity.id)
        .all()
    )
    groups: dict[str, list[Opportunity]] = {}
    for opp in opps:
        name = opp.buyer_entity_raw.strip()
        if len(name) >= MIN_ORGANISATION_NAME:
            groups.setdefault(name, []).append(opp)
    return groups


def _summarize_organisation(
    name: str,
    opps: list[Opportunity],
    contacts: dict[int, list[tuple[str, str | None]]],
    resolver: DepartmentResolver,
    now: datetime,
) -> dict:
    published = [o.publish_date for o in opps if o.publish_date]
    seen = [c for o in opps for c in contacts.get(o.id, [])]
    match = resolver.resolve(name)
    return {
        "name": name,
        "canonical_department": match.department if match else None,
        "canonical_agency": match.agency if match else None,
        "opportunity_count": len(opps),
        "open_opportunity_count": sum(1 for o in opps if _is_open(o, now)),
        "first_opportunity_date": min(published).date().isoformat() if published else None,
        "last_opportunity_date": max(published).date().isoformat() if published else None,
        "common_categories": _distinct(o.category for o in opps),
        "common_working_arrangements": _distinct(o.working_arrangement for o in opps),
        "common_locations": _distinct(o.location for o in opps),
        "contact_emails": sorted({email for email, _ in seen}),
        "contact_names": _distinct(contact_name for _, contact_name in seen),
    }


def list_organisations(
    db: Session,
    tenant_id: str,
    search: str | None = None,
    sort: str = "opportunity_count",
    descending: bool = True,
) -> list[dict]:
    """Buying organisations aggregated from opportunities, one row per buyer entity.

    Opportunities group by their trimmed raw buyer entity; names shorter than
    three characters are skipped. An opportunity counts as open when its
    status is "Open" or it has not closed yet. Publish dates give the
    first/last opportunity date; undated organisations sort as oldest.
    """
    if sort not in ORGANISATION_SORTS:
        raise InvalidInput(f"Unknown sort field: {sort!r}")
    groups = _organisation_groups(db, tenant_id)
    if search and search.strip():
        wanted = search.strip().casefold()
        groups = {name: opps for name, opps in groups.items() if wanted in name.casefold()}

    contacts = _contacts_by_opportunity(db, [o.id for opps in groups.values() for o in opps])
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    now = utcnow()
    rows = [_summarize_organisation(n, opps, contacts, resolver, now) for n, opps in groups.items()]

    rows.sort(key=lambda r: r["name"].casefold())
    if sort == "name":
        rows.sort(key=lambda r: r["name"].casefold(), reverse=descending)
    elif sort == "last_opportunity_date":
        rows.sort(key=lambda r: r["last_opportunity_date"] or "", reverse=descending)
    else:
        rows.sort(key=lambda r: r[sort], reverse=descending)
    return rows


def get_organisation(db: Session, tenant_id: str, name: str) -> dict | None:
    """One organisation's aggregate plus its opportunities, newest closing first."""
    opps = _organisation_groups(db, tenant_id).get(name.strip())
    if not opps:
        return None
    contacts = _contacts_by_opportunity(db, [o.id for o in opps])
    resolver = DepartmentResolver(load_rules(db, tenant_id))
    now = utcnow()
    row = _summarize_organisation(name.strip(), opps, contacts, resolver, now)
    ordered = sorted(opps, key=lambda o: (o.closing_date is not None, o.closing_date or now), reverse=True)
    row["opportunities"] = [
        {
            "id": o.id,
            "external_reference": o.external_reference,
            "title": o.title,
            "category": o.category,
            "status": o.status,
            "closing_date": _iso(o.closing_date),
            "is_open": _is_open(o, now),
            "contact_emails": sorted({email for email, _ in contacts.get(o.id, [])}),
        }
        for o in ordered
    ]
    return row
