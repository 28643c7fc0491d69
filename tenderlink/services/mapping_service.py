"""Department mapping CRUD — tenant-scoped rule maintenance.

Rules created here are human-authored, so they default to approved and
not auto-generated. A tenant cannot hold two rules with the same
(source_pattern, match_type); that raises DuplicateMappingError.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import utcnow
from ..exceptions import InvalidInput, PipelineError
from ..models import DepartmentMapping
from ..models.mappings import MATCH_TYPES

log = logging.getLogger("tenderlink.mappings")

_EDITABLE = (
    "source_pattern",
    "match_type",
    "canonical_department",
    "canonical_agency",
    "confidence",
    "is_approved",
)
_CLEARABLE = {"canonical_agency"}


class DuplicateMappingError(PipelineError):
    """A rule with the same pattern and match type already exists for the tenant."""


def list_mappings(db: Session, tenant_id: str) -> list[DepartmentMapping]:
    return (
        db.query(DepartmentMapping)
        .filter(DepartmentMapping.tenant_id == tenant_id)
        .order_by(DepartmentMapping.canonical_department, DepartmentMapping.source_pattern)
        .all()
    )


def get_mapping(db: Session, tenant_id: str, mapping_id: int) -> DepartmentMapping | None:
    return (
        db.query(DepartmentMapping)
        .filter(DepartmentMapping.tenant_id == tenant_id, DepartmentMapping.id == mapping_id)
        .first()
    )


def _check_match_type(match_type: str) -> None:
    if match_type not in MATCH_TYPES:
        raise InvalidInput(f"Unknown match type: {match_type!r}")


def _commit(db: Session, mapping: DepartmentMapping) -> DepartmentMapping:
    label = f"{mapping.source_pattern!r} ({mapping.match_type})"
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateMappingError(f"Mapping for {label} already exists") from e
    db.refresh(mapping)
    return mapping


def create_mapping(
    db: Session,
    tenant_id: str,
    source_pattern: str,
    canonical_department: str,
    match_type: str = "exact",
    canonical_agency: str | None = None,
    confidence: float = 1.0,
    is_approved: bool = True,
    is_auto_generated: bool = False,
    created_by: str | None = None,
) -> DepartmentMapping:
    _check_match_type(match_type)
    mapping = DepartmentMapping(
        tenant_id=tenant_id,
        source_pattern=source_pattern,
        match_type=match_type,
        canonical_department=canonical_department,
        canonical_agency=canonical_agency,
        confidence=confidence,
        is_approved=is_approved,
        is_auto_generated=is_auto_generated,
        created_by=created_by,
    )
    db.add(mapping)
    mapping = _commit(db, mapping)
    log.info(f"Mapping {mapping.id} created: {source_pattern!r} → {canonical_department!r}")
    return mapping


def update_mapping(db: Session, mapping: DepartmentMapping, **changes) -> DepartmentMapping:
    """Apply the given fields; keys left out stay as they are.

    Only canonical_agency may be cleared with None.
    """
    changes = {f: v for f, v in changes.items() if f in _EDITABLE}
    for field, value in changes.items():
        if value is None and field not in _CLEARABLE:
            raise InvalidInput(f"{field} cannot be null")
    if "match_type" in changes:
        _check_match_type(changes["match_type"])
    for field, value in changes.items():
        setattr(mapping, field, value)
    mapping.updated_at = utcnow()
    return _commit(db, mapping)


def delete_mapping(db: Session, mapping: DepartmentMapping) -> None:
    mapping_id = mapping.id
    db.delete(mapping)
    db.commit()
    log.info(f"Mapping {mapping_id} deleted")
