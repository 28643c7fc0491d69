"""Department mapping rules — raw buyer-entity pattern → canonical department."""

from sqlalchemy import Boolean, Column, Float, Index, Integer, String, UniqueConstraint

from ..database import UTCDateTime, utcnow
from .base import Base

MATCH_TYPES = ("exact", "contains", "regex", "fuzzy")


class DepartmentMapping(Base):
    __tablename__ = "department_mappings"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    source_pattern = Column(String(500), nullable=False)
    match_type = Column(String(20), nullable=False, default="exact")
    canonical_department = Column(String(500), nullable=False)
    canonical_agency = Column(String(500))
    confidence = Column(Float, nullable=False, default=1.0)
    is_approved = Column(Boolean, default=False)
    is_auto_generated = Column(Boolean, default=False)
    created_by = Column(String(255))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "source_pattern", "match_type", name="uq_mapping_tenant_pattern_type"
        ),
        Index("ix_mapping_pattern", "source_pattern"),
    )
