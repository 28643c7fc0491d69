"""Opportunity models — procurement listings and contact provenance links."""

from sqlalchemy import (
    JSON,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class Opportunity(Base):
    """One procurement listing, keyed by (tenant_id, external_reference)."""

    __tablename__ = "opportunities"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    external_reference = Column(String(255), nullable=False)
    source_url = Column(String(1000))

    title = Column(String(1000), nullable=False)
    buyer_entity_raw = Column(String(500))  # verbatim from the source portal
    category = Column(String(255))
    description = Column(Text)
    publish_date = Column(UTCDateTime)
    closing_date = Column(UTCDateTime)
    status = Column(String(50), default="Open")
    contact_text_raw = Column(Text)
    attachments = Column(JSON, default=list)  # [{name, type, size?, url?}]

    # Extended listing fields
    rfq_id = Column(String(255))
    rfq_type = Column(String(255))
    engagement_type = Column(String(255))
    opportunity_type = Column(String(255))
    location = Column(String(500))
    working_arrangement = Column(String(255))
    deadline_for_questions = Column(String(255))
    estimated_start_date = Column(String(255))
    initial_contract_duration = Column(String(255))
    requirements = Column(Text)
    key_duties = Column(Text)
    criteria = Column(JSON, default=list)
    experience_level = Column(String(255))
    max_hours = Column(String(100))
    security_clearance = Column(String(255))

    source_hash = Column(String(64))
    last_synced_at = Column(UTCDateTime, default=utcnow)
    sync_job_id = Column(Integer, ForeignKey("sync_jobs.id", ondelete="SET NULL"))

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    sync_job = relationship("SyncJob", foreign_keys=[sync_job_id])
    contact_links = relationship(
        "OpportunityContact", back_populates="opportunity", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "external_reference", name="uq_opp_tenant_reference"),
        Index("ix_opp_tenant_closing", "tenant_id", "closing_date"),
        Index("ix_opp_tenant_status", "tenant_id", "status"),
        Index("ix_opp_tenant_buyer", "tenant_id", "buyer_entity_raw"),
        Index("ix_opp_sync_job", "sync_job_id"),
    )


class OpportunityContact(Base):
    """Provenance: a contact was found in an opportunity, in a given field."""

    __tablename__ = "opportunity_contacts"
    id = Column(Integer, primary_key=True)
    opportunity_id = Column(
        Integer, ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False
    )
    contact_id = Column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    source_type = Column(String(30), nullable=False)  # structured_field | page_text | attachment
    source_detail = Column(String(255))
    extraction_confidence = Column(Float, default=1.0)
    role_label = Column(String(100))
    last_seen_at = Column(UTCDateTime, default=utcnow)
    created_at = Column(UTCDateTime, default=utcnow)

    opportunity = relationship("Opportunity", back_populates="contact_links")
    contact = relationship("Contact", back_populates="opportunity_links")

    __table_args__ = (
        UniqueConstraint(
            "opportunity_id", "contact_id", "source_type", name="uq_oc_opp_contact_source"
        ),
        Index("ix_oc_opportunity", "opportunity_id"),
        Index("ix_oc_contact", "contact_id"),
    )
