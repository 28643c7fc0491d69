"""Contact model — one unique email per tenant."""

from sqlalchemy import JSON, Column, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base


class Contact(Base):
    __tablename__ = "contacts"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False, index=True)
    email = Column(String(255), nullable=False)  # always lower-case
    name = Column(String(255))
    phone = Column(String(100))
    linked_departments = Column(JSON, default=list)
    opportunity_count = Column(Integer, nullable=False, default=0)
    first_seen_at = Column(UTCDateTime, default=utcnow)
    last_seen_at = Column(UTCDateTime, default=utcnow)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    opportunity_links = relationship(
        "OpportunityContact", back_populates="contact", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_contact_tenant_email"),
        Index("ix_contact_email", "email"),
        Index("ix_contact_tenant_last_seen", "tenant_id", "last_seen_at"),
    )
