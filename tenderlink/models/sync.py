"""Sync models — per-tenant integration record and the log of each ingestion run."""

from sqlalchemy import JSON, Column, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..database import UTCDateTime, utcnow
from .base import Base

SYNC_TYPES = ("full", "incremental", "upload")


class Integration(Base):
    """Connection metadata for one tenant's opportunity feed."""

    __tablename__ = "integrations"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False, unique=True)
    connection_method = Column(String(20), nullable=False, default="api")  # upload | api | browser_sync
    connection_status = Column(String(20), default="disconnected")  # disconnected | connected | syncing | error
    last_sync_at = Column(UTCDateTime)
    last_sync_error = Column(Text)
    config = Column(JSON, default=dict)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    sync_jobs = relationship("SyncJob", back_populates="integration")


class SyncJob(Base):
    """One ingestion run. Status moves pending → running → completed | failed."""

    __tablename__ = "sync_jobs"
    id = Column(Integer, primary_key=True)
    tenant_id = Column(String(64), nullable=False)
    integration_id = Column(Integer, ForeignKey("integrations.id", ondelete="CASCADE"))
    status = Column(String(20), nullable=False, default="pending")  # pending → running → completed | failed
    sync_type = Column(String(20), nullable=False, default="full")
    stats = Column(JSON, default=dict)
    error = Column(Text)
    started_at = Column(UTCDateTime)
    completed_at = Column(UTCDateTime)
    created_by = Column(String(255), default="system")
    created_at = Column(UTCDateTime, default=utcnow)

    integration = relationship("Integration", back_populates="sync_jobs")

    __table_args__ = (
        Index("ix_sync_job_tenant_created", "tenant_id", "created_at"),
        Index("ix_sync_job_status", "status"),
        Index("ix_sync_job_integration", "integration_id"),
    )
