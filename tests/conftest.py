"""
conftest.py — Shared Test Fixtures for tenderlink

Provides an in-memory SQLite database, FastAPI TestClient wired to the
test session, and factory fixtures for opportunities, contacts and
department mappings.

Business Rules:
- All tests run against isolated in-memory DB (no prod data risk)
- Guards and rate limits are off unless a test turns them on
- Each test function gets a fresh set of tables

Called by: all test files via pytest autodiscovery
Depends on: tenderlink.models (Base), tenderlink.database (get_db)
"""

import os

os.environ["TESTING"] = "1"  # Must be set before importing tenderlink modules
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["API_KEY"] = ""
os.environ["SYNC_WEBHOOK_SECRET"] = ""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from tenderlink.models import Base, Contact, DepartmentMapping, Opportunity

# ── In-memory SQLite engine ──────────────────────────────────────────

TEST_DB_URL = "sqlite://"  # in-memory, fresh per session

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@event.listens_for(engine, "connect")
def _enable_fk(dbapi_conn, _):
    """SQLite ignores FKs by default — turn them on."""
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def db_session():
    """Create all tables, yield a session, then tear down."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db_session: Session) -> TestClient:
    """FastAPI TestClient whose get_db yields the test session."""
    from tenderlink.database import get_db
    from tenderlink.main import app

    def _override_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def make_opportunity(db_session: Session):
    """Factory: insert an Opportunity with sensible defaults."""

    def _make(reference="ATM-001", tenant_id="T1", **kw):
        kw.setdefault("title", f"Opportunity {reference}")
        kw.setdefault("status", "Open")
        kw.setdefault("created_at", datetime.now(timezone.utc))
        opp = Opportunity(tenant_id=tenant_id, external_reference=reference, **kw)
        db_session.add(opp)
        db_session.commit()
        db_session.refresh(opp)
        return opp

    return _make


@pytest.fixture()
def make_mapping(db_session: Session):
    """Factory: insert a DepartmentMapping rule."""

    def _make(pattern, department, match_type="exact", confidence=1.0, tenant_id="T1", **kw):
        kw.setdefault("is_approved", True)
        rule = DepartmentMapping(
            tenant_id=tenant_id,
            source_pattern=pattern,
            canonical_department=department,
            match_type=match_type,
            confidence=confidence,
            **kw,
        )
        db_session.add(rule)
        db_session.commit()
        db_session.refresh(rule)
        return rule

    return _make


@pytest.fixture()
def make_contact(db_session: Session):
    """Factory: insert a Contact row directly."""

    def _make(email="jane.doe@finance.gov.au", tenant_id="T1", **kw):
        now = datetime.now(timezone.utc)
        kw.setdefault("opportunity_count", 0)
        kw.setdefault("first_seen_at", now)
        kw.setdefault("last_seen_at", now)
        contact = Contact(tenant_id=tenant_id, email=email, **kw)
        db_session.add(contact)
        db_session.commit()
        db_session.refresh(contact)
        return contact

    return _make
