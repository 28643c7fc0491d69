"""
test_routers_sync.py — Tests for routers/sync.py

Covers the crawler webhook (status codes, camelCase stats, secret guard),
manual CSV upload, and the sync job history endpoint.

Called by: pytest
Depends on: tenderlink/routers/sync.py, conftest.py
"""

from unittest.mock import patch

from tenderlink.models import Contact, Opportunity, SyncJob

WEBHOOK = "/api/sync/webhook"


def _payload(**kw):
    body = {
        "tenantId": "T1",
        "scrapedAt": "2025-03-01T00:00:00Z",
        "totalCount": 1,
        "opportunities": [
            {
                "buyict_reference": "RFQ-1",
                "title": "Cloud Hosting",
                "buyer_entity_raw": "Dept of Foo",
                "contact_text_raw": "Contact jane@example.org for details",
            }
        ],
    }
    body.update(kw)
    return body


class TestWebhook:
    def test_ingests_batch(self, client, db_session):
        resp = client.post(WEBHOOK, json=_payload())
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["stats"] == {
            "opportunitiesAdded": 1,
            "opportunitiesUpdated": 0,
            "contactsFound": 1,
            "emailsExtracted": 1,
            "errors": 0,
        }
        assert data["syncJobId"] == db_session.query(SyncJob).one().id
        assert db_session.query(Contact).one().email == "jane@example.org"

    def test_space_id_alias(self, client, db_session):
        body = _payload()
        body["spaceId"] = body.pop("tenantId")
        resp = client.post(WEBHOOK, json=body)
        assert resp.status_code == 200
        assert db_session.query(Opportunity).one().tenant_id == "T1"

    def test_missing_tenant(self, client):
        body = _payload()
        body.pop("tenantId")
        resp = client.post(WEBHOOK, json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "tenantId is required"

    def test_empty_batch(self, client, db_session):
        resp = client.post(WEBHOOK, json=_payload(opportunities=[]))
        assert resp.status_code == 400
        assert db_session.query(SyncJob).count() == 0

    def test_missing_batch(self, client):
        body = _payload()
        body.pop("opportunities")
        assert client.post(WEBHOOK, json=body).status_code == 400

    def test_all_records_failed_is_still_200(self, client):
        resp = client.post(WEBHOOK, json=_payload(opportunities=[{"title": "no ref"}]))
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is False
        assert data["status"] == "failed"
        assert data["stats"]["errors"] == 1
        assert data["errorMessages"][0].startswith("#1 ")

    def test_unknown_sync_type_rejected(self, client):
        resp = client.post(WEBHOOK, json=_payload(syncType="weekly"))
        assert resp.status_code == 422
        assert resp.json()["error"] == "Validation error"

    def test_secret_required_when_configured(self, client):
        with patch("tenderlink.dependencies.settings.sync_webhook_secret", "s3cret"):
            assert client.post(WEBHOOK, json=_payload()).status_code == 401
            resp = client.post(WEBHOOK, json=_payload(), headers={"X-Webhook-Secret": "wrong"})
            assert resp.status_code == 401
            resp = client.post(WEBHOOK, json=_payload(), headers={"X-Webhook-Secret": "s3cret"})
            assert resp.status_code == 200

    def test_request_id_echoed(self, client):
        resp = client.post(WEBHOOK, json=_payload(), headers={"X-Request-ID": "req-42"})
        assert resp.headers["X-Request-ID"] == "req-42"


class TestUpload:
    CSV = (
        "ATM ID,Title,Agency,Closing Date,Contact Officer\n"
        'ATM-7,Service Desk,Treasury,14/03/2025,"Bob Jones bob@treasury.gov.au"\n'
    ).encode()

    def test_csv_upload(self, client, db_session):
        resp = client.post(
            "/api/sync/upload",
            data={"tenant_id": "T1"},
            files={"file": ("export.csv", self.CSV, "text/csv")},
        )
        assert resp.status_code == 200
        assert resp.json()["stats"]["opportunitiesAdded"] == 1
        opp = db_session.query(Opportunity).one()
        assert opp.external_reference == "ATM-7"
        assert opp.buyer_entity_raw == "Treasury"
        assert db_session.query(SyncJob).one().sync_type == "upload"
        contact = db_session.query(Contact).one()
        assert contact.name == "Bob Jones"

    def test_unsupported_file(self, client):
        resp = client.post(
            "/api/sync/upload",
            data={"tenant_id": "T1"},
            files={"file": ("export.pdf", b"%PDF-1.4", "application/pdf")},
        )
        assert resp.status_code == 400


class TestSyncJobs:
    def test_lists_recent_jobs(self, client):
        client.post(WEBHOOK, json=_payload())
        client.post(WEBHOOK, json=_payload())

        resp = client.get("/api/tenants/T1/sync-jobs")
        assert resp.status_code == 200
        data = resp.json()
        assert len(data["jobs"]) == 2
        assert data["jobs"][0]["id"] > data["jobs"][1]["id"]
        assert data["jobs"][0]["status"] == "completed"
        assert data["is_syncing"] is False

    def test_running_job_sets_is_syncing(self, client, db_session):
        db_session.add(SyncJob(tenant_id="T1", status="running", sync_type="full", stats={}))
        db_session.commit()
        assert client.get("/api/tenants/T1/sync-jobs").json()["is_syncing"] is True

    def test_other_tenant_empty(self, client):
        client.post(WEBHOOK, json=_payload())
        assert client.get("/api/tenants/T2/sync-jobs").json()["jobs"] == []


class TestWebhookDatastoreDown:
    def test_connection_failure_returns_500(self, db_session):
        from fastapi.testclient import TestClient
        from sqlalchemy.exc import OperationalError

        from tenderlink.database import get_db
        from tenderlink.main import app

        def _override_db():
            yield db_session

        app.dependency_overrides[get_db] = _override_db
        down = OperationalError("SELECT 1", {}, Exception("connection refused"))
        try:
            with patch("tenderlink.services.sync_service._ensure_integration", side_effect=down):
                with TestClient(app, raise_server_exceptions=False) as c:
                    resp = c.post(WEBHOOK, json=_payload())
        finally:
            app.dependency_overrides.clear()

        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] == "Internal server error"
        assert body["status_code"] == 500
        assert db_session.query(SyncJob).count() == 0
        assert db_session.query(Opportunity).count() == 0
