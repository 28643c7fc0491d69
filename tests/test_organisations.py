"""
test_organisations.py — Tests for organisation aggregates in services/query_service.py
and routers/organisations.py

Called by: pytest
Depends on: tenderlink/services/query_service.py, conftest.py
"""

from datetime import datetime, timedelta, timezone

import pytest

from tenderlink.exceptions import InvalidInput
from tenderlink.services.query_service import get_organisation, list_organisations
from tenderlink.services.sync_service import run_sync

BASE = "/api/tenants/T1/organisations"


def _iso(days: int) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture()
def seeded(db_session):
    run_sync(
        db_session,
        "T1",
        [
            {
                "external_reference": "RFQ-1",
                "title": "Cloud Hosting",
                "buyer_entity_raw": "Dept of Foo",
                "category": "Cloud",
                "location": "Canberra",
                "working_arrangement": "Hybrid",
                "publish_date": "2025-01-10",
                "closing_date": _iso(5),
                "status": "Open",
                "contact_text_raw": "Jane Smith <jane@foo.gov.au>",
            },
            {
                "external_reference": "RFQ-2",
                "title": "Data Platform",
                "buyer_entity_raw": "  Dept of Foo ",
                "category": "Data",
                "location": "Canberra",
                "working_arrangement": "Remote",
                "publish_date": "2025-03-02",
                "closing_date": _iso(-10),
                "status": "Closed",
                "description": "Questions to jane@foo.gov.au or bob@foo.gov.au",
            },
            {
                "external_reference": "RFQ-3",
                "title": "Service Desk",
                "buyer_entity_raw": "Bureau of Bar",
                "category": "Support",
                "publish_date": "2025-02-01",
                "status": "Open",
            },
            {"external_reference": "RFQ-4", "title": "Tiny", "buyer_entity_raw": "AB", "status": "Open"},
            {"external_reference": "RFQ-5", "title": "No buyer", "status": "Open"},
        ],
    )
    run_sync(
        db_session,
        "T2",
        [{"external_reference": "RFQ-9", "title": "Elsewhere", "buyer_entity_raw": "Dept of Foo", "status": "Open"}],
    )


class TestListOrganisations:
    def test_groups_by_trimmed_buyer_entity(self, db_session, seeded):
        rows = list_organisations(db_session, "T1")
        assert [r["name"] for r in rows] == ["Dept of Foo", "Bureau of Bar"]

    def test_aggregates(self, db_session, seeded):
        foo = list_organisations(db_session, "T1")[0]
        assert foo["opportunity_count"] == 2
        assert foo["open_opportunity_count"] == 1
        assert foo["first_opportunity_date"] == "2025-01-10"
        assert foo["last_opportunity_date"] == "2025-03-02"
        assert foo["common_categories"] == ["Cloud", "Data"]
        assert foo["common_locations"] == ["Canberra"]
        assert foo["common_working_arrangements"] == ["Hybrid", "Remote"]
        assert foo["contact_emails"] == ["bob@foo.gov.au", "jane@foo.gov.au"]
        assert foo["contact_names"] == ["Jane Smith"]

    def test_future_closing_counts_as_open(self, db_session):
        run_sync(
            db_session,
            "T1",
            [{"external_reference": "X-1", "title": "t", "buyer_entity_raw": "Dept of Baz",
              "status": "Under Evaluation", "closing_date": _iso(2)}],
        )
        assert list_organisations(db_session, "T1")[0]["open_opportunity_count"] == 1

    def test_short_and_missing_names_skipped(self, db_session, seeded):
        names = [r["name"] for r in list_organisations(db_session, "T1")]
        assert "AB" not in names
        assert len(names) == 2

    def test_search_and_sort(self, db_session, seeded):
        assert [r["name"] for r in list_organisations(db_session, "T1", search="bureau")] == ["Bureau of Bar"]
        by_name = list_organisations(db_session, "T1", sort="name", descending=False)
        assert [r["name"] for r in by_name] == ["Bureau of Bar", "Dept of Foo"]
        by_date = list_organisations(db_session, "T1", sort="last_opportunity_date")
        assert [r["name"] for r in by_date] == ["Dept of Foo", "Bureau of Bar"]

    def test_unknown_sort_rejected(self, db_session):
        with pytest.raises(InvalidInput):
            list_organisations(db_session, "T1", sort="ai_summary")

    def test_department_resolved_at_read_time(self, db_session, seeded, make_mapping):
        make_mapping("Bar", "Bar Office", "contains", 0.8)
        rows = {r["name"]: r for r in list_organisations(db_session, "T1")}
        assert rows["Bureau of Bar"]["canonical_department"] == "Bar Office"
        assert rows["Dept of Foo"]["canonical_department"] is None


class TestGetOrganisation:
    def test_detail_lists_opportunities(self, db_session, seeded):
        org = get_organisation(db_session, "T1", "Dept of Foo")
        assert org["opportunity_count"] == 2
        assert [o["external_reference"] for o in org["opportunities"]] == ["RFQ-1", "RFQ-2"]
        assert org["opportunities"][0]["is_open"] is True
        assert org["opportunities"][1]["contact_emails"] == ["bob@foo.gov.au", "jane@foo.gov.au"]

    def test_unknown_is_none(self, db_session, seeded):
        assert get_organisation(db_session, "T1", "Nobody") is None


class TestOrganisationRoutes:
    def test_list(self, client, seeded):
        data = client.get(BASE).json()
        assert data["total"] == 2
        assert data["organisations"][0]["name"] == "Dept of Foo"

    def test_list_tenant_scoped(self, client, seeded):
        data = client.get("/api/tenants/T2/organisations").json()
        assert data["total"] == 1
        assert data["organisations"][0]["opportunity_count"] == 1

    def test_sort_order_params(self, client, seeded):
        data = client.get(BASE, params={"sort": "name", "order": "asc"}).json()
        assert [o["name"] for o in data["organisations"]] == ["Bureau of Bar", "Dept of Foo"]

    def test_invalid_sort_422(self, client):
        assert client.get(BASE, params={"sort": "priority"}).status_code == 422

    def test_detail_and_404(self, client, seeded):
        resp = client.get(f"{BASE}/Dept of Foo")
        assert resp.status_code == 200
        assert len(resp.json()["opportunities"]) == 2
        assert client.get(f"{BASE}/Nobody").status_code == 404
