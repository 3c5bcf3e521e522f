import io

import httpx
import pandas as pd

from main import app
from services.ai_summary import SummaryClient, get_summary_client


def test_bhr_analytics(client, seeded, login):
    data = client.get("/api/analytics/bhr", headers=login("grace@hrview.com")).json()["data"]

    assert sum(row["value"] for row in data["monthly"]) == 1
    assert data["performance"] == [{"name": "Good", "value": 1}]
    assert data["hr_connect"] == {
        "total_conducted": 1,
        "total_invited": 10,
        "total_participants": 5,
        "participation_rate": 50,
    }


def test_bhr_without_submissions_gets_empty_state(client, seeded, login):
    body = client.get("/api/analytics/bhr", headers=login("hank@hrview.com")).json()

    assert body["data"] is None
    assert body["message"].startswith("No Submitted Visits Found")


def test_zone_analytics(client, seeded, login):
    body = client.get("/api/analytics/zone", params={"trendTimeframe": "past_week"},
                      headers=login("david@hrview.com")).json()
    data = body["data"]

    assert len(data["trend"]) == 7
    manning = [p["manning_percentage"] for p in data["trend"] if "manning_percentage" in p]
    assert manning == [95.0]
    assert len(data["qualitative"]) == 6
    assert data["categoryDistribution"] == [{"name": "Metro Tier A", "value": 1}]


def test_zone_analytics_rejects_unknown_timeframe(client, seeded, login):
    resp = client.get("/api/analytics/zone", params={"trendTimeframe": "forever"},
                      headers=login("david@hrview.com"))
    assert resp.status_code == 422


def test_chr_overview(client, seeded, login):
    data = client.get("/api/analytics/overview", headers=login("alice@hrview.com")).json()["data"]

    assert (data["vhrCount"], data["zhrCount"], data["bhrCount"]) == (2, 3, 4)
    assert data["totalBranches"] == 4
    assert data["totalSubmittedVisits"] == 2
    assert data["avgVisitsPerBranch"] == 0.5
    assert data["visitsPerVertical"] == [{"name": "Bob The Builder", "value": 2}]


def test_vhr_and_zhr_overview(client, seeded, login):
    vhr = client.get("/api/analytics/overview", headers=login("carol@hrview.com")).json()["data"]
    assert vhr["zhrCount"] == 1
    assert vhr["totalSubmittedVisits"] == 0

    zhr = client.get("/api/analytics/overview", headers=login("david@hrview.com")).json()["data"]
    assert zhr["bhrCount"] == 2
    assert zhr["assignedBranchesCount"] == 3
    assert [v["id"] for v in zhr["recentVisits"]] == ["visit-1"]


def test_filtered_analytics(client, seeded, login):
    headers = login("alice@hrview.com")

    by_zone = client.get("/api/analytics/filtered", params={"zhrIds": ["zhr-2"]}, headers=headers).json()["data"]
    assert by_zone["totalVisits"] == 1
    assert by_zone["visitsOverview"] == [{"name": "Eve Harrington", "value": 1}]

    overall = client.get("/api/analytics/filtered", headers=headers).json()["data"]
    assert overall["visitsOverview"] == [{"name": "Overall", "value": 2}]


def test_csv_export(client, seeded, login):
    resp = client.get("/api/export/visits.csv", headers=login("bob@hrview.com"))

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert "hr_view_export_" in resp.headers["content-disposition"]

    frame = pd.read_csv(io.StringIO(resp.text))
    assert list(frame["Visit ID"]) == ["visit-2", "visit-1"]
    assert list(frame["HR Connect Conducted"]) == ["No", "Yes"]
    assert frame.loc[0, "Additional Remarks"] == 'Staff asked about "flexi" shifts.'
    assert frame.columns[-1] == "Additional Remarks"


def test_excel_export_and_role_guard(client, seeded, login):
    resp = client.get("/api/export/visits.xlsx", params={"bhrIds": ["bhr-1"]}, headers=login("alice@hrview.com"))

    assert resp.status_code == 200
    frame = pd.read_excel(io.BytesIO(resp.content))
    assert list(frame["Visit ID"]) == ["visit-1"]
    assert frame.loc[0, "Branch Name"] == "North Star Branch"

    assert client.get("/api/export/visits.csv", headers=login("david@hrview.com")).status_code == 403


def test_visit_summary(client, seeded, login):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = request.read()
        return httpx.Response(200, json={"summary": "Morale is steady."})

    app.dependency_overrides[get_summary_client] = lambda: SummaryClient(
        url="http://summary.test/summarize", transport=httpx.MockTransport(handler))
    try:
        resp = client.post("/api/summary/visits", params={"vhrIds": ["vhr-1"]}, headers=login("alice@hrview.com"))
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 200
    assert resp.json()["data"] == {"summary": "Morale is steady.", "visitCount": 2}
    assert b"North Star Branch" in seen["body"]


def test_visit_summary_errors(client, seeded, login):
    headers = login("alice@hrview.com")

    app.dependency_overrides[get_summary_client] = lambda: SummaryClient(url="")
    try:
        assert client.post("/api/summary/visits", headers=headers).status_code == 503
    finally:
        app.dependency_overrides.clear()

    failing = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    app.dependency_overrides[get_summary_client] = lambda: SummaryClient(url="http://summary.test", transport=failing)
    try:
        assert client.post("/api/summary/visits", headers=headers).status_code == 502
        empty = client.post("/api/summary/visits", params={"branchIds": ["branch-3"]}, headers=headers).json()
        assert empty["data"] is None
    finally:
        app.dependency_overrides.clear()
