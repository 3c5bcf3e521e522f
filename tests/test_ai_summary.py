import asyncio
import json
from datetime import date

import httpx
import pytest

from models import Branch, User, UserRole, Visit
from services.ai_summary import (
    UNKNOWN_BHR,
    SummaryClient,
    SummaryNotConfigured,
    SummaryServiceError,
    build_report_inputs,
)
from schemas.schemas import VisitReportInput


def reports():
    return [VisitReportInput(branch="North", visitDate="2024-01-05", notes="Fine", bhr="Grace")]


def test_build_report_inputs_uses_placeholders():
    visits = [
        Visit(id="1", bhr_id="b1", branch_id="br1", visit_date=date(2024, 1, 5), additional_remarks="Fine"),
        Visit(id="2", bhr_id="ghost", branch_id="gone", visit_date=date(2024, 1, 6)),
    ]
    branches = [Branch(id="br1", name="North", location="Pune", category="Metro", code="N1")]
    users = [User(id="b1", name="Grace", email="g@x.com", role=UserRole.BHR)]

    rows = build_report_inputs(visits, branches, users)

    assert rows[0] == VisitReportInput(branch="North", visitDate="2024-01-05", notes="Fine", bhr="Grace")
    assert rows[1].bhr == UNKNOWN_BHR
    assert rows[1].branch == "Unknown Branch"
    assert rows[1].notes == ""


def test_summarize_posts_reports_and_reads_summary():
    captured = {}

    def handler(request):
        captured["auth"] = request.headers.get("Authorization")
        captured["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"summary": "Two visits, steady morale."})

    client = SummaryClient(url="http://summary.test", api_key="k-1", transport=httpx.MockTransport(handler))
    summary = asyncio.run(client.summarize(reports()))

    assert summary == "Two visits, steady morale."
    assert captured["auth"] == "Bearer k-1"
    assert captured["payload"] == {
        "reports": [{"branch": "North", "visitDate": "2024-01-05", "notes": "Fine", "bhr": "Grace"}]
    }


@pytest.mark.parametrize("response", [
    httpx.Response(503, text="unavailable"),
    httpx.Response(200, json={"text": "wrong key"}),
    httpx.Response(200, json=["not", "an", "object"]),
    httpx.Response(200, text="not json"),
])
def test_summarize_rejects_bad_responses(response):
    client = SummaryClient(url="http://summary.test", transport=httpx.MockTransport(lambda request: response))

    with pytest.raises(SummaryServiceError):
        asyncio.run(client.summarize(reports()))


def test_summarize_wraps_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    client = SummaryClient(url="http://summary.test", transport=httpx.MockTransport(handler))
    with pytest.raises(SummaryServiceError):
        asyncio.run(client.summarize(reports()))


def test_summarize_requires_url():
    with pytest.raises(SummaryNotConfigured):
        asyncio.run(SummaryClient(url="").summarize(reports()))
