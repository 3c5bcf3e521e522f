from typing import Dict, Iterable, List, Optional

import httpx

from core.config import settings
from core.logger import get_logger
from models import Branch, User, Visit
from schemas.schemas import SummaryRequest, VisitReportInput

logger = get_logger(__name__)

UNKNOWN_BHR = "Unknown BHR"


class SummaryServiceError(Exception):
    """Raised when the summary endpoint is unreachable or answers badly."""


class SummaryNotConfigured(SummaryServiceError):
    pass


def build_report_inputs(
    visits: Iterable[Visit],
    branches: Iterable[Branch],
    users: Iterable[User],
) -> List[VisitReportInput]:
    branch_names: Dict[str, str] = {b.id: b.name for b in branches}
    user_names: Dict[str, str] = {u.id: u.name for u in users}
    return [
        VisitReportInput(
            branch=branch_names.get(v.branch_id, "Unknown Branch"),
            visitDate=v.visit_date.isoformat(),
            notes=v.additional_remarks or "",
            bhr=user_names.get(v.bhr_id, UNKNOWN_BHR),
        )
        for v in visits
    ]


class SummaryClient:
    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None, timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url if url is not None else settings.AI_SUMMARY_URL
        self.api_key = api_key if api_key is not None else settings.AI_SUMMARY_API_KEY
        self.timeout = timeout if timeout is not None else settings.AI_SUMMARY_TIMEOUT_SECONDS
        self.transport = transport

    async def summarize(self, reports: List[VisitReportInput]) -> str:
        if not self.url:
            raise SummaryNotConfigured("AI summary service is not configured")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        payload = SummaryRequest(reports=reports).model_dump()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Summary request failed: {e}")
            raise SummaryServiceError(f"Summary request failed: {e}") from e

        if resp.status_code >= 400:
            logger.error(f"Summary endpoint returned {resp.status_code}: {resp.text[:200]}")
            raise SummaryServiceError(f"Summary endpoint returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SummaryServiceError("Summary endpoint returned invalid JSON") from e
        summary = data.get("summary") if isinstance(data, dict) else None
        if not isinstance(summary, str):
            raise SummaryServiceError("Summary endpoint response has no summary")
        return summary


def get_summary_client() -> SummaryClient:
    return SummaryClient()
