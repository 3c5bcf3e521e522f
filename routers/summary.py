from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from core.database import get_session
from core.logger import get_logger
from models import User, UserRole
from services.ai_summary import (
    SummaryClient,
    SummaryNotConfigured,
    SummaryServiceError,
    build_report_inputs,
    get_summary_client,
)
from services.auth_service import require_roles
from services.store import fetch_branches, fetch_users, fetch_visits
from services.visit_filters import VisitFilter, get_visit_filter, resolve_bhr_scope

logger = get_logger(__name__)

router = APIRouter(prefix="/api/summary", tags=["summary"])

@router.post("/visits", response_model=dict)
async def summarize_visits(
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    client: SummaryClient = Depends(get_summary_client),
    current_user: User = Depends(require_roles(UserRole.CHR))
):
    """Narrative summary of the submitted visits matching the filters."""
    users = fetch_users(session)
    scope = resolve_bhr_scope(users, current_user, flt)
    visits = fetch_visits(session, bhr_ids=scope, flt=flt)
    if not visits:
        return {"success": True, "data": None, "message": "No submitted visits to summarize for the current filters."}

    reports = build_report_inputs(visits, fetch_branches(session), users)
    try:
        summary = await client.summarize(reports)
    except SummaryNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except SummaryServiceError as e:
        raise HTTPException(status_code=502, detail=f"Failed to generate summary: {e}")

    logger.info(f"Summary generated over {len(reports)} visits")
    return {"success": True, "data": {"summary": summary, "visitCount": len(reports)}}
