from fastapi import APIRouter, Depends
from sqlmodel import Session

from core.database import get_session
from core.logger import get_logger
from models import User, UserRole
from schemas.schemas import ChartData
from services.auth_service import require_roles
from services.hierarchy import descendant_ids
from services.store import fetch_assignments, fetch_branches, fetch_users, fetch_visits
from services.visit_analytics import (
    QUALITATIVE_QUESTIONS,
    TREND_METRICS,
    Timeframe,
    aggregate_visits,
    branch_category_distribution,
    metric_trend,
    monthly_counts,
    qualitative_scores,
    top_branches,
    visits_by_location,
    visits_per_group,
)
from services.visit_filters import VisitFilter, get_visit_filter, resolve_bhr_scope, visible_bhr_ids

logger = get_logger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["analytics"])

def dump(rows):
    return [r.model_dump() for r in rows]

@router.get("/bhr", response_model=dict)
async def get_bhr_analytics(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.BHR))
):
    visits = fetch_visits(session, bhr_ids={current_user.id})
    if not visits:
        return {
            "success": True,
            "data": None,
            "message": "No Submitted Visits Found. Once you submit visit reports, your analytics will appear here."
        }

    aggregate = aggregate_visits(visits)
    return {"success": True, "data": aggregate.model_dump()}

@router.get("/zone", response_model=dict)
async def get_zone_analytics(
    trendTimeframe: Timeframe = Timeframe.PAST_MONTH,
    qualitativeTimeframe: Timeframe = Timeframe.PAST_MONTH,
    categoryTimeframe: Timeframe = Timeframe.PAST_MONTH,
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.ZHR, UserRole.VHR, UserRole.CHR))
):
    users = fetch_users(session)
    scope = resolve_bhr_scope(users, current_user, flt)
    visits = fetch_visits(session, bhr_ids=scope, flt=flt)

    data = {
        "metrics": [{"key": key, "label": label} for key, label in TREND_METRICS],
        "trend": metric_trend(visits, trendTimeframe),
        "qualitative": dump(qualitative_scores(visits, qualitativeTimeframe)),
        "categoryDistribution": dump(branch_category_distribution(visits, fetch_branches(session), categoryTimeframe)),
        "questions": [{"key": key, "label": label, "positiveIsYes": positive} for key, label, positive in QUALITATIVE_QUESTIONS],
    }
    if not visits:
        return {"success": True, "data": data, "message": "No submitted visits in your scope yet."}
    return {"success": True, "data": data}

@router.get("/overview", response_model=dict)
async def get_dashboard_overview(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.ZHR, UserRole.VHR, UserRole.CHR))
):
    """Headline counts and charts for the ZHR, VHR and CHR dashboards."""
    users = fetch_users(session)
    branches = fetch_branches(session)
    scope = visible_bhr_ids(users, current_user)
    visits = fetch_visits(session, bhr_ids=scope)

    if current_user.role == UserRole.CHR:
        total_branches = len(branches)
        data = {
            "vhrCount": sum(1 for u in users if u.role == UserRole.VHR),
            "zhrCount": sum(1 for u in users if u.role == UserRole.ZHR),
            "bhrCount": sum(1 for u in users if u.role == UserRole.BHR),
            "totalBranches": total_branches,
            "totalSubmittedVisits": len(visits),
            "avgVisitsPerBranch": round(len(visits) / (total_branches or 1), 1),
            "visitsPerVertical": dump(visits_per_group(visits, users, UserRole.VHR)),
            "visitsByLocation": dump(visits_by_location(visits, branches)),
        }
    elif current_user.role == UserRole.VHR:
        data = {
            "zhrCount": len(descendant_ids(users, current_user.id, UserRole.ZHR)),
            "bhrCount": len(scope),
            "totalSubmittedVisits": len(visits),
            "topBranches": dump(top_branches(visits, branches)),
            "visitsPerZone": dump(visits_per_group(visits, users, UserRole.ZHR)),
        }
    else:
        assigned_branch_ids = {a.branch_id for a in fetch_assignments(session, bhr_ids=scope)} if scope else set()
        data = {
            "bhrCount": len(scope),
            "totalSubmittedVisits": len(visits),
            "assignedBranchesCount": len(assigned_branch_ids),
            "recentVisits": [
                {"id": v.id, "bhrId": v.bhr_id, "branchId": v.branch_id, "visitDate": v.visit_date.isoformat()}
                for v in visits[:5]
            ],
            "visitsPerBhr": dump(visits_per_group(visits, users, UserRole.BHR)),
        }

    return {"success": True, "data": data}

@router.get("/filtered", response_model=dict)
async def get_filtered_analytics(
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.VHR, UserRole.CHR))
):
    """Charts over the visits matching the filter selections."""
    users = fetch_users(session)
    scope = resolve_bhr_scope(users, current_user, flt)
    visits = fetch_visits(session, bhr_ids=scope, flt=flt)

    if flt.bhr_ids:
        overview = visits_per_group(visits, users, UserRole.BHR)
    elif flt.zhr_ids:
        overview = visits_per_group(visits, users, UserRole.ZHR)
    elif flt.vhr_ids:
        overview = visits_per_group(visits, users, UserRole.VHR)
    else:
        overview = [ChartData(name="Overall", value=len(visits))] if visits else []

    data = {
        "totalVisits": len(visits),
        "visitsOverview": dump(overview),
        "monthlyTrend": dump(monthly_counts(visits)),
    }
    if not visits:
        return {"success": True, "data": data, "message": "No visits match current filters."}
    return {"success": True, "data": data}
