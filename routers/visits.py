from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from typing import Iterable, List
import uuid

from core.database import get_session
from core.logger import get_logger
from models import Assignment, Branch, User, UserRole, Visit, VisitStatus
from schemas.schemas import VisitCreate, VisitUpdate
from services.auth_service import get_current_user, require_roles
from services.store import fetch_branches, fetch_users, fetch_visits
from services.visit_filters import VisitFilter, get_visit_filter, resolve_bhr_scope, visible_bhr_ids

logger = get_logger(__name__)

router = APIRouter(prefix="/api/visits", tags=["visits"])

get_bhr = require_roles(UserRole.BHR)

# --- Helpers ---

def visit_rows(visits: Iterable[Visit], users: Iterable[User], branches: Iterable[Branch]) -> List[dict]:
    """Visits joined with BHR and branch details; unknown links become placeholders."""
    users_by_id = {u.id: u for u in users}
    branches_by_id = {b.id: b for b in branches}
    rows = []
    for v in visits:
        bhr = users_by_id.get(v.bhr_id)
        branch = branches_by_id.get(v.branch_id)
        rows.append({
            **v.model_dump(mode="json"),
            "bhrName": bhr.name if bhr else "Unknown BHR",
            "bhrECode": (bhr.e_code if bhr else None) or "N/A",
            "bhrLocation": (bhr.location if bhr else None) or "N/A",
            "branchName": branch.name if branch else "Unknown Branch",
            "branchCode": branch.code if branch else "N/A",
            "branchLocation": branch.location if branch else "N/A",
            "branchCategory": branch.category if branch else "N/A",
        })
    return rows

def ensure_branch_assigned(session: Session, bhr: User, branch_id: str):
    assignment = session.exec(select(Assignment).where(
        Assignment.bhr_id == bhr.id,
        Assignment.branch_id == branch_id
    )).first()
    if not assignment:
        raise HTTPException(status_code=400, detail="You are not assigned to this branch")

# --- BHR endpoints ---

@router.post("/", response_model=dict)
async def create_visit(
    visit_in: VisitCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_bhr)
):
    ensure_branch_assigned(session, current_user, visit_in.branch_id)

    visit = Visit(id=str(uuid.uuid4()), bhr_id=current_user.id, **visit_in.model_dump())
    session.add(visit)
    session.commit()
    session.refresh(visit)
    logger.info(f"Visit {visit.id} saved as {visit.status.value} by {current_user.email}")

    return {"success": True, "message": f"Visit saved as {visit.status.value}.", "data": {"id": visit.id}}

@router.get("/mine", response_model=dict)
async def list_my_visits(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_bhr)
):
    visits = fetch_visits(session, bhr_ids={current_user.id}, status=None)
    if not visits:
        return {"success": True, "data": [], "message": "You have not recorded any visits yet."}
    return {"success": True, "data": visit_rows(visits, [current_user], fetch_branches(session))}

@router.put("/{id}", response_model=dict)
async def update_visit(
    id: str,
    visit_in: VisitUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_bhr)
):
    visit = session.get(Visit, id)
    if not visit or visit.bhr_id != current_user.id:
        raise HTTPException(status_code=404, detail="Visit not found")
    if visit.status == VisitStatus.SUBMITTED:
        raise HTTPException(status_code=400, detail="Submitted visits can no longer be edited")

    ensure_branch_assigned(session, current_user, visit_in.branch_id)

    for key, value in visit_in.model_dump().items():
        setattr(visit, key, value)
    visit.updated_at = datetime.utcnow()
    session.add(visit)
    session.commit()

    return {"success": True, "message": f"Visit updated and {visit.status.value}."}

# --- Oversight endpoints ---

@router.get("/", response_model=dict)
async def list_visits(
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    """Submitted visits the caller may see, narrowed by the filter selections."""
    users = fetch_users(session)
    scope = resolve_bhr_scope(users, current_user, flt)
    visits = fetch_visits(session, bhr_ids=scope, flt=flt)
    if not visits:
        return {"success": True, "data": [], "message": "No visits match current filters."}
    return {"success": True, "data": visit_rows(visits, users, fetch_branches(session))}

@router.get("/{id}", response_model=dict)
async def get_visit(
    id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    visit = session.get(Visit, id)
    if not visit:
        raise HTTPException(status_code=404, detail="Visit not found")

    users = fetch_users(session)
    visible = visible_bhr_ids(users, current_user)
    if visible is not None and visit.bhr_id not in visible:
        raise HTTPException(status_code=404, detail="Visit not found")
    # Drafts stay private to their author
    if visit.status == VisitStatus.DRAFT and visit.bhr_id != current_user.id:
        raise HTTPException(status_code=404, detail="Visit not found")

    return {"success": True, "data": visit_rows([visit], users, fetch_branches(session))[0]}
