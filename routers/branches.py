from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select
from pydantic import BaseModel
import uuid

from core.database import get_session
from core.logger import get_logger
from models import Assignment, Branch, User, UserRole
from services.auth_service import get_current_user, require_roles
from services.store import fetch_assignments, fetch_branches, fetch_users

logger = get_logger(__name__)

router = APIRouter(prefix="/api/branches", tags=["branches"])

# --- Schemas ---
class BranchCreate(BaseModel):
    name: str
    location: str
    category: str
    code: str

class AssignmentRequest(BaseModel):
    bhrId: str
    branchId: str

get_chr = require_roles(UserRole.CHR)
get_zhr = require_roles(UserRole.ZHR)

def get_own_bhr(session: Session, zhr: User, bhr_id: str) -> User:
    bhr = session.get(User, bhr_id)
    if not bhr or bhr.role != UserRole.BHR or bhr.reports_to != zhr.id:
        raise HTTPException(status_code=403, detail="You can only manage BHRs reporting to you")
    return bhr

@router.get("/", response_model=dict)
async def list_branches(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    branches = fetch_branches(session)
    return {"success": True, "data": [b.model_dump() for b in branches]}

@router.post("/", response_model=dict)
async def create_branch(
    branch_in: BranchCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    existing = session.exec(select(Branch).where(Branch.code == branch_in.code)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Branch code already exists")

    branch = Branch(id=str(uuid.uuid4()), **branch_in.model_dump())
    session.add(branch)
    session.commit()
    session.refresh(branch)

    return {"success": True, "message": "Branch created successfully", "data": branch.model_dump()}

@router.get("/assignments", response_model=dict)
async def get_branch_assignments(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_zhr)
):
    """Every branch with the zone's BHRs assigned to it."""
    bhrs = fetch_users(session, role=UserRole.BHR, reports_to_in=[current_user.id])
    bhr_names = {b.id: b.name for b in bhrs}
    assignments = fetch_assignments(session, bhr_ids=list(bhr_names)) if bhrs else []

    assigned_to = {}
    for a in assignments:
        assigned_to.setdefault(a.branch_id, []).append({"id": a.bhr_id, "name": bhr_names.get(a.bhr_id, "Unknown BHR")})

    data = []
    for branch in fetch_branches(session):
        data.append({
            **branch.model_dump(),
            "assignedBhrs": sorted(assigned_to.get(branch.id, []), key=lambda x: x["name"]),
        })

    return {
        "success": True,
        "data": data,
        "bhrOptions": [{"value": b.id, "label": b.name} for b in bhrs],
    }

@router.post("/assignments", response_model=dict)
async def assign_bhr(
    payload: AssignmentRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_zhr)
):
    get_own_bhr(session, current_user, payload.bhrId)
    branch = session.get(Branch, payload.branchId)
    if not branch:
        raise HTTPException(status_code=404, detail="Branch not found")

    existing = session.exec(select(Assignment).where(
        Assignment.bhr_id == payload.bhrId,
        Assignment.branch_id == payload.branchId
    )).first()
    if existing:
        return {"success": True, "message": "This BHR is already assigned to this branch."}

    session.add(Assignment(id=str(uuid.uuid4()), bhr_id=payload.bhrId, branch_id=payload.branchId))
    session.commit()
    logger.info(f"BHR {payload.bhrId} assigned to branch {branch.code}")

    return {"success": True, "message": f"BHR assigned to {branch.name}."}

@router.delete("/assignments", response_model=dict)
async def unassign_bhr(
    bhrId: str,
    branchId: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_zhr)
):
    get_own_bhr(session, current_user, bhrId)
    assignment = session.exec(select(Assignment).where(
        Assignment.bhr_id == bhrId,
        Assignment.branch_id == branchId
    )).first()
    if not assignment:
        raise HTTPException(status_code=404, detail="Assignment not found")

    session.delete(assignment)
    session.commit()
    logger.info(f"BHR {bhrId} unassigned from branch {branchId}")

    return {"success": True, "message": "BHR unassigned from branch."}
