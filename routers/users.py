from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Query
from sqlmodel import Session, select
from typing import List, Optional
from pydantic import BaseModel
import uuid

from core.database import get_session
from core.logger import get_logger
from core.security import get_password_hash
from models import User, UserRole, UserRead
from services.auth_service import require_roles
from services.hierarchy import (
    build_forest,
    build_hierarchy,
    cascade_options,
    filter_tree,
    filter_user_directory,
    find_top_root,
)
from services.store import fetch_assignments, fetch_branches, fetch_users, fetch_visits
from services.user_onboarding import MANAGER_ROLE, process_roster_excel_upload

logger = get_logger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])

# --- schemas ---

class UserCreate(BaseModel):
    name: str
    email: str
    password: str
    role: UserRole = UserRole.BHR
    reportsTo: Optional[str] = None
    eCode: Optional[str] = None
    location: Optional[str] = None

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    reportsTo: Optional[str] = None
    eCode: Optional[str] = None
    location: Optional[str] = None

# --- dependencies ---

get_chr = require_roles(UserRole.CHR)
get_team_viewer = require_roles(UserRole.ZHR, UserRole.VHR, UserRole.CHR)

# --- helpers ---

def validate_manager(session: Session, role: UserRole, manager_id: Optional[str]) -> Optional[str]:
    if role == UserRole.CHR:
        if manager_id:
            raise HTTPException(status_code=400, detail="CHR cannot report to anyone")
        return None
    if not manager_id:
        raise HTTPException(status_code=400, detail=f"{role.value} must report to a {MANAGER_ROLE[role].value}")
    manager = session.get(User, manager_id)
    if not manager or manager.role != MANAGER_ROLE[role]:
        raise HTTPException(status_code=400, detail=f"reportsTo must be an existing {MANAGER_ROLE[role].value}")
    return manager.id

# --- endpoints ---

@router.get("/hierarchy", response_model=dict)
async def get_team_structure(
    search: str = "",
    rootId: Optional[str] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_team_viewer)
):
    if current_user.role == UserRole.VHR:
        zhrs = fetch_users(session, role=UserRole.ZHR, reports_to_in=[current_user.id])
        zhr_ids = [z.id for z in zhrs]
        bhrs = fetch_users(session, role=UserRole.BHR, reports_to_in=zhr_ids) if zhr_ids else []
        users = zhrs + bhrs
        root_ids = zhr_ids
    elif current_user.role == UserRole.ZHR:
        users = fetch_users(session, role=UserRole.BHR, reports_to_in=[current_user.id])
        root_ids = [u.id for u in users]
    else:
        users = fetch_users(session)
        if rootId:
            root_ids = [rootId]
        else:
            top = find_top_root(users)
            root_ids = [top.id] if top else []

    if not root_ids:
        return {"success": True, "data": [], "message": "No team structure to display."}

    bhr_ids = [u.id for u in users if u.role == UserRole.BHR]
    branches = fetch_branches(session)
    assignments = fetch_assignments(session, bhr_ids=bhr_ids)

    if len(root_ids) == 1:
        root = build_hierarchy(users, root_ids[0], branches, assignments)
        forest = [root] if root else []
    else:
        forest = build_forest(users, root_ids, branches, assignments)
    nodes = filter_tree(forest, search)

    data = [n.model_dump(mode="json") for n in nodes]
    if not data:
        message = "No users match your search criteria." if search.strip() else "No team structure to display."
        return {"success": True, "data": [], "message": message}
    return {"success": True, "data": data}

@router.get("/directory", response_model=dict)
async def get_user_directory(
    vhrIds: List[str] = Query(default=[]),
    zhrIds: List[str] = Query(default=[]),
    bhrIds: List[str] = Query(default=[]),
    search: str = "",
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    users = fetch_users(session)
    by_id = {u.id: u for u in users}
    filtered = filter_user_directory(users, vhrIds, zhrIds, bhrIds, search)

    data = []
    for u in filtered:
        manager = by_id.get(u.reports_to) if u.reports_to else None
        data.append({
            **UserRead.model_validate(u, from_attributes=True).model_dump(mode="json"),
            "reportsToLabel": f"{manager.name} ({manager.role.value})" if manager else "N/A",
        })
    return {"success": True, "data": data}

@router.get("/filters/options", response_model=dict)
async def get_filter_options(
    vhrIds: List[str] = Query(default=[]),
    zhrIds: List[str] = Query(default=[]),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_team_viewer)
):
    users = fetch_users(session)
    options = cascade_options(users, vhrIds, zhrIds)
    return {
        "success": True,
        "data": {key: [o.model_dump() for o in values] for key, values in options.items()}
    }

@router.post("/upload_roster")
async def upload_roster(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    if not file.filename.endswith(('.xlsx', '.xls')):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload Excel.")

    contents = await file.read()
    result = process_roster_excel_upload(contents, session)

    if not result["success"]:
        raise HTTPException(status_code=400, detail=result["error"])

    return result

@router.get("/", response_model=dict)
async def list_users(
    role: Optional[UserRole] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    users = fetch_users(session, role=role)
    data = [UserRead.model_validate(u, from_attributes=True).model_dump(mode="json") for u in users]
    return {"success": True, "data": data}

@router.post("/", response_model=dict)
async def create_user(
    user_in: UserCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    email = user_in.email.strip().lower()
    existing = session.exec(select(User).where(User.email == email)).first()
    if existing:
        raise HTTPException(status_code=400, detail="Email already exists")

    if user_in.role == UserRole.CHR and find_top_root(fetch_users(session, role=UserRole.CHR)):
        raise HTTPException(status_code=400, detail="A CHR account already exists. Only one CHR is allowed.")

    manager_id = validate_manager(session, user_in.role, user_in.reportsTo)

    new_user = User(
        id=str(uuid.uuid4()),
        name=user_in.name,
        email=email,
        role=user_in.role,
        reports_to=manager_id,
        e_code=user_in.eCode,
        location=user_in.location,
        password_hash=get_password_hash(user_in.password),
        is_active=True
    )

    session.add(new_user)
    session.commit()
    session.refresh(new_user)
    logger.info(f"User created: {new_user.email}")

    return {"success": True, "message": "User created successfully", "data": {"id": new_user.id}}

@router.put("/{id}", response_model=dict)
async def update_user(
    id: str,
    user_in: UserUpdate,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    user = session.get(User, id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user_in.reportsTo is not None:
        user.reports_to = validate_manager(session, user.role, user_in.reportsTo)
    if user_in.email:
        email = user_in.email.strip().lower()
        clash = session.exec(select(User).where(User.email == email, User.id != id)).first()
        if clash:
            raise HTTPException(status_code=400, detail="Email already exists")
        user.email = email
    if user_in.name:
        user.name = user_in.name
    if user_in.eCode:
        user.e_code = user_in.eCode
    if user_in.location:
        user.location = user_in.location

    session.add(user)
    session.commit()

    return {"success": True, "message": "User updated successfully"}

@router.delete("/{id}", response_model=dict)
async def delete_user(
    id: str,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_chr)
):
    user = session.get(User, id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="Cannot delete yourself")

    if fetch_users(session, reports_to_in=[user.id]):
        raise HTTPException(status_code=400, detail="Reassign this user's reports before deleting")

    # visits keep their author; drafts count too
    if fetch_visits(session, bhr_ids={user.id}, status=None):
        raise HTTPException(status_code=400, detail="This user has recorded visits and cannot be deleted")

    if fetch_assignments(session, bhr_ids=[user.id]):
        raise HTTPException(status_code=400, detail="Unassign this user's branches before deleting")

    session.delete(user)
    session.commit()

    return {"success": True, "message": "User deleted successfully"}
