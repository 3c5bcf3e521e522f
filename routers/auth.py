from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from typing import Any, Optional

from core.database import get_session
from models import User
from services.auth_service import get_current_user
from core.config import settings
from core.logger import get_logger
from core.security import verify_password, create_access_token, get_password_hash
from pydantic import BaseModel

logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

class LoginRequest(BaseModel):
    email: str
    password: str

class LoginResponse(BaseModel):
    success: bool
    token: str
    user: Any

class UserProfile(BaseModel):
    id: str
    name: str
    email: str
    role: str
    reportsTo: Optional[str] = None
    eCode: Optional[str] = None
    location: Optional[str] = None

class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str

def to_profile(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role.value if hasattr(user.role, "value") else user.role,
        "reportsTo": user.reports_to,
        "eCode": user.e_code,
        "location": user.location,
    }

@router.post("/login", response_model=LoginResponse)
async def login(
    login_data: LoginRequest,
    session: Session = Depends(get_session)
):
    user = session.exec(select(User).where(User.email == login_data.email.strip().lower())).first()

    if not user or not user.password_hash or not verify_password(login_data.password, user.password_hash):
        logger.warning(f"Failed login attempt for: {login_data.email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    user.last_login = datetime.utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)

    access_token = create_access_token(
        data={"sub": user.id, "role": to_profile(user)["role"]},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    logger.info(f"User logged in: {user.email}")

    return {"success": True, "token": access_token, "user": to_profile(user)}

@router.get("/profile", response_model=UserProfile)
async def get_profile(current_user: User = Depends(get_current_user)):
    return to_profile(current_user)

@router.post("/change-password")
async def change_password(
    payload: ChangePasswordRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user)
):
    if not verify_password(payload.currentPassword, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Incorrect current password")

    current_user.password_hash = get_password_hash(payload.newPassword)
    session.add(current_user)
    session.commit()

    return {"success": True, "message": "Password changed successfully"}
