from datetime import date, datetime
from enum import Enum
from typing import Optional
from sqlmodel import Field, SQLModel, UniqueConstraint

class UserRole(str, Enum):
    # Ascending tiers; CHR is the single top of the hierarchy
    BHR = "BHR"
    ZHR = "ZHR"
    VHR = "VHR"
    CHR = "CHR"

class VisitStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"

class User(SQLModel, table=True):
    __tablename__ = "users"
    id: Optional[str] = Field(primary_key=True)
    name: str
    email: str = Field(unique=True, index=True)
    role: UserRole = Field(index=True)
    reports_to: Optional[str] = Field(default=None, foreign_key="users.id", index=True)
    e_code: Optional[str] = None
    location: Optional[str] = None
    password_hash: str = ""
    is_active: bool = Field(default=True)
    last_login: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

class Branch(SQLModel, table=True):
    __tablename__ = "branches"
    id: Optional[str] = Field(primary_key=True)
    name: str
    location: str = Field(index=True)
    category: str
    code: str = Field(unique=True, index=True)

class Assignment(SQLModel, table=True):
    __tablename__ = "assignments"
    __table_args__ = (UniqueConstraint("bhr_id", "branch_id"),)
    id: Optional[str] = Field(primary_key=True)
    bhr_id: str = Field(foreign_key="users.id", index=True)
    branch_id: str = Field(foreign_key="branches.id", index=True)

class Visit(SQLModel, table=True):
    __tablename__ = "visits"
    id: Optional[str] = Field(primary_key=True)
    bhr_id: str = Field(foreign_key="users.id", index=True)
    branch_id: str = Field(foreign_key="branches.id", index=True)
    visit_date: date = Field(index=True)
    status: VisitStatus = Field(default=VisitStatus.DRAFT, index=True)

    # HR Connect
    hr_connect_conducted: bool = False
    hr_connect_employees_invited: Optional[int] = None
    hr_connect_participants: Optional[int] = None

    # Branch metrics
    manning_percentage: Optional[float] = None
    attrition_percentage: Optional[float] = None
    non_vendor_percentage: Optional[float] = None
    er_percentage: Optional[float] = None
    cwt_cases: Optional[int] = None
    performance_level: Optional[str] = None

    # Employee coverage
    new_employees_total: Optional[int] = None
    new_employees_covered: Optional[int] = None
    star_employees_total: Optional[int] = None
    star_employees_covered: Optional[int] = None

    # Qualitative assessment, "yes" / "no"
    qual_aligned_conduct: Optional[str] = None
    qual_safe_secure: Optional[str] = None
    qual_motivated: Optional[str] = None
    qual_abusive_language: Optional[str] = None
    qual_comfortable_escalate: Optional[str] = None
    qual_inclusive_culture: Optional[str] = None

    additional_remarks: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = Field(default_factory=datetime.utcnow)

class UserRead(SQLModel):
    id: str
    name: str
    email: str
    role: UserRole
    reports_to: Optional[str] = None
    e_code: Optional[str] = None
    location: Optional[str] = None
    is_active: bool = True
