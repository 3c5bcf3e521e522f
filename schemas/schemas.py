from datetime import date
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field

from models import UserRole, VisitStatus

# --- Hierarchy Schemas ---
class HierarchyNode(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole
    reports_to: Optional[str] = None
    e_code: Optional[str] = None
    location: Optional[str] = None
    # Only populated for BHR nodes
    assigned_branch_names: Optional[List[str]] = None
    children: List["HierarchyNode"] = Field(default_factory=list)

class FilterOption(BaseModel):
    value: str
    label: str

# --- Dashboard Schemas ---
class ChartData(BaseModel):
    name: str
    value: Union[int, float]

class HrConnectStats(BaseModel):
    total_conducted: int = 0
    total_invited: int = 0
    total_participants: int = 0
    participation_rate: int = 0

class VisitAggregate(BaseModel):
    monthly: List[ChartData]
    performance: List[ChartData]
    hr_connect: HrConnectStats

class QualitativeScore(BaseModel):
    subject: str
    score: float
    full_mark: int = 5

# --- Visit Schemas ---
YesNo = Literal["yes", "no"]

class VisitBase(BaseModel):
    branch_id: str
    visit_date: date
    status: VisitStatus = VisitStatus.DRAFT
    hr_connect_conducted: bool = False
    hr_connect_employees_invited: Optional[int] = Field(default=None, ge=0)
    hr_connect_participants: Optional[int] = Field(default=None, ge=0)
    manning_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    attrition_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    non_vendor_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    er_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    cwt_cases: Optional[int] = Field(default=None, ge=0)
    performance_level: Optional[str] = None
    new_employees_total: Optional[int] = Field(default=None, ge=0)
    new_employees_covered: Optional[int] = Field(default=None, ge=0)
    star_employees_total: Optional[int] = Field(default=None, ge=0)
    star_employees_covered: Optional[int] = Field(default=None, ge=0)
    qual_aligned_conduct: Optional[YesNo] = None
    qual_safe_secure: Optional[YesNo] = None
    qual_motivated: Optional[YesNo] = None
    qual_abusive_language: Optional[YesNo] = None
    qual_comfortable_escalate: Optional[YesNo] = None
    qual_inclusive_culture: Optional[YesNo] = None
    additional_remarks: Optional[str] = None

class VisitCreate(VisitBase):
    pass

class VisitUpdate(VisitBase):
    pass

# --- AI Summary Schemas ---
class VisitReportInput(BaseModel):
    branch: str
    visitDate: str
    notes: str
    bhr: str

class SummaryRequest(BaseModel):
    reports: List[VisitReportInput]
