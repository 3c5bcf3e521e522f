from datetime import datetime
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlmodel import Session
import csv
import io

import pandas as pd

from core.database import get_session
from core.logger import get_logger
from models import User, UserRole
from services.auth_service import require_roles
from services.store import fetch_branches, fetch_users, fetch_visits
from services.visit_filters import VisitFilter, get_visit_filter, resolve_bhr_scope

logger = get_logger(__name__)

router = APIRouter(prefix="/api/export", tags=["export"])

get_exporter = require_roles(UserRole.CHR, UserRole.VHR)

# Column header -> (source, field). Source "visit" reads the Visit row,
# the others read the joined BHR / branch record.
EXPORT_COLUMNS = [
    ("Visit ID", "visit", "id"),
    ("BHR Name", "bhr", "name"),
    ("BHR E-Code", "bhr", "e_code"),
    ("BHR Location", "bhr", "location"),
    ("Branch Name", "branch", "name"),
    ("Branch Code", "branch", "code"),
    ("Branch Location", "branch", "location"),
    ("Branch Category", "branch", "category"),
    ("Visit Date", "visit", "visit_date"),
    ("Status", "visit", "status"),
    ("HR Connect Conducted", "visit", "hr_connect_conducted"),
    ("HR Connect Invited", "visit", "hr_connect_employees_invited"),
    ("HR Connect Participants", "visit", "hr_connect_participants"),
    ("Manning %", "visit", "manning_percentage"),
    ("Attrition %", "visit", "attrition_percentage"),
    ("Non-Vendor %", "visit", "non_vendor_percentage"),
    ("ER %", "visit", "er_percentage"),
    ("CWT Cases", "visit", "cwt_cases"),
    ("Performance Level", "visit", "performance_level"),
    ("New Employees Total", "visit", "new_employees_total"),
    ("New Employees Covered", "visit", "new_employees_covered"),
    ("STAR Employees Total", "visit", "star_employees_total"),
    ("STAR Employees Covered", "visit", "star_employees_covered"),
    ("Qual: Aligned Conduct", "visit", "qual_aligned_conduct"),
    ("Qual: Safe & Secure", "visit", "qual_safe_secure"),
    ("Qual: Motivated", "visit", "qual_motivated"),
    ("Qual: Abusive Language", "visit", "qual_abusive_language"),
    ("Qual: Comfortable Escalation", "visit", "qual_comfortable_escalate"),
    ("Qual: Inclusive Culture", "visit", "qual_inclusive_culture"),
    ("Additional Remarks", "visit", "additional_remarks"),
]

def format_cell(field: str, value):
    if field == "additional_remarks":
        return value or ""
    if field == "hr_connect_conducted":
        return "Yes" if value else "No"
    if value is None or value == "":
        return "N/A"
    if field == "visit_date":
        return value.strftime("%Y-%m-%d")
    if field == "status":
        return value.value if hasattr(value, "value") else value
    return value

def export_rows(visits, users, branches):
    """One list of cells per visit, in EXPORT_COLUMNS order."""
    users_by_id = {u.id: u for u in users}
    branches_by_id = {b.id: b for b in branches}
    for v in visits:
        sources = {
            "visit": v,
            "bhr": users_by_id.get(v.bhr_id),
            "branch": branches_by_id.get(v.branch_id),
        }
        yield [
            format_cell(field, getattr(sources[source], field, None))
            for _, source, field in EXPORT_COLUMNS
        ]

def load_export(session: Session, current_user: User, flt: VisitFilter):
    users = fetch_users(session)
    scope = resolve_bhr_scope(users, current_user, flt)
    visits = fetch_visits(session, bhr_ids=scope, flt=flt)
    logger.info(f"Exporting {len(visits)} visits for {current_user.email}")
    return visits, users, fetch_branches(session)

@router.get("/visits.csv")
async def export_visits_csv(
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_exporter)
):
    visits, users, branches = load_export(session, current_user, flt)

    def iter_csv(rows):
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow([header for header, _, _ in EXPORT_COLUMNS])
        yield output.getvalue()
        output.seek(0)
        output.truncate(0)

        for row in rows:
            writer.writerow(row)
            yield output.getvalue()
            output.seek(0)
            output.truncate(0)

    filename_date = datetime.now().strftime('%Y%m%d_%H%M%S')
    response = StreamingResponse(iter_csv(export_rows(visits, users, branches)), media_type="text/csv")
    response.headers["Content-Disposition"] = f"attachment; filename=hr_view_export_{filename_date}.csv"
    return response

@router.get("/visits.xlsx")
async def export_visits_excel(
    flt: VisitFilter = Depends(get_visit_filter),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_exporter)
):
    visits, users, branches = load_export(session, current_user, flt)

    df = pd.DataFrame(
        list(export_rows(visits, users, branches)),
        columns=[header for header, _, _ in EXPORT_COLUMNS]
    )
    buf = io.BytesIO()
    df.to_excel(buf, index=False, sheet_name="Visits", engine="openpyxl")
    buf.seek(0)

    filename_date = datetime.now().strftime('%Y%m%d_%H%M%S')
    response = StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    response.headers["Content-Disposition"] = f"attachment; filename=hr_view_export_{filename_date}.xlsx"
    return response
