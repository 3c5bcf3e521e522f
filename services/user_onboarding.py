import io
import uuid

import pandas as pd
from sqlmodel import Session, select

from core.config import settings
from core.logger import get_logger
from core.security import get_password_hash
from models import Assignment, Branch, User, UserRole

logger = get_logger(__name__)

# Each role must report to the tier directly above it
MANAGER_ROLE = {
    UserRole.BHR: UserRole.ZHR,
    UserRole.ZHR: UserRole.VHR,
    UserRole.VHR: UserRole.CHR,
}
ROLE_ORDER = [UserRole.CHR, UserRole.VHR, UserRole.ZHR, UserRole.BHR]

REQUIRED_COLUMNS = ['Name', 'Email', 'Role', 'Reports To Email']

def clean(value):
    """Strips cells and turns blanks / NaN into None."""
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None

def process_roster_excel_upload(file_content: bytes, session: Session):
    """
    Parses a roster workbook and upserts users, branches and BHR assignments.

    Rows are applied top tier first so managers exist before their reports.
    Users are matched on email. Optional branch columns ('Branch Code',
    'Branch Name', 'Branch Location', 'Branch Category') on BHR rows create
    the branch when needed and assign it. Purely additive: nothing is deleted.
    """
    try:
        df = pd.read_excel(io.BytesIO(file_content))
        df.columns = [str(c).strip() for c in df.columns]
        df.rename(columns={'E Code': 'E-Code', 'Manager Email': 'Reports To Email'}, inplace=True)
    except Exception as e:
        return {"success": False, "error": f"Failed to parse Excel: {str(e)}"}

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        return {"success": False, "error": f"Missing required columns: {missing}"}

    rows = []
    errors = []
    for index, row in df.iterrows():
        role_raw = (clean(row.get('Role')) or '').upper()
        email = clean(row.get('Email'))
        name = clean(row.get('Name'))
        if role_raw not in UserRole.__members__ or not email or not name:
            errors.append(f"Row {index + 2}: needs Name, Email and a Role of CHR/VHR/ZHR/BHR")
            continue
        rows.append((UserRole(role_raw), index, row))

    rows.sort(key=lambda item: (ROLE_ORDER.index(item[0]), item[1]))

    count_users = 0
    count_assignments = 0

    for role, index, row in rows:
        email = clean(row.get('Email')).lower()
        manager_email = clean(row.get('Reports To Email'))

        manager = None
        if role != UserRole.CHR:
            if not manager_email:
                errors.append(f"Row {index + 2}: {role.value} {email} has no 'Reports To Email'")
                continue
            manager = session.exec(select(User).where(User.email == manager_email.lower())).first()
            if manager is None or manager.role != MANAGER_ROLE[role]:
                errors.append(f"Row {index + 2}: manager {manager_email} is not a known {MANAGER_ROLE[role].value}")
                continue

        user = session.exec(select(User).where(User.email == email)).first()
        if not user:
            user = User(
                id=str(uuid.uuid4()),
                name=clean(row.get('Name')),
                email=email,
                role=role,
                password_hash=get_password_hash(f"{role.value}{settings.DEFAULT_PASSWORD_SUFFIX}"),
            )
            count_users += 1
        user.name = clean(row.get('Name'))
        user.role = role
        user.reports_to = manager.id if manager else None
        user.e_code = clean(row.get('E-Code')) or user.e_code
        user.location = clean(row.get('Location')) or user.location
        session.add(user)
        # Managers must be visible to the lookups of later rows
        session.flush()

        branch_code = clean(row.get('Branch Code'))
        if role != UserRole.BHR or not branch_code:
            continue

        branch = session.exec(select(Branch).where(Branch.code == branch_code)).first()
        if not branch:
            branch = Branch(
                id=str(uuid.uuid4()),
                code=branch_code,
                name=clean(row.get('Branch Name')) or branch_code,
                location=clean(row.get('Branch Location')) or "Unknown",
                category=clean(row.get('Branch Category')) or "Uncategorised",
            )
            session.add(branch)
            session.flush()

        existing = session.exec(
            select(Assignment).where(
                Assignment.bhr_id == user.id,
                Assignment.branch_id == branch.id
            )
        ).first()
        if not existing:
            session.add(Assignment(id=str(uuid.uuid4()), bhr_id=user.id, branch_id=branch.id))
            count_assignments += 1

    try:
        session.commit()
    except Exception as e:
        session.rollback()
        logger.error(f"Roster upload failed: {e}")
        return {"success": False, "error": f"Database error: {str(e)}"}

    logger.info(f"Roster upload: {len(df)} rows, {count_users} users created, {count_assignments} assignments added")
    return {
        "success": True,
        "message": f"Successfully processed {len(df)} rows. Created {count_users} users "
                   f"and added {count_assignments} branch assignments.",
        "rows_processed": len(df),
        "users_created": count_users,
        "assignments_added": count_assignments,
        "errors": errors,
    }
