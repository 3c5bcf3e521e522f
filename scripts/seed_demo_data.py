import sys
import os
from datetime import date, timedelta
from sqlmodel import Session

# Add Backend directory to sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.database import create_db_and_tables, engine
from core.security import get_password_hash
from models import Assignment, Branch, User, UserRole, Visit, VisitStatus

USERS = [
    ("chr-1", "Alice Wonderland", "alice@hrview.com", UserRole.CHR, None),
    ("vhr-1", "Bob The Builder", "bob@hrview.com", UserRole.VHR, "chr-1"),
    ("vhr-2", "Carol Danvers", "carol@hrview.com", UserRole.VHR, "chr-1"),
    ("zhr-1", "David Copperfield", "david@hrview.com", UserRole.ZHR, "vhr-1"),
    ("zhr-2", "Eve Harrington", "eve@hrview.com", UserRole.ZHR, "vhr-1"),
    ("zhr-3", "Frank Castle", "frank@hrview.com", UserRole.ZHR, "vhr-2"),
    ("bhr-1", "Grace Hopper", "grace@hrview.com", UserRole.BHR, "zhr-1"),
    ("bhr-2", "Hank Pym", "hank@hrview.com", UserRole.BHR, "zhr-1"),
    ("bhr-3", "Ivy Pepper", "ivy@hrview.com", UserRole.BHR, "zhr-2"),
    ("bhr-4", "Jack Sparrow", "jack@hrview.com", UserRole.BHR, "zhr-3"),
]

BRANCHES = [
    ("branch-1", "North Star Branch", "New York", "Metro Tier A", "NY001"),
    ("branch-2", "Southern Cross Branch", "Los Angeles", "Metro Tier A", "LA001"),
    ("branch-3", "East Gate Branch", "Chicago", "Metro Tier B", "CH001"),
    ("branch-4", "West End Branch", "Houston", "Urban Tier A", "HO001"),
    ("branch-5", "Central Hub", "Phoenix", "Urban Tier B", "PH001"),
    ("branch-6", "Metro Point", "Philadelphia", "Metro Tier B", "PL001"),
]

ASSIGNMENTS = [
    ("assign-1", "bhr-1", "branch-1"),
    ("assign-2", "bhr-1", "branch-2"),
    ("assign-3", "bhr-2", "branch-3"),
    ("assign-4", "bhr-3", "branch-4"),
    ("assign-5", "bhr-3", "branch-5"),
    ("assign-6", "bhr-4", "branch-6"),
]

# (id, bhr, branch, days ago, status, extra fields)
VISITS = [
    ("visit-1", "bhr-1", "branch-1", 5, VisitStatus.SUBMITTED, dict(
        hr_connect_conducted=True, hr_connect_employees_invited=20, hr_connect_participants=15,
        manning_percentage=95, attrition_percentage=5, performance_level="Good",
        additional_remarks="Productive visit. Discussed Q3 targets and employee morale.")),
    ("visit-2", "bhr-1", "branch-2", 12, VisitStatus.SUBMITTED, dict(
        manning_percentage=98, attrition_percentage=3, performance_level="Excellent",
        additional_remarks="Routine check-in. Staff engagement seems high.")),
    ("visit-3", "bhr-2", "branch-3", 3, VisitStatus.SUBMITTED, dict(
        hr_connect_conducted=True, hr_connect_employees_invited=12, hr_connect_participants=6,
        manning_percentage=90, cwt_cases=1, performance_level="Average",
        qual_aligned_conduct="yes", qual_safe_secure="yes", qual_abusive_language="no",
        additional_remarks="Addressed a staff grievance regarding shift timings.")),
    ("visit-4", "bhr-3", "branch-4", 20, VisitStatus.SUBMITTED, dict(
        manning_percentage=85, attrition_percentage=8, cwt_cases=2, performance_level="Needs Improvement",
        qual_motivated="no", qual_inclusive_culture="yes",
        additional_remarks="Low morale observed. Action plan drafted.")),
    ("visit-5", "bhr-4", "branch-6", 1, VisitStatus.DRAFT, dict(
        additional_remarks="Follow-up on training pending.")),
]

def seed_demo_data(password: str = "password123"):
    create_db_and_tables()
    with Session(engine) as session:
        if session.get(User, "chr-1"):
            print("Demo data already present, skipping.")
            return

        password_hash = get_password_hash(password)
        for user_id, name, email, role, reports_to in USERS:
            session.add(User(id=user_id, name=name, email=email, role=role, reports_to=reports_to,
                             password_hash=password_hash))
        for branch_id, name, location, category, code in BRANCHES:
            session.add(Branch(id=branch_id, name=name, location=location, category=category, code=code))
        session.commit()

        for assignment_id, bhr_id, branch_id in ASSIGNMENTS:
            session.add(Assignment(id=assignment_id, bhr_id=bhr_id, branch_id=branch_id))
        for visit_id, bhr_id, branch_id, days, status, extra in VISITS:
            session.add(Visit(id=visit_id, bhr_id=bhr_id, branch_id=branch_id,
                              visit_date=date.today() - timedelta(days=days), status=status, **extra))
        session.commit()

        print(f"Seeded {len(USERS)} users, {len(BRANCHES)} branches, "
              f"{len(ASSIGNMENTS)} assignments and {len(VISITS)} visits.")
        print(f"Every demo account uses the password '{password}'.")

if __name__ == "__main__":
    seed_demo_data()
