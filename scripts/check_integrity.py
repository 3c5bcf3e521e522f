import sys
import os
from sqlmodel import Session

# Add Backend directory to sys.path
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from core.database import engine
from models import UserRole
from services.hierarchy import find_top_root
from services.store import fetch_assignments, fetch_branches, fetch_users
from services.user_onboarding import MANAGER_ROLE

def find_cycles(users):
    """Ids of users whose reports_to chain loops back on itself."""
    by_id = {u.id: u for u in users}
    in_cycle = set()
    for user in users:
        seen = []
        current = user
        while current is not None and current.id not in seen:
            seen.append(current.id)
            current = by_id.get(current.reports_to) if current.reports_to else None
        if current is not None:
            in_cycle.update(seen[seen.index(current.id):])
    return in_cycle

def check_integrity():
    with Session(engine) as session:
        print("--- Integrity Check ---")

        users = fetch_users(session)
        by_id = {u.id: u for u in users}
        print(f"Total Users: {len(users)}")
        for role in UserRole:
            print(f"{role.value} Users: {sum(1 for u in users if u.role == role)}")

        problems = 0

        # 1. Exactly one CHR at the top
        chr_users = [u for u in users if u.role == UserRole.CHR]
        if len(chr_users) != 1:
            print(f"ERROR: Expected exactly one CHR, found {len(chr_users)}")
            problems += 1
        top = find_top_root(users)
        if top and top.reports_to:
            print(f"ERROR: CHR {top.email} reports to {top.reports_to}")
            problems += 1

        # 2. Every other user reports to an existing user one tier up
        print("\nChecking reporting lines:")
        for u in users:
            if u.role == UserRole.CHR:
                continue
            manager = by_id.get(u.reports_to) if u.reports_to else None
            if manager is None:
                print(f"ERROR: {u.role.value} {u.email} is orphaned (reports_to={u.reports_to})")
                problems += 1
            elif manager.role != MANAGER_ROLE[u.role]:
                print(f"WARNING: {u.role.value} {u.email} reports to {manager.role.value} {manager.email}")

        cycles = find_cycles(users)
        if cycles:
            print(f"ERROR: reporting cycle between {sorted(cycles)}")
            problems += 1

        # 3. Assignments point at BHRs and known branches
        print("\nChecking branch assignments:")
        branch_ids = {b.id for b in fetch_branches(session)}
        for a in fetch_assignments(session):
            bhr = by_id.get(a.bhr_id)
            if bhr is None or bhr.role != UserRole.BHR:
                print(f"ERROR: Assignment {a.id} points at non-BHR {a.bhr_id}")
                problems += 1
            if a.branch_id not in branch_ids:
                print(f"ERROR: Assignment {a.id} points at unknown branch {a.branch_id}")
                problems += 1

        if problems == 0:
            print("Hierarchy and assignments are consistent.")

        print("\nIntegrity check complete.")
        return problems

if __name__ == "__main__":
    sys.exit(1 if check_integrity() else 0)
