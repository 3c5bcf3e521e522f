from typing import Iterable, List, Optional, Set

from sqlmodel import Session, col, select

from models import Assignment, Branch, User, UserRole, Visit, VisitStatus
from services.visit_filters import VisitFilter, apply_visit_filter

# Read helpers against the four collections. Only equality / inclusion
# predicates live here; every aggregate is computed in Python.

def fetch_users(
    session: Session,
    role: Optional[UserRole] = None,
    reports_to_in: Optional[Iterable[str]] = None,
    ids: Optional[Iterable[str]] = None,
) -> List[User]:
    query = select(User)
    if role is not None:
        query = query.where(User.role == role)
    if reports_to_in is not None:
        query = query.where(col(User.reports_to).in_(list(reports_to_in)))
    if ids is not None:
        query = query.where(col(User.id).in_(list(ids)))
    return list(session.exec(query.order_by(User.created_at, User.id)).all())

def fetch_branches(session: Session, ids: Optional[Iterable[str]] = None) -> List[Branch]:
    query = select(Branch)
    if ids is not None:
        query = query.where(col(Branch.id).in_(list(ids)))
    return list(session.exec(query.order_by(Branch.name)).all())

def fetch_assignments(session: Session, bhr_ids: Optional[Iterable[str]] = None) -> List[Assignment]:
    query = select(Assignment)
    if bhr_ids is not None:
        query = query.where(col(Assignment.bhr_id).in_(list(bhr_ids)))
    return list(session.exec(query).all())

def fetch_visits(
    session: Session,
    bhr_ids: Optional[Set[str]] = None,
    status: Optional[VisitStatus] = VisitStatus.SUBMITTED,
    flt: Optional[VisitFilter] = None,
) -> List[Visit]:
    """Visits newest first. ``bhr_ids=None`` means no BHR restriction."""
    if bhr_ids is not None and not bhr_ids:
        return []
    query = select(Visit)
    if status is not None:
        query = query.where(Visit.status == status)
    query = apply_visit_filter(query, bhr_ids, flt)
    return list(session.exec(query.order_by(col(Visit.visit_date).desc(), Visit.id)).all())
