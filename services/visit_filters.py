from datetime import date
from typing import List, Optional, Sequence, Set

from fastapi import Query
from pydantic import BaseModel, Field
from sqlmodel import col

from models import User, UserRole, Visit
from services.hierarchy import descendant_ids


class VisitFilter(BaseModel):
    """Filter selections for one request; built from query params and passed down explicitly."""
    vhr_ids: List[str] = Field(default_factory=list)
    zhr_ids: List[str] = Field(default_factory=list)
    bhr_ids: List[str] = Field(default_factory=list)
    branch_ids: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @property
    def has_hierarchy_selection(self) -> bool:
        return bool(self.vhr_ids or self.zhr_ids or self.bhr_ids)


def get_visit_filter(
    vhrIds: List[str] = Query(default=[]),
    zhrIds: List[str] = Query(default=[]),
    bhrIds: List[str] = Query(default=[]),
    branchIds: List[str] = Query(default=[]),
    startDate: Optional[date] = None,
    endDate: Optional[date] = None,
) -> VisitFilter:
    return VisitFilter(
        vhr_ids=vhrIds,
        zhr_ids=zhrIds,
        bhr_ids=bhrIds,
        branch_ids=branchIds,
        start_date=startDate,
        end_date=endDate,
    )


def visible_bhr_ids(users: Sequence[User], viewer: User) -> Optional[Set[str]]:
    """BHRs the viewer may see; None means everyone (CHR)."""
    if viewer.role == UserRole.CHR:
        return None
    if viewer.role == UserRole.BHR:
        return {viewer.id}
    return descendant_ids(users, viewer.id, UserRole.BHR)


def resolve_bhr_scope(users: Sequence[User], viewer: User, flt: VisitFilter) -> Optional[Set[str]]:
    """
    Narrows visits to a set of BHR ids.

    The most specific selection wins: BHRs, then ZHRs, then VHRs. The result
    is intersected with what the viewer may see. ``None`` means no
    restriction; an empty set means the selection matched nobody.
    """
    selected: Optional[Set[str]] = None
    if flt.bhr_ids:
        selected = set(flt.bhr_ids)
    elif flt.zhr_ids:
        selected = {u.id for u in users if u.role == UserRole.BHR and u.reports_to in set(flt.zhr_ids)}
    elif flt.vhr_ids:
        zhr_ids = {u.id for u in users if u.role == UserRole.ZHR and u.reports_to in set(flt.vhr_ids)}
        selected = {u.id for u in users if u.role == UserRole.BHR and u.reports_to in zhr_ids}

    visible = visible_bhr_ids(users, viewer)
    if visible is None:
        return selected
    if selected is None:
        return visible
    return selected & visible


def apply_visit_filter(query, scope: Optional[Set[str]], flt: Optional[VisitFilter] = None):
    """Adds BHR scope, branch and date predicates to a visit query."""
    if scope is not None:
        query = query.where(col(Visit.bhr_id).in_(sorted(scope)))
    if flt is None:
        return query
    if flt.branch_ids:
        query = query.where(col(Visit.branch_id).in_(flt.branch_ids))
    if flt.start_date:
        query = query.where(Visit.visit_date >= flt.start_date)
    if flt.end_date:
        query = query.where(Visit.visit_date <= flt.end_date)
    return query
