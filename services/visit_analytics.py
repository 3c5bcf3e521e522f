"""
Chart data for the analytics and dashboard pages.

All functions take already-fetched visit records (normally only submitted
ones) and return plain chart rows. Nothing here touches the database.
"""
from collections import Counter, OrderedDict
from datetime import date, datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from core.logger import get_logger
from models import Branch, User, UserRole, Visit
from schemas.schemas import ChartData, HrConnectStats, QualitativeScore, VisitAggregate

logger = get_logger(__name__)

# chart labels stay English whatever LC_TIME says
MONTH_ABBREVIATIONS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

# (field, label); cwt_cases is summed per day, the rest are averaged
TREND_METRICS = [
    ("manning_percentage", "Manning %"),
    ("attrition_percentage", "Attrition %"),
    ("non_vendor_percentage", "Non-Vendor %"),
    ("er_percentage", "ER %"),
    ("cwt_cases", "CWT Cases"),
]
SUMMED_METRICS = {"cwt_cases"}

# (field, label, positive answer is "yes")
QUALITATIVE_QUESTIONS = [
    ("qual_aligned_conduct", "Leaders Aligned with Code", True),
    ("qual_safe_secure", "Employees Feel Safe", True),
    ("qual_motivated", "Employees Feel Motivated", True),
    ("qual_abusive_language", "Leaders Use Abusive Language", False),
    ("qual_comfortable_escalate", "Comfortable with Escalation", True),
    ("qual_inclusive_culture", "Inclusive Culture", True),
]
FULL_MARK = 5


class Timeframe(str, Enum):
    PAST_WEEK = "past_week"
    PAST_MONTH = "past_month"
    LAST_3_MONTHS = "last_3_months"
    LAST_6_MONTHS = "last_6_months"
    LAST_YEAR = "last_year"
    LAST_3_YEARS = "last_3_years"


_TIMEFRAME_OFFSETS = {
    Timeframe.PAST_WEEK: pd.DateOffset(days=6),
    Timeframe.PAST_MONTH: pd.DateOffset(months=1),
    Timeframe.LAST_3_MONTHS: pd.DateOffset(months=3),
    Timeframe.LAST_6_MONTHS: pd.DateOffset(months=6),
    Timeframe.LAST_YEAR: pd.DateOffset(years=1),
    Timeframe.LAST_3_YEARS: pd.DateOffset(years=3),
}


def as_date(value) -> date:
    """Accepts a date, a datetime or an ISO string ("2024-01-05" or "2024-01-05T10:00:00Z")."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def timeframe_bounds(timeframe: Timeframe, today: Optional[date] = None) -> Tuple[date, date]:
    today = today or date.today()
    start = (pd.Timestamp(today) - _TIMEFRAME_OFFSETS[Timeframe(timeframe)]).date()
    return start, today


def visits_in_range(visits: Iterable[Visit], start: date, end: date) -> List[Visit]:
    return [v for v in visits if start <= as_date(v.visit_date) <= end]


# --- BHR analytics ---

def month_label(year: int, month: int) -> str:
    return f"{MONTH_ABBREVIATIONS[month - 1]} {year}"


def monthly_counts(visits: Iterable[Visit]) -> List[ChartData]:
    counts: Counter = Counter()
    for visit in visits:
        visit_day = as_date(visit.visit_date)
        counts[(visit_day.year, visit_day.month)] += 1
    return [
        ChartData(name=month_label(year, month), value=count)
        for (year, month), count in sorted(counts.items())
    ]


def performance_distribution(visits: Iterable[Visit]) -> List[ChartData]:
    counts: Dict[str, int] = OrderedDict()
    for visit in visits:
        if visit.performance_level:
            counts[visit.performance_level] = counts.get(visit.performance_level, 0) + 1
    return [ChartData(name=level, value=count) for level, count in counts.items()]


def participation_rate(participants: int, invited: int) -> int:
    if invited <= 0:
        return 0
    return round(100 * participants / invited)


def hr_connect_stats(visits: Iterable[Visit]) -> HrConnectStats:
    conducted = invited = participants = 0
    for visit in visits:
        if visit.hr_connect_conducted:
            conducted += 1
            invited += visit.hr_connect_employees_invited or 0
            participants += visit.hr_connect_participants or 0
    return HrConnectStats(
        total_conducted=conducted,
        total_invited=invited,
        total_participants=participants,
        participation_rate=participation_rate(participants, invited),
    )


def aggregate_visits(visits: Iterable[Visit]) -> VisitAggregate:
    visits = list(visits)
    return VisitAggregate(
        monthly=monthly_counts(visits),
        performance=performance_distribution(visits),
        hr_connect=hr_connect_stats(visits),
    )


# --- Zone analytics ---

def metric_trend(visits: Iterable[Visit], timeframe: Timeframe, today: Optional[date] = None) -> List[dict]:
    """
    One point per day of the timeframe.

    Percentages are averaged over the day's visits and rounded to two
    decimals, CWT cases are summed. A metric with no value on a day is left
    out of that day's point.
    """
    start, end = timeframe_bounds(timeframe, today)
    in_range = visits_in_range(visits, start, end)
    if not in_range:
        return []
    days = pd.date_range(start, end, freq="D")

    metric_fields = [field for field, _ in TREND_METRICS]
    frame = pd.DataFrame(
        [{"day": pd.Timestamp(as_date(v.visit_date)), **{f: getattr(v, f) for f in metric_fields}} for v in in_range]
    )
    frame[metric_fields] = frame[metric_fields].apply(pd.to_numeric, errors="coerce")
    grouped = frame.groupby("day")

    columns = {}
    for field in metric_fields:
        if field in SUMMED_METRICS:
            columns[field] = grouped[field].sum(min_count=1)
        else:
            columns[field] = grouped[field].mean().round(2)
    daily = pd.DataFrame(columns).reindex(days)

    points = []
    for day, row in daily.iterrows():
        point = {"date": day.strftime("%Y-%m-%d")}
        for field in metric_fields:
            value = row[field]
            if pd.notna(value):
                point[field] = int(value) if field in SUMMED_METRICS else float(value)
        points.append(point)
    return points


def qualitative_scores(visits: Iterable[Visit], timeframe: Timeframe, today: Optional[date] = None) -> List[QualitativeScore]:
    """
    Average score per question over the timeframe. No visits at all gives no
    rows; visits that all fall outside the timeframe give zero scores.
    """
    visits = list(visits)
    if not visits:
        return []
    start, end = timeframe_bounds(timeframe, today)
    in_range = visits_in_range(visits, start, end)

    scores = []
    for field, label, positive_is_yes in QUALITATIVE_QUESTIONS:
        total = answered = 0
        for visit in in_range:
            answer = getattr(visit, field)
            if answer not in ("yes", "no"):
                continue
            positive = (answer == "yes") == positive_is_yes
            total += FULL_MARK if positive else 0
            answered += 1
        average = round(total / answered, 2) if answered else 0
        scores.append(QualitativeScore(subject=label, score=average, full_mark=FULL_MARK))
    return scores


def branch_category_distribution(
    visits: Iterable[Visit],
    branches: Iterable[Branch],
    timeframe: Timeframe,
    today: Optional[date] = None,
) -> List[ChartData]:
    start, end = timeframe_bounds(timeframe, today)
    category_of = {b.id: b.category for b in branches}

    counts: Dict[str, int] = OrderedDict()
    for visit in visits_in_range(visits, start, end):
        category = category_of.get(visit.branch_id)
        if not category:
            logger.warning(f"No category found for branch_id: {visit.branch_id}")
            continue
        counts[category] = counts.get(category, 0) + 1

    rows = [ChartData(name=name, value=count) for name, count in counts.items()]
    return sorted(rows, key=lambda r: r.value, reverse=True)


# --- Dashboards ---

def visits_per_group(visits: Iterable[Visit], users: Sequence[User], level: UserRole) -> List[ChartData]:
    """
    Counts visits per BHR, ZHR or VHR by walking up from the visiting BHR.
    Visits whose chain breaks before reaching ``level`` are not counted.
    """
    by_id = {u.id: u for u in users}
    climbs = {UserRole.BHR: 0, UserRole.ZHR: 1, UserRole.VHR: 2, UserRole.CHR: 3}[UserRole(level)]

    counts: Dict[str, int] = OrderedDict()
    for visit in visits:
        owner = by_id.get(visit.bhr_id)
        for _ in range(climbs):
            if owner is None:
                break
            owner = by_id.get(owner.reports_to) if owner.reports_to else None
        if owner is None or owner.role != level:
            continue
        counts[owner.name] = counts.get(owner.name, 0) + 1
    return [ChartData(name=name, value=count) for name, count in counts.items()]


def visits_by_location(visits: Iterable[Visit], branches: Iterable[Branch], limit: int = 5) -> List[ChartData]:
    branches = list(branches)
    per_branch = Counter(v.branch_id for v in visits)

    counts: Dict[str, int] = OrderedDict()
    for branch in branches:
        counts[branch.location] = counts.get(branch.location, 0) + per_branch.get(branch.id, 0)
    rows = [ChartData(name=loc, value=count) for loc, count in counts.items() if count > 0]
    return rows[:limit]


def top_branches(visits: Iterable[Visit], branches: Iterable[Branch], limit: int = 5) -> List[ChartData]:
    """Branches with the most visits; visits to unknown branches are ignored."""
    names = {b.id: b.name for b in branches}
    counts: Dict[str, int] = OrderedDict()
    for visit in visits:
        name = names.get(visit.branch_id)
        if name:
            counts[name] = counts.get(name, 0) + 1
    rows = [ChartData(name=name, value=count) for name, count in counts.items()]
    return sorted(rows, key=lambda r: r.value, reverse=True)[:limit]
