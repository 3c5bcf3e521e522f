from datetime import date, timedelta

from models import User, UserRole
from services.store import fetch_visits
from services.visit_filters import VisitFilter, resolve_bhr_scope, visible_bhr_ids


def org():
    return [
        User(id="chr", name="Chief", email="c@x.com", role=UserRole.CHR),
        User(id="v1", name="Vera", email="v1@x.com", role=UserRole.VHR, reports_to="chr"),
        User(id="v2", name="Victor", email="v2@x.com", role=UserRole.VHR, reports_to="chr"),
        User(id="z1", name="Zara", email="z1@x.com", role=UserRole.ZHR, reports_to="v1"),
        User(id="z2", name="Zoe", email="z2@x.com", role=UserRole.ZHR, reports_to="v2"),
        User(id="b1", name="Bina", email="b1@x.com", role=UserRole.BHR, reports_to="z1"),
        User(id="b2", name="Bo", email="b2@x.com", role=UserRole.BHR, reports_to="z1"),
        User(id="b3", name="Bea", email="b3@x.com", role=UserRole.BHR, reports_to="z2"),
    ]


def by_id(user_id):
    return next(u for u in org() if u.id == user_id)


def test_visibility_per_role():
    users = org()
    assert visible_bhr_ids(users, by_id("chr")) is None
    assert visible_bhr_ids(users, by_id("v1")) == {"b1", "b2"}
    assert visible_bhr_ids(users, by_id("z2")) == {"b3"}
    assert visible_bhr_ids(users, by_id("b2")) == {"b2"}


def test_no_selection_means_visible_scope():
    users = org()
    assert resolve_bhr_scope(users, by_id("chr"), VisitFilter()) is None
    assert resolve_bhr_scope(users, by_id("v2"), VisitFilter()) == {"b3"}


def test_most_specific_selection_wins():
    users = org()
    flt = VisitFilter(vhr_ids=["v2"], zhr_ids=["z1"], bhr_ids=["b2"])
    assert resolve_bhr_scope(users, by_id("chr"), flt) == {"b2"}

    flt = VisitFilter(vhr_ids=["v2"], zhr_ids=["z1"])
    assert resolve_bhr_scope(users, by_id("chr"), flt) == {"b1", "b2"}

    assert resolve_bhr_scope(users, by_id("chr"), VisitFilter(vhr_ids=["v2"])) == {"b3"}


def test_selection_cannot_escape_visibility():
    users = org()
    flt = VisitFilter(bhr_ids=["b1", "b3"])

    assert resolve_bhr_scope(users, by_id("v1"), flt) == {"b1"}
    assert resolve_bhr_scope(users, by_id("v2"), VisitFilter(zhr_ids=["z1"])) == set()


def test_fetch_visits_applies_scope_branch_and_dates(seeded):
    assert [v.id for v in fetch_visits(seeded)] == ["visit-2", "visit-1"]
    assert [v.id for v in fetch_visits(seeded, bhr_ids={"bhr-1"})] == ["visit-1"]
    assert fetch_visits(seeded, bhr_ids=set()) == []
    assert [v.id for v in fetch_visits(seeded, bhr_ids={"bhr-1"}, status=None)] == ["visit-3", "visit-1"]

    flt = VisitFilter(branch_ids=["branch-4"])
    assert [v.id for v in fetch_visits(seeded, flt=flt)] == ["visit-2"]

    flt = VisitFilter(start_date=date.today() - timedelta(days=10), end_date=date.today() - timedelta(days=4))
    assert [v.id for v in fetch_visits(seeded, flt=flt)] == ["visit-1"]

    flt = VisitFilter(start_date=date(2000, 1, 1), end_date=date(2000, 12, 31))
    assert fetch_visits(seeded, flt=flt) == []
