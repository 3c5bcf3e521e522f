"""
Organisation tree helpers.

Users arrive as a flat list where each record points at its manager through
``reports_to``. Everything here is a pure transform over such lists: building
the tree below a given user, decorating BHR leaves with their branches,
pruning a tree down to search matches and the cascading filter lists used by
the CHR pages.
"""
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set

from models import Assignment, Branch, User, UserRole
from schemas.schemas import FilterOption, HierarchyNode

UNKNOWN_BRANCH = "Unknown Branch"

SEARCH_FIELDS = ("name", "email", "role", "e_code", "location")


def index_children(users: Sequence[User]) -> Dict[str, List[int]]:
    """Maps a manager id to the indices of its direct reports, in source order."""
    children_of: Dict[str, List[int]] = defaultdict(list)
    for idx, user in enumerate(users):
        if user.reports_to is not None:
            children_of[user.reports_to].append(idx)
    return children_of


def assigned_branch_names(
    bhr_id: str,
    branch_names: Dict[str, str],
    assignments_by_bhr: Dict[str, List[str]],
) -> List[str]:
    """Sorted names of the branches assigned to a BHR, from prebuilt id maps."""
    return sorted(
        branch_names.get(branch_id, UNKNOWN_BRANCH)
        for branch_id in assignments_by_bhr.get(bhr_id, [])
    )


def _make_node(user: User, branch_names: Dict[str, str], assignments_by_bhr: Dict[str, List[str]]) -> HierarchyNode:
    assigned = None
    if user.role == UserRole.BHR:
        assigned = assigned_branch_names(user.id, branch_names, assignments_by_bhr)
    return HierarchyNode(
        id=user.id,
        name=user.name,
        email=user.email,
        role=user.role,
        reports_to=user.reports_to,
        e_code=user.e_code,
        location=user.location,
        assigned_branch_names=assigned,
    )


def build_forest(
    users: Sequence[User],
    root_ids: Iterable[str],
    branches: Iterable[Branch] = (),
    assignments: Iterable[Assignment] = (),
) -> List[HierarchyNode]:
    """
    Builds one tree per root id.

    Children are attached depth-first in the order the users appear in
    ``users``. Users whose manager is not reachable from a root are never
    attached. Every user is placed at most once, so a cycle in ``reports_to``
    cannot make the walk loop. Root ids missing from ``users`` are skipped.
    """
    users = list(users)
    children_of = index_children(users)
    position = {u.id: idx for idx, u in enumerate(users)}

    branch_names = {b.id: b.name for b in branches}
    assignments_by_bhr: Dict[str, List[str]] = defaultdict(list)
    for a in assignments:
        assignments_by_bhr[a.bhr_id].append(a.branch_id)

    placed: Set[str] = set()
    forest: List[HierarchyNode] = []

    for root_id in root_ids:
        if root_id not in position or root_id in placed:
            continue
        root = _make_node(users[position[root_id]], branch_names, assignments_by_bhr)
        placed.add(root_id)
        forest.append(root)

        stack = [root]
        while stack:
            node = stack.pop()
            for idx in children_of.get(node.id, []):
                child_user = users[idx]
                if child_user.id in placed:
                    continue
                placed.add(child_user.id)
                child = _make_node(child_user, branch_names, assignments_by_bhr)
                node.children.append(child)
                stack.append(child)

    return forest


def build_hierarchy(
    users: Sequence[User],
    root_id: str,
    branches: Iterable[Branch] = (),
    assignments: Iterable[Assignment] = (),
) -> Optional[HierarchyNode]:
    """Tree rooted at ``root_id``, or None when that user is not in the set."""
    forest = build_forest(users, [root_id], branches, assignments)
    return forest[0] if forest else None


def find_top_root(users: Iterable[User]) -> Optional[User]:
    for user in users:
        if user.role == UserRole.CHR:
            return user
    return None


def descendant_ids(users: Sequence[User], root_id: str, role: Optional[UserRole] = None) -> Set[str]:
    """Ids of everyone below ``root_id``, optionally only those holding ``role``."""
    users = list(users)
    children_of = index_children(users)
    seen: Set[str] = {root_id}
    found: Set[str] = set()
    stack = [root_id]
    while stack:
        current = stack.pop()
        for idx in children_of.get(current, []):
            user = users[idx]
            if user.id in seen:
                continue
            seen.add(user.id)
            stack.append(user.id)
            if role is None or user.role == role:
                found.add(user.id)
    return found


# --- Search ---

def matches_term(record, lower_term: str) -> bool:
    for field in SEARCH_FIELDS:
        value = getattr(record, field, None)
        if value is None:
            continue
        if isinstance(value, UserRole):
            value = value.value
        if lower_term in str(value).lower():
            return True
    return False


def filter_tree(nodes: List[HierarchyNode], term: str) -> List[HierarchyNode]:
    """
    Prunes a forest down to nodes matching ``term`` and their ancestors.

    A node survives when it matches on any of name, email, role, e_code or
    location (case-insensitive), or when one of its descendants survives.
    A blank term returns ``nodes`` itself.
    """
    if not term or not term.strip():
        return nodes
    lower_term = term.lower()

    def prune(node: HierarchyNode) -> Optional[HierarchyNode]:
        kept_children = [c for c in (prune(child) for child in node.children) if c is not None]
        if matches_term(node, lower_term) or kept_children:
            return node.model_copy(update={"children": kept_children})
        return None

    return [n for n in (prune(node) for node in nodes) if n is not None]


# --- Cascading filters ---

def _ids_reporting_to(users: Iterable[User], role: UserRole, manager_ids: Iterable[str]) -> Set[str]:
    manager_ids = set(manager_ids)
    return {u.id for u in users if u.role == role and u.reports_to in manager_ids}


def cascade_options(
    users: Sequence[User],
    vhr_ids: Sequence[str] = (),
    zhr_ids: Sequence[str] = (),
) -> Dict[str, List[FilterOption]]:
    """VHR/ZHR/BHR option lists narrowed by the selections above them."""
    vhrs = [u for u in users if u.role == UserRole.VHR]
    zhrs = [u for u in users if u.role == UserRole.ZHR]
    bhrs = [u for u in users if u.role == UserRole.BHR]

    if vhr_ids:
        zhrs = [z for z in zhrs if z.reports_to in set(vhr_ids)]
    if zhr_ids:
        bhrs = [b for b in bhrs if b.reports_to in set(zhr_ids)]
    elif vhr_ids:
        zhr_scope = _ids_reporting_to(users, UserRole.ZHR, vhr_ids)
        bhrs = [b for b in bhrs if b.reports_to in zhr_scope]

    return {
        "vhrs": [FilterOption(value=u.id, label=u.name) for u in vhrs],
        "zhrs": [FilterOption(value=u.id, label=u.name) for u in zhrs],
        "bhrs": [FilterOption(value=u.id, label=f"{u.name} ({u.e_code or 'N/A'})") for u in bhrs],
    }


def filter_user_directory(
    users: Sequence[User],
    vhr_ids: Sequence[str] = (),
    zhr_ids: Sequence[str] = (),
    bhr_ids: Sequence[str] = (),
    term: str = "",
) -> List[User]:
    """Flat user list for the oversee page; the CHR row is never filtered out by selections."""
    result = list(users)

    if vhr_ids:
        vhr_zhrs = _ids_reporting_to(users, UserRole.ZHR, vhr_ids)
        vhr_bhrs = _ids_reporting_to(users, UserRole.BHR, vhr_zhrs)
        result = [
            u for u in result
            if u.role == UserRole.CHR
            or (u.role == UserRole.VHR and u.id in vhr_ids)
            or (u.role == UserRole.ZHR and u.id in vhr_zhrs)
            or (u.role == UserRole.BHR and u.id in vhr_bhrs)
        ]

    if zhr_ids:
        zhr_bhrs = _ids_reporting_to(users, UserRole.BHR, zhr_ids)
        result = [
            u for u in result
            if u.role in (UserRole.CHR, UserRole.VHR)
            or (u.role == UserRole.ZHR and u.id in zhr_ids)
            or (u.role == UserRole.BHR and u.id in zhr_bhrs)
        ]

    if bhr_ids:
        result = [
            u for u in result
            if u.role in (UserRole.CHR, UserRole.VHR, UserRole.ZHR)
            or u.id in bhr_ids
        ]

    if term and term.strip():
        lower_term = term.lower()
        result = [u for u in result if matches_term(u, lower_term)]

    return result
