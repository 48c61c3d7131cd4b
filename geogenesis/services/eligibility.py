"""Lottery eligibility and derived per-tree numbers.

Everything here is a pure function of the tree collection (plus `now`). Nothing
is cached; callers recompute from the current snapshot every time.
"""

from collections.abc import Iterable
from datetime import datetime

from geogenesis.schemas.tree import Tree, TreeStatus

SECONDS_PER_DAY = 24 * 60 * 60
POINTS_PER_TREE = 10

STATUS_LABELS = {
    TreeStatus.HEALTHY: "Thriving",
    TreeStatus.NEEDS_ATTENTION: "Needs Attention",
    TreeStatus.VERIFIED: "Verified",
}


def ticket_count(trees: Iterable[Tree]) -> int:
    """One ticket per healthy tree."""
    return sum(1 for t in trees if t.status == TreeStatus.HEALTHY)


def eligible_tree_ids(trees: Iterable[Tree]) -> list[str]:
    return [t.id for t in trees if t.status == TreeStatus.HEALTHY]


def status_labels(trees: Iterable[Tree]) -> dict[str, str]:
    return {t.id: STATUS_LABELS[t.status] for t in trees}


def impact_points(trees: Iterable[Tree]) -> int:
    return POINTS_PER_TREE * sum(1 for _ in trees)


def growth_progress(tree: Tree) -> int:
    """Percentage bar: 10% per check-in, capped at 100."""
    return min(100, 10 * len(tree.check_ins))


def days_since_check_in(tree: Tree, now: datetime) -> int:
    elapsed = (now - tree.last_check_in_date).total_seconds()
    return int(elapsed // SECONDS_PER_DAY)


def days_until_next_check_in(tree: Tree, now: datetime, cadence_days: int) -> int:
    if not tree.check_ins:
        return 0
    return max(0, cadence_days - days_since_check_in(tree, now))


def can_check_in(tree: Tree, now: datetime, cadence_days: int) -> bool:
    # a tree with no history can be checked in right away
    if not tree.check_ins:
        return True
    return days_since_check_in(tree, now) >= cadence_days
