"""Lottery tickets and dashboard totals, recomputed from the snapshot on every call."""

from fastapi import APIRouter, Depends

from geogenesis.dependencies import get_snapshot
from geogenesis.schemas.flow import DashboardResponse, LotteryResponse
from geogenesis.services import eligibility
from geogenesis.services.tree_snapshot import TreeSnapshot

router = APIRouter(prefix="/api", tags=["lottery"])


@router.get("/lottery", response_model=LotteryResponse)
async def lottery(snapshot: TreeSnapshot = Depends(get_snapshot)):
    trees = snapshot.trees
    return LotteryResponse(
        tickets=eligibility.ticket_count(trees),
        eligible_tree_ids=eligibility.eligible_tree_ids(trees),
        labels=eligibility.status_labels(trees),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(snapshot: TreeSnapshot = Depends(get_snapshot)):
    trees = snapshot.trees
    return DashboardResponse(
        trees_planted=len(trees),
        impact_points=eligibility.impact_points(trees),
        tickets=eligibility.ticket_count(trees),
    )
