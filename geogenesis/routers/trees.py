"""Tree listing and monthly check-in endpoints."""

from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile

from geogenesis.config import Settings
from geogenesis.dependencies import (
    get_clock,
    get_photo_store,
    get_settings,
    get_snapshot,
    get_verifier,
)
from geogenesis.routers.uploads import read_image
from geogenesis.schemas.flow import (
    CheckInEligibilityResponse,
    CheckInResponse,
    TreeListResponse,
    TreeSummary,
)
from geogenesis.schemas.tree import Tree
from geogenesis.services import eligibility
from geogenesis.services.checkin_flow import CheckInFlow
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.verification_service import VerificationService

router = APIRouter(prefix="/api/trees", tags=["trees"])


def _summarize(tree: Tree, now: datetime, settings: Settings) -> TreeSummary:
    cadence = settings.check_in_cadence_days
    return TreeSummary(
        tree=tree,
        label=eligibility.STATUS_LABELS[tree.status],
        days_until_next_check_in=eligibility.days_until_next_check_in(tree, now, cadence),
        check_in_available=settings.bypass_cadence_gate
        or eligibility.can_check_in(tree, now, cadence),
        growth_progress=eligibility.growth_progress(tree),
    )


@router.get("", response_model=TreeListResponse)
async def list_trees(
    snapshot: TreeSnapshot = Depends(get_snapshot),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    now = clock()
    trees = snapshot.trees
    return TreeListResponse(
        trees=[_summarize(t, now, settings) for t in trees],
        total=len(trees),
        version=snapshot.version,
    )


@router.get("/{tree_id}", response_model=TreeSummary)
async def get_tree(
    tree_id: str,
    snapshot: TreeSnapshot = Depends(get_snapshot),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    return _summarize(snapshot.get(tree_id), clock(), settings)


@router.get("/{tree_id}/check-in", response_model=CheckInEligibilityResponse)
async def check_in_eligibility(
    tree_id: str,
    snapshot: TreeSnapshot = Depends(get_snapshot),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    tree = snapshot.get(tree_id)
    now = clock()
    cadence = settings.check_in_cadence_days
    return CheckInEligibilityResponse(
        tree_id=tree.id,
        check_in_available=settings.bypass_cadence_gate
        or eligibility.can_check_in(tree, now, cadence),
        days_since_check_in=eligibility.days_since_check_in(tree, now),
        days_until_next_check_in=eligibility.days_until_next_check_in(tree, now, cadence),
        cadence_days=cadence,
        gate_bypassed=settings.bypass_cadence_gate,
    )


@router.post("/{tree_id}/check-ins", response_model=CheckInResponse, status_code=201)
async def create_check_in(
    tree_id: str,
    file: UploadFile | None = File(None),
    image_base64: str | None = Form(None),
    snapshot: TreeSnapshot = Depends(get_snapshot),
    verifier: VerificationService = Depends(get_verifier),
    photos: PhotoStore = Depends(get_photo_store),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    flow = CheckInFlow(
        tree_id,
        snapshot,
        verifier,
        photos,
        cadence_days=settings.check_in_cadence_days,
        bypass_cadence_gate=settings.bypass_cadence_gate,
        clock=clock,
    )
    # gate first so a locked tree never costs an upload read
    flow.begin()
    image = await read_image(file, image_base64, settings.max_upload_bytes)
    tree = await flow.submit(image)
    return CheckInResponse(
        tree=tree,
        check_in=flow.check_in,
        health_status=flow.result.health_status.value,
        is_same_tree=flow.result.is_same_tree,
        growth_detected=flow.result.growth_detected,
    )
