"""Planting endpoints: capture + verify, then confirm with a nickname."""

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import APIRouter, Depends, File, Form, UploadFile

from geogenesis.config import Settings
from geogenesis.dependencies import (
    get_clock,
    get_photo_store,
    get_plant_registry,
    get_settings,
    get_snapshot,
    get_verifier,
)
from geogenesis.errors import FlowNotFound, GeoGenesisError
from geogenesis.routers.uploads import read_image
from geogenesis.schemas.flow import PlantConfirmRequest, PlantSessionResponse
from geogenesis.schemas.tree import Tree
from geogenesis.services.flow_registry import PlantFlowRegistry
from geogenesis.services.location_service import (
    DeviceLocation,
    ExifLocation,
    FirstAvailableLocation,
    LocationProvider,
)
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.plant_flow import PlantFlow
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.verification_service import VerificationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/plant", tags=["plant"])


@router.post("", response_model=PlantSessionResponse, status_code=201)
async def start_planting(
    file: UploadFile | None = File(None),
    image_base64: str | None = Form(None),
    lat: float | None = Form(None),
    lon: float | None = Form(None),
    location_denied: bool = Form(False),
    use_photo_gps: bool = Form(True),
    snapshot: TreeSnapshot = Depends(get_snapshot),
    verifier: VerificationService = Depends(get_verifier),
    photos: PhotoStore = Depends(get_photo_store),
    registry: PlantFlowRegistry = Depends(get_plant_registry),
    settings: Settings = Depends(get_settings),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    image = await read_image(file, image_base64, settings.max_upload_bytes)

    locator: LocationProvider = DeviceLocation(lat, lon, denied=location_denied)
    if use_photo_gps:
        locator = FirstAvailableLocation(locator, ExifLocation())

    flow = PlantFlow(snapshot, verifier, photos, clock=clock)
    flow_id = registry.open(flow)
    try:
        result = await flow.capture(image, locator)
    except GeoGenesisError:
        # a retry is a fresh planting session
        registry.discard(flow_id)
        raise

    return PlantSessionResponse(
        flow_id=flow_id,
        state=flow.state.value,
        species=result.species,
        advice=result.advice,
        health_assessment=result.health_assessment,
        confidence=result.confidence,
        location=flow.capture_data.location,
    )


@router.post("/{flow_id}/confirm", response_model=Tree, status_code=201)
async def confirm_planting(
    flow_id: str,
    body: PlantConfirmRequest,
    registry: PlantFlowRegistry = Depends(get_plant_registry),
):
    flow = registry.get(flow_id)
    tree = await flow.confirm(body.nickname)
    registry.close(flow_id)
    return tree


@router.delete("/{flow_id}", status_code=204)
async def cancel_planting(
    flow_id: str, registry: PlantFlowRegistry = Depends(get_plant_registry)
):
    if not registry.discard(flow_id):
        raise FlowNotFound()
