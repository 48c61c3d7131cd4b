"""FastAPI Depends() for the snapshot, verifier, photo store and flow registry.

The objects are built once in the app lifespan and kept on app.state.
"""

from collections.abc import Callable
from datetime import datetime

from fastapi import Request

from geogenesis.config import Settings, settings
from geogenesis.services.flow_registry import PlantFlowRegistry
from geogenesis.services.flow_state import utcnow
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.verification_service import VerificationService


def get_settings() -> Settings:
    return settings


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_snapshot(request: Request) -> TreeSnapshot:
    return request.app.state.snapshot


def get_verifier(request: Request) -> VerificationService:
    return request.app.state.verifier


def get_photo_store(request: Request) -> PhotoStore:
    return request.app.state.photos


def get_plant_registry(request: Request) -> PlantFlowRegistry:
    return request.app.state.plant_flows
