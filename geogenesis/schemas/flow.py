"""Request/response schemas for the planting, check-in and lottery endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from geogenesis.schemas.tree import Coordinates, Tree, TreeCheckIn

API_CONFIG = {"alias_generator": to_camel, "populate_by_name": True}


class ErrorResponse(BaseModel):
    reason: str
    detail: str


class PlantSessionResponse(BaseModel):
    flow_id: str
    state: str
    species: str
    advice: str
    health_assessment: str
    confidence: float
    location: Coordinates

    model_config = API_CONFIG


class PlantConfirmRequest(BaseModel):
    nickname: str | None = Field(None, max_length=100)

    model_config = API_CONFIG


class TreeSummary(BaseModel):
    tree: Tree
    label: str
    days_until_next_check_in: int
    check_in_available: bool
    growth_progress: int

    model_config = API_CONFIG


class TreeListResponse(BaseModel):
    trees: list[TreeSummary]
    total: int
    version: int

    model_config = API_CONFIG


class CheckInEligibilityResponse(BaseModel):
    tree_id: str
    check_in_available: bool
    days_since_check_in: int
    days_until_next_check_in: int
    cadence_days: int
    gate_bypassed: bool

    model_config = API_CONFIG


class CheckInResponse(BaseModel):
    tree: Tree
    check_in: TreeCheckIn
    health_status: str
    is_same_tree: bool
    growth_detected: bool

    model_config = API_CONFIG


class LotteryResponse(BaseModel):
    tickets: int
    eligible_tree_ids: list[str]
    labels: dict[str, str]

    model_config = API_CONFIG


class DashboardResponse(BaseModel):
    trees_planted: int
    impact_points: int
    tickets: int

    model_config = API_CONFIG


class HealthResponse(BaseModel):
    status: str
    trees_count: int = 0
    snapshot_version: int = 0
    verifier_model: str
    checked_at: datetime

    model_config = API_CONFIG
