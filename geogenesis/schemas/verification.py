"""Verification service payloads (camelCase on the wire)."""

from enum import Enum

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    STRUGGLING = "struggling"
    DEAD = "dead"


class AiVerificationResult(BaseModel):
    is_tree: bool
    species: str
    health_assessment: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    advice: str

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "frozen": True}


class AiProgressResult(BaseModel):
    is_same_tree: bool = True
    growth_detected: bool = False
    health_status: HealthStatus
    message: str

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "frozen": True}
