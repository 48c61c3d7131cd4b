"""Tree, check-in and coordinate records. These are also the persisted layout."""

from enum import Enum

from pydantic import AwareDatetime, BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel

from geogenesis.schemas.verification import HealthStatus

RECORD_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "frozen": True,
}


class TreeStatus(str, Enum):
    HEALTHY = "healthy"
    NEEDS_ATTENTION = "needs-attention"
    VERIFIED = "verified"

    @classmethod
    def from_health(cls, health: HealthStatus) -> "TreeStatus":
        # struggling still counts as healthy
        if health == HealthStatus.DEAD:
            return cls.NEEDS_ATTENTION
        return cls.HEALTHY


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    model_config = RECORD_CONFIG


class TreeCheckIn(BaseModel):
    id: str
    date: AwareDatetime
    image_url: str
    ai_health_analysis: str
    is_healthy: bool

    model_config = RECORD_CONFIG


class Tree(BaseModel):
    id: str
    nickname: str
    species: str
    planted_date: AwareDatetime
    location: Coordinates
    image_url: str
    check_ins: list[TreeCheckIn] = Field(default_factory=list, description="Newest first")
    last_check_in_date: AwareDatetime
    status: TreeStatus = TreeStatus.HEALTHY

    model_config = RECORD_CONFIG

    @model_validator(mode="after")
    def check_last_check_in_date(self) -> "Tree":
        expected = self.check_ins[0].date if self.check_ins else self.planted_date
        if self.last_check_in_date != expected:
            raise ValueError(
                f"lastCheckInDate {self.last_check_in_date.isoformat()} does not match "
                f"{expected.isoformat()}"
            )
        return self

    def with_check_in(self, check_in: TreeCheckIn, status: TreeStatus) -> "Tree":
        """New Tree value with check_in prepended and status replaced."""
        return Tree(
            id=self.id,
            nickname=self.nickname,
            species=self.species,
            planted_date=self.planted_date,
            location=self.location,
            image_url=self.image_url,
            check_ins=[check_in, *self.check_ins],
            last_check_in_date=check_in.date,
            status=status,
        )
