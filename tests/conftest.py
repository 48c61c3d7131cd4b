import asyncio
import io
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from geogenesis.schemas.tree import Coordinates, Tree, TreeCheckIn, TreeStatus
from geogenesis.schemas.verification import (
    AiProgressResult,
    AiVerificationResult,
    HealthStatus,
)
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.tree_store import MemoryKeyValueStore, TreeStore
from geogenesis.services.verification_service import VerificationService

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
STORAGE_KEY = "geogenesis_trees_v1"


class FakeVerifier(VerificationService):
    """Scripted verification service. Set `gate` to hold calls until released."""

    model_name = "fake-vision"

    def __init__(self):
        self.verification = AiVerificationResult(
            is_tree=True,
            species="Quercus robur",
            health_assessment="Firmly planted, good soil contact.",
            confidence=0.92,
            advice="Water twice a week for the first month.",
        )
        self.progress = AiProgressResult(
            is_same_tree=True,
            growth_detected=True,
            health_status=HealthStatus.HEALTHY,
            message="New leaves are coming in nicely.",
        )
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.calls: list[tuple[str, str | None]] = []

    async def verify(self, image: bytes) -> AiVerificationResult:
        self.calls.append(("verify", None))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.verification

    async def assess_progress(self, image: bytes, species: str) -> AiProgressResult:
        self.calls.append(("assess_progress", species))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.progress


class YieldingKeyValueStore(MemoryKeyValueStore):
    """In-memory store that gives up control on every read and write."""

    async def get(self, key: str) -> str | None:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)


class FixedLocation:
    """LocationProvider stand-in with a scripted answer."""

    def __init__(self, coords: Coordinates | None = None, error: Exception | None = None):
        self.coords = coords or Coordinates(latitude=52.52, longitude=13.405)
        self.error = error
        self.calls = 0

    async def resolve(self, image: bytes) -> Coordinates:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.coords


def build_tree(
    tree_id: str = "tree-1",
    planted: datetime = NOW - timedelta(days=60),
    check_in_dates: tuple[datetime, ...] = (),
    status: TreeStatus = TreeStatus.HEALTHY,
    species: str = "Quercus robur",
) -> Tree:
    """Tree with consistent lastCheckInDate. check_in_dates are newest first."""
    check_ins = [
        TreeCheckIn(
            id=f"{tree_id}-ci-{i}",
            date=date,
            image_url=f"/api/photos/{tree_id}-{i}.jpg",
            ai_health_analysis="Doing fine.",
            is_healthy=True,
        )
        for i, date in enumerate(check_in_dates)
    ]
    return Tree(
        id=tree_id,
        nickname=f"Nick {tree_id}",
        species=species,
        planted_date=planted,
        location=Coordinates(latitude=48.1, longitude=11.6),
        image_url=f"/api/photos/{tree_id}.jpg",
        check_ins=check_ins,
        last_check_in_date=check_ins[0].date if check_ins else planted,
        status=status,
    )


@pytest.fixture
def make_tree():
    return build_tree


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def image_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (30, 120, 40)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv) -> TreeStore:
    return TreeStore(kv, STORAGE_KEY)


@pytest.fixture
def snapshot(store) -> TreeSnapshot:
    return TreeSnapshot(store)


@pytest.fixture
def photos(tmp_path) -> PhotoStore:
    return PhotoStore(tmp_path / "photos")


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
def location() -> FixedLocation:
    return FixedLocation()
