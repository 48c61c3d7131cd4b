import asyncio

import pytest
from conftest import NOW, STORAGE_KEY, FixedLocation, YieldingKeyValueStore

from geogenesis.errors import (
    FlowCancelled,
    InvalidTransition,
    LocationUnavailable,
    MalformedResponse,
    NotATree,
    PermissionDenied,
    ServiceUnavailable,
)
from geogenesis.schemas.tree import TreeStatus
from geogenesis.schemas.verification import AiVerificationResult
from geogenesis.services.plant_flow import PlantFlow, PlantState
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.tree_store import TreeStore

pytestmark = pytest.mark.asyncio


@pytest.fixture
def flow(snapshot, verifier, photos, clock):
    return PlantFlow(snapshot, verifier, photos, clock=clock, id_factory=lambda: "new-tree")


async def test_successful_planting_creates_healthy_tree(flow, snapshot, store, image_bytes, location):
    result = await flow.capture(image_bytes, location)
    assert flow.state == PlantState.DETAILS_PENDING
    assert result.species == "Quercus robur"

    tree = await flow.confirm("Backyard Oak")

    assert flow.state == PlantState.COMPLETED
    assert tree.id == "new-tree"
    assert tree.nickname == "Backyard Oak"
    assert tree.check_ins == []
    assert tree.status == TreeStatus.HEALTHY
    assert tree.planted_date == tree.last_check_in_date == NOW
    assert tree.location == location.coords
    assert tree.image_url.startswith("/api/photos/")
    assert await store.load_all() == [tree]
    assert snapshot.trees == (tree,)


@pytest.mark.parametrize("nickname", [None, "", "   "])
async def test_empty_nickname_defaults_to_species(flow, image_bytes, location, nickname):
    await flow.capture(image_bytes, location)
    tree = await flow.confirm(nickname)
    assert tree.nickname == "Quercus robur"


async def test_new_tree_is_prepended(snapshot, verifier, photos, clock, image_bytes, location, make_tree):
    await snapshot.add(make_tree("existing"))
    flow = PlantFlow(snapshot, verifier, photos, clock=clock)
    await flow.capture(image_bytes, location)
    tree = await flow.confirm()
    assert [t.id for t in snapshot.trees] == [tree.id, "existing"]


async def test_not_a_tree_returns_to_capturing(flow, snapshot, store, verifier, photos, image_bytes, location):
    verifier.verification = AiVerificationResult(
        is_tree=False, species="unknown", health_assessment="", confidence=0.1, advice=""
    )
    with pytest.raises(NotATree):
        await flow.capture(image_bytes, location)

    assert flow.state == PlantState.CAPTURING
    assert flow.error.reason == "not_a_tree"
    assert flow.capture_data is None
    assert await store.load_all() == []
    assert snapshot.trees == ()
    assert not photos.root.exists() or not any(photos.root.iterdir())


@pytest.mark.parametrize("error", [ServiceUnavailable(), MalformedResponse()])
async def test_verification_failure_returns_to_capturing(flow, verifier, image_bytes, location, error):
    verifier.error = error
    with pytest.raises(type(error)):
        await flow.capture(image_bytes, location)
    assert flow.state == PlantState.CAPTURING
    assert flow.error.reason == "service_unavailable"
    assert flow.error.detail == error.detail


@pytest.mark.parametrize("error", [LocationUnavailable(), PermissionDenied()])
async def test_location_failure_skips_verification(flow, verifier, image_bytes, error):
    with pytest.raises(LocationUnavailable):
        await flow.capture(image_bytes, FixedLocation(error=error))
    assert flow.state == PlantState.CAPTURING
    assert flow.error.reason == error.reason
    assert verifier.calls == []


async def test_retry_after_error_can_complete(flow, verifier, image_bytes, location):
    verifier.error = ServiceUnavailable()
    with pytest.raises(ServiceUnavailable):
        await flow.capture(image_bytes, location)

    verifier.error = None
    await flow.capture(image_bytes, location)
    tree = await flow.confirm()
    assert flow.error is None
    assert tree.species == "Quercus robur"


async def test_confirm_without_verification_is_rejected(flow, snapshot):
    with pytest.raises(InvalidTransition):
        await flow.confirm("Too early")
    assert snapshot.trees == ()


async def test_empty_image_is_rejected(flow, location):
    with pytest.raises(InvalidTransition):
        await flow.capture(b"", location)
    assert location.calls == 0


async def test_completed_flow_is_terminal(flow, image_bytes, location):
    await flow.capture(image_bytes, location)
    await flow.confirm()
    with pytest.raises(InvalidTransition):
        await flow.confirm()
    with pytest.raises(InvalidTransition):
        await flow.capture(image_bytes, location)


async def test_abandoned_flow_drops_late_verification(flow, snapshot, verifier, image_bytes, location):
    verifier.gate = asyncio.Event()
    task = asyncio.create_task(flow.capture(image_bytes, location))
    while not verifier.calls:
        await asyncio.sleep(0)

    flow.cancel()
    verifier.gate.set()

    with pytest.raises(FlowCancelled):
        await task
    assert flow.state == PlantState.VERIFYING
    assert flow.capture_data is None
    with pytest.raises(FlowCancelled):
        await flow.confirm()
    assert snapshot.trees == ()


async def test_failed_save_keeps_details_pending(flow, snapshot, kv, photos, image_bytes, location, monkeypatch):
    await flow.capture(image_bytes, location)

    async def broken_set(key, value):
        raise OSError("disk full")

    monkeypatch.setattr(kv, "set", broken_set)
    with pytest.raises(OSError):
        await flow.confirm()

    assert flow.state == PlantState.DETAILS_PENDING
    assert snapshot.trees == ()
    assert list(photos.root.iterdir()) == []


async def test_overlapping_confirms_create_one_tree(verifier, photos, clock, image_bytes, location):
    store = TreeStore(YieldingKeyValueStore(), STORAGE_KEY)
    snapshot = TreeSnapshot(store)
    ids = iter(["first", "second"])
    flow = PlantFlow(snapshot, verifier, photos, clock=clock, id_factory=lambda: next(ids))
    await flow.capture(image_bytes, location)

    results = await asyncio.gather(flow.confirm("a"), flow.confirm("b"), return_exceptions=True)

    assert results[0].id == "first"
    assert isinstance(results[1], InvalidTransition)
    assert flow.state == PlantState.COMPLETED
    assert [t.id for t in snapshot.trees] == ["first"]
    assert [t.id for t in await store.load_all()] == ["first"]
    assert len(list(photos.root.iterdir())) == 1


async def test_confirm_is_retryable_after_failed_save(flow, kv, snapshot, image_bytes, location, monkeypatch):
    await flow.capture(image_bytes, location)
    real_set = kv.set

    async def broken_set(key, value):
        raise OSError("disk full")

    monkeypatch.setattr(kv, "set", broken_set)
    with pytest.raises(OSError):
        await flow.confirm()

    monkeypatch.setattr(kv, "set", real_set)
    tree = await flow.confirm()
    assert flow.state == PlantState.COMPLETED
    assert snapshot.trees == (tree,)
