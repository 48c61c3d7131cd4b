"""Planting: photo + location -> verification -> nickname -> new Tree.

States:
  capturing -> verifying -> details_pending -> saving -> completed
  saving -> details_pending when the save fails
  any other non-terminal state -> error -> capturing

A Tree is only built when the photo, the resolved location and a positive
verification are all held at once. A rejected photo is never stored.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from geogenesis.errors import (
    GeoGenesisError,
    InvalidTransition,
    LocationUnavailable,
    MalformedResponse,
    NotATree,
    ServiceUnavailable,
)
from geogenesis.schemas.tree import Coordinates, Tree, TreeStatus
from geogenesis.schemas.verification import AiVerificationResult
from geogenesis.services.flow_state import (
    CancelToken,
    FlowError,
    check_transition,
    new_id,
    utcnow,
)
from geogenesis.services.location_service import LocationProvider
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


class PlantState(str, Enum):
    CAPTURING = "capturing"
    VERIFYING = "verifying"
    DETAILS_PENDING = "details_pending"
    SAVING = "saving"
    COMPLETED = "completed"
    ERROR = "error"


TRANSITIONS = {
    PlantState.CAPTURING: frozenset({PlantState.VERIFYING, PlantState.ERROR}),
    PlantState.VERIFYING: frozenset({PlantState.DETAILS_PENDING, PlantState.ERROR}),
    PlantState.DETAILS_PENDING: frozenset({PlantState.SAVING, PlantState.ERROR}),
    PlantState.SAVING: frozenset({PlantState.COMPLETED, PlantState.DETAILS_PENDING}),
    PlantState.ERROR: frozenset({PlantState.CAPTURING}),
    PlantState.COMPLETED: frozenset(),
}


@dataclass
class PlantCapture:
    image: bytes
    location: Coordinates | None = None
    verification: AiVerificationResult | None = None

    @property
    def complete(self) -> bool:
        return bool(self.image) and self.location is not None and self.verification is not None


class PlantFlow:
    def __init__(
        self,
        snapshot: TreeSnapshot,
        verifier: VerificationService,
        photos: PhotoStore,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_id,
    ):
        self.snapshot = snapshot
        self.verifier = verifier
        self.photos = photos
        self.clock = clock
        self.id_factory = id_factory
        self.token = CancelToken()
        self.state = PlantState.CAPTURING
        self.capture_data: PlantCapture | None = None
        self.error: FlowError | None = None
        self.tree: Tree | None = None

    async def capture(self, image: bytes, locator: LocationProvider) -> AiVerificationResult:
        """Resolve location, then verify the photo. Ends in details_pending on success."""
        self.token.raise_if_cancelled()
        if self.state != PlantState.CAPTURING:
            raise InvalidTransition(f"Cannot capture while {self.state.value}")
        if not image:
            raise InvalidTransition("No photo has been captured")

        self.error = None
        self.capture_data = PlantCapture(image=image)

        try:
            location = await locator.resolve(image)
        except LocationUnavailable as e:
            self.token.raise_if_cancelled()
            self._fail(e)
            raise
        self.token.raise_if_cancelled()
        self.capture_data.location = location

        self._move(PlantState.VERIFYING)
        try:
            result = await self.verifier.verify(image)
        except (ServiceUnavailable, MalformedResponse) as e:
            self.token.raise_if_cancelled()
            # an unreadable answer is reported as the service being unavailable
            self._fail(e, reason=ServiceUnavailable.reason)
            raise
        self.token.raise_if_cancelled()

        if not result.is_tree:
            rejected = NotATree()
            self._fail(rejected)
            raise rejected

        self.capture_data.verification = result
        self._move(PlantState.DETAILS_PENDING)
        return result

    async def confirm(self, nickname: str | None = None) -> Tree:
        """Register the verified tree. An empty nickname falls back to the species."""
        self.token.raise_if_cancelled()
        if self.state != PlantState.DETAILS_PENDING:
            raise InvalidTransition(f"Cannot confirm while {self.state.value}")
        data = self.capture_data
        if data is None or not data.complete:
            raise InvalidTransition("Planting needs a photo, a location and a verified species")

        self._move(PlantState.SAVING)
        species = data.verification.species
        now = self.clock()
        image_url = None
        try:
            image_url = self.photos.save(data.image)
            tree = Tree(
                id=self.id_factory(),
                nickname=(nickname or "").strip() or species,
                species=species,
                planted_date=now,
                location=data.location,
                image_url=image_url,
                check_ins=[],
                last_check_in_date=now,
                status=TreeStatus.HEALTHY,
            )
            await self.snapshot.add(tree)
        except Exception:
            if image_url is not None:
                self.photos.delete(image_url)
            self._move(PlantState.DETAILS_PENDING)
            raise

        self._move(PlantState.COMPLETED)
        self.tree = tree
        self.capture_data = None
        logger.info("Planted %s (%s) at %s", tree.id, tree.species, tree.location)
        return tree

    def cancel(self) -> None:
        """Abandon the flow. An in-flight call's result will be dropped."""
        self.token.cancel()
        self.capture_data = None
        logger.debug("Plant flow cancelled in state %s", self.state.value)

    def _move(self, target: PlantState) -> None:
        check_transition(TRANSITIONS, self.state, target)
        logger.debug("Plant flow %s -> %s", self.state.value, target.value)
        self.state = target

    def _fail(self, exc: GeoGenesisError, reason: str | None = None) -> None:
        self._move(PlantState.ERROR)
        self.error = FlowError(reason=reason or exc.reason, detail=exc.detail)
        self.capture_data = None
        logger.warning("Planting failed: %s (%s)", exc.reason, exc.detail)
        self._move(PlantState.CAPTURING)
