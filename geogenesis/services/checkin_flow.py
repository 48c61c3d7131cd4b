"""Monthly check-in: follow-up photo -> health assessment -> updated Tree.

States:
  idle -> capturing -> analyzing -> completed
  analyzing -> error -> idle

The update is all-or-nothing: the new check-in, lastCheckInDate, status and the
save either all land, or the tree (and the snapshot) stays as it was.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum

from geogenesis.errors import (
    CheckInNotAllowed,
    GeoGenesisError,
    InvalidTransition,
    MalformedResponse,
    ServiceUnavailable,
)
from geogenesis.schemas.tree import Tree, TreeCheckIn, TreeStatus
from geogenesis.schemas.verification import AiProgressResult, HealthStatus
from geogenesis.services import eligibility
from geogenesis.services.flow_state import (
    CancelToken,
    FlowError,
    check_transition,
    new_id,
    utcnow,
)
from geogenesis.services.photo_service import PhotoStore
from geogenesis.services.tree_snapshot import TreeSnapshot
from geogenesis.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


class CheckInState(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"


TRANSITIONS = {
    CheckInState.IDLE: frozenset({CheckInState.CAPTURING}),
    CheckInState.CAPTURING: frozenset({CheckInState.ANALYZING}),
    CheckInState.ANALYZING: frozenset({CheckInState.COMPLETED, CheckInState.ERROR}),
    CheckInState.ERROR: frozenset({CheckInState.IDLE}),
    CheckInState.COMPLETED: frozenset(),
}


class CheckInFlow:
    def __init__(
        self,
        tree_id: str,
        snapshot: TreeSnapshot,
        verifier: VerificationService,
        photos: PhotoStore,
        cadence_days: int = 30,
        bypass_cadence_gate: bool = False,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_id,
    ):
        self.tree_id = tree_id
        self.snapshot = snapshot
        self.verifier = verifier
        self.photos = photos
        self.cadence_days = cadence_days
        self.bypass_cadence_gate = bypass_cadence_gate
        self.clock = clock
        self.id_factory = id_factory
        self.token = CancelToken()
        self.state = CheckInState.IDLE
        self.error: FlowError | None = None
        self.result: AiProgressResult | None = None
        self.check_in: TreeCheckIn | None = None
        self.tree: Tree | None = None

    def begin(self) -> Tree:
        """Pass the cadence gate and start capturing."""
        self.token.raise_if_cancelled()
        if self.state != CheckInState.IDLE:
            raise InvalidTransition(f"Cannot start a check-in while {self.state.value}")
        tree = self.snapshot.get(self.tree_id)
        now = self.clock()
        if not self.bypass_cadence_gate and not eligibility.can_check_in(
            tree, now, self.cadence_days
        ):
            raise CheckInNotAllowed(
                eligibility.days_until_next_check_in(tree, now, self.cadence_days)
            )
        self.error = None
        self._move(CheckInState.CAPTURING)
        return tree

    async def submit(self, image: bytes) -> Tree:
        """Assess the photo and record the check-in. Returns the updated tree."""
        self.token.raise_if_cancelled()
        if self.state != CheckInState.CAPTURING:
            raise InvalidTransition(f"Cannot submit a photo while {self.state.value}")
        if not image:
            raise InvalidTransition("No photo has been captured")

        species = self.snapshot.get(self.tree_id).species
        self._move(CheckInState.ANALYZING)
        try:
            result = await self.verifier.assess_progress(image, species)
        except (ServiceUnavailable, MalformedResponse) as e:
            self.token.raise_if_cancelled()
            self._fail(FlowError.from_exception(e))
            raise
        self.token.raise_if_cancelled()

        now = self.clock()
        image_url = self.photos.save(image)
        check_in = TreeCheckIn(
            id=self.id_factory(),
            date=now,
            image_url=image_url,
            ai_health_analysis=result.message,
            is_healthy=result.health_status == HealthStatus.HEALTHY,
        )
        updated = self.snapshot.get(self.tree_id).with_check_in(
            check_in, TreeStatus.from_health(result.health_status)
        )
        try:
            await self.snapshot.replace(updated)
        except GeoGenesisError as e:
            self.photos.delete(image_url)
            self._fail(FlowError.from_exception(e))
            raise
        except Exception as e:
            self.photos.delete(image_url)
            self._fail(FlowError(reason="storage_error", detail=str(e)))
            raise

        self._move(CheckInState.COMPLETED)
        self.result = result
        self.check_in = check_in
        self.tree = updated
        logger.info(
            "Checked in %s: %s -> %s (%d check-ins)",
            updated.id, result.health_status.value, updated.status.value, len(updated.check_ins),
        )
        return updated

    async def run(self, image: bytes) -> Tree:
        self.begin()
        return await self.submit(image)

    def cancel(self) -> None:
        """Abandon the flow. An in-flight assessment will not touch the tree."""
        self.token.cancel()
        logger.debug("Check-in flow for %s cancelled in state %s", self.tree_id, self.state.value)

    def _move(self, target: CheckInState) -> None:
        check_transition(TRANSITIONS, self.state, target)
        logger.debug("Check-in flow %s -> %s", self.state.value, target.value)
        self.state = target

    def _fail(self, error: FlowError) -> None:
        self._move(CheckInState.ERROR)
        self.error = error
        logger.warning("Check-in for %s failed: %s (%s)", self.tree_id, error.reason, error.detail)
        self._move(CheckInState.IDLE)
