"""Planting sessions waiting for the user's confirmation, keyed by flow id."""

import logging

from geogenesis.errors import FlowNotFound
from geogenesis.services.flow_state import new_id
from geogenesis.services.plant_flow import PlantFlow

logger = logging.getLogger(__name__)


class PlantFlowRegistry:
    def __init__(self, max_pending: int = 32):
        self.max_pending = max_pending
        self._flows: dict[str, PlantFlow] = {}

    def __len__(self) -> int:
        return len(self._flows)

    def open(self, flow: PlantFlow) -> str:
        # drop the oldest pending session rather than grow without bound
        while len(self._flows) >= self.max_pending:
            oldest_id = next(iter(self._flows))
            self.discard(oldest_id)
            logger.info("Dropped stale planting session %s", oldest_id)
        flow_id = new_id()
        self._flows[flow_id] = flow
        return flow_id

    def get(self, flow_id: str) -> PlantFlow:
        flow = self._flows.get(flow_id)
        if flow is None:
            raise FlowNotFound()
        return flow

    def discard(self, flow_id: str) -> bool:
        flow = self._flows.pop(flow_id, None)
        if flow is None:
            return False
        flow.cancel()
        return True

    def close(self, flow_id: str) -> None:
        """Forget a finished flow without cancelling it."""
        self._flows.pop(flow_id, None)
