"""Pieces shared by the planting and check-in state machines."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from geogenesis.errors import FlowCancelled, GeoGenesisError, InvalidTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class FlowError:
    """Last failure of a flow, as shown to the user."""

    reason: str
    detail: str

    @classmethod
    def from_exception(cls, exc: GeoGenesisError) -> "FlowError":
        return cls(reason=exc.reason, detail=exc.detail)


class CancelToken:
    """Set when the caller walks away. Checked after every await."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise FlowCancelled()


def check_transition(
    table: dict[Enum, frozenset[Enum]], current: Enum, target: Enum
) -> None:
    if target not in table[current]:
        raise InvalidTransition(f"Cannot move from {current.value} to {target.value}")
