"""Error taxonomy. Every error carries a stable reason code and a user-facing message."""


class GeoGenesisError(Exception):
    reason = "error"
    status_code = 400
    message = "Something went wrong. Please try again."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.message
        super().__init__(self.detail)


class LocationUnavailable(GeoGenesisError):
    reason = "location_unavailable"
    status_code = 422
    message = "Could not fetch location. GPS is required to plant."


class PermissionDenied(LocationUnavailable):
    reason = "permission_denied"
    message = "Location permission was denied. GPS is required to plant."


class NotATree(GeoGenesisError):
    reason = "not_a_tree"
    status_code = 422
    message = "AI check failed: This doesn't look like a tree or sapling. Please try again."


class ServiceUnavailable(GeoGenesisError):
    reason = "service_unavailable"
    status_code = 503
    message = "AI Service unavailable. Please try again."


class MalformedResponse(GeoGenesisError):
    reason = "malformed_response"
    status_code = 502
    message = "AI Service returned an unreadable answer. Please try again."


class CorruptState(GeoGenesisError):
    reason = "corrupt_state"
    status_code = 500
    message = "Stored trees could not be read."


class CheckInNotAllowed(GeoGenesisError):
    reason = "check_in_locked"
    status_code = 409
    message = "Check-in locked."

    def __init__(self, days_remaining: int):
        self.days_remaining = days_remaining
        super().__init__(f"Check-in locked for {days_remaining} more days.")


class TreeNotFound(GeoGenesisError):
    reason = "tree_not_found"
    status_code = 404
    message = "Tree not found"


class FlowNotFound(GeoGenesisError):
    reason = "flow_not_found"
    status_code = 404
    message = "Planting session not found or already finished."


class InvalidTransition(GeoGenesisError):
    reason = "invalid_transition"
    status_code = 409
    message = "This step is not available right now."


class FlowCancelled(GeoGenesisError):
    reason = "flow_cancelled"
    status_code = 409
    message = "The flow was cancelled."
