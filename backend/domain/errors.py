"""Typed failures raised by the arbitration engine.

Each class carries a stable ``kind`` so callers can branch on the failure
without string matching the message. Raising any of these guarantees the
snapshot passed to the engine was not replaced.
"""

from __future__ import annotations

from typing import Any


class ArbitrationError(Exception):
    """Base class for rejected intents and resolution decisions."""

    kind = "ArbitrationError"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self), "details": dict(self.details)}


class NoProgramSelectedError(ArbitrationError):
    """Raised when the actor is missing or is the all-programs aggregate."""

    kind = "NoProgramSelected"


class RoomNotFoundError(ArbitrationError):
    kind = "RoomNotFound"


class PastBookingDateError(ArbitrationError):
    kind = "PastBookingDate"


class MissingRequiredDateError(ArbitrationError):
    """Raised when a shared-room request is submitted without an end date."""

    kind = "MissingRequiredDate"


class NotAuthorizedError(ArbitrationError):
    """Raised when the actor does not own a pending request's room."""

    kind = "NotAuthorized"


class ConflictError(ArbitrationError):
    """Raised when a different program already holds the cell."""

    kind = "Conflict"


class RequestNotFoundError(ArbitrationError):
    kind = "RequestNotFound"
