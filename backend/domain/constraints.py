"""Domain-level validation rules for routine arbitration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone, tzinfo
from enum import Enum
from typing import Callable, Optional
from uuid import uuid4
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from backend.domain.errors import MissingRequiredDateError, PastBookingDateError


class ConflictPolicy(str, Enum):
    """How direct writes treat a cell already held by another program.

    PERMISSIVE only arbitrates cross-program contention inside the approval
    flow, so two programs may both write an unowned room's cell directly.
    EXCLUSIVE rejects such direct writes with a conflict.
    """

    PERMISSIVE = "permissive"
    EXCLUSIVE = "exclusive"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_id_factory(prefix: str) -> str:
    return f"{prefix}-{uuid4().hex[:16]}"


@dataclass(frozen=True)
class ArbitrationConfig:
    now: Callable[[], datetime] = utc_now
    id_factory: Callable[[str], str] = default_id_factory
    conflict_policy: ConflictPolicy = ConflictPolicy.PERMISSIVE
    all_programs_id: str = "__ALL_PROGRAMS__"
    not_available_text: str = "N/A"
    # None means the host's local zone.
    campus_timezone: Optional[tzinfo] = None

    def today(self) -> date:
        """Calendar date on campus; booking end dates are compared against it."""
        return self.now().astimezone(self.campus_timezone).date()


def parse_conflict_policy(value: str) -> ConflictPolicy:
    try:
        return ConflictPolicy(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(policy.value for policy in ConflictPolicy)
        raise ValueError(f"conflict_policy must be one of: {allowed}") from exc


def parse_campus_timezone(name: str) -> Optional[tzinfo]:
    if not name.strip():
        return None
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"campus_timezone {name!r} is not a known IANA zone") from exc


def validate_arbitration_config(config: ArbitrationConfig) -> None:
    if not isinstance(config.conflict_policy, ConflictPolicy):
        raise ValueError("conflict_policy must be a ConflictPolicy member")
    if not config.all_programs_id.strip():
        raise ValueError("all_programs_id must be non-empty")
    if not callable(config.now) or not callable(config.id_factory):
        raise ValueError("now and id_factory must be callables")


def validate_booking_end_date(booking_end_date: Optional[date], today: date) -> None:
    """Reject end dates strictly before ``today``; an absent date is allowed."""
    if booking_end_date is None:
        return
    if booking_end_date < today:
        raise PastBookingDateError(
            "Booking end date cannot be in the past.",
            booking_end_date=booking_end_date.isoformat(),
            today=today.isoformat(),
        )


def require_booking_end_date(booking_end_date: Optional[date], context: str) -> date:
    if booking_end_date is None:
        raise MissingRequiredDateError(
            f"Booking end date is required for {context}.",
        )
    return booking_end_date
