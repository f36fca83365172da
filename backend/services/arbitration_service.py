"""Repository-bound orchestration of the routine arbitration engine."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

from backend.domain.authority import resolve_acting_program
from backend.domain.constraints import (
    ArbitrationConfig,
    parse_campus_timezone,
    parse_conflict_policy,
    validate_arbitration_config,
)
from backend.domain.errors import ArbitrationError, RoomNotFoundError
from backend.domain.models import (
    ArbitrationOutcome,
    Decision,
    Effect,
    RequestStatus,
    RoutineAssignmentRequest,
    RoutineEntry,
    SlotKey,
    TimeSlot,
)
from backend.repository.routine_repository import RoutineRepository
from backend.services.assignment_service import AssignmentIntent, submit_assignment_intent
from backend.services.resolution_service import resolve_request
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class CellStatus(str, Enum):
    AVAILABLE = "available"
    ASSIGNED_BY_CURRENT = "assigned_by_current"
    ASSIGNED_BY_OTHER = "assigned_by_other"
    PENDING_BY_CURRENT = "pending_by_current"
    ACTIONABLE_REQUEST = "actionable_request"
    LOCKED_EXTERNAL_PENDING = "locked_external_pending"


@dataclass(frozen=True)
class CellView:
    slot: SlotKey
    status: CellStatus
    entry: Optional[RoutineEntry] = None
    request: Optional[RoutineAssignmentRequest] = None


def build_arbitration_config(settings: Settings) -> ArbitrationConfig:
    config = ArbitrationConfig(
        conflict_policy=parse_conflict_policy(settings.conflict_policy),
        all_programs_id=settings.all_programs_id,
        not_available_text=settings.not_available_text,
        campus_timezone=parse_campus_timezone(settings.campus_timezone),
    )
    validate_arbitration_config(config)
    return config


class RoutineArbitrationService:
    """Runs each intent or decision to completion against the repository.

    The engine computes a new snapshot from the current one; the repository
    swaps it in only after the engine returns, so a raised error leaves the
    Ledger, Queue and notifications exactly as they were.
    """

    def __init__(
        self,
        repository: Optional[RoutineRepository] = None,
        settings: Optional[Settings] = None,
        config: Optional[ArbitrationConfig] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or RoutineRepository(self._settings)
        self._config = config or build_arbitration_config(self._settings)

    @property
    def config(self) -> ArbitrationConfig:
        return self._config

    def _commit(self, operation: str, outcome: ArbitrationOutcome) -> Effect:
        effect = outcome.effect
        if effect.is_noop:
            logger.info("%s completed without changes", operation)
            return effect
        self._repository.replace_snapshot(outcome.snapshot)
        logger.info(
            (
                "%s committed | entries +%s ~%s -%s | requests +%s ~%s -%s | notified=%s"
            ),
            operation,
            len(effect.entries_created),
            len(effect.entries_updated),
            len(effect.entries_deleted),
            len(effect.requests_created),
            len(effect.requests_updated),
            len(effect.requests_deleted),
            effect.notification.recipient_program_id if effect.notification else None,
        )
        return effect

    def submit_assignment_intent(
        self,
        *,
        day: str,
        room_id: str,
        time_slot: TimeSlot,
        acting_program_id: str,
        course_load_id: str = "",
        booking_end_date: Optional[date] = None,
    ) -> Effect:
        intent = AssignmentIntent(
            day=day,
            room_id=room_id,
            time_slot=time_slot,
            acting_program_id=acting_program_id,
            course_load_id=course_load_id or "",
            booking_end_date=booking_end_date,
        )
        try:
            outcome = submit_assignment_intent(self._repository.snapshot(), intent, self._config)
        except ArbitrationError as exc:
            logger.info(
                "Assignment intent rejected | kind=%s | program_id=%s | room_id=%s | day=%s",
                exc.kind,
                acting_program_id,
                room_id,
                day,
            )
            raise
        return self._commit("Assignment intent", outcome)

    def resolve_request(
        self,
        *,
        request_id: str,
        acting_program_id: str,
        decision: Decision,
        reason: Optional[str] = None,
    ) -> Effect:
        try:
            outcome = resolve_request(
                self._repository.snapshot(),
                request_id,
                acting_program_id,
                decision,
                self._config,
                reason=reason,
            )
        except ArbitrationError as exc:
            logger.info(
                "Request resolution rejected | kind=%s | request_id=%s | program_id=%s",
                exc.kind,
                request_id,
                acting_program_id,
            )
            raise
        return self._commit(f"Request {Decision(decision).value}", outcome)

    def list_entries(self, program_id: Optional[str] = None) -> list[RoutineEntry]:
        return [
            entry
            for entry in self._repository.snapshot().entries
            if program_id is None or entry.program_id == program_id
        ]

    def list_requests(
        self,
        *,
        owner_program_id: Optional[str] = None,
        requesting_program_id: Optional[str] = None,
        status: Optional[RequestStatus] = None,
    ) -> list[RoutineAssignmentRequest]:
        snapshot = self._repository.snapshot()
        owner_code: Optional[str] = None
        if owner_program_id is not None:
            owner = snapshot.find_program(owner_program_id)
            if owner is None:
                return []
            owner_code = owner.program_code
        return [
            request
            for request in snapshot.requests
            if (owner_code is None or request.room_owner_program_code == owner_code)
            and (requesting_program_id is None or request.requesting_program_id == requesting_program_id)
            and (status is None or request.status is status)
        ]

    def pending_request_count(self, owner_program_id: str) -> int:
        return len(
            self.list_requests(owner_program_id=owner_program_id, status=RequestStatus.PENDING)
        )

    def describe_cell(
        self,
        *,
        day: str,
        room_id: str,
        time_slot: TimeSlot,
        acting_program_id: str,
    ) -> CellView:
        """Return what the routine grid shows for this cell to the actor."""
        snapshot = self._repository.snapshot()
        program = resolve_acting_program(snapshot, acting_program_id, self._config)
        room = snapshot.find_room(room_id)
        if room is None:
            raise RoomNotFoundError("Room not found.", room_id=room_id)

        slot = SlotKey.from_time_slot(day, room_id, time_slot)
        entries = snapshot.entries_at(slot)
        own_entry = snapshot.own_entry(slot, program.id)
        displayed = own_entry or (entries[0] if entries else None)
        own_pending = snapshot.own_pending_request(slot, program.id)
        foreign_pending = next(
            (
                request
                for request in snapshot.pending_requests_at(slot)
                if request.requesting_program_id != program.id
            ),
            None,
        )
        is_owner = room.room_owner == program.program_code

        if own_pending is not None:
            return CellView(slot, CellStatus.PENDING_BY_CURRENT, entry=displayed, request=own_pending)
        if foreign_pending is not None and displayed is None:
            status = CellStatus.ACTIONABLE_REQUEST if is_owner else CellStatus.LOCKED_EXTERNAL_PENDING
            return CellView(slot, status, request=foreign_pending)
        if displayed is not None and displayed.program_id != program.id:
            return CellView(slot, CellStatus.ASSIGNED_BY_OTHER, entry=displayed)
        if displayed is not None:
            return CellView(slot, CellStatus.ASSIGNED_BY_CURRENT, entry=displayed)
        return CellView(slot, CellStatus.AVAILABLE)
