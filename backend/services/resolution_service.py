"""Owner-side approval and rejection of queued assignment requests."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional

from backend.domain.authority import resolve_acting_program
from backend.domain.constraints import ArbitrationConfig
from backend.domain.errors import ConflictError, NotAuthorizedError, RequestNotFoundError
from backend.domain.models import (
    ArbitrationOutcome,
    Decision,
    Effect,
    NotificationSeverity,
    Program,
    RequestStatus,
    RoutineAssignmentRequest,
    RoutineEntry,
    RoutineSnapshot,
)
from backend.services.notification_service import build_slot_details, emit_notification


def _ensure_can_resolve(request: RoutineAssignmentRequest, program: Program, verb: str) -> None:
    if not request.is_pending or request.room_owner_program_code != program.program_code:
        raise NotAuthorizedError(
            f"Cannot {verb} this request. It might not be pending or you are not "
            "the room owner for this request.",
            request_id=request.id,
            status=request.status.value,
            program_id=program.id,
        )


def _replace_request(
    snapshot: RoutineSnapshot,
    updated: RoutineAssignmentRequest,
) -> RoutineSnapshot:
    return snapshot.with_requests(
        tuple(updated if item.id == updated.id else item for item in snapshot.requests)
    )


def _request_summary(snapshot: RoutineSnapshot, request: RoutineAssignmentRequest, config: ArbitrationConfig):
    details = build_slot_details(snapshot, request.slot, request.requested_course_load_id, config)
    course_text = (
        details.course_code_text
        if details.course_code_text != config.not_available_text
        else "course"
    )
    return details, f"{course_text} in {details.room_text} ({details.day}, {details.time_text})"


def approve_request(
    snapshot: RoutineSnapshot,
    request: RoutineAssignmentRequest,
    config: ArbitrationConfig,
) -> ArbitrationOutcome:
    """Commit an authorized pending request into the Ledger.

    A Ledger entry of the requesting program at the same cell is superseded;
    an entry of any other program blocks the approval.
    """
    occupying = snapshot.entries_at(request.slot)
    foreign = [entry for entry in occupying if entry.program_id != request.requesting_program_id]
    if foreign:
        holder = snapshot.find_program(foreign[0].program_id)
        raise ConflictError(
            "Cannot approve. Slot is already assigned to "
            f"{holder.program_code if holder else 'another program'}. "
            "Please resolve the conflict first.",
            request_id=request.id,
            entry_id=foreign[0].id,
            program_id=foreign[0].program_id,
        )
    stale_ids = {entry.id for entry in occupying}

    created = RoutineEntry(
        id=config.id_factory("re"),
        slot=request.slot,
        course_load_id=request.requested_course_load_id,
        program_id=request.requesting_program_id,
        booking_end_date=request.booking_end_date,
    )
    approved = replace(request, status=RequestStatus.APPROVED, resolution_date=config.now())

    new_snapshot = snapshot.with_entries(
        tuple(entry for entry in snapshot.entries if entry.id not in stale_ids) + (created,)
    )
    new_snapshot = _replace_request(new_snapshot, approved)
    details, summary = _request_summary(snapshot, request, config)
    new_snapshot, notification = emit_notification(
        new_snapshot,
        request.requesting_program_id,
        f"Your request for {summary} has been approved.",
        NotificationSeverity.SUCCESS,
        config,
        related_request_id=request.id,
        related_slot=details,
    )
    return ArbitrationOutcome(
        snapshot=new_snapshot,
        effect=Effect(
            entries_created=(created,),
            entries_deleted=tuple(occupying),
            requests_updated=(approved,),
            notification=notification,
        ),
    )


def reject_request(
    snapshot: RoutineSnapshot,
    request: RoutineAssignmentRequest,
    config: ArbitrationConfig,
    reason: Optional[str] = None,
) -> ArbitrationOutcome:
    reason = reason.strip() if reason and reason.strip() else None
    rejected = replace(
        request,
        status=RequestStatus.REJECTED,
        resolution_date=config.now(),
        rejection_reason=reason,
    )
    new_snapshot = _replace_request(snapshot, rejected)
    details, summary = _request_summary(snapshot, request, config)
    message = f"Your request for {summary} has been rejected."
    if reason:
        message = f"{message} Reason: {reason}"
    new_snapshot, notification = emit_notification(
        new_snapshot,
        request.requesting_program_id,
        message,
        NotificationSeverity.ERROR,
        config,
        related_request_id=request.id,
        related_slot=details,
    )
    return ArbitrationOutcome(
        snapshot=new_snapshot,
        effect=Effect(requests_updated=(rejected,), notification=notification),
    )


def resolve_request(
    snapshot: RoutineSnapshot,
    request_id: str,
    acting_program_id: str,
    decision: Decision,
    config: ArbitrationConfig,
    reason: Optional[str] = None,
) -> ArbitrationOutcome:
    program = resolve_acting_program(snapshot, acting_program_id, config)
    request = snapshot.find_request(request_id)
    if request is None:
        raise RequestNotFoundError(f"Request {request_id!r} not found.", request_id=request_id)

    decision = Decision(decision)
    _ensure_can_resolve(request, program, decision.value)
    if decision is Decision.APPROVE:
        return approve_request(snapshot, request, config)
    return reject_request(snapshot, request, config, reason=reason)
