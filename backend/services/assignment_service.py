"""Assignment intent classification and execution.

Every function here is pure: it reads a ``RoutineSnapshot`` and returns a new
one together with an ``Effect``. All validation happens before the first new
collection is built, so a raised ``ArbitrationError`` never leaves partial
state behind.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from backend.domain.authority import (
    RoomAuthority,
    SharedAuthority,
    classify_room_authority,
    resolve_acting_program,
)
from backend.domain.constraints import (
    ArbitrationConfig,
    ConflictPolicy,
    require_booking_end_date,
    validate_booking_end_date,
)
from backend.domain.errors import ConflictError, RoomNotFoundError
from backend.domain.models import (
    ArbitrationOutcome,
    ClassRoom,
    Effect,
    NotificationSeverity,
    Program,
    RequestStatus,
    RoutineAssignmentRequest,
    RoutineEntry,
    RoutineSnapshot,
    SlotKey,
    TimeSlot,
)
from backend.services.notification_service import (
    build_slot_details,
    emit_notification,
    format_booking_date,
    format_time_range,
)


@dataclass(frozen=True)
class AssignmentIntent:
    day: str
    room_id: str
    time_slot: TimeSlot
    acting_program_id: str
    course_load_id: str = ""
    booking_end_date: Optional[date] = None

    @property
    def slot_key(self) -> SlotKey:
        return SlotKey.from_time_slot(self.day, self.room_id, self.time_slot)

    @property
    def is_clear(self) -> bool:
        return not self.course_load_id.strip()


@dataclass(frozen=True)
class _CellContext:
    program: Program
    room: ClassRoom
    authority: RoomAuthority
    slot: SlotKey
    own_entry: Optional[RoutineEntry]
    own_pending_request: Optional[RoutineAssignmentRequest]

    @property
    def owner_code(self) -> str:
        if isinstance(self.authority, SharedAuthority):
            return self.authority.owner_code
        return ""


def _describe(context: _CellContext) -> str:
    slot = context.slot
    return f"{context.room.room_text} ({slot.day}, {format_time_range(slot.start_time, slot.end_time)})"


def _notify_owner(
    snapshot: RoutineSnapshot,
    context: _CellContext,
    message: str,
    course_load_id: str,
    config: ArbitrationConfig,
    related_request_id: Optional[str] = None,
):
    return emit_notification(
        snapshot,
        context.owner_code,
        message,
        NotificationSeverity.INFO,
        config,
        related_request_id=related_request_id,
        related_slot=build_slot_details(snapshot, context.slot, course_load_id, config, room=context.room),
    )


def _course_code(snapshot: RoutineSnapshot, course_load_id: str, config: ArbitrationConfig) -> str:
    course = snapshot.find_course_load(course_load_id)
    return course.course_code if course is not None else config.not_available_text


def _new_request(
    context: _CellContext,
    course_load_id: str,
    booking_end_date: date,
    config: ArbitrationConfig,
) -> RoutineAssignmentRequest:
    return RoutineAssignmentRequest(
        id=config.id_factory("req"),
        requesting_program_id=context.program.id,
        room_owner_program_code=context.owner_code,
        slot=context.slot,
        requested_course_load_id=course_load_id,
        booking_end_date=booking_end_date,
        status=RequestStatus.PENDING,
        request_date=config.now(),
    )


def _clear_cell(
    snapshot: RoutineSnapshot,
    context: _CellContext,
    config: ArbitrationConfig,
) -> ArbitrationOutcome:
    shared = isinstance(context.authority, SharedAuthority)
    program_code = context.program.program_code

    if context.own_entry is not None:
        cleared = context.own_entry
        new_snapshot = snapshot.with_entries(
            tuple(entry for entry in snapshot.entries if entry.id != cleared.id)
        )
        notification = None
        if shared:
            new_snapshot, notification = _notify_owner(
                new_snapshot,
                context,
                (
                    f"Assignment for {_course_code(snapshot, cleared.course_load_id, config)} "
                    f"by {program_code} in {_describe(context)} has been cleared."
                ),
                cleared.course_load_id,
                config,
            )
        return ArbitrationOutcome(
            snapshot=new_snapshot,
            effect=Effect(entries_deleted=(cleared,), notification=notification),
        )

    if context.own_pending_request is not None:
        cancelled = context.own_pending_request
        new_snapshot = snapshot.with_requests(
            tuple(request for request in snapshot.requests if request.id != cancelled.id)
        )
        notification = None
        if shared:
            new_snapshot, notification = _notify_owner(
                new_snapshot,
                context,
                (
                    f"Request from {program_code} for "
                    f"{_course_code(snapshot, cancelled.requested_course_load_id, config)} "
                    f"in {_describe(context)} has been cancelled."
                ),
                cancelled.requested_course_load_id,
                config,
                related_request_id=cancelled.id,
            )
        return ArbitrationOutcome(
            snapshot=new_snapshot,
            effect=Effect(requests_deleted=(cancelled,), notification=notification),
        )

    return ArbitrationOutcome(snapshot=snapshot, effect=Effect())


def _write_direct(
    snapshot: RoutineSnapshot,
    context: _CellContext,
    intent: AssignmentIntent,
    config: ArbitrationConfig,
) -> ArbitrationOutcome:
    if config.conflict_policy is ConflictPolicy.EXCLUSIVE:
        holders = [
            entry
            for entry in snapshot.entries_at(context.slot)
            if entry.program_id != context.program.id
        ]
        if holders:
            holder = snapshot.find_program(holders[0].program_id)
            raise ConflictError(
                "Slot is already assigned to "
                f"{holder.program_code if holder else 'another program'}.",
                entry_id=holders[0].id,
                program_id=holders[0].program_id,
            )

    if context.own_entry is not None:
        updated = replace(
            context.own_entry,
            course_load_id=intent.course_load_id,
            booking_end_date=intent.booking_end_date,
        )
        return ArbitrationOutcome(
            snapshot=snapshot.with_entries(
                tuple(updated if entry.id == updated.id else entry for entry in snapshot.entries)
            ),
            effect=Effect(entries_updated=(updated,)),
        )

    created = RoutineEntry(
        id=config.id_factory("re"),
        slot=context.slot,
        course_load_id=intent.course_load_id,
        program_id=context.program.id,
        booking_end_date=intent.booking_end_date,
    )
    return ArbitrationOutcome(
        snapshot=snapshot.with_entries(snapshot.entries + (created,)),
        effect=Effect(entries_created=(created,)),
    )


def _negotiate_shared_cell(
    snapshot: RoutineSnapshot,
    context: _CellContext,
    intent: AssignmentIntent,
    config: ArbitrationConfig,
) -> ArbitrationOutcome:
    program_code = context.program.program_code
    course_code = _course_code(snapshot, intent.course_load_id, config)

    if context.own_pending_request is not None:
        booking_end_date = require_booking_end_date(intent.booking_end_date, "pending requests")
        updated = replace(
            context.own_pending_request,
            requested_course_load_id=intent.course_load_id,
            booking_end_date=booking_end_date,
            request_date=config.now(),
        )
        new_snapshot = snapshot.with_requests(
            tuple(updated if request.id == updated.id else request for request in snapshot.requests)
        )
        new_snapshot, notification = _notify_owner(
            new_snapshot,
            context,
            (
                f"Pending request from {program_code} for {_describe(context)} has been updated. "
                f"New course: {course_code}, end date: {format_booking_date(booking_end_date)}."
            ),
            intent.course_load_id,
            config,
            related_request_id=updated.id,
        )
        return ArbitrationOutcome(
            snapshot=new_snapshot,
            effect=Effect(requests_updated=(updated,), notification=notification),
        )

    if context.own_entry is not None:
        entry = context.own_entry
        if intent.booking_end_date != entry.booking_end_date:
            booking_end_date = require_booking_end_date(
                intent.booking_end_date,
                "booking date change requests",
            )
            created = _new_request(context, intent.course_load_id, booking_end_date, config)
            new_snapshot = snapshot.with_requests(snapshot.requests + (created,))
            new_snapshot, notification = _notify_owner(
                new_snapshot,
                context,
                (
                    f"{program_code} requested a booking date change for {course_code} in "
                    f"{_describe(context)} to end on {format_booking_date(booking_end_date)}."
                ),
                intent.course_load_id,
                config,
                related_request_id=created.id,
            )
            return ArbitrationOutcome(
                snapshot=new_snapshot,
                effect=Effect(requests_created=(created,), notification=notification),
            )

        updated = replace(entry, course_load_id=intent.course_load_id)
        new_snapshot = snapshot.with_entries(
            tuple(updated if item.id == updated.id else item for item in snapshot.entries)
        )
        new_snapshot, notification = _notify_owner(
            new_snapshot,
            context,
            (
                f"Shared assignment for {program_code} in {_describe(context)} has been updated. "
                f"New course: {course_code}."
            ),
            intent.course_load_id,
            config,
        )
        return ArbitrationOutcome(
            snapshot=new_snapshot,
            effect=Effect(entries_updated=(updated,), notification=notification),
        )

    booking_end_date = require_booking_end_date(
        intent.booking_end_date,
        "new shared room requests",
    )
    created = _new_request(context, intent.course_load_id, booking_end_date, config)
    new_snapshot = snapshot.with_requests(snapshot.requests + (created,))
    new_snapshot, notification = _notify_owner(
        new_snapshot,
        context,
        (
            f"New request from {program_code} for {course_code} in {_describe(context)}. "
            f"Book until: {format_booking_date(booking_end_date)}."
        ),
        intent.course_load_id,
        config,
        related_request_id=created.id,
    )
    return ArbitrationOutcome(
        snapshot=new_snapshot,
        effect=Effect(requests_created=(created,), notification=notification),
    )


def submit_assignment_intent(
    snapshot: RoutineSnapshot,
    intent: AssignmentIntent,
    config: ArbitrationConfig,
) -> ArbitrationOutcome:
    """Classify the room's authority for the actor and apply the intent."""
    program = resolve_acting_program(snapshot, intent.acting_program_id, config)
    room = snapshot.find_room(intent.room_id)
    if room is None:
        raise RoomNotFoundError("Room not found.", room_id=intent.room_id)

    slot = intent.slot_key
    context = _CellContext(
        program=program,
        room=room,
        authority=classify_room_authority(room, program),
        slot=slot,
        own_entry=snapshot.own_entry(slot, program.id),
        own_pending_request=snapshot.own_pending_request(slot, program.id),
    )

    if intent.is_clear:
        return _clear_cell(snapshot, context, config)

    validate_booking_end_date(intent.booking_end_date, config.today())
    if isinstance(context.authority, SharedAuthority):
        return _negotiate_shared_cell(snapshot, context, intent, config)
    return _write_direct(snapshot, context, intent, config)
