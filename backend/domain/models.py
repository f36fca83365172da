"""Domain models for course-room routine arbitration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationSeverity(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


@dataclass(frozen=True)
class TimeSlot:
    start_time: str
    end_time: str
    slot_type: str


@dataclass(frozen=True)
class SlotKey:
    """Identity of one bookable room-time cell."""

    day: str
    room_id: str
    start_time: str
    end_time: str
    slot_type: str

    @classmethod
    def from_time_slot(cls, day: str, room_id: str, time_slot: TimeSlot) -> "SlotKey":
        return cls(
            day=day,
            room_id=room_id,
            start_time=time_slot.start_time,
            end_time=time_slot.end_time,
            slot_type=time_slot.slot_type,
        )


@dataclass(frozen=True)
class Program:
    id: str
    program_code: str
    program_name: str = ""


@dataclass(frozen=True)
class ClassRoom:
    id: str
    building: str
    room: str
    room_owner: str = ""
    shared_with: tuple[str, ...] = ()
    room_type: str = "Theory"
    capacity: int = 0

    @property
    def room_text(self) -> str:
        return f"{self.building}_{self.room}"


@dataclass(frozen=True)
class CourseLoad:
    id: str
    course_code: str
    course_title: str = ""
    section: str = ""
    teacher_name: str = ""


@dataclass(frozen=True)
class RoutineEntry:
    id: str
    slot: SlotKey
    course_load_id: str
    program_id: str
    booking_end_date: Optional[date] = None


@dataclass(frozen=True)
class RoutineAssignmentRequest:
    id: str
    requesting_program_id: str
    room_owner_program_code: str
    slot: SlotKey
    requested_course_load_id: str
    booking_end_date: date
    status: RequestStatus
    request_date: datetime
    resolution_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING


@dataclass(frozen=True)
class NotificationSlotDetails:
    day: str
    room_text: str
    time_text: str
    course_code_text: str


@dataclass(frozen=True)
class Notification:
    id: str
    recipient_program_id: str
    message: str
    severity: NotificationSeverity
    timestamp: datetime
    is_read: bool = False
    related_request_id: Optional[str] = None
    related_slot: Optional[NotificationSlotDetails] = None


@dataclass(frozen=True)
class RoutineSnapshot:
    """Immutable view of entity inputs plus Ledger, Queue and notifications."""

    programs: tuple[Program, ...] = ()
    class_rooms: tuple[ClassRoom, ...] = ()
    course_loads: tuple[CourseLoad, ...] = ()
    entries: tuple[RoutineEntry, ...] = ()
    requests: tuple[RoutineAssignmentRequest, ...] = ()
    notifications: tuple[Notification, ...] = ()

    def find_program(self, program_id: str) -> Optional[Program]:
        return next((item for item in self.programs if item.id == program_id), None)

    def find_program_by_code_or_id(self, code_or_id: str) -> Optional[Program]:
        return next(
            (
                item
                for item in self.programs
                if item.program_code == code_or_id or item.id == code_or_id
            ),
            None,
        )

    def find_room(self, room_id: str) -> Optional[ClassRoom]:
        return next((item for item in self.class_rooms if item.id == room_id), None)

    def find_course_load(self, course_load_id: str) -> Optional[CourseLoad]:
        return next((item for item in self.course_loads if item.id == course_load_id), None)

    def find_request(self, request_id: str) -> Optional[RoutineAssignmentRequest]:
        return next((item for item in self.requests if item.id == request_id), None)

    def entries_at(self, slot: SlotKey) -> list[RoutineEntry]:
        return [entry for entry in self.entries if entry.slot == slot]

    def own_entry(self, slot: SlotKey, program_id: str) -> Optional[RoutineEntry]:
        return next(
            (entry for entry in self.entries_at(slot) if entry.program_id == program_id),
            None,
        )

    def pending_requests_at(self, slot: SlotKey) -> list[RoutineAssignmentRequest]:
        return [
            request
            for request in self.requests
            if request.is_pending and request.slot == slot
        ]

    def own_pending_request(
        self,
        slot: SlotKey,
        program_id: str,
    ) -> Optional[RoutineAssignmentRequest]:
        return next(
            (
                request
                for request in self.pending_requests_at(slot)
                if request.requesting_program_id == program_id
            ),
            None,
        )

    def with_entries(self, entries: tuple[RoutineEntry, ...]) -> "RoutineSnapshot":
        return replace(self, entries=entries)

    def with_requests(self, requests: tuple[RoutineAssignmentRequest, ...]) -> "RoutineSnapshot":
        return replace(self, requests=requests)

    def with_notifications(self, notifications: tuple[Notification, ...]) -> "RoutineSnapshot":
        return replace(self, notifications=notifications)


@dataclass(frozen=True)
class Effect:
    """Records touched by one arbitration call."""

    entries_created: tuple[RoutineEntry, ...] = ()
    entries_updated: tuple[RoutineEntry, ...] = ()
    entries_deleted: tuple[RoutineEntry, ...] = ()
    requests_created: tuple[RoutineAssignmentRequest, ...] = ()
    requests_updated: tuple[RoutineAssignmentRequest, ...] = ()
    requests_deleted: tuple[RoutineAssignmentRequest, ...] = ()
    notification: Optional[Notification] = None

    @property
    def is_noop(self) -> bool:
        return not any(
            (
                self.entries_created,
                self.entries_updated,
                self.entries_deleted,
                self.requests_created,
                self.requests_updated,
                self.requests_deleted,
                self.notification,
            )
        )


@dataclass(frozen=True)
class ArbitrationOutcome:
    snapshot: RoutineSnapshot
    effect: Effect = field(default_factory=Effect)
