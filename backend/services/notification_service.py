"""Notification emission and per-program inbox management."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Optional

from backend.domain.constraints import ArbitrationConfig
from backend.domain.models import (
    ClassRoom,
    Notification,
    NotificationSeverity,
    NotificationSlotDetails,
    RoutineSnapshot,
    SlotKey,
)
from backend.repository.routine_repository import RoutineRepository
from backend.utils.logger import get_logger


logger = get_logger(__name__)


class NotificationNotFoundError(Exception):
    """Raised when an inbox operation targets an unknown notification id."""


def format_to_ampm(time_hhmm: str) -> str:
    """Render ``HH:MM`` as ``hh:mm AM``; malformed input yields a marker."""
    if not time_hhmm:
        return "N/A"
    parts = time_hhmm.split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        return "Invalid Time"
    hours, minutes = (int(part) for part in parts)
    suffix = "PM" if hours >= 12 else "AM"
    hours = hours % 12 or 12
    return f"{hours:02d}:{minutes:02d} {suffix}"


def format_time_range(start_time: str, end_time: str) -> str:
    return f"{format_to_ampm(start_time)} - {format_to_ampm(end_time)}"


def format_booking_date(value: Optional[date]) -> str:
    if value is None:
        return "N/A"
    return value.strftime("%b %d, %Y")


def build_slot_details(
    snapshot: RoutineSnapshot,
    slot: SlotKey,
    course_load_id: str,
    config: ArbitrationConfig,
    room: Optional[ClassRoom] = None,
) -> NotificationSlotDetails:
    room = room or snapshot.find_room(slot.room_id)
    course = snapshot.find_course_load(course_load_id) if course_load_id else None
    return NotificationSlotDetails(
        day=slot.day,
        room_text=room.room_text if room is not None else config.not_available_text,
        time_text=format_time_range(slot.start_time, slot.end_time),
        course_code_text=course.course_code if course is not None else config.not_available_text,
    )


def emit_notification(
    snapshot: RoutineSnapshot,
    recipient_code_or_id: str,
    message: str,
    severity: NotificationSeverity,
    config: ArbitrationConfig,
    related_request_id: Optional[str] = None,
    related_slot: Optional[NotificationSlotDetails] = None,
) -> tuple[RoutineSnapshot, Optional[Notification]]:
    """Append an unread notification for the resolved recipient.

    Recipient resolution failures are logged and dropped; the triggering
    mutation still goes through with the snapshot returned unchanged.
    """
    recipient = snapshot.find_program_by_code_or_id(recipient_code_or_id)
    if recipient is None:
        logger.warning(
            "Notification recipient program not found; dropping | recipient=%s | related_request_id=%s",
            recipient_code_or_id,
            related_request_id,
        )
        return snapshot, None

    notification = Notification(
        id=config.id_factory("notif"),
        recipient_program_id=recipient.id,
        message=message,
        severity=severity,
        timestamp=config.now(),
        is_read=False,
        related_request_id=related_request_id,
        related_slot=related_slot,
    )
    logger.debug(
        "Notification emitted | recipient_program_id=%s | severity=%s",
        recipient.id,
        severity.value,
    )
    return snapshot.with_notifications(snapshot.notifications + (notification,)), notification


class NotificationService:
    """Read-side and housekeeping operations over the notification sink."""

    def __init__(self, repository: RoutineRepository) -> None:
        self._repository = repository

    def list_for_program(self, program_id: str, unread_only: bool = False) -> list[Notification]:
        items = [
            item
            for item in self._repository.snapshot().notifications
            if item.recipient_program_id == program_id and not (unread_only and item.is_read)
        ]
        return sorted(items, key=lambda item: item.timestamp, reverse=True)

    def unread_count(self, program_id: str) -> int:
        return len(self.list_for_program(program_id, unread_only=True))

    def mark_as_read(self, notification_id: str) -> Notification:
        snapshot = self._repository.snapshot()
        target = next(
            (item for item in snapshot.notifications if item.id == notification_id),
            None,
        )
        if target is None:
            raise NotificationNotFoundError(f"Notification {notification_id!r} not found")
        updated = replace(target, is_read=True)
        self._repository.replace_snapshot(
            snapshot.with_notifications(
                tuple(updated if item.id == notification_id else item for item in snapshot.notifications)
            )
        )
        return updated

    def mark_all_as_read(self, program_id: str) -> int:
        snapshot = self._repository.snapshot()
        changed = 0
        notifications = []
        for item in snapshot.notifications:
            if item.recipient_program_id == program_id and not item.is_read:
                item = replace(item, is_read=True)
                changed += 1
            notifications.append(item)
        if changed:
            self._repository.replace_snapshot(snapshot.with_notifications(tuple(notifications)))
        return changed

    def delete(self, notification_id: str) -> None:
        snapshot = self._repository.snapshot()
        remaining = tuple(item for item in snapshot.notifications if item.id != notification_id)
        if len(remaining) == len(snapshot.notifications):
            raise NotificationNotFoundError(f"Notification {notification_id!r} not found")
        self._repository.replace_snapshot(snapshot.with_notifications(remaining))

    def clear_all(self, program_id: str) -> int:
        snapshot = self._repository.snapshot()
        remaining = tuple(
            item for item in snapshot.notifications if item.recipient_program_id != program_id
        )
        removed = len(snapshot.notifications) - len(remaining)
        if removed:
            self._repository.replace_snapshot(snapshot.with_notifications(remaining))
        logger.info("Notifications cleared | program_id=%s | removed=%s", program_id, removed)
        return removed
