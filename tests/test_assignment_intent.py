from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, timedelta

import pytest

from backend.domain.constraints import ConflictPolicy
from backend.domain.errors import (
    ConflictError,
    MissingRequiredDateError,
    NoProgramSelectedError,
    PastBookingDateError,
    RoomNotFoundError,
)
from backend.domain.models import NotificationSeverity, RequestStatus, TimeSlot
from backend.services.assignment_service import AssignmentIntent, submit_assignment_intent


SATURDAY_THEORY = TimeSlot(start_time="08:30", end_time="10:00", slot_type="Theory")
END_DATE = date(2025, 6, 1)


def _intent(room_id: str, program_id: str, course_load_id: str = "", booking_end_date=None) -> AssignmentIntent:
    return AssignmentIntent(
        day="Saturday",
        room_id=room_id,
        time_slot=SATURDAY_THEORY,
        acting_program_id=program_id,
        course_load_id=course_load_id,
        booking_end_date=booking_end_date,
    )


def _apply(snapshot, config, *intents):
    outcome = None
    for intent in intents:
        outcome = submit_assignment_intent(snapshot, intent, config)
        snapshot = outcome.snapshot
    return outcome


# --- clear path ---

def test_clear_on_empty_cell_is_noop(snapshot, config) -> None:
    outcome = submit_assignment_intent(snapshot, _intent("cr4", "p15"), config)
    assert outcome.effect.is_noop
    assert outcome.snapshot == snapshot


def test_owner_clear_deletes_entry_without_notification(snapshot, config) -> None:
    assigned = _apply(snapshot, config, _intent("cr4", "p15", "cl-cse101"))
    outcome = submit_assignment_intent(assigned.snapshot, _intent("cr4", "p15", "  "), config)

    assert outcome.effect.entries_deleted == assigned.effect.entries_created
    assert outcome.snapshot.entries == ()
    assert outcome.effect.notification is None
    assert outcome.snapshot.notifications == ()


def test_clearing_pending_request_cancels_it_and_tells_owner(snapshot, config) -> None:
    requested = _apply(snapshot, config, _intent("cr4", "p11", "cl-bba101", END_DATE))
    pending = requested.effect.requests_created[0]

    outcome = submit_assignment_intent(requested.snapshot, _intent("cr4", "p11"), config)

    assert outcome.effect.requests_deleted == (pending,)
    assert outcome.snapshot.requests == ()
    notification = outcome.effect.notification
    assert notification.recipient_program_id == "p15"
    assert notification.related_request_id == pending.id
    assert notification.message == (
        "Request from 11 BBA for BBA101 in FSIT_301 "
        "(Saturday, 08:30 AM - 10:00 AM) has been cancelled."
    )


def test_clearing_shared_entry_tells_owner(snapshot, config) -> None:
    approved_entry = replace(
        _apply(snapshot, config, _intent("cr7", "p11", "cl-bba101")).effect.entries_created[0],
        slot=_intent("cr4", "p11").slot_key,
    )
    seeded = snapshot.with_entries((approved_entry,))

    outcome = submit_assignment_intent(seeded, _intent("cr4", "p11"), config)

    assert outcome.effect.entries_deleted == (approved_entry,)
    assert "has been cleared" in outcome.effect.notification.message
    assert outcome.effect.notification.severity is NotificationSeverity.INFO


# --- owner writes ---

def test_owner_assignment_is_idempotent_upsert(snapshot, config) -> None:
    first = _apply(snapshot, config, _intent("cr4", "p15", "cl-cse101"))
    second = submit_assignment_intent(first.snapshot, _intent("cr4", "p15", "cl-cse102"), config)

    assert len(second.snapshot.entries) == 1
    entry = second.snapshot.entries[0]
    assert entry.id == first.effect.entries_created[0].id
    assert entry.course_load_id == "cl-cse102"
    assert second.effect.entries_updated == (entry,)
    assert second.effect.notification is None
    assert second.snapshot.requests == ()


def test_owner_assignment_without_end_date_is_allowed(snapshot, config) -> None:
    outcome = submit_assignment_intent(snapshot, _intent("cr4", "p15", "cl-cse101"), config)
    assert outcome.effect.entries_created[0].booking_end_date is None


def test_past_end_date_rejected_for_owner(snapshot, config) -> None:
    yesterday = config.today() - timedelta(days=1)
    with pytest.raises(PastBookingDateError):
        submit_assignment_intent(snapshot, _intent("cr4", "p15", "cl-cse101", yesterday), config)


def test_end_date_equal_to_today_is_accepted(snapshot, config) -> None:
    outcome = submit_assignment_intent(
        snapshot,
        _intent("cr4", "p11", "cl-bba101", config.today()),
        config,
    )
    assert outcome.effect.requests_created[0].booking_end_date == config.today()


# --- shared room requests ---

def test_shared_room_first_assignment_queues_request(snapshot, config, clock) -> None:
    outcome = submit_assignment_intent(
        snapshot,
        _intent("cr4", "p11", "cl-bba101", END_DATE),
        config,
    )

    assert outcome.snapshot.entries == ()
    (request,) = outcome.snapshot.requests
    assert request.status is RequestStatus.PENDING
    assert request.requesting_program_id == "p11"
    assert request.room_owner_program_code == "15 CSE"
    assert request.request_date == clock.current
    notification = outcome.effect.notification
    assert notification.recipient_program_id == "p15"
    assert notification.related_request_id == request.id
    assert notification.is_read is False
    assert notification.related_slot.room_text == "FSIT_301"
    assert notification.related_slot.time_text == "08:30 AM - 10:00 AM"
    assert notification.message == (
        "New request from 11 BBA for BBA101 in FSIT_301 "
        "(Saturday, 08:30 AM - 10:00 AM). Book until: Jun 01, 2025."
    )


def test_shared_room_request_requires_end_date(snapshot, config) -> None:
    with pytest.raises(MissingRequiredDateError):
        submit_assignment_intent(snapshot, _intent("cr4", "p11", "cl-bba101"), config)


def test_resubmitting_updates_pending_request_in_place(snapshot, config, clock) -> None:
    first = _apply(snapshot, config, _intent("cr4", "p11", "cl-bba101", END_DATE))
    clock.current = clock.current + timedelta(hours=2)

    second = submit_assignment_intent(
        first.snapshot,
        _intent("cr4", "p11", "cl-cse101", END_DATE + timedelta(days=7)),
        config,
    )

    (request,) = second.snapshot.requests
    assert request.id == first.effect.requests_created[0].id
    assert request.requested_course_load_id == "cl-cse101"
    assert request.booking_end_date == date(2025, 6, 8)
    assert request.request_date == clock.current
    assert second.effect.requests_updated == (request,)
    assert "has been updated" in second.effect.notification.message
    assert len(second.snapshot.notifications) == 2


def test_updating_pending_request_requires_end_date(snapshot, config) -> None:
    first = _apply(snapshot, config, _intent("cr4", "p11", "cl-bba101", END_DATE))
    with pytest.raises(MissingRequiredDateError):
        submit_assignment_intent(first.snapshot, _intent("cr4", "p11", "cl-cse101"), config)


def _pending_request_state(snapshot, config):
    return _apply(snapshot, config, _intent("cr4", "p11", "cl-bba101", END_DATE)).snapshot


def _approved_entry_state(snapshot, config):
    entry = replace(
        _apply(snapshot, config, _intent("cr7", "p11", "cl-bba101", END_DATE)).effect.entries_created[0],
        slot=_intent("cr4", "p11").slot_key,
    )
    return snapshot.with_entries((entry,))


@pytest.mark.parametrize("build_state", [_pending_request_state, _approved_entry_state])
def test_past_end_date_rejected_on_shared_cell_updates(snapshot, config, build_state) -> None:
    state = build_state(snapshot, config)
    yesterday = config.today() - timedelta(days=1)

    with pytest.raises(PastBookingDateError):
        submit_assignment_intent(state, _intent("cr4", "p11", "cl-bba101", yesterday), config)


def test_date_change_on_shared_entry_spawns_new_request(snapshot, config) -> None:
    entry = replace(
        _apply(snapshot, config, _intent("cr7", "p11", "cl-bba101", END_DATE)).effect.entries_created[0],
        slot=_intent("cr4", "p11").slot_key,
    )
    seeded = snapshot.with_entries((entry,))

    outcome = submit_assignment_intent(
        seeded,
        _intent("cr4", "p11", "cl-bba101", date(2025, 7, 1)),
        config,
    )

    assert outcome.snapshot.entries == (entry,)
    (request,) = outcome.effect.requests_created
    assert request.booking_end_date == date(2025, 7, 1)
    assert request.status is RequestStatus.PENDING
    assert "requested a booking date change" in outcome.effect.notification.message


def test_clearing_date_on_shared_entry_requires_date(snapshot, config) -> None:
    entry = replace(
        _apply(snapshot, config, _intent("cr7", "p11", "cl-bba101", END_DATE)).effect.entries_created[0],
        slot=_intent("cr4", "p11").slot_key,
    )
    with pytest.raises(MissingRequiredDateError):
        submit_assignment_intent(
            snapshot.with_entries((entry,)),
            _intent("cr4", "p11", "cl-bba101"),
            config,
        )


def test_course_change_on_shared_entry_updates_in_place(snapshot, config) -> None:
    entry = replace(
        _apply(snapshot, config, _intent("cr7", "p11", "cl-bba101", END_DATE)).effect.entries_created[0],
        slot=_intent("cr4", "p11").slot_key,
    )

    outcome = submit_assignment_intent(
        snapshot.with_entries((entry,)),
        _intent("cr4", "p11", "cl-cse101", END_DATE),
        config,
    )

    (updated,) = outcome.snapshot.entries
    assert updated.id == entry.id
    assert updated.course_load_id == "cl-cse101"
    assert outcome.snapshot.requests == ()
    assert outcome.effect.notification.severity is NotificationSeverity.INFO
    assert outcome.effect.notification.recipient_program_id == "p15"


def test_request_goes_through_when_owner_is_unknown(snapshot, config, caplog) -> None:
    with caplog.at_level(logging.WARNING):
        outcome = submit_assignment_intent(
            snapshot,
            _intent("cr9", "p11", "cl-bba101", END_DATE),
            config,
        )

    assert len(outcome.snapshot.requests) == 1
    assert outcome.effect.notification is None
    assert outcome.snapshot.notifications == ()
    assert "recipient program not found" in caplog.text


# --- unowned rooms and conflict policy ---

def test_unowned_room_allows_direct_writes_from_several_programs(snapshot, config) -> None:
    outcome = _apply(
        snapshot,
        config,
        _intent("cr7", "p11", "cl-bba101"),
        _intent("cr7", "p10", "cl-cse101"),
    )
    assert sorted(entry.program_id for entry in outcome.snapshot.entries) == ["p10", "p11"]
    assert outcome.snapshot.requests == ()


def test_exclusive_policy_rejects_direct_write_over_other_program(snapshot, config) -> None:
    exclusive = replace(config, conflict_policy=ConflictPolicy.EXCLUSIVE)
    first = _apply(snapshot, exclusive, _intent("cr7", "p11", "cl-bba101"))

    with pytest.raises(ConflictError) as exc_info:
        submit_assignment_intent(first.snapshot, _intent("cr7", "p10", "cl-cse101"), exclusive)
    assert exc_info.value.details["program_id"] == "p11"


def test_exclusive_policy_still_allows_own_upsert(snapshot, config) -> None:
    exclusive = replace(config, conflict_policy=ConflictPolicy.EXCLUSIVE)
    outcome = _apply(
        snapshot,
        exclusive,
        _intent("cr7", "p11", "cl-bba101"),
        _intent("cr7", "p11", "cl-cse101"),
    )
    assert [entry.course_load_id for entry in outcome.snapshot.entries] == ["cl-cse101"]


# --- actor and room validation ---

@pytest.mark.parametrize("program_id", ["", "__ALL_PROGRAMS__", "p404"])
def test_assignment_needs_a_concrete_program(snapshot, config, program_id: str) -> None:
    with pytest.raises(NoProgramSelectedError):
        submit_assignment_intent(snapshot, _intent("cr4", program_id, "cl-cse101"), config)


def test_unknown_room_raises(snapshot, config) -> None:
    with pytest.raises(RoomNotFoundError) as exc_info:
        submit_assignment_intent(snapshot, _intent("cr404", "p15", "cl-cse101"), config)
    assert exc_info.value.details == {"room_id": "cr404"}


def test_failed_intent_leaves_snapshot_untouched(snapshot, config) -> None:
    before = _apply(snapshot, config, _intent("cr4", "p11", "cl-bba101", END_DATE)).snapshot
    with pytest.raises(MissingRequiredDateError):
        submit_assignment_intent(before, _intent("cr4", "p11", "cl-cse101"), config)
    assert len(before.requests) == 1
    assert before.requests[0].requested_course_load_id == "cl-bba101"
