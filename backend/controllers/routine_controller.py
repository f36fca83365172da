"""HTTP controller layer for assignment intents and request resolution."""

from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator, model_validator

from backend.controllers.dependencies import get_arbitration_service
from backend.domain.errors import (
    ArbitrationError,
    ConflictError,
    NotAuthorizedError,
    RequestNotFoundError,
    RoomNotFoundError,
)
from backend.domain.models import (
    Decision,
    Effect,
    Notification,
    RequestStatus,
    RoutineAssignmentRequest,
    RoutineEntry,
    TimeSlot,
)
from backend.services.arbitration_service import CellStatus, CellView, RoutineArbitrationService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(tags=["routine"])

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class SlotPayload(BaseModel):
    day: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    slot_type: str = Field(min_length=1)


class TimeSlotFields(BaseModel):
    start_time: str = Field(pattern=TIME_PATTERN)
    end_time: str = Field(pattern=TIME_PATTERN)
    slot_type: str = Field(min_length=1)

    @model_validator(mode="after")
    def validate_slot_boundaries(self) -> "TimeSlotFields":
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    def to_time_slot(self) -> TimeSlot:
        return TimeSlot(
            start_time=self.start_time,
            end_time=self.end_time,
            slot_type=self.slot_type,
        )


class AssignmentIntentRequest(TimeSlotFields):
    """Input DTO; an empty ``course_load_id`` clears the cell."""

    day: str = Field(min_length=1)
    room_id: str = Field(min_length=1)
    acting_program_id: str = ""
    course_load_id: str = ""
    booking_end_date: Optional[date] = None

    @field_validator("booking_end_date", mode="before")
    @classmethod
    def blank_booking_end_date_is_absent(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ResolveRequestBody(BaseModel):
    acting_program_id: str = ""


class RejectRequestBody(ResolveRequestBody):
    reason: Optional[str] = Field(default=None, max_length=500)


class RoutineEntryResponse(BaseModel):
    id: str
    slot: SlotPayload
    course_load_id: str
    program_id: str
    booking_end_date: Optional[date] = None

    @classmethod
    def from_domain(cls, entry: RoutineEntry) -> "RoutineEntryResponse":
        return cls(
            id=entry.id,
            slot=SlotPayload(**asdict(entry.slot)),
            course_load_id=entry.course_load_id,
            program_id=entry.program_id,
            booking_end_date=entry.booking_end_date,
        )


class AssignmentRequestResponse(BaseModel):
    id: str
    requesting_program_id: str
    room_owner_program_code: str
    slot: SlotPayload
    requested_course_load_id: str
    booking_end_date: date
    status: RequestStatus
    request_date: datetime
    resolution_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @classmethod
    def from_domain(cls, request: RoutineAssignmentRequest) -> "AssignmentRequestResponse":
        return cls(
            id=request.id,
            requesting_program_id=request.requesting_program_id,
            room_owner_program_code=request.room_owner_program_code,
            slot=SlotPayload(**asdict(request.slot)),
            requested_course_load_id=request.requested_course_load_id,
            booking_end_date=request.booking_end_date,
            status=request.status,
            request_date=request.request_date,
            resolution_date=request.resolution_date,
            rejection_reason=request.rejection_reason,
        )


class NotificationSlotResponse(BaseModel):
    day: str
    room_text: str
    time_text: str
    course_code_text: str


class NotificationResponse(BaseModel):
    id: str
    recipient_program_id: str
    message: str
    severity: str
    timestamp: datetime
    is_read: bool
    related_request_id: Optional[str] = None
    related_slot: Optional[NotificationSlotResponse] = None

    @classmethod
    def from_domain(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=notification.id,
            recipient_program_id=notification.recipient_program_id,
            message=notification.message,
            severity=notification.severity.value,
            timestamp=notification.timestamp,
            is_read=notification.is_read,
            related_request_id=notification.related_request_id,
            related_slot=(
                NotificationSlotResponse(**asdict(notification.related_slot))
                if notification.related_slot
                else None
            ),
        )


class EffectResponse(BaseModel):
    entries_created: list[RoutineEntryResponse]
    entries_updated: list[RoutineEntryResponse]
    entries_deleted: list[RoutineEntryResponse]
    requests_created: list[AssignmentRequestResponse]
    requests_updated: list[AssignmentRequestResponse]
    requests_deleted: list[AssignmentRequestResponse]
    notification: Optional[NotificationResponse] = None
    is_noop: bool

    @classmethod
    def from_domain(cls, effect: Effect) -> "EffectResponse":
        return cls(
            entries_created=[RoutineEntryResponse.from_domain(item) for item in effect.entries_created],
            entries_updated=[RoutineEntryResponse.from_domain(item) for item in effect.entries_updated],
            entries_deleted=[RoutineEntryResponse.from_domain(item) for item in effect.entries_deleted],
            requests_created=[AssignmentRequestResponse.from_domain(item) for item in effect.requests_created],
            requests_updated=[AssignmentRequestResponse.from_domain(item) for item in effect.requests_updated],
            requests_deleted=[AssignmentRequestResponse.from_domain(item) for item in effect.requests_deleted],
            notification=(
                NotificationResponse.from_domain(effect.notification) if effect.notification else None
            ),
            is_noop=effect.is_noop,
        )


class CellViewResponse(BaseModel):
    slot: SlotPayload
    status: CellStatus
    entry: Optional[RoutineEntryResponse] = None
    request: Optional[AssignmentRequestResponse] = None

    @classmethod
    def from_domain(cls, view: CellView) -> "CellViewResponse":
        return cls(
            slot=SlotPayload(**asdict(view.slot)),
            status=view.status,
            entry=RoutineEntryResponse.from_domain(view.entry) if view.entry else None,
            request=AssignmentRequestResponse.from_domain(view.request) if view.request else None,
        )


def _to_http_error(exc: ArbitrationError) -> HTTPException:
    if isinstance(exc, (RoomNotFoundError, RequestNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, NotAuthorizedError):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, ConflictError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=status_code, detail=exc.to_dict())


@router.post(
    "/assignments",
    response_model=EffectResponse,
    status_code=status.HTTP_200_OK,
)
async def submit_assignment(
    payload: AssignmentIntentRequest,
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> EffectResponse:
    """Assign a course to a cell, or clear it when no course is given."""
    try:
        effect = service.submit_assignment_intent(
            day=payload.day,
            room_id=payload.room_id,
            time_slot=payload.to_time_slot(),
            acting_program_id=payload.acting_program_id,
            course_load_id=payload.course_load_id,
            booking_end_date=payload.booking_end_date,
        )
        return EffectResponse.from_domain(effect)
    except ArbitrationError as exc:
        raise _to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected assignment failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process assignment",
        ) from exc


@router.post(
    "/requests/{request_id}/approve",
    response_model=EffectResponse,
    status_code=status.HTTP_200_OK,
)
async def approve_request(
    request_id: str,
    payload: ResolveRequestBody,
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> EffectResponse:
    try:
        effect = service.resolve_request(
            request_id=request_id,
            acting_program_id=payload.acting_program_id,
            decision=Decision.APPROVE,
        )
        return EffectResponse.from_domain(effect)
    except ArbitrationError as exc:
        raise _to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected approval failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to approve request",
        ) from exc


@router.post(
    "/requests/{request_id}/reject",
    response_model=EffectResponse,
    status_code=status.HTTP_200_OK,
)
async def reject_request(
    request_id: str,
    payload: RejectRequestBody,
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> EffectResponse:
    try:
        effect = service.resolve_request(
            request_id=request_id,
            acting_program_id=payload.acting_program_id,
            decision=Decision.REJECT,
            reason=payload.reason,
        )
        return EffectResponse.from_domain(effect)
    except ArbitrationError as exc:
        raise _to_http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Unexpected rejection failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to reject request",
        ) from exc


@router.get("/requests", response_model=list[AssignmentRequestResponse])
async def list_requests(
    owner_program_id: Optional[str] = Query(default=None),
    requesting_program_id: Optional[str] = Query(default=None),
    request_status: Optional[RequestStatus] = Query(default=None, alias="status"),
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> list[AssignmentRequestResponse]:
    requests = service.list_requests(
        owner_program_id=owner_program_id,
        requesting_program_id=requesting_program_id,
        status=request_status,
    )
    return [AssignmentRequestResponse.from_domain(item) for item in requests]


@router.get("/routine", response_model=list[RoutineEntryResponse])
async def list_routine(
    program_id: Optional[str] = Query(default=None),
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> list[RoutineEntryResponse]:
    return [RoutineEntryResponse.from_domain(item) for item in service.list_entries(program_id)]


@router.get("/cells", response_model=CellViewResponse)
async def describe_cell(
    day: str = Query(min_length=1),
    room_id: str = Query(min_length=1),
    start_time: str = Query(pattern=TIME_PATTERN),
    end_time: str = Query(pattern=TIME_PATTERN),
    slot_type: str = Query(min_length=1),
    acting_program_id: str = Query(default=""),
    service: RoutineArbitrationService = Depends(get_arbitration_service),
) -> CellViewResponse:
    try:
        view = service.describe_cell(
            day=day,
            room_id=room_id,
            time_slot=TimeSlot(start_time=start_time, end_time=end_time, slot_type=slot_type),
            acting_program_id=acting_program_id,
        )
        return CellViewResponse.from_domain(view)
    except ArbitrationError as exc:
        raise _to_http_error(exc) from exc
