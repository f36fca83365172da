"""Controller layer for the per-program notification inbox."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_notification_service
from backend.controllers.routine_controller import NotificationResponse
from backend.services.notification_service import NotificationNotFoundError, NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


class InboxResponse(BaseModel):
    program_id: str
    unread_count: int = Field(ge=0)
    notifications: list[NotificationResponse]


class BulkUpdateResponse(BaseModel):
    program_id: str
    affected: int = Field(ge=0)


@router.get("/{program_id}", response_model=InboxResponse)
async def list_notifications(
    program_id: str,
    unread_only: bool = Query(default=False),
    service: NotificationService = Depends(get_notification_service),
) -> InboxResponse:
    items = service.list_for_program(program_id, unread_only=unread_only)
    return InboxResponse(
        program_id=program_id,
        unread_count=service.unread_count(program_id),
        notifications=[NotificationResponse.from_domain(item) for item in items],
    )


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> NotificationResponse:
    try:
        return NotificationResponse.from_domain(service.mark_as_read(notification_id))
    except NotificationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc


@router.post("/read_all/{program_id}", response_model=BulkUpdateResponse)
async def mark_all_notifications_read(
    program_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> BulkUpdateResponse:
    return BulkUpdateResponse(program_id=program_id, affected=service.mark_all_as_read(program_id))


@router.delete("/program/{program_id}", response_model=BulkUpdateResponse)
async def clear_notifications(
    program_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> BulkUpdateResponse:
    return BulkUpdateResponse(program_id=program_id, affected=service.clear_all(program_id))


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
) -> None:
    try:
        service.delete(notification_id)
    except NotificationNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
