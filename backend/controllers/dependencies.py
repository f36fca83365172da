"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.services.arbitration_service import RoutineArbitrationService
from backend.services.notification_service import NotificationService


def get_arbitration_service(request: Request) -> RoutineArbitrationService:
    service = getattr(request.app.state, "arbitration_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Arbitration service is not initialized",
        )
    return service


def get_notification_service(request: Request) -> NotificationService:
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        repository = getattr(request.app.state, "repository", None)
        if repository is not None:
            service = NotificationService(repository=repository)
            request.app.state.notification_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notification service is not initialized",
        )
    return service
