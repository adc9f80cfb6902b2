"""
Webhooks API Endpoints
Handles call-progress events reported by a carrier-backed dialer

With the simulated driver nothing posts here; a real dialer integration
reports ringing/answered/busy/... and the events go through the same guarded
transitions as the simulation.
"""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from app.api.v1.dependencies import get_call_service
from app.api.v1.endpoints.calls import CallResource, to_call_resource
from app.core.config import settings
from app.domain.models.call import CallStatus
from app.domain.services.call_service import CallNotFoundError, CallService, CallValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


# Carrier status vocabulary -> call status
DIALER_STATUS_MAP = {
    "started": CallStatus.RINGING,
    "ringing": CallStatus.RINGING,
    "answered": CallStatus.IN_PROGRESS,
    "in-progress": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.BUSY,
    "timeout": CallStatus.NO_ANSWER,
    "unanswered": CallStatus.NO_ANSWER,
    "no-answer": CallStatus.NO_ANSWER,
    "failed": CallStatus.FAILED,
    "rejected": CallStatus.FAILED,
    "cancelled": CallStatus.CANCELED,
    "canceled": CallStatus.CANCELED,
}


class DialerEvent(BaseModel):
    """Call-progress event from the dialer"""
    account_sid: str
    call_sid: str
    status: str
    duration: Optional[int] = Field(None, ge=0, description="Billable seconds, on completion")


def verify_dialer_token(x_dialer_token: Optional[str] = Header(None, alias="X-Dialer-Token")) -> None:
    """Check the shared secret the dialer signs its events with."""
    expected = settings.dialer_webhook_token
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "WEBHOOKS_DISABLED", "message": "Dialer webhooks are not configured"},
        )
    if not x_dialer_token or not secrets.compare_digest(x_dialer_token, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "AUTHENTICATION_ERROR", "message": "Invalid dialer token"},
        )


@router.post("/dialer/event", response_model=CallResource, dependencies=[Depends(verify_dialer_token)])
async def dialer_event(
    event: DialerEvent,
    service: CallService = Depends(get_call_service),
):
    """
    Apply a dialer call-progress event.

    Events the call's current status does not allow (duplicates, late
    arrivals after a hangup) are ignored and the current call is returned.
    """
    reported = DIALER_STATUS_MAP.get(event.status.strip().lower())
    if reported is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION_ERROR", "message": f"Unknown dialer status: {event.status}"},
        )

    logger.info(f"Dialer event: call={event.call_sid} status={event.status} duration={event.duration}")

    try:
        record = await service.apply_progress_event(
            event.account_sid,
            event.call_sid,
            reported,
            duration_seconds=event.duration,
        )
    except CallValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "VALIDATION_ERROR", "message": e.message, "details": e.details},
        )
    except CallNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND_ERROR", "message": e.message},
        )
    return to_call_resource(record)
