"""
Call Endpoints
Twilio-style call resources: place, list, fetch and update (hang up / cancel)
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field

from app.api.v1.dependencies import CurrentAccount, get_call_service, require_account_access
from app.core.config import settings
from app.domain.models.call import CallOptions, CallRecord
from app.domain.services.call_service import (
    DEFAULT_PAGE_SIZE,
    CallNotFoundError,
    CallService,
    CallValidationError,
)

router = APIRouter(prefix="/Accounts/{account_sid}/Calls", tags=["calls"])


class CreateCallRequest(BaseModel):
    """Place-a-call request body"""
    to: str = Field(..., alias="To")
    from_: str = Field(..., alias="From")
    url: Optional[AnyHttpUrl] = Field(None, alias="Url")
    method: Literal["GET", "POST"] = Field("POST", alias="Method")
    timeout: int = Field(60, ge=1, le=600, alias="Timeout")
    record: bool = Field(False, alias="Record")
    machine_detection: bool = Field(False, alias="MachineDetection")

    model_config = ConfigDict(populate_by_name=True)


class UpdateCallRequest(BaseModel):
    """Update-a-call request body ("completed" hangs up an in-progress call)"""
    status: Optional[str] = Field(None, alias="Status")

    model_config = ConfigDict(populate_by_name=True)


class CallResource(BaseModel):
    """Call as returned to API clients"""
    sid: str
    account_sid: str
    to: str
    from_: str = Field(..., alias="from")
    to_country: Optional[str] = None
    from_country: Optional[str] = None
    status: str
    direction: str
    rate_per_minute: Decimal
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    price: Optional[str] = None
    price_unit: str
    webhook_url: Optional[str] = None
    webhook_method: str
    timeout: int
    record: bool
    machine_detection: bool
    date_created: datetime
    date_updated: datetime
    uri: str
    subresource_uris: dict

    model_config = ConfigDict(populate_by_name=True)


class CallListResponse(BaseModel):
    """Paginated call list response"""
    calls: List[CallResource]
    page: int
    page_size: int
    num_pages: int
    total: int
    start: int
    end: int
    uri: str
    first_page_uri: str
    previous_page_uri: Optional[str] = None
    next_page_uri: Optional[str] = None


def _calls_uri(account_sid: str) -> str:
    return f"{settings.api_prefix}/Accounts/{account_sid}/Calls"


def to_call_resource(record: CallRecord) -> CallResource:
    """Map a call record onto its API representation"""
    uri = f"{_calls_uri(record.account_sid)}/{record.sid}"
    return CallResource(
        sid=record.sid,
        account_sid=record.account_sid,
        to=record.to_number,
        from_=record.from_number,
        to_country=record.to_country,
        from_country=record.from_country,
        status=record.status.value,
        direction=record.direction.value,
        rate_per_minute=record.rate_per_minute,
        start_time=record.start_time,
        end_time=record.end_time,
        duration=record.duration_seconds,
        price=record.price,
        price_unit=record.price_unit,
        webhook_url=record.options.webhook_url,
        webhook_method=record.options.webhook_method,
        timeout=record.options.timeout_seconds,
        record=record.options.record,
        machine_detection=record.options.machine_detection,
        date_created=record.date_created,
        date_updated=record.date_updated,
        uri=uri,
        subresource_uris={
            "recordings": f"{uri}/Recordings",
            "notifications": f"{uri}/Notifications",
        },
    )


def _validation_error(e: CallValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"code": "VALIDATION_ERROR", "message": e.message, "details": e.details},
    )


def _not_found(e: CallNotFoundError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"code": "NOT_FOUND_ERROR", "message": e.message},
    )


@router.post("", response_model=CallResource, status_code=status.HTTP_201_CREATED)
async def create_call(
    payload: CreateCallRequest,
    account: CurrentAccount = Depends(require_account_access),
    service: CallService = Depends(get_call_service),
):
    """
    Place an outbound call.

    Returns the queued call immediately; it rings, connects and completes
    in the background.
    """
    options = CallOptions(
        webhook_url=str(payload.url) if payload.url else None,
        webhook_method=payload.method,
        timeout_seconds=payload.timeout,
        record=payload.record,
        machine_detection=payload.machine_detection,
    )
    try:
        record = await service.create_call(account.account_sid, payload.to, payload.from_, options)
    except CallValidationError as e:
        raise _validation_error(e)
    return to_call_resource(record)


@router.get("", response_model=CallListResponse)
async def list_calls(
    page: int = Query(0, alias="Page", description="Page number (0-indexed)"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="PageSize", description="Items per page (max 1000)"),
    account: CurrentAccount = Depends(require_account_access),
    service: CallService = Depends(get_call_service),
):
    """List the account's calls in the order they were placed."""
    try:
        result = await service.list_calls(account.account_sid, page=page, page_size=page_size)
    except CallValidationError as e:
        raise _validation_error(e)

    base = _calls_uri(account.account_sid)
    size = result.page_size
    return CallListResponse(
        calls=[to_call_resource(record) for record in result.calls],
        page=result.page,
        page_size=size,
        num_pages=result.num_pages,
        total=result.total,
        start=result.start,
        end=result.end,
        uri=base,
        first_page_uri=f"{base}?Page=0&PageSize={size}",
        previous_page_uri=f"{base}?Page={result.page - 1}&PageSize={size}" if result.has_previous else None,
        next_page_uri=f"{base}?Page={result.page + 1}&PageSize={size}" if result.has_next else None,
    )


@router.get("/{call_sid}", response_model=CallResource)
async def get_call(
    call_sid: str,
    account: CurrentAccount = Depends(require_account_access),
    service: CallService = Depends(get_call_service),
):
    """Fetch one call."""
    try:
        record = await service.get_call(account.account_sid, call_sid)
    except CallNotFoundError as e:
        raise _not_found(e)
    return to_call_resource(record)


@router.post("/{call_sid}", response_model=CallResource)
async def update_call(
    call_sid: str,
    payload: UpdateCallRequest,
    account: CurrentAccount = Depends(require_account_access),
    service: CallService = Depends(get_call_service),
):
    """
    Update a call.

    Status "completed" hangs up an in-progress call. Any other status, or a
    call that is not in progress, returns the call unchanged.
    """
    try:
        record = await service.terminate_call(account.account_sid, call_sid, payload.status)
    except CallNotFoundError as e:
        raise _not_found(e)
    return to_call_resource(record)
