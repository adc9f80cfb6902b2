"""
Call Service
Entry point for placing, reading and ending calls

The HTTP layer (and anything else outside the engine) talks only to
CallService. It trusts the account_sid it is given; authentication happens
before a request reaches it.
"""
import logging
import math
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from app.core.config import ConfigManager
from app.domain.interfaces.call_lifecycle_driver import CallLifecycleDriver
from app.domain.interfaces.call_store import CallStore
from app.domain.models.call import (
    CallDirection,
    CallOptions,
    CallPage,
    CallRecord,
    CallStatus,
)
from app.domain.services.call_lifecycle import CallLifecycle, utc_now
from app.domain.services.country_resolver import CountryResolver
from app.domain.services.rate_resolver import RateResolver
from app.utils.phone_numbers import is_valid_phone_number, normalize_phone_number
from app.utils.sids import generate_call_sid

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


class CallValidationError(Exception):
    """Raised when a request to the call engine is malformed."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        self.message = message
        self.details = details or []
        super().__init__(self.message)


class CallNotFoundError(Exception):
    """Raised when a call does not exist or belongs to another account."""

    def __init__(self, call_sid: str):
        self.call_sid = call_sid
        self.message = "Call not found"
        super().__init__(self.message)


class CallService:
    """
    Call placement and control.

    create_call persists a queued record and hands it to the lifecycle driver
    without waiting for it to ring; get/list are plain reads; terminate_call
    is one read-modify-write on one record.
    """

    def __init__(
        self,
        store: CallStore,
        lifecycle: CallLifecycle,
        driver: CallLifecycleDriver,
        country_resolver: Optional[CountryResolver] = None,
        rate_resolver: Optional[RateResolver] = None,
        max_page_size: int = MAX_PAGE_SIZE,
        sid_factory: Callable[[], str] = generate_call_sid,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.lifecycle = lifecycle
        self.driver = driver
        self.country_resolver = country_resolver or CountryResolver()
        self.rate_resolver = rate_resolver or RateResolver()
        self.max_page_size = max_page_size
        self._sid_factory = sid_factory
        self._clock = clock

    # =========================================================================
    # Create
    # =========================================================================

    async def create_call(
        self,
        account_sid: str,
        to: str,
        from_: str,
        options: Union[CallOptions, Mapping[str, Any], None] = None,
    ) -> CallRecord:
        """
        Place an outbound call.

        Args:
            account_sid: Verified owning account
            to: Destination number (any formatting; normalized here)
            from_: Caller ID number
            options: Webhook / timeout / recording options

        Returns:
            The initial queued record

        Raises:
            CallValidationError: Malformed number or options
        """
        if not is_valid_phone_number(to):
            raise CallValidationError('Invalid "To" phone number', [{"field": "To", "value": to}])
        if not is_valid_phone_number(from_):
            raise CallValidationError('Invalid "From" phone number', [{"field": "From", "value": from_}])

        call_options = self._validate_options(options)

        to_number = normalize_phone_number(to)
        from_number = normalize_phone_number(from_)
        to_country = self.country_resolver.resolve(to_number)
        from_country = self.country_resolver.resolve(from_number)
        rate = self.rate_resolver.resolve(to_country, from_country)

        now = self._clock()
        record = CallRecord(
            sid=self._sid_factory(),
            account_sid=account_sid,
            to_number=to_number,
            from_number=from_number,
            to_country=to_country,
            from_country=from_country,
            status=CallStatus.QUEUED,
            direction=CallDirection.OUTBOUND_API,
            rate_per_minute=rate,
            price_unit=self.rate_resolver.plan.currency,
            date_created=now,
            date_updated=now,
            options=call_options,
        )

        record = await self.store.add(record)
        await self.driver.start(record)

        logger.info(
            f"Call created: sid={record.sid} account={account_sid} "
            f"to={to_number} ({to_country or 'unknown'}) from={from_number} ({from_country or 'unknown'}) "
            f"rate={rate}/min"
        )
        return record

    @staticmethod
    def _validate_options(options: Union[CallOptions, Mapping[str, Any], None]) -> CallOptions:
        if options is None:
            return CallOptions()
        if isinstance(options, CallOptions):
            return options
        try:
            return CallOptions.model_validate(dict(options))
        except ValidationError as e:
            details = [
                {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
                for err in e.errors()
            ]
            raise CallValidationError("Invalid call options", details) from e

    # =========================================================================
    # Read
    # =========================================================================

    async def get_call(self, account_sid: str, call_sid: str) -> CallRecord:
        """
        Get a call owned by the account.

        Raises:
            CallNotFoundError: Unknown call, or a call owned by another account
        """
        record = await self.store.get(account_sid, call_sid)
        if record is None:
            raise CallNotFoundError(call_sid)
        return record

    async def list_calls(
        self,
        account_sid: str,
        page: int = 0,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> CallPage:
        """
        List an account's calls in creation order.

        Args:
            page: Zero-based page number
            page_size: Records per page, clamped to max_page_size
        """
        if page < 0:
            raise CallValidationError("Page must be zero or greater", [{"field": "Page", "value": page}])
        if page_size < 1:
            raise CallValidationError("PageSize must be at least 1", [{"field": "PageSize", "value": page_size}])

        page_size = min(page_size, self.max_page_size)
        offset = page * page_size
        calls, total = await self.store.list(account_sid, offset, page_size)

        return CallPage(
            calls=calls,
            page=page,
            page_size=page_size,
            total=total,
            num_pages=math.ceil(total / page_size),
            start=offset,
            end=min(offset + page_size, total) - 1,
            has_previous=page > 0,
            has_next=offset + page_size < total,
        )

    # =========================================================================
    # Control
    # =========================================================================

    async def terminate_call(
        self,
        account_sid: str,
        call_sid: str,
        requested_status: Union[CallStatus, str, None],
    ) -> CallRecord:
        """
        Hang up a call (requested "completed" while it is in progress).

        A request that does not apply to the call's current status is a no-op
        and returns the record unchanged, so repeating a hangup is harmless.

        Raises:
            CallNotFoundError: Unknown call, or a call owned by another account
        """
        requested = self._parse_status(requested_status)
        record, changed = await self.lifecycle.terminate(account_sid, call_sid, requested)
        if record is None:
            raise CallNotFoundError(call_sid)

        if changed:
            await self.driver.stop(account_sid, call_sid)
            logger.info(
                f"Call {call_sid} ended by caller: status={record.status.value} "
                f"duration={record.duration_seconds} price={record.price}"
            )
        return record

    async def apply_progress_event(
        self,
        account_sid: str,
        call_sid: str,
        status: Union[CallStatus, str],
        duration_seconds: Optional[int] = None,
    ) -> CallRecord:
        """
        Apply a call-progress event from a real dialer (ringing, answered,
        busy, no-answer, failed, completed).

        Events that the record's current status does not allow are ignored.

        Raises:
            CallValidationError: Unknown status or negative duration
            CallNotFoundError: Unknown call, or a call owned by another account
        """
        reported = self._parse_status(status)
        if reported is None:
            raise CallValidationError(f"Unknown call status: {status}")
        if duration_seconds is not None and duration_seconds < 0:
            raise CallValidationError("Duration cannot be negative")

        updated = await self.lifecycle.report(account_sid, call_sid, reported, duration_seconds=duration_seconds)
        if updated is not None:
            if updated.is_terminal:
                await self.driver.stop(account_sid, call_sid)
            return updated
        return await self.get_call(account_sid, call_sid)

    @staticmethod
    def _parse_status(status: Union[CallStatus, str, None]) -> Optional[CallStatus]:
        if status is None or isinstance(status, CallStatus):
            return status
        try:
            return CallStatus(str(status).strip().lower())
        except ValueError:
            return None


def create_call_service(
    config: Optional[ConfigManager] = None,
    store: Optional[CallStore] = None,
) -> CallService:
    """
    Wire a CallService from configuration.

    Builds the rate plan, lifecycle timings, store (in-memory unless given)
    and the configured lifecycle driver.
    """
    from app.domain.models.telephony_config import LifecycleTimings, RatePlan
    from app.infrastructure.storage.memory_call_store import InMemoryCallStore
    from app.infrastructure.telephony.factory import LifecycleDriverFactory

    config = config or ConfigManager()
    plan = RatePlan.from_config(config)
    timings = LifecycleTimings.from_config(config)

    store = store or InMemoryCallStore()
    lifecycle = CallLifecycle(store)
    driver = LifecycleDriverFactory.create(timings.driver, lifecycle, timings)

    service = CallService(
        store=store,
        lifecycle=lifecycle,
        driver=driver,
        country_resolver=CountryResolver(),
        rate_resolver=RateResolver(plan),
        max_page_size=int(config.get("api.max_page_size", MAX_PAGE_SIZE)),
    )
    logger.info(
        f"CallService initialized (driver={driver.name}, currency={plan.currency}, "
        f"regional_countries={len(plan.regional_countries)})"
    )
    return service
