"""
Unit tests for the guarded call lifecycle
"""
import logging
from datetime import timedelta
from decimal import Decimal

import pytest

from app.domain.models.call import CallStatus
from app.domain.services.call_lifecycle import (
    ALLOWED_TRANSITIONS,
    InvalidTransitionError,
    apply_transition,
    can_transition,
)
from app.domain.services.pricing_engine import PricingEngine


class TestTransitionTable:
    """Tests for the state table"""

    def test_forward_chain_allowed(self):
        assert can_transition(CallStatus.QUEUED, CallStatus.RINGING)
        assert can_transition(CallStatus.RINGING, CallStatus.IN_PROGRESS)
        assert can_transition(CallStatus.IN_PROGRESS, CallStatus.COMPLETED)

    def test_no_skipping_or_going_back(self):
        assert not can_transition(CallStatus.QUEUED, CallStatus.IN_PROGRESS)
        assert not can_transition(CallStatus.QUEUED, CallStatus.COMPLETED)
        assert not can_transition(CallStatus.IN_PROGRESS, CallStatus.RINGING)

    def test_terminal_statuses_have_no_exits(self):
        for status in CallStatus:
            if status.is_terminal:
                assert status not in ALLOWED_TRANSITIONS
                assert not any(can_transition(status, target) for target in CallStatus)


class TestApplyTransition:
    """Tests for the pure record transition"""

    def test_leaving_queued_sets_start_time(self, make_record, clock):
        record = apply_transition(make_record(), CallStatus.RINGING, now=clock(), pricing=PricingEngine())

        assert record.status == CallStatus.RINGING
        assert record.start_time == clock()
        assert record.end_time is None

    def test_completion_with_duration_sets_all_fields(self, make_record, clock):
        ringing = apply_transition(make_record(), CallStatus.RINGING, now=clock(), pricing=PricingEngine())
        answered = apply_transition(ringing, CallStatus.IN_PROGRESS, now=clock(), pricing=PricingEngine())

        done = apply_transition(
            answered, CallStatus.COMPLETED, now=clock(), pricing=PricingEngine(), duration_seconds=90
        )

        assert done.duration_seconds == 90
        assert done.end_time == done.start_time + timedelta(seconds=90)
        assert done.price == "0.0020"

    def test_measured_completion(self, make_record, clock):
        record = make_record(status=CallStatus.IN_PROGRESS, start_time=clock())
        later = clock() + timedelta(seconds=61.7)

        done = apply_transition(record, CallStatus.COMPLETED, now=later, pricing=PricingEngine())

        assert done.duration_seconds == 61
        assert done.end_time == later
        assert done.price == "0.0020"

    def test_unsuccessful_terminal_is_not_billed(self, make_record, clock):
        record = make_record(status=CallStatus.RINGING, start_time=clock())

        busy = apply_transition(record, CallStatus.BUSY, now=clock(), pricing=PricingEngine())

        assert busy.end_time == clock()
        assert busy.duration_seconds is None
        assert busy.price is None

    def test_invalid_transition_raises(self, make_record, clock):
        with pytest.raises(InvalidTransitionError) as exc_info:
            apply_transition(make_record(), CallStatus.COMPLETED, now=clock(), pricing=PricingEngine())

        assert exc_info.value.current == CallStatus.QUEUED
        assert exc_info.value.target == CallStatus.COMPLETED


class TestCallLifecycle:
    """Tests for guarded transitions against the store"""

    @pytest.mark.asyncio
    async def test_advance_applies_when_expected(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        updated = await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        assert updated.status == CallStatus.RINGING

    @pytest.mark.asyncio
    async def test_advance_is_noop_when_status_moved_on(self, store, lifecycle, make_record):
        record = await store.add(make_record())
        await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        again = await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        assert again is None
        assert (await store.get(record.account_sid, record.sid)).status == CallStatus.RINGING

    @pytest.mark.asyncio
    async def test_advance_rejects_transition_outside_table(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        with pytest.raises(InvalidTransitionError):
            await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.COMPLETED)

    @pytest.mark.asyncio
    async def test_advance_missing_call(self, lifecycle):
        assert await lifecycle.advance("AC1", "CA1", CallStatus.QUEUED, CallStatus.RINGING) is None

    @pytest.mark.asyncio
    async def test_start_time_set_once(self, store, lifecycle, make_record, answer_call, clock):
        record = await store.add(make_record())
        ringing_at = clock()

        answered = await answer_call(record, ring_seconds=4)

        assert answered.start_time == ringing_at

    @pytest.mark.asyncio
    async def test_hangup_measures_duration(self, store, lifecycle, make_record, answer_call, clock):
        record = await store.add(make_record())
        await answer_call(record)
        clock.advance(125)

        done, changed = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.COMPLETED)

        assert changed is True
        assert done.status == CallStatus.COMPLETED
        assert done.duration_seconds == 125
        assert done.price == "0.0030"
        assert done.end_time == clock()

    @pytest.mark.asyncio
    async def test_hangup_before_answer_is_noop(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        current, changed = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.COMPLETED)

        assert changed is False
        assert current.status == CallStatus.QUEUED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CallStatus.QUEUED, CallStatus.RINGING])
    async def test_cancel_request_is_noop(self, store, lifecycle, make_record, clock, status):
        record = await store.add(make_record())
        if status == CallStatus.RINGING:
            await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)
        before = await store.get(record.account_sid, record.sid)
        clock.advance(5)

        current, changed = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.CANCELED)

        assert changed is False
        assert current == before
        assert current.status == status
        assert current.end_time is None

    @pytest.mark.asyncio
    async def test_queued_call_keeps_no_start_time(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        current, _ = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.CANCELED)

        assert current.start_time is None

    @pytest.mark.asyncio
    async def test_dialer_reported_cancel(self, store, lifecycle, make_record):
        record = await store.add(make_record())
        await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        current = await lifecycle.report(record.account_sid, record.sid, CallStatus.CANCELED)

        assert current.status == CallStatus.CANCELED
        assert current.end_time is not None
        assert current.price is None

    @pytest.mark.asyncio
    async def test_cancel_in_progress_is_noop(self, store, lifecycle, make_record, answer_call):
        record = await store.add(make_record())
        await answer_call(record)

        current, changed = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.CANCELED)

        assert changed is False
        assert current.status == CallStatus.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_terminate_missing_call(self, lifecycle):
        assert await lifecycle.terminate("AC1", "CA1", CallStatus.COMPLETED) == (None, False)

    @pytest.mark.asyncio
    async def test_terminal_record_accepts_nothing(self, store, lifecycle, make_record, answer_call):
        record = await store.add(make_record())
        await answer_call(record)
        done, _ = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.COMPLETED)

        assert await lifecycle.report(record.account_sid, record.sid, CallStatus.FAILED) is None
        again, changed = await lifecycle.terminate(record.account_sid, record.sid, CallStatus.COMPLETED)

        assert changed is False
        assert again == done

    @pytest.mark.asyncio
    async def test_report_applies_from_current_status(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        ringing = await lifecycle.report(record.account_sid, record.sid, CallStatus.RINGING)
        busy = await lifecycle.report(record.account_sid, record.sid, CallStatus.BUSY)

        assert ringing.status == CallStatus.RINGING
        assert busy.status == CallStatus.BUSY

    @pytest.mark.asyncio
    async def test_report_out_of_order_is_ignored(self, store, lifecycle, make_record):
        record = await store.add(make_record())

        assert await lifecycle.report(record.account_sid, record.sid, CallStatus.COMPLETED) is None
        assert (await store.get(record.account_sid, record.sid)).status == CallStatus.QUEUED


class TestListeners:
    """Tests for transition listeners"""

    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self, store, lifecycle, make_record):
        seen = []

        def on_sync(previous, current):
            seen.append(("sync", previous.status, current.status))

        async def on_async(previous, current):
            seen.append(("async", previous.status, current.status))

        lifecycle.add_listener(on_sync)
        lifecycle.add_listener(on_async)
        record = await store.add(make_record())

        await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        assert seen == [
            ("sync", CallStatus.QUEUED, CallStatus.RINGING),
            ("async", CallStatus.QUEUED, CallStatus.RINGING),
        ]

    @pytest.mark.asyncio
    async def test_noop_does_not_notify(self, store, lifecycle, make_record):
        seen = []
        lifecycle.add_listener(lambda previous, current: seen.append(current.status))
        record = await store.add(make_record())

        await lifecycle.terminate(record.account_sid, record.sid, CallStatus.COMPLETED)

        assert seen == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_undo_transition(self, store, lifecycle, make_record, caplog):
        def broken(previous, current):
            raise RuntimeError("callback endpoint down")

        lifecycle.add_listener(broken)
        record = await store.add(make_record())

        with caplog.at_level(logging.ERROR):
            updated = await lifecycle.advance(
                record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING
            )

        assert updated.status == CallStatus.RINGING
        assert "Transition listener failed" in caplog.text

    @pytest.mark.asyncio
    async def test_remove_listener(self, store, lifecycle, make_record):
        seen = []

        def listener(previous, current):
            seen.append(current.status)

        lifecycle.add_listener(listener)
        lifecycle.remove_listener(listener)
        lifecycle.remove_listener(listener)
        record = await store.add(make_record())

        await lifecycle.advance(record.account_sid, record.sid, CallStatus.QUEUED, CallStatus.RINGING)

        assert seen == []


def test_rate_is_carried_from_record(make_record, clock):
    record = make_record(status=CallStatus.IN_PROGRESS, start_time=clock(), rate_per_minute=Decimal("0.003"))

    done = apply_transition(record, CallStatus.COMPLETED, now=clock(), pricing=PricingEngine(), duration_seconds=60)

    assert done.price == "0.0030"
