"""Tests for the polling delivery scheduler."""

import asyncio
from datetime import timedelta

import pytest

from eslatma.core.context import AppContext
from eslatma.core.extractor import TaskExtractor
from eslatma.metrics import runtime_metrics
from eslatma.scheduler import MAX_RETRY_BACKOFF_SECONDS, DeliveryScheduler
from eslatma.storage.confirmation import ConfirmationRegister
from eslatma.storage.db_config import init_db
from eslatma.storage.reminder import ReminderStore

from conftest import TZ, RecordingSink, network_down


def epoch(clock, **offset) -> int:
    return int((clock() + timedelta(**offset)).timestamp())


@pytest.fixture
def scheduler(ctx, sink):
    return DeliveryScheduler(ctx, sink, poll_interval=20)


class TestPollOnce:
    @pytest.mark.asyncio
    async def test_due_reminder_is_sent_then_deleted(self, scheduler, store, sink, clock):
        await store.create(5, "darsim bor", epoch(clock, minutes=-1))

        assert await scheduler.poll_once() == 1
        assert len(sink.sent) == 1
        owner, text = sink.sent[0]
        assert owner == 5
        assert "darsim bor" in text
        assert "12:59" in text
        assert await store.list_due(clock()) == []
        assert await store.list_pending(5) == []

    @pytest.mark.asyncio
    async def test_repeated_poll_does_not_redeliver(self, scheduler, store, sink, clock):
        await store.create(5, "a", epoch(clock, minutes=-1))

        await scheduler.poll_once()
        assert await scheduler.poll_once() == 0
        assert len(sink.sent) == 1

    @pytest.mark.asyncio
    async def test_future_reminder_waits_until_due(self, scheduler, store, sink, clock):
        await store.create(5, "a", epoch(clock, seconds=60))

        assert await scheduler.poll_once() == 0
        clock.advance(seconds=59)
        assert await scheduler.poll_once() == 0
        clock.advance(seconds=1)
        assert await scheduler.poll_once() == 1

    @pytest.mark.asyncio
    async def test_owner_order_follows_fire_time(self, scheduler, store, sink, clock):
        await store.create(5, "second", epoch(clock, minutes=-1))
        await store.create(5, "first", epoch(clock, minutes=-5))

        assert await scheduler.poll_once() == 2
        assert ["first" in text for _, text in sink.sent] == [True, False]

    @pytest.mark.asyncio
    async def test_task_is_html_escaped(self, scheduler, store, sink, clock):
        await store.create(5, "<b>x</b> & y", epoch(clock, minutes=-1))

        await scheduler.poll_once()
        assert "&lt;b&gt;x&lt;/b&gt; &amp; y" in sink.sent[0][1]

    @pytest.mark.asyncio
    async def test_delivered_metric(self, scheduler, store, clock):
        before = runtime_metrics.reminder_delivered_count
        await store.create(5, "a", epoch(clock, minutes=-1))

        await scheduler.poll_once()
        assert runtime_metrics.reminder_delivered_count == before + 1

    @pytest.mark.asyncio
    async def test_purges_expired_confirmations(self, scheduler, confirmations, clock):
        confirmations.open(5, 12, 0, "12:00 dars", clock())
        clock.advance(seconds=901)

        await scheduler.poll_once()
        assert len(confirmations) == 0


class TestDeliveryFailure:
    @pytest.mark.asyncio
    async def test_failed_send_keeps_reminder(self, scheduler, store, sink, clock):
        reminder_id = await store.create(5, "a", epoch(clock, minutes=-1))
        sink.fail_with = network_down(5)

        assert await scheduler.poll_once() == 0
        assert await store.get(reminder_id) is not None
        assert scheduler.get_status()["retrying"] == 1

    @pytest.mark.asyncio
    async def test_unexpected_sink_error_keeps_reminder(self, scheduler, store, sink, clock):
        reminder_id = await store.create(5, "a", epoch(clock, minutes=-1))
        sink.fail_with = RuntimeError("boom")

        assert await scheduler.poll_once() == 0
        assert await store.get(reminder_id) is not None

    @pytest.mark.asyncio
    async def test_retry_after_backoff(self, scheduler, store, sink, clock):
        await store.create(5, "a", epoch(clock, minutes=-1))
        sink.fail_with = network_down(5)
        await scheduler.poll_once()

        sink.fail_with = None
        assert await scheduler.poll_once() == 0  # still backing off
        clock.advance(seconds=20)
        assert await scheduler.poll_once() == 1
        assert len(sink.sent) == 1
        assert scheduler.get_status()["retrying"] == 0

    @pytest.mark.asyncio
    async def test_backoff_grows_and_is_capped(self, scheduler):
        assert scheduler._backoff_seconds(1) == 20
        assert scheduler._backoff_seconds(2) == 40
        assert scheduler._backoff_seconds(3) == 80
        assert scheduler._backoff_seconds(30) == MAX_RETRY_BACKOFF_SECONDS

    @pytest.mark.asyncio
    async def test_failure_holds_back_later_reminders_of_same_owner(self, ctx, store, clock):
        class FailFirstSink(RecordingSink):
            async def send(self, owner, text):
                if "first" in text:
                    raise network_down(owner)
                await super().send(owner, text)

        sink = FailFirstSink()
        scheduler = DeliveryScheduler(ctx, sink, poll_interval=20)
        await store.create(5, "first", epoch(clock, minutes=-5))
        await store.create(5, "second", epoch(clock, minutes=-1))
        await store.create(6, "other owner", epoch(clock, minutes=-1))

        assert await scheduler.poll_once() == 1
        assert [owner for owner, _ in sink.sent] == [6]
        assert "other owner" in sink.sent[0][1]
        assert len(await store.list_pending(5)) == 2

    @pytest.mark.asyncio
    async def test_cancelled_reminder_drops_retry_state(self, scheduler, store, sink, clock):
        reminder_id = await store.create(5, "a", epoch(clock, minutes=-1))
        sink.fail_with = network_down(5)
        await scheduler.poll_once()

        await store.delete(reminder_id, owner=5)
        await scheduler.poll_once()
        assert scheduler.get_status()["retrying"] == 0


class TestRestartRecovery:
    @pytest.mark.asyncio
    async def test_past_due_reminders_delivered_after_restart(self, tmp_path, clock):
        path = str(tmp_path / "reminders.db")
        before_restart = ReminderStore(await init_db(path))
        await before_restart.create(5, "missed while down", epoch(clock, hours=-2))
        await before_restart.create(5, "still ahead", epoch(clock, hours=2))
        await before_restart.close()

        store = ReminderStore(await init_db(path))
        ctx = AppContext(
            tz=TZ,
            store=store,
            confirmations=ConfirmationRegister(ttl_seconds=900),
            extractor=TaskExtractor(),
            clock=clock,
        )
        shutdown_event = asyncio.Event()

        class StopAfterSend(RecordingSink):
            async def send(self, owner, text):
                await super().send(owner, text)
                shutdown_event.set()

        sink = StopAfterSend()
        scheduler = DeliveryScheduler(ctx, sink, poll_interval=3600)
        try:
            await asyncio.wait_for(scheduler.run(shutdown_event), timeout=5)

            assert len(sink.sent) == 1
            assert "missed while down" in sink.sent[0][1]
            assert [r.task for r in await store.list_pending(5)] == ["still ahead"]
            assert scheduler.get_status()["running"] is False
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_run_stops_on_shutdown(self, scheduler):
        shutdown_event = asyncio.Event()
        task = asyncio.create_task(scheduler.run(shutdown_event))
        await asyncio.sleep(0.05)
        assert scheduler.get_status()["running"] is True

        shutdown_event.set()
        await asyncio.wait_for(task, timeout=2)
        assert scheduler.get_status()["running"] is False
