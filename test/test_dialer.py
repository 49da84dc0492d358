"""
Tests for the per-operator PowerDialer over the in-memory and SQL stores.
"""

import asyncio

import pytest

from conftest import FakeClock
from powerqueue.calls.models import CallOutcome
from powerqueue.config import Settings
from powerqueue.contacts.schemas import ContactCreate, ContactUpdate
from powerqueue.dialer import PowerDialer
from powerqueue.queue.engine import GroupBy, SortMode
from powerqueue.queue.ordering import epoch_ms
from powerqueue.shared.exceptions import NotFoundError, OperationFailedError, StoreError, ValidationError
from powerqueue.shared.notifications import NotificationLevel
from powerqueue.store.memory import InMemoryDocumentStore
from powerqueue.store.sql import SqlDocumentStore


def lead(name: str = "Dana Reyes", **overrides: object) -> ContactCreate:
    data: dict[str, object] = {
        "name": name,
        "phone": "(512) 555-0100",
        "organization": "Hill Country College",
        "title": "Registrar",
        "region": "TX",
    }
    data.update(overrides)
    return ContactCreate(**data)


class TestAddAndEdit:
    """Tests for contact creation and edits through the dialer."""

    @pytest.mark.asyncio
    async def test_add_contact_lands_in_snapshot(self, dialer: PowerDialer, clock: FakeClock) -> None:
        contact_id = await dialer.add_contact(lead())
        [contact] = dialer.contacts
        assert contact.id == contact_id
        assert contact.timezone == "America/Chicago"
        assert contact.order_key == epoch_ms(clock.now)
        assert contact.do_not_call is False
        assert dialer.notifications.latest.level is NotificationLevel.SUCCESS

    @pytest.mark.asyncio
    async def test_explicit_timezone_wins(self, dialer: PowerDialer) -> None:
        await dialer.add_contact(lead(timezone="America/Denver"))
        assert dialer.contacts[0].timezone == "America/Denver"

    @pytest.mark.asyncio
    async def test_default_timezone_without_region(self, dialer: PowerDialer) -> None:
        await dialer.add_contact(lead(region=None))
        assert dialer.contacts[0].timezone == "America/New_York"

    @pytest.mark.asyncio
    async def test_region_change_rederives_timezone(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        await dialer.update_contact(contact_id, ContactUpdate(region="CA"))
        assert dialer.contacts[0].timezone == "America/Los_Angeles"
        await dialer.update_contact(contact_id, ContactUpdate(timezone="America/Phoenix"))
        assert dialer.contacts[0].timezone == "America/Phoenix"

    @pytest.mark.asyncio
    async def test_notes_and_dnc_toggle(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        await dialer.update_notes(contact_id, "Prefers mornings")
        assert dialer.contacts[0].notes == "Prefers mornings"
        assert await dialer.toggle_dnc(contact_id) is True
        assert await dialer.toggle_dnc(contact_id) is False

    @pytest.mark.asyncio
    async def test_toggle_unknown_contact(self, dialer: PowerDialer) -> None:
        with pytest.raises(NotFoundError):
            await dialer.toggle_dnc("missing")

    @pytest.mark.asyncio
    async def test_store_failure_surfaces_as_operation_failed(
        self,
        dialer: PowerDialer,
        memory_store: InMemoryDocumentStore,
    ) -> None:
        memory_store.configure_failure("create_contact")
        with pytest.raises(OperationFailedError) as exc_info:
            await dialer.add_contact(lead())
        assert exc_info.value.action == "add lead"
        latest = dialer.notifications.latest
        assert latest.level is NotificationLevel.ERROR
        assert latest.action == "add lead"
        assert dialer.contacts == []


class TestQueueViews:
    @pytest.mark.asyncio
    async def test_in_window_filter_only_affects_queue(self, dialer: PowerDialer) -> None:
        # 10:00 in Los Angeles is before an 11-15 accessibility window.
        await dialer.add_contact(lead("Casey", title="ADA Coordinator", region="CA"))
        await dialer.add_contact(lead("Blake", region="IL"))
        dialer.set_filters(in_window_only=True)
        assert [i.contact.name for i in dialer.queue()] == ["Blake"]
        [group] = dialer.leads()
        assert sorted(i.contact.name for i in group.items) == ["Blake", "Casey"]

    @pytest.mark.asyncio
    async def test_set_filters(self, dialer: PowerDialer) -> None:
        filters = dialer.set_filters(region="tx", sort="name", group_by="timezone")
        assert filters.region == "TX"
        assert filters.sort is SortMode.NAME
        assert filters.group_by is GroupBy.TIMEZONE
        assert dialer.set_filters(region="").region is None

    def test_unknown_filter_rejected(self) -> None:
        d = PowerDialer("op-1", InMemoryDocumentStore(), settings=Settings(_env_file=None))
        with pytest.raises(ValidationError):
            d.set_filters(colour="blue")

    @pytest.mark.asyncio
    async def test_queue_listener_and_refresh(self, dialer: PowerDialer) -> None:
        seen: list[int] = []
        unsubscribe = dialer.on_queue_change(lambda items: seen.append(len(items)))
        await dialer.add_contact(lead())
        assert seen[-1] == 1
        dialer.refresh()
        assert len(seen) >= 2
        unsubscribe()
        count = len(seen)
        dialer.refresh()
        assert len(seen) == count

    @pytest.mark.asyncio
    async def test_refresh_loop_runs_until_cancelled(self, dialer: PowerDialer) -> None:
        ticks: list[int] = []
        dialer.on_queue_change(lambda items: ticks.append(len(items)))
        task = asyncio.create_task(dialer.run_refresh_loop(interval_seconds=0.001))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert ticks


class TestReorder:
    @pytest.mark.asyncio
    async def test_move_to_head_switches_to_manual(self, dialer: PowerDialer, clock: FakeClock) -> None:
        first = await dialer.add_contact(lead("Avery"))
        clock.advance(seconds=1)
        await dialer.add_contact(lead("Blake"))
        clock.advance(seconds=1)
        third = await dialer.add_contact(lead("Casey"))

        first_key = next(c.order_key for c in dialer.contacts if c.id == first)
        plan = await dialer.move(third, 0)
        assert plan.updates == {third: first_key - 1}
        assert dialer.filters.sort is SortMode.MANUAL
        assert [i.contact.name for i in dialer.queue()] == ["Casey", "Avery", "Blake"]

    @pytest.mark.asyncio
    async def test_reorder_between_neighbors(self, dialer: PowerDialer, clock: FakeClock) -> None:
        ids = []
        for name in ("Avery", "Blake", "Casey"):
            ids.append(await dialer.add_contact(lead(name)))
            clock.advance(seconds=1)
        keys = {c.id: c.order_key for c in dialer.contacts}
        plan = await dialer.reorder(ids[2], keys[ids[0]], keys[ids[1]])
        assert plan.new_key == (keys[ids[0]] + keys[ids[1]]) / 2
        assert [c.name for c in sorted(dialer.contacts, key=lambda c: c.order_key)] == [
            "Avery",
            "Casey",
            "Blake",
        ]

    @pytest.mark.asyncio
    async def test_reorder_rejected_while_grouped(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        dialer.set_filters(group_by=GroupBy.ORGANIZATION)
        with pytest.raises(ValidationError):
            await dialer.reorder(contact_id, None, None)
        with pytest.raises(ValidationError):
            await dialer.move(contact_id, 0)


class TestCallLogging:
    """Tests for outcomes, the DNC side effect and the delete cascade."""

    @pytest.mark.asyncio
    async def test_dnc_outcome_flags_contact(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        result = await dialer.log_outcome(contact_id, CallOutcome.DO_NOT_CALL)
        assert result.flagged_dnc is True
        assert dialer.contacts[0].do_not_call is True
        assert dialer.queue() == []
        assert len(dialer.leads()[0].items) == 1
        assert dialer.stats().do_not_call == 1

    @pytest.mark.asyncio
    async def test_flag_failure_keeps_entry(
        self,
        dialer: PowerDialer,
        memory_store: InMemoryDocumentStore,
    ) -> None:
        contact_id = await dialer.add_contact(lead())
        memory_store.configure_failure("update_contact")
        result = await dialer.log_outcome(contact_id, "do_not_call")
        assert result.flag_failed is True
        assert len(dialer.call_logs) == 1
        assert dialer.contacts[0].do_not_call is False
        assert dialer.notifications.latest.level is NotificationLevel.ERROR

    @pytest.mark.asyncio
    async def test_snapshot_read_failure_after_commit_still_flags_dnc(
        self,
        dialer: PowerDialer,
        memory_store: InMemoryDocumentStore,
    ) -> None:
        contact_id = await dialer.add_contact(lead())
        memory_store.configure_failure("list_call_logs")
        result = await dialer.log_outcome(contact_id, CallOutcome.DO_NOT_CALL)
        assert result.flagged_dnc is True
        assert result.flag_failed is False
        assert (await memory_store.get_contact("op-1", contact_id)).do_not_call is True
        assert dialer.contacts[0].do_not_call is True
        assert dialer.notifications.latest.level is NotificationLevel.SUCCESS

        memory_store.reset_failures()
        history = await dialer.history(contact_id)
        assert [e.outcome for e in history] == [CallOutcome.DO_NOT_CALL]

    @pytest.mark.asyncio
    async def test_unknown_outcome(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        with pytest.raises(ValidationError):
            await dialer.log_outcome(contact_id, "hung_up")

    @pytest.mark.asyncio
    async def test_unknown_contact(self, dialer: PowerDialer) -> None:
        with pytest.raises(NotFoundError):
            await dialer.log_outcome("missing", CallOutcome.NO_ANSWER)

    @pytest.mark.asyncio
    async def test_stats_and_history(self, dialer: PowerDialer, clock: FakeClock) -> None:
        assert dialer.stats().conversation_rate == 0.0
        contact_id = await dialer.add_contact(lead())
        await dialer.log_outcome(contact_id, CallOutcome.NO_ANSWER)
        clock.advance(minutes=5)
        await dialer.log_outcome(contact_id, CallOutcome.CONVERSATION)
        history = await dialer.history(contact_id)
        assert [e.outcome for e in history] == [CallOutcome.CONVERSATION, CallOutcome.NO_ANSWER]
        stats = dialer.stats()
        assert stats.total == 2
        assert stats.conversation_rate_percent == 50

    @pytest.mark.asyncio
    async def test_delete_cascades_and_is_idempotent(self, dialer: PowerDialer) -> None:
        contact_id = await dialer.add_contact(lead())
        await dialer.log_outcome(contact_id, CallOutcome.NO_ANSWER)
        await dialer.log_outcome(contact_id, CallOutcome.LEFT_VOICEMAIL)
        assert await dialer.delete_contact(contact_id) == 2
        assert dialer.contacts == []
        assert dialer.call_logs == []
        assert await dialer.delete_contact(contact_id) == 0

    @pytest.mark.asyncio
    async def test_log_outcome_for_head(self, dialer: PowerDialer) -> None:
        with pytest.raises(ValidationError):
            await dialer.log_outcome_for_head(CallOutcome.NO_ANSWER)
        contact_id = await dialer.add_contact(lead())
        result = await dialer.log_outcome_for_head(CallOutcome.CONVERSATION)
        assert result.contact_id == contact_id


class TestDialAndBlock:
    @pytest.mark.asyncio
    async def test_dial_next(self, dialer: PowerDialer) -> None:
        assert dialer.dial_next() is None
        await dialer.add_contact(lead())
        target = dialer.dial_next()
        assert target is not None
        assert target.uri == "tel:+15125550100"
        assert target.contact.name == "Dana Reyes"
        assert dialer.notifications.latest.message == "Calling Dana Reyes…"

    @pytest.mark.asyncio
    async def test_block_counts_logged_calls(self, dialer: PowerDialer, clock: FakeClock) -> None:
        contact_id = await dialer.add_contact(lead())
        await dialer.log_outcome(contact_id, CallOutcome.NO_ANSWER)
        dialer.start_block()
        for _ in range(3):
            await dialer.log_outcome(contact_id, CallOutcome.NO_ANSWER)
        clock.advance(hours=1)
        summary = dialer.end_block()
        assert summary.calls_logged == 3
        assert summary.calls_per_hour == 3
        assert dialer.notifications.latest.message == "Block ended: 3 calls, 3 calls/hour"

    @pytest.mark.asyncio
    async def test_block_ticks(self, dialer: PowerDialer) -> None:
        dialer.start_block()
        assert dialer.block.is_running
        labels = []
        async for label in dialer.block_ticks():
            labels.append(label)
            dialer.end_block()
        assert labels == ["00:00:00"]
        assert dialer.block.is_running is False

    def test_end_block_when_idle(self) -> None:
        d = PowerDialer("op-1", InMemoryDocumentStore(), settings=Settings(_env_file=None))
        with pytest.raises(ValidationError):
            d.end_block()


class TestSqlBackedDialer:
    @pytest.mark.asyncio
    async def test_round_trip(self, sql_store: SqlDocumentStore, settings: Settings, clock: FakeClock) -> None:
        dialer = PowerDialer("op-1", sql_store, settings=settings, clock=clock)
        await dialer.start()
        try:
            contact_id = await dialer.add_contact(lead())
            await dialer.log_outcome(contact_id, CallOutcome.DO_NOT_CALL)
            assert dialer.contacts[0].do_not_call is True
            assert len(dialer.call_logs) == 1
            assert await dialer.delete_contact(contact_id) == 1
            assert dialer.contacts == []
        finally:
            await dialer.close()

    @pytest.mark.asyncio
    async def test_failed_call_log_read_after_commit_is_not_reported(
        self,
        sql_store: SqlDocumentStore,
        settings: Settings,
        clock: FakeClock,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        dialer = PowerDialer("op-1", sql_store, settings=settings, clock=clock)
        await dialer.start()
        try:
            contact_id = await dialer.add_contact(lead())

            async def failing_read(scope: str) -> list:
                raise StoreError("connection lost", details={"scope": scope})

            monkeypatch.setattr(sql_store, "list_call_logs", failing_read)
            result = await dialer.log_outcome(contact_id, CallOutcome.DO_NOT_CALL)
            assert result.flagged_dnc is True
            assert (await sql_store.get_contact("op-1", contact_id)).do_not_call is True
            entries = await sql_store.query_call_logs_by_contact("op-1", contact_id)
            assert [e.outcome for e in entries] == [CallOutcome.DO_NOT_CALL]
        finally:
            await dialer.close()
