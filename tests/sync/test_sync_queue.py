"""Tests for SyncQueue bookkeeping and the sync_all retry rules."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

import httpx
import pytest

from rigshift.ledger import EventLedger, JsonlLedgerStore, SyncStatus
from rigshift.sync.queue import SyncQueue


def _record_offline(ledger, count=1, event_type="photo_captured"):
    return [ledger.append(event_type, {"index": i}, operator_id="1") for i in range(count)]


class TestEnqueue:
    def test_new_entry_is_pending(self):
        queue = SyncQueue()
        entry = queue.enqueue("evt-1", "step_complete", {"step": 0})
        assert entry.sync_status == SyncStatus.PENDING
        assert entry.retry_count == 0
        assert entry.last_attempt_time is None

    def test_not_idempotent(self):
        queue = SyncQueue()
        queue.enqueue("evt-1", "a", {})
        queue.enqueue("evt-1", "a", {})
        assert len(queue) == 2
        assert queue.contains("evt-1")

    def test_offline_append_enqueues(self, queue, offline_ledger):
        events = _record_offline(offline_ledger, 3)
        assert [e.event_id for e in queue.entries] == [e.id for e in events]


class TestSyncAll:
    def test_skipped_while_offline(self, queue, offline_ledger, transport):
        _record_offline(offline_ledger)
        result = queue.sync_all()
        assert result.skipped
        transport.send.assert_not_called()
        assert queue.pending_count() == 1

    def test_skipped_when_empty(self, queue, connectivity, transport):
        connectivity.set_online(True)
        assert queue.sync_all().skipped
        transport.send.assert_not_called()

    def test_success_marks_synced_in_queue_and_ledger(self, queue, offline_ledger, connectivity, transport):
        events = _record_offline(offline_ledger, 2)
        connectivity.set_online(True)

        result = queue.sync_all()

        assert result.synced_ids == [e.id for e in events]
        assert queue.synced_count() == 2
        assert queue.pending_entries() == []
        assert offline_ledger.pending_events() == []
        assert queue.last_sync_time is not None

    def test_sends_full_outbound_record_in_order(self, queue, offline_ledger, connectivity, transport):
        events = _record_offline(offline_ledger, 3)
        connectivity.set_online(True)
        queue.sync_all()

        sent = [call.args[0] for call in transport.send.call_args_list]
        assert [r["id"] for r in sent] == [e.id for e in events]
        assert set(sent[0]) == {
            "id",
            "timestamp",
            "type",
            "operatorId",
            "rigId",
            "payload",
            "digest",
            "previousDigest",
        }
        assert sent[1]["previousDigest"] == events[0].digest

    def test_failure_increments_retry_and_requeues(self, queue, offline_ledger, connectivity, transport):
        (event,) = _record_offline(offline_ledger)
        connectivity.set_online(True)
        transport.send.return_value = False

        result = queue.sync_all()

        entry = queue.get(event.id)
        assert entry.retry_count == 1
        assert entry.sync_status == SyncStatus.PENDING
        assert entry.last_attempt_time is not None
        assert result.requeued_ids == [event.id]
        assert offline_ledger.get(event.id).sync_status == SyncStatus.PENDING

    def test_third_failure_parks_as_failed(self, queue, offline_ledger, connectivity, transport):
        (event,) = _record_offline(offline_ledger)
        connectivity.set_online(True)
        transport.send.return_value = False

        for _ in range(3):
            queue.sync_all()

        entry = queue.get(event.id)
        assert entry.retry_count == 3
        assert entry.sync_status == SyncStatus.FAILED
        assert queue.failed_count() == 1
        assert offline_ledger.get(event.id).sync_status == SyncStatus.FAILED
        assert offline_ledger.pending_events()[0].id == event.id

    def test_failed_entries_are_still_attempted(self, queue, offline_ledger, connectivity, transport):
        (event,) = _record_offline(offline_ledger)
        queue.update_sync_status(event.id, SyncStatus.FAILED)
        connectivity.set_online(True)
        transport.send.return_value = False

        queue.sync_all()

        assert transport.send.call_count == 1
        assert queue.get(event.id).sync_status == SyncStatus.PENDING

    def test_failed_entry_with_two_retries_syncs(self, queue, offline_ledger, connectivity):
        (event,) = _record_offline(offline_ledger)
        entry = queue.get(event.id)
        entry.retry_count = 2
        queue.update_sync_status(event.id, SyncStatus.FAILED)
        connectivity.set_online(True)

        queue.sync_all()

        assert queue.get(event.id).sync_status == SyncStatus.SYNCED
        assert queue.pending_entries() == []
        assert queue.failed_count() == 0

    def test_one_failure_does_not_block_others(self, queue, offline_ledger, connectivity, transport):
        events = _record_offline(offline_ledger, 3)
        connectivity.set_online(True)
        transport.send.side_effect = [True, False, True]

        result = queue.sync_all()

        assert result.synced_ids == [events[0].id, events[2].id]
        assert result.requeued_ids == [events[1].id]
        assert result.error_count == 1

    def test_transport_exception_counts_as_failure(self, queue, offline_ledger, connectivity, transport):
        events = _record_offline(offline_ledger, 2)
        connectivity.set_online(True)
        transport.send.side_effect = [httpx.ConnectError("boom"), True]

        result = queue.sync_all()

        assert queue.get(events[0].id).retry_count == 1
        assert queue.get(events[1].id).sync_status == SyncStatus.SYNCED
        assert "boom" in result.error_messages[0]
        assert queue.sync_error is not None

    def test_no_transport_skips(self):
        queue = SyncQueue(transport=None)
        queue.enqueue("evt", "a", {})
        assert queue.sync_all().skipped

    def test_custom_max_retries(self, transport):
        transport.send.return_value = False
        queue = SyncQueue(transport=transport, max_retries=1)
        queue.enqueue("evt", "a", {})
        queue.sync_all()
        assert queue.get("evt").sync_status == SyncStatus.FAILED

    def test_unattached_queue_sends_minimal_record(self, transport):
        queue = SyncQueue(transport=transport)
        queue.enqueue("evt", "a", {"k": 1})
        queue.sync_all()
        transport.send.assert_called_once_with({"id": "evt", "type": "a", "payload": {"k": 1}})


class TestRetryAndCleanup:
    def test_retry_failed_events_resets(self, queue, offline_ledger):
        events = _record_offline(offline_ledger, 2)
        queue.get(events[0].id).retry_count = 3
        queue.update_sync_status(events[0].id, SyncStatus.FAILED)

        assert queue.retry_failed_events() == 1

        entry = queue.get(events[0].id)
        assert entry.sync_status == SyncStatus.PENDING
        assert entry.retry_count == 0
        assert offline_ledger.get(events[0].id).sync_status == SyncStatus.PENDING

    def test_clear_synced_events(self, queue, offline_ledger, connectivity, transport):
        events = _record_offline(offline_ledger, 3)
        connectivity.set_online(True)
        transport.send.side_effect = [True, False, True]
        queue.sync_all()

        assert queue.clear_synced_events() == 2
        assert [e.event_id for e in queue.entries] == [events[1].id]

    def test_remove_from_queue(self, queue, offline_ledger):
        events = _record_offline(offline_ledger, 2)
        queue.remove_from_queue(events[0].id)
        assert [e.event_id for e in queue.entries] == [events[1].id]

    def test_increment_retry_count(self):
        queue = SyncQueue()
        queue.enqueue("evt", "a", {})
        queue.increment_retry_count("evt")
        queue.increment_retry_count("evt")
        assert queue.get("evt").retry_count == 2

    def test_rebuild_from_ledger(self, offline_ledger, transport):
        events = _record_offline(offline_ledger, 3)
        offline_ledger.mark_synced(events[0].id)
        offline_ledger.update_sync_status(events[2].id, SyncStatus.FAILED)

        fresh = SyncQueue(transport=transport)
        assert fresh.rebuild_from(offline_ledger) == 2
        assert fresh.rebuild_from(offline_ledger) == 0
        assert [e.event_id for e in fresh.entries] == [events[1].id, events[2].id]
        assert fresh.get(events[2].id).sync_status == SyncStatus.FAILED

    def test_rebuild_restores_attempt_counts(self, offline_ledger, transport):
        events = _record_offline(offline_ledger, 2)
        offline_ledger.record_sync_attempts(events[0].id, 2)

        fresh = SyncQueue(transport=transport)
        fresh.rebuild_from(offline_ledger)

        assert fresh.get(events[0].id).retry_count == 2
        assert fresh.get(events[1].id).retry_count == 0

    def test_failures_are_recorded_on_the_ledger(self, queue, offline_ledger, connectivity, transport):
        (event,) = _record_offline(offline_ledger)
        connectivity.set_online(True)
        transport.send.return_value = False

        queue.sync_all()
        assert offline_ledger.get(event.id).sync_attempts == 1
        queue.sync_all()
        assert offline_ledger.get(event.id).sync_attempts == 2

        queue.increment_retry_count(event.id)
        assert offline_ledger.get(event.id).sync_attempts == 3
        queue.update_sync_status(event.id, SyncStatus.FAILED)
        assert queue.retry_failed_events() == 1
        assert offline_ledger.get(event.id).sync_attempts == 0


class TestInterruptedDelivery:
    def test_syncing_is_never_written_to_the_ledger(self, queue, offline_ledger, connectivity):
        (event,) = _record_offline(offline_ledger)
        offline_ledger.update_sync_status = MagicMock(wraps=offline_ledger.update_sync_status)
        queue.attach(offline_ledger)
        connectivity.set_online(True)

        queue.sync_all()

        statuses = [call.args[1] for call in offline_ledger.update_sync_status.call_args_list]
        assert statuses == [SyncStatus.SYNCED]

    def test_cut_short_send_is_resent(self, queue, offline_ledger, connectivity, transport):
        (event,) = _record_offline(offline_ledger)
        connectivity.set_online(True)
        transport.send.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            queue.sync_all()

        assert not queue.is_syncing
        assert queue.get(event.id).sync_status == SyncStatus.PENDING
        assert queue.get(event.id).retry_count == 0
        assert offline_ledger.get(event.id).sync_status == SyncStatus.PENDING

        transport.send.side_effect = None
        result = queue.sync_all()
        assert result.synced_ids == [event.id]
        assert offline_ledger.pending_events() == []

    def test_restart_after_cut_short_send(self, tmp_path, connectivity, transport, clock):
        path = tmp_path / "ledger.jsonl"
        ledger = EventLedger(store=JsonlLedgerStore(path), is_online=connectivity, clock=clock)
        queue = SyncQueue(transport=transport, is_online=connectivity, clock=clock)
        queue.attach(ledger)
        (event,) = _record_offline(ledger)
        connectivity.set_online(True)
        transport.send.side_effect = KeyboardInterrupt
        with pytest.raises(KeyboardInterrupt):
            queue.sync_all()

        restarted = EventLedger(store=JsonlLedgerStore(path), is_online=connectivity, clock=clock)
        fresh = SyncQueue(transport=transport, is_online=connectivity, clock=clock)
        fresh.attach(restarted)
        assert fresh.rebuild_from(restarted) == 1
        transport.send.side_effect = None
        assert fresh.sync_all().synced_ids == [event.id]


class TestDiagnostics:
    def test_counts(self):
        queue = SyncQueue()
        for i in range(4):
            queue.enqueue(f"evt-{i}", "a", {})
        queue.update_sync_status("evt-0", SyncStatus.SYNCED)
        queue.update_sync_status("evt-1", SyncStatus.FAILED)
        assert queue.pending_count() == 2
        assert queue.failed_count() == 1
        assert queue.synced_count() == 1

    def test_total_queue_size(self):
        queue = SyncQueue()
        queue.enqueue("evt-1", "a", {"step": 1})
        queue.enqueue("evt-2", "a", {})
        assert queue.total_queue_size() == len('{"step":1}') + len("{}")
        assert queue.total_queue_size_kb() == "0.01"

    def test_size_in_kb_two_decimals(self):
        queue = SyncQueue()
        queue.enqueue("evt", "a", {"blob": "x" * 2048})
        assert queue.total_queue_size_kb() == f"{queue.total_queue_size() / 1024:.2f}"

    def test_stats(self, clock):
        queue = SyncQueue(clock=clock)
        queue.enqueue("evt-1", "photo_captured", {})
        queue.enqueue("evt-2", "photo_captured", {})
        queue.enqueue("evt-3", "step_complete", {})
        queue.get("evt-2").retry_count = 2
        queue.get("evt-3").retry_count = 5

        stats = queue.stats()

        assert stats.total_queued == 3
        assert stats.total_retried == 2
        assert stats.retry_distribution == {"0 retries": 1, "1-3 retries": 1, "4+ retries": 1}
        assert stats.top_event_types[0] == ("photo_captured", 2)
        assert stats.oldest_event_age >= timedelta(seconds=1)

    def test_empty_stats(self):
        stats = SyncQueue().stats()
        assert stats.total_queued == 0
        assert stats.oldest_event_age is None

    def test_pending_entries_is_read_only(self, queue, offline_ledger):
        _record_offline(offline_ledger, 2)
        before = [(e.event_id, e.sync_status, e.retry_count) for e in queue.entries]
        queue.pending_entries()
        assert [(e.event_id, e.sync_status, e.retry_count) for e in queue.entries] == before
