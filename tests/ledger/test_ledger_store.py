"""Tests for the in-memory and JSON-lines ledger stores."""

from __future__ import annotations

import json

import pytest

from rigshift.ledger import EventLedger, JsonlLedgerStore, LedgerStoreError, MemoryLedgerStore, SyncStatus


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "ledger" / "ledger.jsonl"


class TestMemoryLedgerStore:
    def test_load_returns_copy(self, clock):
        store = MemoryLedgerStore()
        ledger = EventLedger(store=store, clock=clock)
        ledger.append("a", {})
        loaded = store.load()
        loaded.clear()
        assert len(store.load()) == 1


class TestJsonlLedgerStore:
    def test_missing_file_loads_empty(self, ledger_path):
        assert JsonlLedgerStore(ledger_path).load() == []

    def test_events_survive_reload(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        for i in range(3):
            ledger.append("step_complete", {"step": i}, operator_id="1")

        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        assert reloaded.events == ledger.events
        assert reloaded.verification_code == ledger.verification_code
        assert reloaded.verify()

    def test_chain_continues_after_reload(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        last = ledger.append("a", {})
        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        nxt = reloaded.append("b", {})
        assert nxt.previous_digest == last.digest

    def test_sorted_keys_one_line_per_event(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        ledger.append("a", {"z": 1, "a": 2})
        lines = ledger_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        obj = json.loads(lines[0])
        assert list(obj) == sorted(obj)

    def test_status_changes_are_appended_not_rewritten(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), is_online=lambda: False, clock=clock)
        event = ledger.append("a", {})
        original_line = ledger_path.read_text(encoding="utf-8").splitlines()[0]

        ledger.mark_synced(event.id)

        lines = ledger_path.read_text(encoding="utf-8").splitlines()
        assert lines[0] == original_line
        assert json.loads(lines[1]) == {"event_id": event.id, "kind": "sync_status", "sync_status": "synced"}
        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        assert reloaded.get(event.id).sync_status == SyncStatus.SYNCED

    def test_unchanged_status_writes_nothing(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        event = ledger.append("a", {})
        ledger.mark_synced(event.id)
        assert len(ledger_path.read_text(encoding="utf-8").splitlines()) == 1

    def test_blank_lines_skipped(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        ledger.append("a", {})
        with ledger_path.open("a", encoding="utf-8") as fh:
            fh.write("\n\n")
        assert len(JsonlLedgerStore(ledger_path).load()) == 1

    def test_invalid_json_reports_line(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        ledger.append("a", {})
        with ledger_path.open("a", encoding="utf-8") as fh:
            fh.write("{not json\n")
        with pytest.raises(LedgerStoreError, match="line 2"):
            JsonlLedgerStore(ledger_path).load()

    def test_invalid_structure_reports_line(self, ledger_path):
        ledger_path.parent.mkdir(parents=True)
        ledger_path.write_text(json.dumps({"id": "x"}) + "\n", encoding="utf-8")
        with pytest.raises(LedgerStoreError, match="Invalid event structure on line 1"):
            JsonlLedgerStore(ledger_path).load()

    def test_status_for_unknown_event(self, ledger_path):
        ledger_path.parent.mkdir(parents=True)
        record = {"kind": "sync_status", "event_id": "nope", "sync_status": "synced"}
        ledger_path.write_text(json.dumps(record) + "\n", encoding="utf-8")
        with pytest.raises(LedgerStoreError, match="unknown event"):
            JsonlLedgerStore(ledger_path).load()

    def test_interrupted_syncing_reads_back_pending(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), is_online=lambda: False, clock=clock)
        event = ledger.append("photo_captured", {})
        JsonlLedgerStore(ledger_path).update_status(event.id, SyncStatus.SYNCING)

        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        assert reloaded.get(event.id).sync_status == SyncStatus.PENDING
        assert [e.id for e in reloaded.pending_events()] == [event.id]

    def test_sync_attempts_survive_reload(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), is_online=lambda: False, clock=clock)
        event = ledger.append("photo_captured", {})
        ledger.record_sync_attempts(event.id, 1)
        ledger.record_sync_attempts(event.id, 2)
        ledger.update_sync_status(event.id, SyncStatus.FAILED)

        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        assert reloaded.get(event.id).sync_attempts == 2
        assert reloaded.get(event.id).sync_status == SyncStatus.FAILED
        assert reloaded.verify()

    def test_unchanged_attempts_write_nothing(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), is_online=lambda: False, clock=clock)
        event = ledger.append("photo_captured", {})
        before = ledger_path.read_text(encoding="utf-8")
        ledger.record_sync_attempts(event.id, 0)
        assert ledger_path.read_text(encoding="utf-8") == before

    @pytest.mark.parametrize("attempts", [-1, "2", True, None])
    def test_invalid_attempts_record(self, ledger_path, clock, attempts):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), is_online=lambda: False, clock=clock)
        event = ledger.append("photo_captured", {})
        record = {"kind": "sync_attempts", "event_id": event.id, "sync_attempts": attempts}
        with ledger_path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record) + "\n")
        with pytest.raises(LedgerStoreError, match="Invalid sync attempts on line 2"):
            JsonlLedgerStore(ledger_path).load()

    def test_attempts_for_unknown_event(self, ledger_path):
        ledger_path.parent.mkdir(parents=True)
        record = {"kind": "sync_attempts", "event_id": "nope", "sync_attempts": 1}
        ledger_path.write_text(json.dumps(record) + "\n", encoding="utf-8")
        with pytest.raises(LedgerStoreError, match="unknown event"):
            JsonlLedgerStore(ledger_path).load()

    def test_edited_file_fails_verification(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        ledger.append("incident_reported", {"type": "safety_violation"}, operator_id="1")
        ledger.append("step_complete", {"step": 5}, operator_id="1")

        text = ledger_path.read_text(encoding="utf-8")
        ledger_path.write_text(text.replace("safety_violation", "equipment_failure"), encoding="utf-8")

        reloaded = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        assert not reloaded.verify()
        assert reloaded.find_integrity_failure().index == 0

    def test_clear_removes_file(self, ledger_path, clock):
        ledger = EventLedger(store=JsonlLedgerStore(ledger_path), clock=clock)
        ledger.append("a", {})
        ledger.clear()
        assert not ledger_path.exists()
