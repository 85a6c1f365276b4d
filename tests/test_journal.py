"""
Tests for the hash-chained event journal.
"""

import json

import pytest

from crossgate.state.journal import EventJournal


class TestEventJournal:
    def test_in_memory_append(self):
        journal = EventJournal()
        first = journal.append("GatewayInitialized", {"chainId": "1"})
        second = journal.append("CounterInitialized", {"sourceChainId": "1"})

        assert first["seq"] == 1
        assert second["prev_hash"] == first["entry_hash"]
        assert journal.entry_count == 2
        assert journal.path is None
        assert journal.verify_integrity() == (True, None)

    def test_file_append_and_resume(self, tmp_path):
        path = tmp_path / "journal" / "events.jsonl"
        journal = EventJournal(str(path), sync=False)
        journal.append("A", {"n": 1})
        journal.append("B", {"n": 2})

        resumed = EventJournal(str(path), sync=False)
        entry = resumed.append("A", {"n": 3})

        assert entry["seq"] == 3
        assert [e["event_type"] for e in resumed.read_all()] == ["A", "B", "A"]
        assert len(resumed.read_type("A")) == 2
        assert resumed.verify_integrity() == (True, None)

    def test_tampered_payload_detected(self, tmp_path):
        path = tmp_path / "events.jsonl"
        journal = EventJournal(str(path), sync=False)
        journal.append("A", {"n": 1})
        journal.append("B", {"n": 2})

        lines = path.read_text().splitlines()
        entry = json.loads(lines[0])
        entry["payload"]["n"] = 99
        lines[0] = json.dumps(entry, sort_keys=True)
        path.write_text("\n".join(lines) + "\n")

        ok, reason = EventJournal(str(path), sync=False).verify_integrity()
        assert not ok
        assert "seq=1" in reason

    def test_removed_entry_breaks_chain(self, tmp_path):
        path = tmp_path / "events.jsonl"
        journal = EventJournal(str(path), sync=False)
        for i in range(3):
            journal.append("A", {"n": i})

        lines = path.read_text().splitlines()
        path.write_text(lines[0] + "\n" + lines[2] + "\n")

        ok, reason = EventJournal(str(path), sync=False).verify_integrity()
        assert not ok
        assert "chain broken" in reason

    def test_resume_stops_at_corrupted_tail(self, tmp_path):
        path = tmp_path / "events.jsonl"
        journal = EventJournal(str(path), sync=False)
        first = journal.append("A", {"n": 1})
        with open(path, "a", encoding="utf-8") as f:
            f.write('{"seq": 2, "event_type": "B"')

        resumed = EventJournal(str(path), sync=False)
        assert resumed.entry_count == 1
        assert resumed.read_all() == [first]

    def test_failed_append_does_not_advance(self, tmp_path):
        path = tmp_path / "events.jsonl"
        journal = EventJournal(str(path), sync=False)
        journal.append("A", {"n": 1})
        path.unlink()
        path.mkdir()

        with pytest.raises(OSError):
            journal.append("B", {"n": 2})
        assert journal.entry_count == 1
