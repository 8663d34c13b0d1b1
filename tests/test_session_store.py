"""Tests for the Session Store."""

import json

import pytest

from chronicle_kernel.errors import LedgerIntegrityError, SessionNotFoundError
from chronicle_kernel.ledger.arbiter import apply_patches
from chronicle_kernel.ledger.store import SessionStore, record_hash
from chronicle_kernel.models.record import Patch, PatchOp
from chronicle_kernel.worlds.isle_of_marrow import create_simple_world


def _make_record():
    return create_simple_world(started_at="2024-01-01T08:00:00Z")


def _location_patch(location: str) -> Patch:
    return Patch(op=PatchOp.SET, path="/player/location", value=location, note=f"Go to {location}")


class TestSessions:
    def setup_method(self):
        self.store = SessionStore(db_path=":memory:")

    def test_create_and_load(self):
        record = _make_record()
        session_id = self.store.create_session(record)

        assert session_id.startswith("session-")
        assert self.store.has_session(session_id)
        assert self.store.load_snapshot(session_id) == record
        assert self.store.load_initial(session_id) == record

    def test_explicit_session_id(self):
        assert self.store.create_session(_make_record(), "campaign-1") == "campaign-1"
        assert self.store.list_sessions() == ["campaign-1"]

    def test_missing_session(self):
        with pytest.raises(SessionNotFoundError):
            self.store.load_snapshot("nope")
        with pytest.raises(SessionNotFoundError):
            self.store.save_snapshot("nope", _make_record())

    def test_snapshot_update_keeps_initial(self):
        record = _make_record()
        session_id = self.store.create_session(record)
        updated = apply_patches(record, [_location_patch("tavern")])
        self.store.save_snapshot(session_id, updated)

        assert self.store.load_snapshot(session_id).player.location == "tavern"
        assert self.store.load_initial(session_id).player.location == "glade"


class TestTurnLog:
    def setup_method(self):
        self.store = SessionStore(db_path=":memory:")
        self.record = _make_record()
        self.session_id = self.store.create_session(self.record)

    def _append_accepted(self, record, patches, note="Turn"):
        after = apply_patches(record, patches, note)
        entry = self.store.new_entry(
            self.session_id,
            turn=after.meta.turn,
            note=note,
            patches=patches,
            record_hash=record_hash(after),
        )
        self.store.append_turn(entry)
        return after, entry

    def test_append_and_retrieve(self):
        _, entry = self._append_accepted(self.record, [_location_patch("tavern")])

        assert entry.signature != ""
        assert entry.prior_record_hash is None  # First entry
        retrieved = self.store.get_entry(entry.id)
        assert retrieved is not None
        assert retrieved.patches[0].value == "tavern"

    def test_hash_chaining(self):
        record = self.record
        entries = []
        for i in range(5):
            record, entry = self._append_accepted(record, [], note=f"Turn {i}")
            entries.append(entry)

        for i in range(1, len(entries)):
            assert entries[i].prior_record_hash == entries[i - 1].signature
        assert self.store.count(self.session_id) == 5
        assert self.store.verify_chain_integrity(self.session_id) is True

    def test_chains_are_per_session(self):
        other = self.store.create_session(_make_record())
        self._append_accepted(self.record, [])
        entry = self.store.new_entry(other, turn=1, note="Other")
        self.store.append_turn(entry)

        assert entry.prior_record_hash is None
        assert self.store.count() == 2
        assert self.store.count(other) == 1

    def test_tampered_entry_detected(self):
        _, entry = self._append_accepted(self.record, [_location_patch("tavern")])
        tampered = entry.model_dump(mode="json")
        tampered["note"] = "Something else happened"
        self.store._conn.execute(
            "UPDATE turns SET entry_json = ? WHERE id = ?",
            (json.dumps(tampered), entry.id),
        )

        assert self.store.verify_chain_integrity(self.session_id) is False

    def test_append_to_unknown_session(self):
        entry = self.store.new_entry("ghost", turn=1, note="Nothing")
        with pytest.raises(SessionNotFoundError):
            self.store.append_turn(entry)

    def test_replay_rebuilds_latest_record(self):
        record, _ = self._append_accepted(self.record, [_location_patch("tavern")])
        record, _ = self._append_accepted(record, [
            Patch(op=PatchOp.SET, path="/systems/time/elapsed_minutes", value=45),
        ])
        rejected = self.store.new_entry(self.session_id, turn=2, note="Rejected", accepted=False)
        self.store.append_turn(rejected)

        replayed = self.store.replay(self.session_id)
        assert record_hash(replayed) == record_hash(record)
        assert replayed.meta.turn == 2
        assert len(self.store.get_turn_log(self.session_id)) == 3
        assert len(self.store.get_turn_log(self.session_id, accepted_only=True)) == 2

    def test_replay_divergence_raises(self):
        entry = self.store.new_entry(
            self.session_id,
            turn=1,
            note="Turn",
            patches=[_location_patch("tavern")],
            record_hash="0" * 64,
        )
        self.store.append_turn(entry)

        with pytest.raises(LedgerIntegrityError):
            self.store.replay(self.session_id)

    def test_record_hash_is_stable(self):
        assert record_hash(self.record) == record_hash(_make_record())
        assert record_hash(self.record) != record_hash(apply_patches(self.record, []))
