"""Tests for the Turn Engine."""

import pytest

from chronicle_kernel.engine.turn import TurnEngine
from chronicle_kernel.errors import (
    ContainmentError,
    DuplicateEntityError,
    MalformedPatchError,
    MissingEntityError,
    StaleSpeculationError,
)
from chronicle_kernel.ledger.store import SessionStore, record_hash
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import LocationRecord, Patch, PatchOp
from chronicle_kernel.models.time import TidePhase
from chronicle_kernel.systems.reactive import SYSTEM_AUTHOR, SystemSpec, compute_system_patches, tide_system
from chronicle_kernel.weather.metadata import ISLE_OF_MARROW_WEATHER_METADATA
from chronicle_kernel.worlds.isle_of_marrow import PLAYER_ID, create_isle_of_marrow_world, create_simple_world


def _make_engine(**kwargs) -> TurnEngine:
    return TurnEngine(create_simple_world(started_at="2024-01-01T08:00:00Z"), **kwargs)


def _far_move() -> Patch:
    return Patch(op=PatchOp.SET, path="/player/pos", value={"x": 0, "y": 5000})


class TestRunTurn:
    def setup_method(self):
        self.engine = _make_engine()

    def test_first_turn_syncs_systems(self):
        result = self.engine.run_turn([])

        assert result.accepted is True
        assert result.turn == 1
        assert [p.by for p in result.applied_patches] == [SYSTEM_AUTHOR, SYSTEM_AUTHOR]
        assert self.engine.record.systems.tide.phase == TidePhase.RISING
        assert self.engine.record.systems.weather.cache is not None
        assert self.engine.record.ledger[-2] == "Tide shifts to rising [system]"
        assert self.engine.record.ledger[-1].startswith("Weather now ")

    def test_quiet_turn_has_no_system_patches(self):
        self.engine.run_turn([])
        result = self.engine.run_turn([])
        assert result.applied_patches == []
        assert result.turn == 2

    def test_policy_patches_stamped_with_author_and_turn(self):
        patch = Patch(op=PatchOp.SET, path="/player/mood", value="wary", note="Mood sours")
        result = self.engine.run_turn([patch], by="GM")

        assert result.applied_patches[0].by == "GM"
        assert result.applied_patches[0].turn == 1
        assert "Mood sours [GM T1]" in self.engine.record.ledger

    def test_rejected_turn_leaves_record_untouched(self):
        before = record_hash(self.engine.record)
        result = self.engine.run_turn([_far_move()])

        assert result.accepted is False
        assert result.turn == 0
        assert len(result.violations) == 1
        assert result.violations[0].startswith("Player move of 5000m exceeds limit of")
        assert result.diff is None
        assert record_hash(self.engine.record) == before

    def test_single_axis_move_counts_against_budget(self):
        before = record_hash(self.engine.record)
        result = self.engine.run_turn([Patch(op=PatchOp.SET, path="/player/pos/x", value=50000)])

        assert result.accepted is False
        assert result.violations[0].startswith("Player move of 50000m exceeds limit of")
        assert record_hash(self.engine.record) == before

    def test_malformed_patch_raises_and_leaves_record(self):
        before = record_hash(self.engine.record)
        with pytest.raises(MalformedPatchError):
            self.engine.run_turn([{"op": "set", "path": "player/pos", "value": 1}])
        assert record_hash(self.engine.record) == before

    def test_validate_is_a_dry_run(self):
        constraints, violations = self.engine.validate([_far_move()])
        assert constraints.max_move_meters == self.engine.constraints().max_move_meters
        assert len(violations) == 1
        assert self.engine.record.meta.turn == 0

    def test_accepted_turn_reports_diff(self):
        result = self.engine.run_turn([
            Patch(op=PatchOp.SET, path="/systems/time/elapsed_minutes", value=20),
        ])
        assert result.diff.summary == "20 minutes pass"


class TestSpeculation:
    def setup_method(self):
        self.engine = _make_engine()

    def test_speculate_does_not_touch_record(self):
        speculation = self.engine.speculate([
            Patch(op=PatchOp.SET, path="/player/location", value="tavern"),
        ])
        assert speculation.base_turn == 0
        assert speculation.record.meta.turn == 1
        assert speculation.record.player.location == "tavern"
        assert self.engine.record.player.location == "glade"

    def test_commit(self):
        speculation = self.engine.speculate([])
        record = self.engine.commit(speculation)
        assert record is self.engine.record
        assert record.meta.turn == 1

    def test_stale_commit_refused(self):
        speculation = self.engine.speculate([])
        self.engine.run_turn([])
        with pytest.raises(StaleSpeculationError):
            self.engine.commit(speculation)
        assert self.engine.record.meta.turn == 1

    def test_custom_systems(self):
        def fatigue_system(preview, policy_patches, config):
            return [Patch(op=PatchOp.SET, path="/player/fatigue", value=len(policy_patches), by=SYSTEM_AUTHOR)]

        engine = _make_engine(systems=[SystemSpec(name="fatigue", reducer=fatigue_system)])
        speculation = engine.speculate([Patch(op=PatchOp.SET, path="/player/mood", value="ok")])
        assert speculation.system_patches[0].path == "/player/fatigue"
        assert speculation.record.model_dump()["player"]["fatigue"] == 1


class TestSystems:
    def test_tide_system_only_patches_on_change(self):
        record = create_isle_of_marrow_world()
        patches = tide_system(record, [], KernelConfig())
        assert len(patches) == 1
        assert patches[0].value == "rising"
        assert patches[0].note == "Tide shifts to rising"

        synced = record.model_copy(deep=True)
        synced.systems.tide.phase = TidePhase.RISING
        assert tide_system(synced, [], KernelConfig()) == []

    def test_system_patches_are_ordered(self):
        record = create_isle_of_marrow_world()
        patches = compute_system_patches(record, [], KernelConfig())
        assert [p.path for p in patches] == ["/systems/tide/phase", "/systems/weather/cache"]


class TestActions:
    def setup_method(self):
        self.engine = _make_engine()

    def test_advance_time(self):
        result = self.engine.advance_time(90, "resting")

        assert result.accepted is True
        assert self.engine.record.systems.time.elapsed_minutes == 90
        assert "Time advances 1 hour and 30 minutes: resting" in self.engine.record.ledger
        assert self.engine.record.systems.tide.phase == TidePhase.HIGH
        assert result.diff.time_delta_minutes == 90

    def test_move_to_position_updates_location(self):
        result = self.engine.move_to_position(to=Position(x=0, y=45))

        assert result.accepted is True
        assert self.engine.record.player.location == "tavern"
        assert result.diff.summary == "Moved to Weary Dragon Inn"
        assert self.engine.graph.get_located_in(PLAYER_ID).object == "tavern"

    def test_move_by_delta(self):
        self.engine.move_to_position(delta=Position(x=10, y=0))
        assert self.engine.record.player.pos == Position(x=10, y=0)
        assert self.engine.record.player.location == "glade"

    def test_move_requires_exactly_one_target(self):
        with pytest.raises(ValueError):
            self.engine.move_to_position()
        with pytest.raises(ValueError):
            self.engine.move_to_position(to=Position(x=0, y=0), delta=Position(x=1, y=1))

    def test_travel_to_location(self):
        result = self.engine.travel_to_location("tavern", by="narrator")

        assert result.accepted is True
        record = self.engine.record
        assert record.player.location == "tavern"
        assert record.player.pos == Position(x=0, y=50)
        assert record.systems.time.elapsed_minutes == 1
        assert self.engine.knowledge().current_location_id == "tavern"

    def test_travel_to_unknown_location(self):
        with pytest.raises(MissingEntityError):
            self.engine.travel_to_location("castle")

    def test_travel_to_location_without_coordinates_refused(self):
        record = create_simple_world(started_at="2024-01-01T08:00:00Z")
        record.locations["cellar"] = LocationRecord(id="cellar", name="Cellar")
        engine = TurnEngine(record, session_store=SessionStore(db_path=":memory:"))

        result = engine.travel_to_location("cellar")

        assert result.accepted is False
        assert result.violations == ['Location "cellar" has no coordinates to travel to.']
        assert engine.record.player.pos == Position(x=0, y=0)
        assert engine.record.player.location == "glade"
        assert engine.session_store.get_turn_log(engine.session_id)[0].accepted is False

    def test_travel_to_blocked_location_rejected(self):
        engine = TurnEngine(create_isle_of_marrow_world(), metadata_table=ISLE_OF_MARROW_WEATHER_METADATA)
        result = engine.travel_to_location("the-maw")

        assert result.accepted is False
        assert any('"the-maw"' in v for v in result.violations)
        assert engine.record.player.location == "the-landing"

    def test_estimate_travel(self):
        estimate = self.engine.estimate_travel("tavern", weather_multiplier=1.0)
        assert estimate.distance_meters == pytest.approx(50.0)
        assert estimate.to_location_id == "tavern"


class TestEntityEdits:
    def setup_method(self):
        self.store = SessionStore(db_path=":memory:")
        self.engine = _make_engine(session_store=self.store)

    def test_created_location_reaches_record_and_graph(self):
        entity_id, result = self.engine.create_entity(
            "location", {"name": "Old Mill", "pos": {"x": 100, "y": 0}}, entity_id="mill",
        )

        assert entity_id == "mill"
        assert result.accepted is True
        assert self.engine.record.locations["mill"].coords == Position(x=100, y=0)
        assert self.engine.graph.get_entity("mill").properties["name"] == "Old Mill"
        assert record_hash(self.store.replay(self.engine.session_id)) == record_hash(self.engine.record)

    def test_duplicate_entity_refused_before_turn(self):
        with pytest.raises(DuplicateEntityError):
            self.engine.create_entity("location", {"name": "Glade"}, entity_id="glade")
        assert self.engine.record.meta.turn == 0
        assert self.store.get_turn_log(self.engine.session_id) == []

    def test_transfer_item(self):
        result = self.engine.transfer_item("key", "tavern", PLAYER_ID)

        assert [i.id for i in result.record.player.inventory] == ["key"]
        assert result.record.locations["tavern"].items == []
        assert [e.object for e in self.engine.graph.get_relations_by_subject(PLAYER_ID, "contains")] == ["key"]

    def test_transfer_from_wrong_holder(self):
        with pytest.raises(ContainmentError):
            self.engine.transfer_item("key", "glade", PLAYER_ID)

    def test_move_npc(self):
        self.engine.create_entity("actor", {"name": "Innkeeper", "location": "tavern"}, entity_id="innkeeper")
        self.engine.move_entity("innkeeper", "glade")

        assert self.engine.record.npcs["innkeeper"].location == "glade"
        assert self.engine.graph.get_located_in("innkeeper").object == "glade"

    def test_player_move_respects_distance_budget(self):
        self.engine.create_entity("location", {"name": "Far Shore", "coords": {"x": 0, "y": 9000}}, entity_id="shore")
        result = self.engine.move_entity(PLAYER_ID, "shore")

        assert result.accepted is False
        assert self.engine.record.player.location == "glade"


class TestSessions:
    def setup_method(self):
        self.store = SessionStore(db_path=":memory:")
        self.engine = _make_engine(session_store=self.store)

    def test_session_created(self):
        assert self.engine.session_id is not None
        assert self.store.has_session(self.engine.session_id)

    def test_every_attempt_logged(self):
        self.engine.run_turn([])
        self.engine.run_turn([_far_move()])
        self.engine.advance_time(30)

        log = self.store.get_turn_log(self.engine.session_id)
        assert [e.accepted for e in log] == [True, False, True]
        assert log[1].violations
        assert self.store.verify_chain_integrity(self.engine.session_id) is True

    def test_replay_matches_live_record(self):
        self.engine.run_turn([Patch(op=PatchOp.SET, path="/player/mood", value="calm")], by="GM")
        self.engine.move_to_position(to=Position(x=0, y=45))
        self.engine.advance_time(120, "waiting out the rain")

        replayed = self.store.replay(self.engine.session_id)
        assert record_hash(replayed) == record_hash(self.engine.record)

    def test_resume_from_snapshot(self):
        self.engine.travel_to_location("tavern")
        resumed = TurnEngine.resume(self.store, self.engine.session_id)

        assert resumed.session_id == self.engine.session_id
        assert record_hash(resumed.record) == record_hash(self.engine.record)
        resumed.run_turn([])
        assert resumed.record.meta.turn == 2
