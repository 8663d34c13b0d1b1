"""Tests for the Patch Arbiter."""

import pytest

from chronicle_kernel.errors import MalformedPatchError
from chronicle_kernel.ledger.arbiter import apply_patches, format_ledger_entry, parse_pointer
from chronicle_kernel.models.record import Patch, PatchOp
from chronicle_kernel.worlds.isle_of_marrow import create_simple_world


def _make_record():
    return create_simple_world(started_at="2024-01-01T08:00:00Z")


class TestApplyPatches:
    def setup_method(self):
        self.record = _make_record()

    def test_empty_batch_increments_turn_only(self):
        result = apply_patches(self.record, [])

        assert result.meta.turn == 1
        assert result.ledger == self.record.ledger
        assert result.player == self.record.player

    def test_input_record_not_mutated(self):
        before = self.record.model_dump(mode="json")
        apply_patches(self.record, [
            {"op": "set", "path": "/player/location", "value": "tavern"},
            {"op": "merge", "path": "/player", "value": {"mood": "tense"}},
        ])
        assert self.record.model_dump(mode="json") == before

    def test_set_creates_intermediate_maps(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/systems/economy/goods/rope", "value": "scarce"},
        ])
        assert result.systems.economy.goods == {"rope": "scarce"}

    def test_set_unknown_field_is_kept(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/player/mood", "value": "calm"},
        ])
        assert result.model_dump(mode="json")["player"]["mood"] == "calm"

    def test_merge_is_shallow(self):
        first = apply_patches(self.record, [
            {"op": "set", "path": "/player/flags", "value": {"a": {"x": 1}, "b": 2}},
        ])
        second = apply_patches(first, [
            {"op": "merge", "path": "/player/flags", "value": {"a": {"y": 2}, "c": 3}},
        ])
        flags = second.model_dump(mode="json")["player"]["flags"]
        assert flags == {"a": {"y": 2}, "b": 2, "c": 3}

    def test_merge_into_missing_target_creates_map(self):
        result = apply_patches(self.record, [
            {"op": "merge", "path": "/player/stats", "value": {"hp": 10}},
        ])
        assert result.model_dump(mode="json")["player"]["stats"] == {"hp": 10}

    def test_merge_non_object_value_raises(self):
        with pytest.raises(MalformedPatchError, match="must be an object"):
            apply_patches(self.record, [{"op": "merge", "path": "/player", "value": 5}])

    def test_patches_apply_in_order(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/player/location", "value": "tavern"},
            {"op": "set", "path": "/player/location", "value": "glade"},
        ])
        assert result.player.location == "glade"
        assert result.meta.turn == 1
        assert len(result.ledger) == len(self.record.ledger) + 2

    def test_list_append_and_replace(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/locations/tavern/items/-", "value": {"id": "mug", "name": "pewter mug"}},
            {"op": "set", "path": "/locations/tavern/items/0", "value": {"id": "key", "name": "bent key"}},
        ])
        items = result.locations["tavern"].items
        assert [i.id for i in items] == ["key", "mug"]
        assert items[0].name == "bent key"

    def test_list_index_out_of_range(self):
        with pytest.raises(MalformedPatchError, match="out of range"):
            apply_patches(self.record, [
                {"op": "set", "path": "/locations/tavern/items/5", "value": {"id": "x", "name": "x"}},
            ])

    def test_set_field_on_new_location(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/locations/cove/name", "value": "Smugglers' Cove"},
        ])
        cove = result.locations["cove"]
        assert cove.id == "cove"
        assert cove.name == "Smugglers' Cove"
        assert cove.coords is None
        assert result.ledger[-1] == "State updated"

    def test_set_nested_unknown_path(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/locations/cove/rumours/harbour/latest", "value": "a ship without a crew"},
            {"op": "set", "path": "/npcs/ferryman/role", "value": "ferryman"},
        ])
        data = result.model_dump(mode="json")
        assert data["locations"]["cove"]["rumours"] == {"harbour": {"latest": "a ship without a crew"}}
        assert result.npcs["ferryman"].id == "ferryman"
        assert result.npcs["ferryman"].name == "ferryman"
        assert result.npcs["ferryman"].role == "ferryman"

    def test_partial_location_survives_later_turns(self):
        first = apply_patches(self.record, [{"op": "set", "path": "/locations/cove/name", "value": "Cove"}])
        second = apply_patches(first, [{"op": "merge", "path": "/locations/cove", "value": {"terrain": "beach"}}])
        assert second.locations["cove"].name == "Cove"
        assert second.locations["cove"].terrain == "beach"

    def test_invalid_result_raises(self):
        with pytest.raises(MalformedPatchError, match="no longer validates"):
            apply_patches(self.record, [{"op": "set", "path": "/meta/turn", "value": "soon"}])

    def test_invalid_op_raises(self):
        with pytest.raises(MalformedPatchError, match="Invalid patch"):
            apply_patches(self.record, [{"op": "delete", "path": "/player"}])

    def test_consecutive_turns(self):
        result = self.record
        for _ in range(3):
            result = apply_patches(result, [])
        assert result.meta.turn == 3


class TestLedger:
    def setup_method(self):
        self.record = _make_record()

    def test_default_note(self):
        result = apply_patches(self.record, [{"op": "set", "path": "/player/location", "value": "tavern"}])
        assert result.ledger[-1] == "State updated"

    def test_custom_default_note(self):
        result = apply_patches(
            self.record,
            [{"op": "set", "path": "/player/location", "value": "tavern"}],
            default_note="Player walks",
        )
        assert result.ledger[-1] == "Player walks"

    def test_provenance_suffixes(self):
        base = Patch(op=PatchOp.SET, path="/player/location", value="tavern", note="Enter inn")
        assert format_ledger_entry(base) == "Enter inn"
        assert format_ledger_entry(base.model_copy(update={"by": "GM"})) == "Enter inn [GM]"
        assert format_ledger_entry(base.model_copy(update={"turn": 4})) == "Enter inn [T4]"
        assert format_ledger_entry(base.model_copy(update={"by": "GM", "turn": 4})) == "Enter inn [GM T4]"

    def test_one_line_per_patch(self):
        result = apply_patches(self.record, [
            {"op": "set", "path": "/player/location", "value": "tavern", "note": "Walk in", "by": "narrator"},
            {"op": "merge", "path": "/player", "value": {"mood": "warm"}, "note": "Feel warm"},
        ])
        assert result.ledger[-2:] == ["Walk in [narrator]", "Feel warm"]


class TestPointers:
    def test_parse_pointer(self):
        assert parse_pointer("/player/pos") == ["player", "pos"]

    def test_escaped_tokens(self):
        assert parse_pointer("/a~1b/c~0d") == ["a/b", "c~d"]

    def test_missing_leading_slash(self):
        with pytest.raises(MalformedPatchError, match="must start with"):
            parse_pointer("player/pos")

    def test_root_pointer_rejected(self):
        with pytest.raises(MalformedPatchError):
            parse_pointer("/")

    def test_malformed_path_in_batch(self):
        record = _make_record()
        with pytest.raises(MalformedPatchError):
            apply_patches(record, [{"op": "set", "path": "player", "value": 1}])

    def test_assign_into_scalar(self):
        record = _make_record()
        with pytest.raises(MalformedPatchError, match="Cannot assign"):
            apply_patches(record, [{"op": "set", "path": "/meta/turn/deep", "value": 1}])
