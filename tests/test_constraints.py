"""Tests for turn constraints and patch validation."""

import pytest

from chronicle_kernel.constraints.kernel import (
    build_turn_constraints,
    format_turn_constraints,
    validate_patches_against_constraints,
)
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.record import Patch, PatchOp
from chronicle_kernel.models.telemetry import (
    LocationView,
    PlayerView,
    SystemsTelemetry,
    TideTelemetry,
    TurnConstraints,
    TurnTelemetry,
    WeatherTelemetry,
)
from chronicle_kernel.models.time import TidePhase
from chronicle_kernel.models.weather import (
    LocalWeatherEffects,
    PressureReading,
    PressureSystem,
    PressureTrend,
    StormCycle,
    WeatherType,
)
from chronicle_kernel.weather.metadata import ISLE_OF_MARROW_WEATHER_METADATA
from chronicle_kernel.worlds.isle_of_marrow import create_isle_of_marrow_world, create_simple_world


def _make_weather(weather_type=WeatherType.CLEAR, intensity=1.0, local=None) -> WeatherTelemetry:
    return WeatherTelemetry(
        type=weather_type,
        intensity=intensity,
        temperature_c=15.0,
        wind_kph=10,
        wind_direction_deg=180,
        humidity=0.5,
        pressure=PressureReading(system=PressureSystem.STABLE, hpa=1010, trend=PressureTrend.STABLE),
        storm_cycle=StormCycle(),
        local=local,
    )


def _make_telemetry(record, weather=None, tide=None) -> TurnTelemetry:
    location = record.locations[record.player.location]
    return TurnTelemetry(
        turn=record.meta.turn,
        player=PlayerView(
            id=record.player.id,
            location_id=location.id,
            location_name=location.name,
            position=record.player.pos,
        ),
        location=LocationView(id=location.id, name=location.name),
        systems=SystemsTelemetry(weather=weather, tide=tide),
        schema_version="v3.1",
    )


def _move(x, y, op=PatchOp.SET, path="/player/pos") -> Patch:
    return Patch(op=op, path=path, value={"x": x, "y": y})


class TestBuildConstraints:
    def setup_method(self):
        self.record = create_simple_world(started_at="2024-01-01T08:00:00Z")

    def test_no_weather_uses_full_budget(self):
        constraints = build_turn_constraints(self.record, _make_telemetry(self.record))
        assert constraints.weather_multiplier == 1.0
        assert constraints.max_move_meters == 600
        assert constraints.blocked_locations == []
        assert constraints.advisories == []

    def test_global_weather_multiplier(self):
        telemetry = _make_telemetry(self.record, weather=_make_weather(WeatherType.RAIN, 3))
        constraints = build_turn_constraints(self.record, telemetry)
        assert constraints.weather_multiplier == 0.8
        assert constraints.max_move_meters == 480
        assert constraints.advisories == []

    def test_local_multiplier_preferred(self):
        local = LocalWeatherEffects(travel_multiplier=0.5)
        telemetry = _make_telemetry(self.record, weather=_make_weather(WeatherType.RAIN, 3, local=local))
        constraints = build_turn_constraints(self.record, telemetry)
        assert constraints.weather_multiplier == 0.5
        assert constraints.max_move_meters == 300
        assert "Severe weather slowing travel: prefer short moves" in constraints.advisories

    def test_minimum_move_floor(self):
        config = KernelConfig(base_move_meters=400, min_move_meters=150)
        local = LocalWeatherEffects(travel_multiplier=0.3)
        telemetry = _make_telemetry(self.record, weather=_make_weather(WeatherType.STORM, 5, local=local))
        constraints = build_turn_constraints(self.record, telemetry, config)
        assert constraints.max_move_meters == 150

    def test_tide_blocks_listed(self):
        record = create_isle_of_marrow_world()
        tide = TideTelemetry(
            phase=TidePhase.HIGH, level=1.0, minutes_until_change=10,
            accessible=["the-landing"], blocked=["the-maw"],
        )
        constraints = build_turn_constraints(record, _make_telemetry(record, tide=tide))
        assert constraints.blocked_locations == ["the-maw"]
        assert constraints.advisories == ["Tide blocks: the-maw"]

    def test_extreme_flood_blocks_low_lying_locations(self):
        record = create_isle_of_marrow_world()
        local = LocalWeatherEffects(
            travel_multiplier=0.9,
            local_signals=["flood_risk:extreme", "access:unsafe"],
        )
        telemetry = _make_telemetry(record, weather=_make_weather(WeatherType.STORM, 4, local=local))

        constraints = build_turn_constraints(record, telemetry, metadata_table=ISLE_OF_MARROW_WEATHER_METADATA)
        assert constraints.blocked_locations == ["the-maw"]
        assert "Extreme flood risk: avoid low-lying areas" in constraints.advisories
        assert "Flood blocks: the-maw" in constraints.advisories
        assert not any(a.startswith("Tide blocks") for a in constraints.advisories)

    def test_flood_block_not_duplicated(self):
        record = create_isle_of_marrow_world()
        local = LocalWeatherEffects(local_signals=["flood_risk:extreme"])
        tide = TideTelemetry(phase=TidePhase.HIGH, level=1.0, minutes_until_change=10, blocked=["the-maw"])
        telemetry = _make_telemetry(record, weather=_make_weather(local=local), tide=tide)

        constraints = build_turn_constraints(record, telemetry)
        assert constraints.blocked_locations == ["the-maw"]

    def test_tide_and_flood_advisories_kept_apart(self):
        record = create_isle_of_marrow_world()
        local = LocalWeatherEffects(local_signals=["flood_risk:extreme"])
        tide = TideTelemetry(phase=TidePhase.HIGH, level=1.0, minutes_until_change=10, blocked=["the-landing"])
        telemetry = _make_telemetry(record, weather=_make_weather(local=local), tide=tide)

        constraints = build_turn_constraints(record, telemetry, metadata_table=ISLE_OF_MARROW_WEATHER_METADATA)
        assert constraints.blocked_locations == ["the-landing", "the-maw"]
        assert "Tide blocks: the-landing" in constraints.advisories
        assert "Flood blocks: the-maw" in constraints.advisories

    def test_format(self):
        constraints = TurnConstraints(
            max_move_meters=480,
            weather_multiplier=0.8,
            blocked_locations=["the-maw"],
            advisories=["Tide blocks: the-maw"],
        )
        assert format_turn_constraints(constraints) == (
            "Max travel distance: 480m this turn\n"
            "Weather multiplier: x0.80\n"
            "Blocked locations: the-maw\n"
            "Advisories: Tide blocks: the-maw"
        )


class TestValidation:
    def setup_method(self):
        self.record = create_simple_world(started_at="2024-01-01T08:00:00Z")
        self.constraints = TurnConstraints(max_move_meters=600, weather_multiplier=1.0, blocked_locations=["tavern"])

    def test_move_at_limit_passes(self):
        assert validate_patches_against_constraints([_move(0, 600)], self.constraints, self.record) == []

    def test_move_within_tolerance_passes(self):
        assert validate_patches_against_constraints([_move(0, 605)], self.constraints, self.record) == []

    def test_move_past_tolerance_fails(self):
        violations = validate_patches_against_constraints([_move(0, 606)], self.constraints, self.record)
        assert violations == ["Player move of 606m exceeds limit of 600m."]

    def test_merge_into_position_uses_current_coordinates(self):
        patch = Patch(op=PatchOp.MERGE, path="/player/pos", value={"x": 700})
        violations = validate_patches_against_constraints([patch], self.constraints, self.record)
        assert len(violations) == 1
        assert "exceeds limit" in violations[0]

    @pytest.mark.parametrize("axis", ["x", "y"])
    def test_single_axis_move_checked(self, axis):
        patch = Patch(op=PatchOp.SET, path=f"/player/pos/{axis}", value=50000)
        violations = validate_patches_against_constraints([patch], self.constraints, self.record)
        assert violations == ["Player move of 50000m exceeds limit of 600m."]

    def test_single_axis_move_within_limit(self):
        patch = Patch(op=PatchOp.SET, path="/player/pos/x", value=300)
        assert validate_patches_against_constraints([patch], self.constraints, self.record) == []

    def test_moves_in_one_batch_accumulate(self):
        violations = validate_patches_against_constraints(
            [_move(0, 400), _move(0, 800)], self.constraints, self.record
        )
        assert violations == ["Player move of 800m exceeds limit of 600m."]

    def test_axis_moves_in_one_batch_accumulate(self):
        patches = [
            Patch(op=PatchOp.SET, path="/player/pos/x", value=400),
            Patch(op=PatchOp.SET, path="/player/pos/x", value=0),
        ]
        violations = validate_patches_against_constraints(patches, self.constraints, self.record)
        assert violations == ["Player move of 800m exceeds limit of 600m."]

    def test_distance_check_can_be_skipped(self):
        violations = validate_patches_against_constraints(
            [_move(0, 5000)], self.constraints, self.record, check_distance=False
        )
        assert violations == []

    def test_blocked_location(self):
        patch = Patch(op=PatchOp.SET, path="/player/location", value="tavern")
        violations = validate_patches_against_constraints([patch], self.constraints, self.record)
        assert violations == ['Attempted to move to blocked location "tavern" (tide or weather hazard).']

    def test_player_object_patch_checked(self):
        patch = Patch(
            op=PatchOp.MERGE,
            path="/player",
            value={"pos": {"x": 0, "y": 1000}, "location": "tavern"},
        )
        violations = validate_patches_against_constraints([patch], self.constraints, self.record)
        assert len(violations) == 2

    def test_unrelated_patches_ignored(self):
        patch = Patch(op=PatchOp.SET, path="/systems/time/elapsed_minutes", value=30)
        assert validate_patches_against_constraints([patch], self.constraints, self.record) == []

    def test_non_numeric_position_ignored(self):
        patch = Patch(op=PatchOp.SET, path="/player/pos", value={"x": "far", "y": 0})
        assert validate_patches_against_constraints([patch], self.constraints, self.record) == []

    def test_validation_does_not_modify_patches(self):
        patch = _move(0, 900)
        before = patch.model_dump()
        validate_patches_against_constraints([patch], self.constraints, self.record)
        assert patch.model_dump() == before

    @pytest.mark.parametrize("distance,ok", [(600, True), (605, True), (606, False)])
    def test_boundary(self, distance, ok):
        violations = validate_patches_against_constraints([_move(distance, 0)], self.constraints, self.record)
        assert (violations == []) is ok
