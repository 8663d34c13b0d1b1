"""
Turn Constraints — per-turn movement budget, blocked locations and advisories.

Behavioral Contract:
- Built from the turn telemetry only; never recomputes weather or tide itself.
- ``weather_multiplier`` prefers the local travel multiplier, then the global
  weather-type multiplier, then 1.0.
- ``max_move_meters = max(min_move, round(base_move * weather_multiplier))``.
- Validation returns a list of violation strings. It never raises and never
  modifies the proposed patches.
"""

import math
from typing import Callable, Dict, List, Optional

from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.record import Patch, PatchOp, WorldRecord
from chronicle_kernel.models.telemetry import TurnConstraints, TurnTelemetry
from chronicle_kernel.models.weather import Drainage, Elevation
from chronicle_kernel.weather.local_effects import weather_type_multiplier
from chronicle_kernel.weather.metadata import (
    EMPTY_METADATA_TABLE,
    MetadataTable,
    lookup_location_metadata,
)

FLOOD_BLOCKING_SIGNALS = ("flood_risk:extreme", "access:unsafe")

LOCAL_ADVISORIES = (
    ("cliff_risk:high", "High cliff risk in storms"),
    ("flood_risk:extreme", "Extreme flood risk: avoid low-lying areas"),
    ("wind_risk:extreme", "Extreme wind risk: avoid exposed areas"),
    ("visibility:very_low", "Very low visibility: travel carefully"),
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_turn_constraints(
    record: WorldRecord,
    telemetry: TurnTelemetry,
    config: Optional[KernelConfig] = None,
    metadata_table: MetadataTable = EMPTY_METADATA_TABLE,
) -> TurnConstraints:
    config = config or KernelConfig()
    weather = telemetry.systems.weather
    local = weather.local if weather is not None else None

    if local is not None:
        weather_multiplier = local.travel_multiplier
    elif weather is not None:
        weather_multiplier = weather_type_multiplier(weather.type, weather.intensity)
    else:
        weather_multiplier = 1.0

    max_move_meters = max(
        config.min_move_meters,
        _round_half_up(config.base_move_meters * weather_multiplier),
    )

    tide = telemetry.systems.tide
    tide_blocked = list(tide.blocked) if tide is not None else []
    flood_blocked = []

    local_signals = local.local_signals if local is not None else []
    if any(signal in FLOOD_BLOCKING_SIGNALS for signal in local_signals):
        for location_id, location in record.locations.items():
            metadata = lookup_location_metadata(location_id, location, metadata_table)
            if metadata is None or location_id in tide_blocked:
                continue
            if (
                metadata.elevation == Elevation.LOW
                and metadata.drainage == Drainage.POOR
                and metadata.near_ocean
            ):
                flood_blocked.append(location_id)

    advisories = []
    if weather_multiplier < 0.8:
        advisories.append("Severe weather slowing travel: prefer short moves")
    if tide_blocked:
        advisories.append(f"Tide blocks: {', '.join(tide_blocked)}")
    if flood_blocked:
        advisories.append(f"Flood blocks: {', '.join(flood_blocked)}")
    for signal, advisory in LOCAL_ADVISORIES:
        if signal in local_signals:
            advisories.append(advisory)

    return TurnConstraints(
        max_move_meters=max_move_meters,
        weather_multiplier=weather_multiplier,
        blocked_locations=tide_blocked + flood_blocked,
        advisories=advisories,
    )


def format_turn_constraints(constraints: TurnConstraints) -> str:
    lines = [
        f"Max travel distance: {constraints.max_move_meters}m this turn",
        f"Weather multiplier: x{constraints.weather_multiplier:.2f}",
    ]
    if constraints.blocked_locations:
        lines.append(f"Blocked locations: {', '.join(constraints.blocked_locations)}")
    if constraints.advisories:
        lines.append(f"Advisories: {' | '.join(constraints.advisories)}")
    return "\n".join(lines)


# --- Patch validation rules ---

POSITION_AXES = ("x", "y", "z")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class BatchMovement:
    """Where a patch batch has taken the player so far, and how far it has travelled."""

    def __init__(self, record: WorldRecord):
        self.position = record.player.pos.model_dump()
        self.travelled = 0.0

    def proposed_position(self, patch: Patch) -> Optional[dict]:
        """The player position after ``patch``, or None when it does not move the player."""
        value = patch.value
        if patch.path == "/player/pos" and isinstance(value, dict):
            return dict(value) if patch.op == PatchOp.SET else {**self.position, **value}
        if patch.path == "/player" and isinstance(value, dict) and isinstance(value.get("pos"), dict):
            return dict(value["pos"])
        axis = patch.path[len("/player/pos/"):] if patch.path.startswith("/player/pos/") else None
        if axis in POSITION_AXES and patch.op == PatchOp.SET:
            return {**self.position, axis: value}
        return None

    def advance(self, target: dict) -> Optional[float]:
        """Move to ``target``; returns the cumulative distance, or None for a non-numeric target."""
        x, y, z = target.get("x"), target.get("y"), target.get("z")
        if not (_is_number(x) and _is_number(y)):
            return None
        origin_z = self.position.get("z")
        dz = (z if _is_number(z) else 0.0) - (origin_z if _is_number(origin_z) else 0.0)
        self.travelled += math.sqrt(
            (x - self.position["x"]) ** 2 + (y - self.position["y"]) ** 2 + dz ** 2
        )
        self.position = {"x": x, "y": y, "z": z if _is_number(z) else None}
        return self.travelled


def _proposed_location(patch: Patch) -> Optional[str]:
    value = patch.value
    if patch.path == "/player/location" and patch.op == PatchOp.SET and isinstance(value, str):
        return value
    if patch.path == "/player" and isinstance(value, dict) and isinstance(value.get("location"), str):
        return value["location"]
    return None


def _check_move_distance(
    patch: Patch,
    constraints: TurnConstraints,
    movement: BatchMovement,
    config: KernelConfig,
) -> Optional[str]:
    target = movement.proposed_position(patch)
    if target is None:
        return None
    travelled = movement.advance(target)
    if travelled is not None and travelled > constraints.max_move_meters + config.move_tolerance_meters:
        return (
            f"Player move of {_round_half_up(travelled)}m exceeds limit of "
            f"{constraints.max_move_meters}m."
        )
    return None


def _check_blocked_location(
    patch: Patch,
    constraints: TurnConstraints,
    movement: BatchMovement,
    config: KernelConfig,
) -> Optional[str]:
    location = _proposed_location(patch)
    if location is not None and location in constraints.blocked_locations:
        return f'Attempted to move to blocked location "{location}" (tide or weather hazard).'
    return None


ConstraintRule = Callable[[Patch, TurnConstraints, BatchMovement, KernelConfig], Optional[str]]

CONSTRAINT_RULES: Dict[str, ConstraintRule] = {
    "blocked_location": _check_blocked_location,
    "move_distance": _check_move_distance,
}


def validate_patches_against_constraints(
    patches: List[Patch],
    constraints: TurnConstraints,
    record: WorldRecord,
    config: Optional[KernelConfig] = None,
    check_distance: bool = True,
) -> List[str]:
    """
    Soft validation: one violation string per offending (patch, rule) pair.
    Moves within one batch accumulate, so the distance budget covers the whole turn.
    """
    config = config or KernelConfig()
    movement = BatchMovement(record)
    violations = []
    for patch in patches:
        for name, rule in CONSTRAINT_RULES.items():
            if name == "move_distance" and not check_distance:
                continue
            violation = rule(patch, constraints, movement, config)
            if violation:
                violations.append(violation)
    return violations
