"""
Travel — deterministic travel time from distance, terrain and weather.

Terrain multipliers scale time (higher is slower). Weather multipliers scale
speed (lower is slower), so adjusted time divides by them.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Union

from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import Terrain, WorldRecord
from chronicle_kernel.models.telemetry import TravelEstimate
from chronicle_kernel.weather.service import ensure_weather_snapshot, weather_travel_multiplier

TERRAIN_MULTIPLIERS: Mapping[Terrain, float] = MappingProxyType({
    Terrain.ROAD: 0.8,
    Terrain.PATH: 1.0,
    Terrain.BEACH: 1.2,
    Terrain.FOREST: 1.5,
    Terrain.MOUNTAIN: 2.5,
    Terrain.WATER: 3.0,
    Terrain.INTERIOR: 0.9,
    Terrain.CAVERN: 1.4,
    Terrain.UNKNOWN: 1.0,
})

MIN_LOCATION_MULTIPLIER = 0.1

Waypoint = Union[Position, str]


def resolve_position(record: WorldRecord, value: Waypoint) -> Position:
    """A location id resolves to its landmark; the player's location falls back to the player."""
    if isinstance(value, Position):
        return value
    location = record.locations.get(value)
    if location is not None and location.coords is not None:
        return location.coords
    if value == record.player.location:
        return record.player.pos
    return Position(x=0, y=0)


def find_nearest_location_id(record: WorldRecord, position: Position) -> Optional[str]:
    nearest_id, nearest_distance = None, float("inf")
    for location_id, location in record.locations.items():
        if location.coords is None:
            continue
        d = position.distance_to(location.coords)
        if d < nearest_distance:
            nearest_id, nearest_distance = location_id, d
    return nearest_id


def location_terrain_multiplier(record: WorldRecord, location_id: Optional[str]) -> float:
    location = record.locations.get(location_id) if location_id else None
    if location is None:
        return TERRAIN_MULTIPLIERS[Terrain.UNKNOWN]
    if location.travel_speed_multiplier is not None:
        return max(MIN_LOCATION_MULTIPLIER, location.travel_speed_multiplier)
    return TERRAIN_MULTIPLIERS.get(Terrain(location.terrain), TERRAIN_MULTIPLIERS[Terrain.UNKNOWN])


def calculate_travel_time(
    record: WorldRecord,
    origin: Waypoint,
    destination: Waypoint,
    base_speed_mps: Optional[float] = None,
    weather_multiplier: Optional[float] = None,
    config: Optional[KernelConfig] = None,
) -> TravelEstimate:
    config = config or KernelConfig()
    speed = base_speed_mps or config.base_walk_speed_mps

    from_position = resolve_position(record, origin)
    to_position = resolve_position(record, destination)
    from_id = origin if isinstance(origin, str) else find_nearest_location_id(record, from_position)
    to_id = destination if isinstance(destination, str) else find_nearest_location_id(record, to_position)

    distance = from_position.distance_to(to_position)
    base_minutes = distance / speed / 60

    # The harder terrain of the two endpoints
    terrain = max(location_terrain_multiplier(record, from_id), location_terrain_multiplier(record, to_id))

    if weather_multiplier is None:
        snapshot = ensure_weather_snapshot(record, config=config)
        weather_multiplier = weather_travel_multiplier(snapshot) if snapshot is not None else 1.0

    return TravelEstimate(
        distance_meters=distance,
        base_minutes=base_minutes,
        adjusted_minutes=base_minutes * terrain / weather_multiplier,
        speed_meters_per_second=speed,
        terrain_multiplier=terrain,
        weather_multiplier=weather_multiplier,
        from_location_id=from_id,
        to_location_id=to_id,
    )
