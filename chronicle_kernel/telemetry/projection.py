"""
Turn Telemetry — the single read-only world-state view handed to the policy layer.

Behavioral Contract:
- Pure projection of the record (plus an optional graph for positions).
- Time, tide and weather are derived from the record's effective clock; the
  stored ``systems.tide.phase`` is never trusted for tide telemetry.
- Global weather and local effects come from the same snapshot.
- Missing subsystems are simply absent from the view; nothing here raises
  for a derivation gap.
"""

import math
from datetime import datetime
from typing import List, Optional

from chronicle_kernel.graph.store import GraphStore
from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import WorldRecord
from chronicle_kernel.models.telemetry import (
    LocationView,
    NearbyLocation,
    PlayerView,
    SystemsTelemetry,
    TideTelemetry,
    TurnTelemetry,
    WeatherTelemetry,
)
from chronicle_kernel.models.weather import WeatherSnapshot
from chronicle_kernel.systems.tide import calculate_tide_state, partition_by_tide
from chronicle_kernel.systems.time import compute_effective_elapsed_minutes, resolve_record_time
from chronicle_kernel.weather.engine import WeatherEngine
from chronicle_kernel.weather.local_effects import derive_local_weather
from chronicle_kernel.weather.metadata import (
    EMPTY_METADATA_TABLE,
    MetadataTable,
    lookup_location_metadata,
)
from chronicle_kernel.weather.service import ensure_weather_snapshot


def compute_bearing(dx: float, dy: float) -> Optional[str]:
    """Cardinal bearing of a (dx, dy) offset; None when closer than a meter."""
    if abs(dx) < 1 and abs(dy) < 1:
        return None
    angle = math.degrees(math.atan2(dy, dx))
    if -45 <= angle < 45:
        return "east"
    if 45 <= angle < 135:
        return "north"
    if angle >= 135 or angle < -135:
        return "west"
    return "south"


def _player_position(record: WorldRecord, store: Optional[GraphStore]) -> Position:
    if store is not None:
        position = store.get_position(record.player.id)
        if position is not None:
            return position
    return record.player.pos


def find_nearby_locations(
    record: WorldRecord,
    origin: Position,
    config: KernelConfig,
) -> List[NearbyLocation]:
    nearby = []
    for location_id, location in record.locations.items():
        if location_id == record.player.location or location.coords is None:
            continue
        distance = origin.distance_to(location.coords)
        if 0.1 < distance < config.nearby_radius_meters:
            nearby.append(NearbyLocation(
                id=location_id,
                name=location.name,
                distance=distance,
                bearing=compute_bearing(location.coords.x - origin.x, location.coords.y - origin.y),
            ))
    nearby.sort(key=lambda n: n.distance)
    return nearby[:config.nearby_limit]


def build_tide_telemetry(record: WorldRecord) -> Optional[TideTelemetry]:
    tide = record.systems.tide
    time_state = record.systems.time
    if tide is None or time_state is None:
        return None
    elapsed = compute_effective_elapsed_minutes(time_state, record.meta.turn)
    state = calculate_tide_state(elapsed, tide.cycle_minutes)
    accessible, blocked = partition_by_tide(record.locations, state.phase)
    return TideTelemetry(
        phase=state.phase,
        level=state.level,
        minutes_until_change=state.minutes_until_change,
        accessible=accessible,
        blocked=blocked,
    )


def build_weather_telemetry(
    record: WorldRecord,
    snapshot: WeatherSnapshot,
    metadata_table: MetadataTable = EMPTY_METADATA_TABLE,
) -> WeatherTelemetry:
    location_id = record.player.location
    metadata = lookup_location_metadata(location_id, record.locations.get(location_id), metadata_table)
    return WeatherTelemetry(
        type=snapshot.type,
        intensity=snapshot.intensity,
        temperature_c=snapshot.temperature_c,
        wind_kph=snapshot.wind_kph,
        wind_direction_deg=snapshot.wind_direction_deg,
        humidity=snapshot.humidity,
        pressure=snapshot.pressure,
        storm_cycle=snapshot.storm_cycle,
        signals=list(snapshot.signals),
        local=derive_local_weather(snapshot, metadata) if metadata is not None else None,
    )


def build_turn_telemetry(
    record: WorldRecord,
    store: Optional[GraphStore] = None,
    config: Optional[KernelConfig] = None,
    metadata_table: MetadataTable = EMPTY_METADATA_TABLE,
    engine: Optional[WeatherEngine] = None,
    now: Optional[datetime] = None,
) -> TurnTelemetry:
    config = config or KernelConfig()
    location_id = record.player.location
    location = record.locations.get(location_id)
    location_name = location.name if location is not None else location_id
    position = _player_position(record, store)

    snapshot = ensure_weather_snapshot(record, config=config, engine=engine, now=now)

    return TurnTelemetry(
        turn=record.meta.turn,
        seed=record.meta.seed,
        player=PlayerView(
            id=record.player.id,
            location_id=location_id,
            location_name=location_name,
            position=position,
            inventory=list(record.player.inventory),
        ),
        location=LocationView(
            id=location_id,
            name=location_name,
            description=location.description if location is not None else "",
            items=list(location.items) if location is not None else [],
        ),
        nearby_locations=find_nearby_locations(record, position, config),
        systems=SystemsTelemetry(
            time=resolve_record_time(record, now=now),
            tide=build_tide_telemetry(record),
            weather=build_weather_telemetry(record, snapshot, metadata_table) if snapshot else None,
        ),
        ledger_tail=record.ledger[-config.ledger_tail:] if config.ledger_tail > 0 else [],
        schema_version=config.schema_version,
    )
