"""Read-only projections handed to the narrative/policy layer each turn."""

from typing import List, Optional

from pydantic import BaseModel

from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.record import ItemRef
from chronicle_kernel.models.time import RichTime, TidePhase
from chronicle_kernel.models.weather import (
    LocalWeatherEffects,
    PressureReading,
    StormCycle,
    WeatherType,
)


class PlayerView(BaseModel):
    id: str
    location_id: str
    location_name: str
    position: Position
    inventory: List[ItemRef] = []


class LocationView(BaseModel):
    id: str
    name: str
    description: str = ""
    items: List[ItemRef] = []


class NearbyLocation(BaseModel):
    id: str
    name: str
    distance: float
    bearing: Optional[str] = None           # "north" | "south" | "east" | "west"


class TideTelemetry(BaseModel):
    phase: TidePhase
    level: float
    minutes_until_change: int
    accessible: List[str] = []
    blocked: List[str] = []


class WeatherTelemetry(BaseModel):
    type: WeatherType
    intensity: float
    temperature_c: float
    wind_kph: int
    wind_direction_deg: int
    humidity: float
    pressure: PressureReading
    storm_cycle: StormCycle
    signals: List[str] = []
    local: Optional[LocalWeatherEffects] = None


class SystemsTelemetry(BaseModel):
    time: Optional[RichTime] = None
    tide: Optional[TideTelemetry] = None
    weather: Optional[WeatherTelemetry] = None


class TurnTelemetry(BaseModel):
    turn: int
    seed: Optional[str] = None
    player: PlayerView
    location: LocationView
    nearby_locations: List[NearbyLocation] = []
    systems: SystemsTelemetry = SystemsTelemetry()
    ledger_tail: List[str] = []
    schema_version: str


class TurnConstraints(BaseModel):
    max_move_meters: int
    weather_multiplier: float
    blocked_locations: List[str] = []
    advisories: List[str] = []


class KnownLocation(BaseModel):
    id: str
    name: str
    visited: bool
    last_visited_turn: Optional[int] = None


class KnownNpc(BaseModel):
    id: str
    name: str
    last_seen_location_id: Optional[str] = None
    last_seen_turn: Optional[int] = None


class KnownItem(BaseModel):
    id: str
    name: str
    last_seen_location_id: Optional[str] = None
    in_inventory: bool = False


class DirectionHint(BaseModel):
    direction: str
    location_id: str
    location_name: str
    distance: int


class KnowledgeProjection(BaseModel):
    """What the player plausibly knows, projected from the graph."""

    player_id: str
    current_location_id: str
    known_locations: List[KnownLocation] = []
    known_npcs: List[KnownNpc] = []
    known_items: List[KnownItem] = []
    nearby_directions: List[DirectionHint] = []


class TurnDiff(BaseModel):
    summary: str
    time_delta_minutes: int
    moved: bool
    new_location_name: Optional[str] = None
    new_items: List[str] = []


class TravelEstimate(BaseModel):
    distance_meters: float
    base_minutes: float
    adjusted_minutes: float
    speed_meters_per_second: float
    terrain_multiplier: float
    weather_multiplier: float = 1.0
    from_location_id: Optional[str] = None
    to_location_id: Optional[str] = None
