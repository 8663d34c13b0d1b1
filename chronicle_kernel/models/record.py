"""
World Record — the flat, serializable snapshot that patches mutate.

The record is authoritative for persistence; the entity graph is a cache
derived from it. Every model here accepts extra keys so that ``set`` patches
may introduce new fields anywhere in the tree.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from chronicle_kernel.models.graph import Position
from chronicle_kernel.models.time import TideSystemState, TimeSystemState
from chronicle_kernel.models.weather import LocationWeatherMetadata, WeatherSystemState


class TideAccess(str, Enum):
    ALWAYS = "always"
    LOW = "low"      # Reachable only around low tide
    HIGH = "high"    # Reachable only around high tide


class Terrain(str, Enum):
    ROAD = "road"
    PATH = "path"
    BEACH = "beach"
    FOREST = "forest"
    MOUNTAIN = "mountain"
    WATER = "water"
    INTERIOR = "interior"
    CAVERN = "cavern"
    UNKNOWN = "unknown"


class ItemRef(BaseModel):
    id: str
    name: str


class LocationRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""                            # Filled from the map key when absent
    name: str = ""
    description: str = ""
    items: List[ItemRef] = []
    coords: Optional[Position] = None       # Landmark anchor, meters
    tide_access: TideAccess = TideAccess.ALWAYS
    terrain: Terrain = Terrain.UNKNOWN
    travel_speed_multiplier: Optional[float] = None
    weather_metadata: Optional[LocationWeatherMetadata] = None


class PlayerState(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    pos: Position                           # Canonical spatial position
    location: str                           # Nearest / containing location id
    inventory: List[ItemRef] = []


class NpcRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""                            # Filled from the map key when absent
    name: str = ""
    role: str = ""
    location: str = ""
    system_function: Optional[str] = None   # e.g., "weather-watcher"


class EconomyState(BaseModel):
    model_config = ConfigDict(extra="allow")

    goods: Dict[str, str] = {}              # good -> "abundant" | "scarce"


class SystemsState(BaseModel):
    model_config = ConfigDict(extra="allow")

    time: Optional[TimeSystemState] = None
    tide: Optional[TideSystemState] = None
    weather: Optional[WeatherSystemState] = None
    economy: Optional[EconomyState] = None


class MetaState(BaseModel):
    model_config = ConfigDict(extra="allow")

    turn: int = 0
    seed: Optional[str] = None
    started_at: Optional[str] = None        # ISO timestamp


class WorldRecord(BaseModel):
    model_config = ConfigDict(extra="allow")

    player: PlayerState
    locations: Dict[str, LocationRecord] = {}
    ledger: List[str] = []                  # Append-only, human-readable
    npcs: Dict[str, NpcRecord] = {}
    systems: SystemsState = Field(default_factory=SystemsState)
    meta: MetaState = Field(default_factory=MetaState)

    @field_validator("locations", "npcs", mode="before")
    @classmethod
    def _key_as_identity(cls, entries):
        """A partial entry (e.g. one field set on a new key) takes its id and name from its key."""
        if not isinstance(entries, dict):
            return entries
        filled = {}
        for key, entry in entries.items():
            if isinstance(entry, dict):
                entry = {**entry, "id": entry.get("id") or key, "name": entry.get("name") or key}
            filled[key] = entry
        return filled


class PatchOp(str, Enum):
    SET = "set"
    MERGE = "merge"


class Patch(BaseModel):
    """The only sanctioned mutation primitive. Path is a slash-delimited pointer."""

    op: PatchOp
    path: str
    value: Any = None
    note: Optional[str] = None
    by: Optional[str] = None                # e.g., "GM", "narrator", "system"
    turn: Optional[int] = None
    seed: Optional[str] = None
