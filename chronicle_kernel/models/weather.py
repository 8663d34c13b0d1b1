"""Weather models — global snapshots, per-location metadata, local effects."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class WeatherType(str, Enum):
    CLEAR = "clear"
    RAIN = "rain"
    STORM = "storm"
    FOG = "fog"
    SNOW = "snow"


class PressureSystem(str, Enum):
    HIGH = "high"
    LOW = "low"
    FRONT = "front"
    STABLE = "stable"


class PressureTrend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class StormPhase(str, Enum):
    BUILDING = "building"
    PEAK = "peak"
    DECAYING = "decaying"
    CALM_BETWEEN = "calm_between"


class ClimateZone(str, Enum):
    TROPICAL = "tropical"
    DESERT = "desert"
    TEMPERATE = "temperate"
    COLD = "cold"
    ARCTIC = "arctic"
    MEDITERRANEAN = "mediterranean"
    HIGH_ALTITUDE = "high_altitude"


class PressureReading(BaseModel):
    system: PressureSystem
    hpa: int
    trend: PressureTrend
    intensity: float = Field(ge=0, le=1, default=0.5)   # Strength of the system
    age_days: float = 0.0                                # Days since the system formed


class StormCycle(BaseModel):
    """Derived observation for display; never fed back into the engine."""

    day_of_cycle: int = 0
    phase: StormPhase = StormPhase.CALM_BETWEEN
    intensity: float = Field(ge=0, le=1, default=0.0)


class WeatherSnapshot(BaseModel):
    type: WeatherType
    intensity: float = Field(ge=0, le=5)
    temperature_c: float
    wind_kph: int
    wind_direction_deg: int
    humidity: float = Field(ge=0, le=1)
    pressure: PressureReading
    storm_cycle: StormCycle
    signals: List[str] = []
    computed_at: str                        # Canonical ISO timestamp
    turn: int = 0


class Elevation(str, Enum):
    BELOW = "below"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Exposure(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Drainage(str, Enum):
    POOR = "poor"
    NORMAL = "normal"
    GOOD = "good"


class LocationWeatherMetadata(BaseModel):
    """Static authored physical characteristics of a location."""

    model_config = ConfigDict(frozen=True)

    elevation: Elevation = Elevation.MEDIUM
    near_ocean: bool = False
    coastal_exposure: Exposure = Exposure.LOW
    fog_prone: bool = False
    drainage: Drainage = Drainage.NORMAL
    indoors: bool = False
    enclosed: Exposure = Exposure.LOW
    wind_exposure: Exposure = Exposure.MEDIUM


class Visibility(str, Enum):
    NORMAL = "normal"
    LOW = "low"
    VERY_LOW = "very_low"


class Footing(str, Enum):
    NORMAL = "normal"
    SLIPPERY = "slippery"
    DANGEROUS = "dangerous"


class Comfort(str, Enum):
    COZY = "cozy"
    EXPOSED = "exposed"
    MISERABLE = "miserable"


class LocalWeatherEffects(BaseModel):
    visibility: Visibility = Visibility.NORMAL
    footing: Footing = Footing.NORMAL
    comfort: Comfort = Comfort.EXPOSED
    travel_multiplier: float = Field(ge=0.3, le=1.0, default=1.0)
    local_signals: List[str] = []


class WeatherCache(BaseModel):
    """The one-entry cache kept on the record; also the inertia chain for the next derivation."""

    last_turn: int
    elapsed_minutes: int
    snapshot: WeatherSnapshot


class WeatherSystemState(BaseModel):
    model_config = ConfigDict(extra="allow")

    climate: ClimateZone = ClimateZone.TEMPERATE
    seed: Optional[str] = None
    cache: Optional[WeatherCache] = None
