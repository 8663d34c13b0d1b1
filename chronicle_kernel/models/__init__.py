"""Chronicle kernel data models."""

from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.graph import (
    DEFAULT_PREDICATES,
    UNIQUE_PER_SUBJECT,
    Entity,
    EntityType,
    Position,
    Predicate,
    PredicateRegistry,
    PredicateSpec,
    PropertyType,
    Relation,
)
from chronicle_kernel.models.record import (
    EconomyState,
    ItemRef,
    LocationRecord,
    MetaState,
    NpcRecord,
    Patch,
    PatchOp,
    PlayerState,
    SystemsState,
    Terrain,
    TideAccess,
    WorldRecord,
)
from chronicle_kernel.models.session import TurnLogEntry, TurnResult
from chronicle_kernel.models.telemetry import (
    DirectionHint,
    KnowledgeProjection,
    KnownItem,
    KnownLocation,
    KnownNpc,
    LocationView,
    NearbyLocation,
    PlayerView,
    SystemsTelemetry,
    TideTelemetry,
    TravelEstimate,
    TurnConstraints,
    TurnDiff,
    TurnTelemetry,
    WeatherTelemetry,
)
from chronicle_kernel.models.time import (
    CalendarInfo,
    CycleInfo,
    MonthInfo,
    RichTime,
    TideState,
    TideSystemState,
    TidePhase,
    TimeAnchor,
    TimeOfDay,
    TimePatch,
    TimeSystemState,
    WeekInfo,
)
from chronicle_kernel.models.weather import (
    ClimateZone,
    Comfort,
    Drainage,
    Elevation,
    Exposure,
    Footing,
    LocalWeatherEffects,
    LocationWeatherMetadata,
    PressureReading,
    PressureSystem,
    PressureTrend,
    StormCycle,
    StormPhase,
    Visibility,
    WeatherCache,
    WeatherSnapshot,
    WeatherSystemState,
    WeatherType,
)

__all__ = [
    "CalendarInfo",
    "ClimateZone",
    "Comfort",
    "CycleInfo",
    "DEFAULT_PREDICATES",
    "DirectionHint",
    "Drainage",
    "EconomyState",
    "Elevation",
    "Entity",
    "EntityType",
    "Exposure",
    "Footing",
    "ItemRef",
    "KernelConfig",
    "KnowledgeProjection",
    "KnownItem",
    "KnownLocation",
    "KnownNpc",
    "LocalWeatherEffects",
    "LocationRecord",
    "LocationView",
    "LocationWeatherMetadata",
    "MetaState",
    "MonthInfo",
    "NearbyLocation",
    "NpcRecord",
    "Patch",
    "PatchOp",
    "PlayerState",
    "PlayerView",
    "Position",
    "Predicate",
    "PredicateRegistry",
    "PredicateSpec",
    "PressureReading",
    "PressureSystem",
    "PressureTrend",
    "PropertyType",
    "Relation",
    "RichTime",
    "StormCycle",
    "StormPhase",
    "SystemsState",
    "SystemsTelemetry",
    "Terrain",
    "TideAccess",
    "TidePhase",
    "TideState",
    "TideSystemState",
    "TideTelemetry",
    "TimeAnchor",
    "TimeOfDay",
    "TimePatch",
    "TimeSystemState",
    "TravelEstimate",
    "TurnConstraints",
    "TurnDiff",
    "TurnLogEntry",
    "TurnResult",
    "TurnTelemetry",
    "UNIQUE_PER_SUBJECT",
    "Visibility",
    "WeatherCache",
    "WeatherSnapshot",
    "WeatherSystemState",
    "WeatherTelemetry",
    "WeatherType",
    "WeekInfo",
    "WorldRecord",
]
