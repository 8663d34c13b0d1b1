"""
Local Weather-Effects Interpreter.

Pure function of (global snapshot, location metadata). The rule tables below
are the contract: visibility, footing, comfort, travel multiplier and local
signals must come out exactly as written here.
"""

from typing import List

from chronicle_kernel.models.weather import (
    Comfort,
    Drainage,
    Elevation,
    Exposure,
    Footing,
    LocalWeatherEffects,
    LocationWeatherMetadata,
    Visibility,
    WeatherSnapshot,
    WeatherType,
)

MIN_TRAVEL_MULTIPLIER = 0.3
MAX_TRAVEL_MULTIPLIER = 1.0


def derive_local_weather(
    snapshot: WeatherSnapshot,
    metadata: LocationWeatherMetadata,
) -> LocalWeatherEffects:
    return LocalWeatherEffects(
        visibility=compute_visibility(snapshot, metadata),
        footing=compute_footing(snapshot, metadata),
        comfort=compute_comfort(snapshot, metadata),
        travel_multiplier=compute_travel_multiplier(snapshot, metadata),
        local_signals=generate_local_signals(snapshot, metadata),
    )


def compute_visibility(snapshot: WeatherSnapshot, metadata: LocationWeatherMetadata) -> Visibility:
    if metadata.indoors:
        return Visibility.NORMAL

    if snapshot.type == WeatherType.FOG:
        if metadata.fog_prone:
            return Visibility.VERY_LOW
        if metadata.elevation == Elevation.HIGH:
            return Visibility.LOW           # Above the fog line
        return Visibility.VERY_LOW

    if snapshot.type == WeatherType.STORM:
        if metadata.elevation == Elevation.HIGH and metadata.wind_exposure == Exposure.HIGH:
            return Visibility.LOW           # Wind clears some of it
        return Visibility.VERY_LOW

    if snapshot.type == WeatherType.RAIN and snapshot.intensity >= 3:
        return Visibility.LOW

    return Visibility.NORMAL


def compute_footing(snapshot: WeatherSnapshot, metadata: LocationWeatherMetadata) -> Footing:
    wet = snapshot.type in (WeatherType.RAIN, WeatherType.STORM)

    if metadata.indoors:
        if snapshot.type == WeatherType.RAIN and snapshot.intensity >= 3:
            return Footing.SLIPPERY
        return Footing.NORMAL

    if metadata.drainage == Drainage.POOR and wet:
        return Footing.DANGEROUS if snapshot.intensity >= 4 else Footing.SLIPPERY

    if (
        metadata.elevation == Elevation.HIGH
        and metadata.wind_exposure == Exposure.HIGH
        and snapshot.type == WeatherType.STORM
        and snapshot.intensity >= 3
    ):
        return Footing.DANGEROUS

    if snapshot.type == WeatherType.RAIN and snapshot.intensity >= 2:
        return Footing.SLIPPERY

    if snapshot.type == WeatherType.SNOW:
        return Footing.SLIPPERY

    return Footing.NORMAL


def compute_comfort(snapshot: WeatherSnapshot, metadata: LocationWeatherMetadata) -> Comfort:
    if metadata.indoors and metadata.enclosed == Exposure.HIGH:
        return Comfort.COZY

    if metadata.wind_exposure == Exposure.HIGH and (
        snapshot.type == WeatherType.STORM or snapshot.wind_kph >= 40
    ):
        return Comfort.MISERABLE

    if snapshot.temperature_c < 5 and metadata.wind_exposure != Exposure.LOW:
        return Comfort.MISERABLE

    if snapshot.type == WeatherType.STORM and metadata.coastal_exposure == Exposure.HIGH:
        return Comfort.MISERABLE

    return Comfort.EXPOSED


def weather_type_multiplier(weather_type: WeatherType, intensity: float) -> float:
    """Base travel multiplier for a weather type, before location adjustments."""
    if weather_type == WeatherType.RAIN:
        return 0.9 if intensity <= 2 else 0.8
    if weather_type == WeatherType.STORM:
        return 0.75 if intensity <= 3 else 0.6
    if weather_type == WeatherType.FOG:
        return 0.85 if intensity <= 2 else 0.7
    if weather_type == WeatherType.SNOW:
        return 0.7 if intensity <= 2 else 0.5
    return 1.0


def compute_travel_multiplier(snapshot: WeatherSnapshot, metadata: LocationWeatherMetadata) -> float:
    multiplier = weather_type_multiplier(snapshot.type, snapshot.intensity)

    if metadata.drainage == Drainage.POOR and snapshot.type in (WeatherType.RAIN, WeatherType.STORM):
        multiplier *= 0.8

    if metadata.wind_exposure == Exposure.HIGH and snapshot.wind_kph >= 40:
        multiplier *= 0.85

    footing = compute_footing(snapshot, metadata)
    if footing == Footing.DANGEROUS:
        multiplier *= 0.6
    elif footing == Footing.SLIPPERY:
        multiplier *= 0.8

    return max(MIN_TRAVEL_MULTIPLIER, min(MAX_TRAVEL_MULTIPLIER, multiplier))


def generate_local_signals(snapshot: WeatherSnapshot, metadata: LocationWeatherMetadata) -> List[str]:
    signals = []
    low_and_poorly_drained = (
        metadata.elevation == Elevation.LOW and metadata.drainage == Drainage.POOR
    )

    if (
        metadata.elevation == Elevation.HIGH
        and metadata.wind_exposure == Exposure.HIGH
        and snapshot.type == WeatherType.STORM
        and snapshot.intensity >= 3
    ):
        signals.append("cliff_risk:high")

    # Extreme takes precedence over high
    if (
        low_and_poorly_drained
        and metadata.near_ocean
        and (
            snapshot.type == WeatherType.STORM
            or (snapshot.type == WeatherType.RAIN and snapshot.intensity >= 4)
        )
    ):
        signals.append("flood_risk:extreme")
    elif low_and_poorly_drained and snapshot.type == WeatherType.RAIN and snapshot.intensity >= 3:
        signals.append("flood_risk:high")

    if "flood_risk:extreme" in signals:
        signals.append("access:unsafe")

    if metadata.wind_exposure == Exposure.HIGH and snapshot.wind_kph >= 50:
        signals.append("wind_risk:extreme")
    elif metadata.wind_exposure == Exposure.HIGH and snapshot.wind_kph >= 35:
        signals.append("wind_risk:high")

    if snapshot.type == WeatherType.FOG and metadata.fog_prone:
        signals.append("fog:dense")

    if compute_visibility(snapshot, metadata) == Visibility.VERY_LOW:
        signals.append("visibility:very_low")

    return signals
