"""
Weather Engine — seeded, time-indexed pressure-system simulator.

Pressure systems are primary: they form, persist for a few days and drive
precipitation type, wind and humidity. The storm cycle is derived from the
weather and never feeds back into it.

Behavioral Contract:
- compute_snapshot(time, seed, climate, previous) is a pure function of its inputs.
- Every random draw comes from a stream keyed by seed, decision name and time.
- Intensity never moves more than 1 step away from the previous snapshot's.
- Each step is a public method so it can be exercised against literal inputs.
"""

import math
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Tuple

from chronicle_kernel.models.weather import (
    ClimateZone,
    PressureReading,
    PressureSystem,
    PressureTrend,
    StormCycle,
    StormPhase,
    WeatherSnapshot,
    WeatherType,
)
from chronicle_kernel.systems.time import format_iso, parse_iso
from chronicle_kernel.weather.rng import pick_weighted, seeded_random

INERTIA_WEIGHT = 0.3
MAX_INTENSITY_CHANGE_PER_HOUR = 1.0
PRESSURE_SYSTEM_LIFESPAN_DAYS = 3           # Systems last 3-7 days
PRESSURE_SYSTEM_LIFESPAN_SPREAD = 5
SNOW_TEMPERATURE_CEILING_C = 4.0

PRESSURE_RANGES: Dict[PressureSystem, Tuple[int, int]] = {
    PressureSystem.HIGH: (1018, 1040),
    PressureSystem.LOW: (975, 1005),
    PressureSystem.FRONT: (995, 1015),
    PressureSystem.STABLE: (1005, 1020),
}

PRESSURE_WEATHER_WEIGHTS: Dict[PressureSystem, Dict[WeatherType, float]] = {
    PressureSystem.HIGH: {
        WeatherType.CLEAR: 0.75, WeatherType.RAIN: 0.15, WeatherType.STORM: 0.02,
        WeatherType.FOG: 0.08, WeatherType.SNOW: 0.0,
    },
    PressureSystem.LOW: {
        WeatherType.CLEAR: 0.05, WeatherType.RAIN: 0.35, WeatherType.STORM: 0.45,
        WeatherType.FOG: 0.05, WeatherType.SNOW: 0.1,
    },
    PressureSystem.FRONT: {
        WeatherType.CLEAR: 0.05, WeatherType.RAIN: 0.45, WeatherType.STORM: 0.35,
        WeatherType.FOG: 0.05, WeatherType.SNOW: 0.1,
    },
    PressureSystem.STABLE: {
        WeatherType.CLEAR: 0.6, WeatherType.RAIN: 0.2, WeatherType.STORM: 0.05,
        WeatherType.FOG: 0.1, WeatherType.SNOW: 0.05,
    },
}

WIND_SPEED_RANGES: Dict[WeatherType, Tuple[int, int]] = {
    WeatherType.CLEAR: (2, 18),
    WeatherType.RAIN: (10, 30),
    WeatherType.STORM: (25, 60),
    WeatherType.FOG: (0, 12),
    WeatherType.SNOW: (5, 35),
}

INTENSITY_BASELINE: Dict[WeatherType, float] = {
    WeatherType.STORM: 3.0,
    WeatherType.RAIN: 2.0,
    WeatherType.SNOW: 2.0,
    WeatherType.FOG: 1.5,
    WeatherType.CLEAR: 1.0,
}

# (warm day, warm night, cold day, cold night)
CLIMATE_BASE_TEMPS: Dict[ClimateZone, Tuple[float, float, float, float]] = {
    ClimateZone.TROPICAL: (32, 24, 29, 22),
    ClimateZone.DESERT: (40, 18, 26, 10),
    ClimateZone.TEMPERATE: (25, 15, 6, -2),
    ClimateZone.COLD: (15, 6, -5, -15),
    ClimateZone.ARCTIC: (8, 0, -20, -30),
    ClimateZone.MEDITERRANEAN: (30, 20, 14, 6),
    ClimateZone.HIGH_ALTITUDE: (16, 6, -4, -14),
}

# Rough (day, night) estimates used only by the fog test
FOG_TEMPERATURE_ESTIMATES: Dict[ClimateZone, Tuple[float, float]] = {
    ClimateZone.TROPICAL: (32, 24),
    ClimateZone.DESERT: (40, 18),
    ClimateZone.TEMPERATE: (20, 10),
    ClimateZone.COLD: (5, -5),
    ClimateZone.ARCTIC: (-10, -25),
    ClimateZone.MEDITERRANEAN: (25, 15),
    ClimateZone.HIGH_ALTITUDE: (10, 0),
}

FOG_HUMIDITY_ESTIMATES: Dict[PressureSystem, float] = {
    PressureSystem.HIGH: 0.4,
    PressureSystem.LOW: 0.8,
    PressureSystem.FRONT: 0.7,
    PressureSystem.STABLE: 0.6,
}

WEATHER_TEMP_OFFSETS: Dict[WeatherType, float] = {
    WeatherType.CLEAR: 0,
    WeatherType.RAIN: -3,
    WeatherType.STORM: -6,
    WeatherType.FOG: -1,
    WeatherType.SNOW: -12,
}

HUMIDITY_BASE: Dict[PressureSystem, float] = {
    PressureSystem.HIGH: 0.4,
    PressureSystem.LOW: 0.8,
    PressureSystem.FRONT: 0.7,
    PressureSystem.STABLE: 0.5,
}

HUMIDITY_ADJUSTMENTS: Dict[WeatherType, float] = {
    WeatherType.CLEAR: -0.1,
    WeatherType.RAIN: 0.1,
    WeatherType.STORM: 0.15,
    WeatherType.FOG: 0.2,
    WeatherType.SNOW: 0.05,
}


class PressureState(NamedTuple):
    system: PressureSystem
    intensity: float                        # 0.3-1.0 once formed
    age_days: float


class Wind(NamedTuple):
    speed_kph: int
    direction_deg: int


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def season_for(moment: datetime) -> str:
    """April through September is the warm season."""
    return "warm" if 4 <= moment.month <= 9 else "cold"


def is_daytime(hour: int) -> bool:
    return 6 <= hour < 18


def dew_point(temperature_c: float, relative_humidity: float) -> float:
    """Magnus approximation."""
    a, b = 17.27, 237.7
    alpha = (a * temperature_c) / (b + temperature_c) + math.log(relative_humidity)
    return (b * alpha) / (a - alpha)


def base_temperature(climate: ClimateZone, season: str, daytime: bool) -> float:
    warm_day, warm_night, cold_day, cold_night = CLIMATE_BASE_TEMPS.get(
        climate, CLIMATE_BASE_TEMPS[ClimateZone.TEMPERATE]
    )
    if season == "warm":
        return warm_day if daytime else warm_night
    return cold_day if daytime else cold_night


class WeatherEngine:
    """Deterministic weather. Holds no state between calls."""

    def compute_snapshot(
        self,
        time_iso: str,
        seed: str,
        climate: ClimateZone = ClimateZone.TEMPERATE,
        previous: Optional[WeatherSnapshot] = None,
        turn: int = 0,
    ) -> WeatherSnapshot:
        moment = parse_iso(time_iso)
        canonical = format_iso(moment)
        climate = ClimateZone(climate)
        hour = moment.hour
        season = season_for(moment)

        pressure = self.compute_pressure_state(moment, seed, season, previous)
        hpa = self.compute_pressure_hpa(pressure, seed, canonical)
        trend = self.compute_pressure_trend(
            pressure.system,
            previous.pressure.system if previous else None,
            previous.pressure.hpa if previous else None,
            hpa,
        )
        weather_type = self.compute_weather_type(
            pressure.system,
            pressure.intensity,
            previous.type if previous else None,
            hour,
            season,
            seed,
            canonical,
            climate,
        )
        intensity = self.compute_intensity(
            weather_type,
            previous.intensity if previous else None,
            seed,
            canonical,
        )
        temperature_c = self.compute_temperature(season, is_daytime(hour), weather_type, climate)
        humidity = self.compute_humidity(pressure.system, weather_type, seed, canonical)
        wind = self.compute_wind(pressure.system, pressure.intensity, weather_type, seed, canonical)
        storm_cycle = self.derive_storm_cycle(weather_type, intensity, pressure)
        signals = self.generate_signals(weather_type, intensity, temperature_c, wind.speed_kph)

        return WeatherSnapshot(
            type=weather_type,
            intensity=intensity,
            temperature_c=temperature_c,
            wind_kph=wind.speed_kph,
            wind_direction_deg=wind.direction_deg,
            humidity=humidity,
            pressure=PressureReading(
                system=pressure.system,
                hpa=hpa,
                trend=trend,
                intensity=round(pressure.intensity, 4),
                age_days=round(pressure.age_days, 4),
            ),
            storm_cycle=storm_cycle,
            signals=signals,
            computed_at=canonical,
            turn=turn,
        )

    # STEP 1: pressure-system continuity
    def compute_pressure_state(
        self,
        moment: datetime,
        seed: str,
        season: str,
        previous: Optional[WeatherSnapshot] = None,
    ) -> PressureState:
        day_of_year = moment.timetuple().tm_yday
        random = seeded_random(f"{seed}:pressure-state:{day_of_year}:{moment.hour}")

        if previous is not None:
            elapsed_days = (moment - parse_iso(previous.computed_at)).total_seconds() / 86400
            age = previous.pressure.age_days + max(0.0, elapsed_days)
            max_age = PRESSURE_SYSTEM_LIFESPAN_DAYS + math.floor(
                random() * PRESSURE_SYSTEM_LIFESPAN_SPREAD
            )
            if age < max_age:
                drift = (random() - 0.5) * 0.1
                return PressureState(
                    system=previous.pressure.system,
                    intensity=_clamp(previous.pressure.intensity + drift, 0.3, 1.0),
                    age_days=age,
                )

        bias = -0.2 if season == "cold" else 0.2
        weights = {
            PressureSystem.HIGH: 0.3 + bias,
            PressureSystem.LOW: 0.25 - bias,
            PressureSystem.FRONT: 0.25,
            PressureSystem.STABLE: 0.2,
        }
        total = sum(weights.values())
        normalized = {system: weight / total for system, weight in weights.items()}
        system = pick_weighted(random, normalized)
        return PressureState(system=system, intensity=0.5 + random() * 0.5, age_days=0.0)

    # STEP 2
    def compute_pressure_hpa(self, pressure: PressureState, seed: str, time_iso: str) -> int:
        random = seeded_random(f"{seed}:pressure-hpa:{time_iso}")
        low, high = PRESSURE_RANGES[pressure.system]
        base = low + random() * (high - low)
        offset = (pressure.intensity - 0.5) * 10
        return int(math.floor(base + offset + 0.5))

    # STEP 3
    def compute_pressure_trend(
        self,
        system: PressureSystem,
        previous_system: Optional[PressureSystem],
        previous_hpa: Optional[int],
        current_hpa: int,
    ) -> PressureTrend:
        if previous_system is not None and previous_system != system:
            return self._trend_for_new_system(system)
        if previous_hpa is not None:
            change = current_hpa - previous_hpa
            if abs(change) < 0.5:
                return PressureTrend.STABLE
            return PressureTrend.RISING if change > 0 else PressureTrend.FALLING
        return self._trend_for_new_system(system)

    @staticmethod
    def _trend_for_new_system(system: PressureSystem) -> PressureTrend:
        if system == PressureSystem.LOW:
            return PressureTrend.FALLING
        if system == PressureSystem.HIGH:
            return PressureTrend.RISING
        return PressureTrend.STABLE

    # STEP 4
    def compute_weather_type(
        self,
        system: PressureSystem,
        pressure_intensity: float,
        previous_type: Optional[WeatherType],
        hour: int,
        season: str,
        seed: str,
        time_iso: str,
        climate: ClimateZone = ClimateZone.TEMPERATE,
    ) -> WeatherType:
        random = seeded_random(f"{seed}:weather-type:{time_iso}")
        weights = dict(PRESSURE_WEATHER_WEIGHTS[system])

        if system == PressureSystem.LOW and pressure_intensity > 0.7:
            weights[WeatherType.STORM] += 0.2
            weights[WeatherType.RAIN] = max(0.0, weights[WeatherType.RAIN] - 0.1)

        if previous_type is not None:
            weights[previous_type] += INERTIA_WEIGHT

        if base_temperature(climate, season, is_daytime(hour)) > SNOW_TEMPERATURE_CEILING_C:
            weights[WeatherType.SNOW] = 0.0

        # Dawn/dusk radiation fog: temperature close to dew point under a stable system
        day_est, night_est = FOG_TEMPERATURE_ESTIMATES.get(
            climate, FOG_TEMPERATURE_ESTIMATES[ClimateZone.TEMPERATE]
        )
        temperature = day_est if is_daytime(hour) else night_est
        spread = temperature - dew_point(temperature, FOG_HUMIDITY_ESTIMATES[system])
        dawn_or_dusk = 5 <= hour <= 7 or 18 <= hour <= 20
        if dawn_or_dusk and spread < 2 and system == PressureSystem.STABLE and random() < 0.4:
            weights[WeatherType.FOG] += 0.3
            weights[WeatherType.CLEAR] = max(0.0, weights[WeatherType.CLEAR] - 0.2)

        return pick_weighted(random, weights)

    # STEP 5
    def compute_wind(
        self,
        system: PressureSystem,
        pressure_intensity: float,
        weather_type: WeatherType,
        seed: str,
        time_iso: str,
    ) -> Wind:
        random = seeded_random(f"{seed}:wind:{time_iso}")
        low, high = WIND_SPEED_RANGES[weather_type]
        base_speed = low + random() * (high - low)
        gradient = 0.8 + pressure_intensity * 0.4
        speed = int(math.floor(base_speed * gradient + 0.5))

        if system == PressureSystem.HIGH:
            direction = 270 + random() * 90          # Clockwise egress, W to N
        elif system == PressureSystem.LOW:
            direction = 90 + random() * 90           # Counterclockwise ingress, E to S
        elif system == PressureSystem.FRONT:
            direction = 180 + random() * 180         # Cross-front
        else:
            direction = 255 + (random() * 60 - 30)   # Prevailing westerlies
        return Wind(speed_kph=speed, direction_deg=int(math.floor(direction + 0.5)) % 360)

    # STEP 6
    def compute_intensity(
        self,
        weather_type: WeatherType,
        previous_intensity: Optional[float],
        seed: str,
        time_iso: str,
    ) -> float:
        random = seeded_random(f"{seed}:intensity:{time_iso}")
        baseline = INTENSITY_BASELINE[weather_type]

        if previous_intensity is None:
            return _clamp(float(math.floor(baseline + random() * 2)), 0.0, 5.0)

        change = _clamp(random() * 2 - 1, -MAX_INTENSITY_CHANGE_PER_HOUR, MAX_INTENSITY_CHANGE_PER_HOUR)
        target = round((previous_intensity + change + baseline) / 2, 3)
        bounded = _clamp(
            target,
            previous_intensity - MAX_INTENSITY_CHANGE_PER_HOUR,
            previous_intensity + MAX_INTENSITY_CHANGE_PER_HOUR,
        )
        return _clamp(bounded, 0.0, 5.0)

    # STEP 7
    def compute_temperature(
        self,
        season: str,
        daytime: bool,
        weather_type: WeatherType,
        climate: ClimateZone = ClimateZone.TEMPERATE,
    ) -> float:
        base = base_temperature(climate, season, daytime)
        return round(base + WEATHER_TEMP_OFFSETS[weather_type], 1)

    # STEP 8
    def compute_humidity(
        self,
        system: PressureSystem,
        weather_type: WeatherType,
        seed: str,
        time_iso: str,
    ) -> float:
        random = seeded_random(f"{seed}:humidity:{time_iso}")
        value = HUMIDITY_BASE[system] + HUMIDITY_ADJUSTMENTS[weather_type] + (random() - 0.5) * 0.2
        return round(_clamp(value, 0.0, 1.0), 3)

    # STEP 9
    def derive_storm_cycle(
        self,
        weather_type: WeatherType,
        intensity: float,
        pressure: PressureState,
    ) -> StormCycle:
        stormy = weather_type in (WeatherType.STORM, WeatherType.RAIN)
        storm_intensity = intensity / 5 if stormy else 0.0
        progress = pressure.age_days / PRESSURE_SYSTEM_LIFESPAN_DAYS

        if storm_intensity < 0.3:
            phase = StormPhase.CALM_BETWEEN
        elif progress < 0.3:
            phase = StormPhase.BUILDING
        elif progress < 0.7:
            phase = StormPhase.PEAK
        else:
            phase = StormPhase.DECAYING

        return StormCycle(
            day_of_cycle=int(math.floor(pressure.age_days)),
            phase=phase,
            intensity=round(storm_intensity, 4),
        )

    # STEP 10
    def generate_signals(
        self,
        weather_type: WeatherType,
        intensity: float,
        temperature_c: float,
        wind_kph: int,
    ) -> List[str]:
        signals = []
        if weather_type == WeatherType.STORM and intensity >= 3:
            signals.append("storm_risk:high")
        if weather_type == WeatherType.FOG:
            signals.append("visibility:poor")
        if temperature_c <= 0:
            signals.append("cold:harsh")
        if weather_type == WeatherType.SNOW:
            signals.append("travel:slow")
        if weather_type == WeatherType.RAIN and intensity >= 3:
            signals.append("terrain:slippery")
        if wind_kph >= 40:
            signals.append("wind:high")
        return signals
