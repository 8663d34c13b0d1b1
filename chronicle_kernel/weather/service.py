"""
Record-level weather derivation.

The record's ``systems.weather.cache`` doubles as the inertia chain: the
previous snapshot for the next derivation is always read from the record,
never from process memory, so replaying a session reproduces the same weather.
"""

import logging
from datetime import datetime
from typing import Optional

from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.record import WorldRecord
from chronicle_kernel.models.weather import WeatherCache, WeatherSnapshot, WeatherType
from chronicle_kernel.systems.time import resolve_record_time
from chronicle_kernel.weather.engine import WeatherEngine
from chronicle_kernel.weather.local_effects import weather_type_multiplier

logger = logging.getLogger(__name__)


def resolve_weather_clock(record: WorldRecord, now: Optional[datetime] = None):
    """Return (effective elapsed minutes, ISO timestamp), or None when no clock is derivable."""
    rich = resolve_record_time(record, now=now)
    if rich is not None and rich.iso_date_time:
        return rich.elapsed_minutes, rich.iso_date_time
    if record.meta.started_at:
        return 0, record.meta.started_at
    return None


def ensure_weather_snapshot(
    record: WorldRecord,
    config: Optional[KernelConfig] = None,
    engine: Optional[WeatherEngine] = None,
    now: Optional[datetime] = None,
) -> Optional[WeatherSnapshot]:
    """
    Current weather for the record, or None when it carries no weather config.

    The cached snapshot is reused while the effective elapsed time has not
    moved; only its turn stamp is refreshed. Otherwise a new snapshot is
    derived with the cached one as the previous state. Never mutates ``record``.
    """
    weather = record.systems.weather
    if weather is None:
        logger.debug("No weather system configured; skipping weather derivation")
        return None

    clock = resolve_weather_clock(record, now=now)
    if clock is None:
        logger.debug("No clock available; skipping weather derivation")
        return None
    elapsed, time_iso = clock

    cache = weather.cache
    if cache is not None and cache.elapsed_minutes == elapsed:
        return cache.snapshot.model_copy(update={"turn": record.meta.turn})

    config = config or KernelConfig()
    seed = weather.seed or record.meta.seed or config.default_seed
    engine = engine or WeatherEngine()
    return engine.compute_snapshot(
        time_iso,
        seed,
        weather.climate,
        previous=cache.snapshot if cache is not None else None,
        turn=record.meta.turn,
    )


def build_weather_cache(record: WorldRecord, snapshot: WeatherSnapshot) -> WeatherCache:
    clock = resolve_weather_clock(record)
    elapsed = clock[0] if clock else 0
    return WeatherCache(last_turn=record.meta.turn, elapsed_minutes=elapsed, snapshot=snapshot)


def weather_travel_multiplier(snapshot: WeatherSnapshot) -> float:
    """Global (location-independent) travel multiplier for a snapshot."""
    return weather_type_multiplier(WeatherType(snapshot.type), snapshot.intensity)
