"""
Reactive systems — reducers that answer a policy patch batch with patches of their own.

Each system sees the record as it would look after the policy patches (a
preview) and returns patches tagged ``by="system"``. The turn engine appends
them to the policy batch so that the whole turn is applied, logged and
replayed as one ordered batch.
"""

import logging
from typing import Callable, List, NamedTuple, Optional

from chronicle_kernel.models.config import KernelConfig
from chronicle_kernel.models.record import Patch, PatchOp, WorldRecord
from chronicle_kernel.systems.tide import calculate_tide_state
from chronicle_kernel.systems.time import compute_effective_elapsed_minutes
from chronicle_kernel.weather.engine import WeatherEngine
from chronicle_kernel.weather.service import (
    build_weather_cache,
    ensure_weather_snapshot,
    resolve_weather_clock,
)

logger = logging.getLogger(__name__)

SYSTEM_AUTHOR = "system"

SystemReducer = Callable[[WorldRecord, List[Patch], KernelConfig], List[Patch]]


class SystemSpec(NamedTuple):
    name: str
    reducer: SystemReducer


def tide_system(preview: WorldRecord, policy_patches: List[Patch], config: KernelConfig) -> List[Patch]:
    """Keep ``systems.tide.phase`` in step with the derived tide."""
    tide = preview.systems.tide
    time_state = preview.systems.time
    if tide is None or time_state is None:
        return []

    elapsed = compute_effective_elapsed_minutes(time_state, preview.meta.turn)
    phase = calculate_tide_state(elapsed, tide.cycle_minutes).phase
    if phase == tide.phase:
        return []
    return [Patch(
        op=PatchOp.SET,
        path="/systems/tide/phase",
        value=phase.value,
        note=f"Tide shifts to {phase.value}",
        by=SYSTEM_AUTHOR,
    )]


def make_weather_system(engine: Optional[WeatherEngine] = None) -> SystemReducer:
    """Weather reducer writing a fresh cache whenever the effective clock moved."""
    engine = engine or WeatherEngine()

    def weather_system(preview: WorldRecord, policy_patches: List[Patch], config: KernelConfig) -> List[Patch]:
        weather = preview.systems.weather
        if weather is None:
            return []
        clock = resolve_weather_clock(preview)
        if clock is None:
            return []
        if weather.cache is not None and weather.cache.elapsed_minutes == clock[0]:
            return []

        snapshot = ensure_weather_snapshot(preview, config=config, engine=engine)
        if snapshot is None:
            return []
        cache = build_weather_cache(preview, snapshot)
        logger.debug("Weather derived for turn %s: %s/%s", preview.meta.turn, snapshot.type.value, snapshot.intensity)
        return [Patch(
            op=PatchOp.SET,
            path="/systems/weather/cache",
            value=cache.model_dump(mode="json"),
            note=f"Weather now {snapshot.type.value} (intensity {snapshot.intensity:g})",
            by=SYSTEM_AUTHOR,
        )]

    return weather_system


def default_systems(engine: Optional[WeatherEngine] = None) -> List[SystemSpec]:
    return [
        SystemSpec(name="tide-system", reducer=tide_system),
        SystemSpec(name="weather-system", reducer=make_weather_system(engine)),
    ]


def compute_system_patches(
    preview: WorldRecord,
    policy_patches: List[Patch],
    config: KernelConfig,
    systems: Optional[List[SystemSpec]] = None,
) -> List[Patch]:
    """Run every registered system in order and concatenate their patches."""
    patches: List[Patch] = []
    for spec in systems if systems is not None else default_systems():
        produced = spec.reducer(preview, policy_patches, config)
        if produced:
            logger.debug("System %s produced %d patch(es)", spec.name, len(produced))
        patches.extend(produced)
    return patches
