"""
Tide Derivation — stateless sinusoid over elapsed minutes.

level = 0.5 + 0.5 * sin(2*pi*t), t = elapsed time normalized into [0, 1) over one
cycle. Phases: level < 0.25 low, level > 0.75 high, otherwise rising while the
cosine derivative is positive and falling when it is not.
"""

import math
from typing import Dict, List, Tuple

from chronicle_kernel.models.record import LocationRecord, TideAccess
from chronicle_kernel.models.time import TidePhase, TideState

DEFAULT_CYCLE_MINUTES = 720

_BLOCKING_PHASES = {
    TideAccess.LOW: (TidePhase.HIGH, TidePhase.RISING),
    TideAccess.HIGH: (TidePhase.LOW, TidePhase.FALLING),
    TideAccess.ALWAYS: (),
}


def calculate_tide_state(elapsed_minutes: float, cycle_minutes: int = DEFAULT_CYCLE_MINUTES) -> TideState:
    normalized = (elapsed_minutes % cycle_minutes) / cycle_minutes
    angle = 2 * math.pi * normalized
    level = 0.5 + 0.5 * math.sin(angle)
    derivative = math.cos(angle)

    if level < 0.25:
        phase = TidePhase.LOW
    elif level > 0.75:
        phase = TidePhase.HIGH
    elif derivative > 0:
        phase = TidePhase.RISING
    else:
        phase = TidePhase.FALLING

    # Remaining time to the current quarter-cycle boundary
    quarter = cycle_minutes / 4
    current_quarter = math.floor(normalized * 4)
    minutes_into_quarter = (normalized * 4 - current_quarter) * quarter
    minutes_until_change = math.ceil(quarter - minutes_into_quarter)

    return TideState(
        phase=phase,
        level=max(0.0, min(1.0, level)),
        minutes_until_change=max(1, minutes_until_change),
    )


def is_blocked_by_tide(access: TideAccess, phase: TidePhase) -> bool:
    return phase in _BLOCKING_PHASES.get(access, ())


def partition_by_tide(
    locations: Dict[str, LocationRecord],
    phase: TidePhase,
) -> Tuple[List[str], List[str]]:
    """Split location ids into (accessible, blocked) for the given phase."""
    accessible: List[str] = []
    blocked: List[str] = []
    for location_id, location in locations.items():
        if is_blocked_by_tide(location.tide_access, phase):
            blocked.append(location_id)
        else:
            accessible.append(location_id)
    return accessible, blocked
