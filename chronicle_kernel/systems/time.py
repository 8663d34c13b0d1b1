"""
Time / Calendar Derivation — pure functions over the canonical elapsed-minutes counter.

Behavioral Contract:
- ``systems.time.elapsed_minutes`` is the single source of truth.
- Turn-scoped time patches are folded in chronologically, only up to the current turn.
- With an anchor, full Gregorian calendar fields are derived (UTC); without one,
  only the basic cycle fields are available.
- ``ensure_time_anchor`` is total: it always returns a state with an anchor.
"""

import calendar
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from chronicle_kernel.models.record import MetaState, WorldRecord
from chronicle_kernel.models.time import (
    CalendarInfo,
    CycleInfo,
    MonthInfo,
    RichTime,
    TimeAnchor,
    TimeOfDay,
    TimeSystemState,
    WeekInfo,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
MONTH_NAMES = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime. Naive input is UTC."""
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_iso(moment: datetime) -> str:
    """Canonical form used everywhere a timestamp is keyed: ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    moment = moment.astimezone(timezone.utc)
    return (
        f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"
        f"T{moment.hour:02d}:{moment.minute:02d}:{moment.second:02d}"
        f".{moment.microsecond // 1000:03d}Z"
    )


def time_of_day_for_hour(hour: int) -> TimeOfDay:
    if 5 <= hour < 12:
        return TimeOfDay.MORNING
    if 12 <= hour < 17:
        return TimeOfDay.AFTERNOON
    if 17 <= hour < 21:
        return TimeOfDay.EVENING
    return TimeOfDay.NIGHT


def compute_effective_elapsed_minutes(
    state: TimeSystemState,
    current_turn: Optional[int] = None,
) -> int:
    """Fold applicable time patches (turn <= current_turn) into the elapsed counter."""
    effective = state.elapsed_minutes
    if current_turn is None or not state.patches:
        return effective

    applicable = sorted(
        (p for p in state.patches if p.turn <= current_turn),
        key=lambda p: p.turn,
    )
    for patch in applicable:
        if patch.set_absolute and state.anchor:
            anchor = parse_iso(state.anchor.iso_date_time)
            target = parse_iso(patch.set_absolute)
            effective = max(0, int((target - anchor).total_seconds() // 60))
        elif patch.delta_minutes is not None:
            effective = max(0, effective + patch.delta_minutes)
    return effective


def derive_absolute_time(
    state: TimeSystemState,
    current_turn: Optional[int] = None,
) -> RichTime:
    """Derive hour/day/bucket, plus calendar fields when an anchor is present."""
    effective = compute_effective_elapsed_minutes(state, current_turn)

    total_minutes = state.start_hour * 60 + effective
    hour = (total_minutes // 60) % 24
    minute = total_minutes % 60
    day = effective // MINUTES_PER_DAY + 1

    rich = RichTime(
        elapsed_minutes=effective,
        current_hour=hour,
        current_day=day,
        time_of_day=time_of_day_for_hour(hour),
        cycle=CycleInfo(minute=minute, hour=hour, day=day, week=(day - 1) // 7 + 1),
    )

    if state.anchor is None:
        return rich

    current = parse_iso(state.anchor.iso_date_time) + timedelta(minutes=effective)
    year = current.year
    days_in_year = 366 if calendar.isleap(year) else 365
    day_of_week = (current.weekday() + 1) % 7

    rich.iso_date_time = format_iso(current)
    rich.calendar = CalendarInfo(
        year=year,
        month=MonthInfo(
            index=current.month,
            name=MONTH_NAMES[current.month - 1],
            day_of_month=current.day,
            days_in_month=calendar.monthrange(year, current.month)[1],
        ),
        week=WeekInfo(
            number=current.isocalendar()[1],
            day_of_week=day_of_week,
            day_name=DAY_NAMES[day_of_week],
        ),
        day_of_year=current.timetuple().tm_yday,
        days_in_year=days_in_year,
    )
    return rich


def ensure_time_anchor(
    state: TimeSystemState,
    meta: Optional[MetaState] = None,
    now: Optional[datetime] = None,
) -> TimeSystemState:
    """
    Return ``state`` with an anchor, synthesizing one when missing:
    from ``meta.started_at`` if present, otherwise from the wall clock
    truncated to ``start_hour``.
    """
    if state.anchor is not None:
        return state

    if meta is not None and meta.started_at:
        return state.model_copy(update={"anchor": TimeAnchor(iso_date_time=meta.started_at)})

    now = now or datetime.now(timezone.utc)
    anchored = now.astimezone(timezone.utc).replace(
        hour=state.start_hour, minute=0, second=0, microsecond=0
    )
    logger.warning("No time anchor or session start; synthesizing %s", format_iso(anchored))
    return state.model_copy(update={"anchor": TimeAnchor(iso_date_time=format_iso(anchored))})


def resolve_record_time(record: WorldRecord, now: Optional[datetime] = None) -> Optional[RichTime]:
    """Anchored rich time for a record, or None when it has no time system."""
    state = record.systems.time
    if state is None:
        return None
    anchored = ensure_time_anchor(state, record.meta, now=now)
    return derive_absolute_time(anchored, record.meta.turn)


def advance_time(state: TimeSystemState, delta_minutes: int) -> TimeSystemState:
    return state.model_copy(
        update={"elapsed_minutes": max(0, state.elapsed_minutes + delta_minutes)}
    )


def format_game_time(elapsed_minutes: int, start_hour: int = 8) -> str:
    """Clock label such as ``"2:45 PM"``."""
    total = start_hour * 60 + elapsed_minutes
    hours24 = (total // 60) % 24
    minutes = total % 60
    hours12 = hours24 % 12 or 12
    suffix = "AM" if hours24 < 12 else "PM"
    return f"{hours12}:{minutes:02d} {suffix}"


def get_game_day(elapsed_minutes: int) -> int:
    return elapsed_minutes // MINUTES_PER_DAY + 1


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def describe_duration(minutes: int) -> str:
    """Human-readable span: ``"2 hours and 5 minutes"``, ``"1 day 3 hours"``."""
    if minutes >= MINUTES_PER_DAY:
        days, rem = divmod(minutes, MINUTES_PER_DAY)
        hours, mins = divmod(rem, 60)
        parts = [_plural(days, "day")]
        if hours:
            parts.append(_plural(hours, "hour"))
        if mins:
            parts.append(_plural(mins, "minute"))
        return " ".join(parts)
    if minutes >= 60:
        hours, mins = divmod(minutes, 60)
        text = _plural(hours, "hour")
        if mins:
            text += f" and {_plural(mins, 'minute')}"
        return text
    return _plural(minutes, "minute")
