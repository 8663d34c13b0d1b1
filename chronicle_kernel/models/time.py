"""Time, calendar and tide models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TimeOfDay(str, Enum):
    MORNING = "morning"        # 05:00-11:59
    AFTERNOON = "afternoon"    # 12:00-16:59
    EVENING = "evening"        # 17:00-20:59
    NIGHT = "night"


class TidePhase(str, Enum):
    LOW = "low"
    RISING = "rising"
    HIGH = "high"
    FALLING = "falling"


class TimeAnchor(BaseModel):
    iso_date_time: str                      # e.g., "1825-05-14T14:00:00Z"
    calendar: str = "gregorian"


class TimePatch(BaseModel):
    """A turn-scoped manual adjustment to the clock."""

    turn: int
    reason: str = ""
    delta_minutes: Optional[int] = None
    set_absolute: Optional[str] = None      # ISO timestamp override, needs an anchor


class TimeSystemState(BaseModel):
    model_config = ConfigDict(extra="allow")

    elapsed_minutes: int = Field(ge=0, default=0)   # Canonical source of truth
    start_hour: int = Field(ge=0, le=23, default=0)
    anchor: Optional[TimeAnchor] = None
    patches: List[TimePatch] = []


class TideSystemState(BaseModel):
    model_config = ConfigDict(extra="allow")

    phase: TidePhase = TidePhase.LOW        # Kept in sync by the tide system
    cycle_minutes: int = Field(gt=0, default=720)


class CycleInfo(BaseModel):
    minute: int
    hour: int
    day: int
    week: int


class MonthInfo(BaseModel):
    index: int                              # 1-12
    name: str
    day_of_month: int
    days_in_month: int


class WeekInfo(BaseModel):
    number: int                             # ISO week number
    day_of_week: int                        # 0 = Sunday
    day_name: str


class CalendarInfo(BaseModel):
    year: int
    month: MonthInfo
    week: WeekInfo
    day_of_year: int
    days_in_year: int


class RichTime(BaseModel):
    """Derived clock. Calendar fields are present only when an anchor exists."""

    elapsed_minutes: int
    current_hour: int
    current_day: int
    time_of_day: TimeOfDay
    cycle: CycleInfo
    iso_date_time: Optional[str] = None
    calendar: Optional[CalendarInfo] = None


class TideState(BaseModel):
    phase: TidePhase
    level: float = Field(ge=0, le=1)
    minutes_until_change: int = Field(ge=1)
