"""Time Slot, Schedule and Rotation Policy."""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from canine_kernel.models.breed import BreedProfile
from canine_kernel.models.content import ContentCategory


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RotationPolicy(BaseModel):
    """How aggressively content is rotated to prevent habituation."""

    model_config = ConfigDict(frozen=True)

    variety_level: float = Field(ge=0.0, le=1.0, default=0.8)
    habituation_window: timedelta = timedelta(hours=2)
    history_size: int = Field(ge=1, default=20)     # FIFO capacity of recent plays
    seasonal_adjustments_enabled: bool = False


class TimeSlot(BaseModel):
    """One contiguous stretch of the day. Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    period: str                             # e.g., "morning", "evening_wind_down"
    start: datetime
    end: datetime
    category: ContentCategory
    intensity: float = Field(ge=0.0, le=1.0)
    priority: Priority
    breed_specific: bool = False

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


class Schedule(BaseModel):
    """
    A full 24h day of slots, tagged with the inputs that produced it.

    Replaced wholesale on rebuild; slots are contiguous and gapless.
    """

    model_config = ConfigDict(frozen=True)

    breed_profile: BreedProfile
    rotation_policy: RotationPolicy
    day: date
    slots: List[TimeSlot]
    built_at: datetime

    @property
    def start(self) -> datetime:
        return self.slots[0].start

    @property
    def end(self) -> datetime:
        return self.slots[-1].end

    def covers(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def slot_at(self, moment: datetime) -> Optional[TimeSlot]:
        """Find the slot active at a given moment (None outside the schedule)."""
        for slot in self.slots:
            if slot.contains(moment):
                return slot
        return None
