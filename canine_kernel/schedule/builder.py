"""
Schedule Builder — circadian, breed-aware 24h schedules.

Behavioral Contract:
- Starts from a fixed circadian template of seven periods covering 24h
- Breed category reshapes intensity/priority (and, for some breeds, category)
  per period; energy level and season nudge the result
- Splits every slot longer than the breed's attention span into equal,
  contiguous sub-slots
- Deterministic: identical inputs produce an identical Schedule
- Exclusively owns the active Schedule; a failed build never replaces it
"""

import math
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel

from canine_kernel.errors import ScheduleBuildError
from canine_kernel.models.breed import BreedCategory, BreedProfile, EnergyLevel
from canine_kernel.models.content import ContentCategory
from canine_kernel.models.schedule import Priority, RotationPolicy, Schedule, TimeSlot

DAY_START_HOUR = 6
DAY_LENGTH = timedelta(hours=24)
MIN_SLOT = timedelta(seconds=1)


class CircadianPeriod(BaseModel):
    """One named period of the template, in hours since midnight of the schedule day."""

    name: str
    start_hour: int
    end_hour: int
    category: ContentCategory
    intensity: float
    priority: Priority


CIRCADIAN_TEMPLATE: List[CircadianPeriod] = [
    CircadianPeriod(name="morning", start_hour=6, end_hour=9,
                    category=ContentCategory.ENGAGEMENT, intensity=0.7, priority=Priority.HIGH),
    CircadianPeriod(name="mid_morning", start_hour=9, end_hour=11,
                    category=ContentCategory.RELAXATION, intensity=0.3, priority=Priority.MEDIUM),
    CircadianPeriod(name="afternoon", start_hour=11, end_hour=14,
                    category=ContentCategory.STIMULATION, intensity=0.8, priority=Priority.HIGH),
    CircadianPeriod(name="afternoon_rest", start_hour=14, end_hour=16,
                    category=ContentCategory.RELAXATION, intensity=0.4, priority=Priority.MEDIUM),
    CircadianPeriod(name="evening", start_hour=16, end_hour=19,
                    category=ContentCategory.PLAY, intensity=0.6, priority=Priority.HIGH),
    CircadianPeriod(name="evening_wind_down", start_hour=19, end_hour=21,
                    category=ContentCategory.RELAXATION, intensity=0.2, priority=Priority.MEDIUM),
    CircadianPeriod(name="night", start_hour=21, end_hour=30,
                    category=ContentCategory.MAINTENANCE, intensity=0.1, priority=Priority.LOW),
]

REST_CATEGORIES = (ContentCategory.RELAXATION, ContentCategory.MAINTENANCE)


class PeriodOverride(BaseModel):
    category: Optional[ContentCategory] = None
    intensity: Optional[float] = None
    priority: Optional[Priority] = None


class BreedShape(BaseModel):
    """How a breed category bends the circadian template."""

    intensity_scale: float = 1.0
    intensity_cap: float = 1.0
    overrides: Dict[str, PeriodOverride] = {}

    @property
    def reshapes_everything(self) -> bool:
        return self.intensity_scale != 1.0 or self.intensity_cap < 1.0


BREED_SHAPES: Dict[BreedCategory, BreedShape] = {
    # More stimulation, longer activity periods
    BreedCategory.WORKING: BreedShape(overrides={
        "morning": PeriodOverride(category=ContentCategory.STIMULATION, intensity=0.8,
                                  priority=Priority.CRITICAL),
        "afternoon": PeriodOverride(intensity=0.9, priority=Priority.CRITICAL),
        "evening": PeriodOverride(intensity=0.7),
    }),
    # Balanced activity and rest
    BreedCategory.COMPANION: BreedShape(),
    # High energy play with frequent breaks
    BreedCategory.TERRIER: BreedShape(overrides={
        "mid_morning": PeriodOverride(category=ContentCategory.PLAY, intensity=0.6),
        "evening": PeriodOverride(intensity=0.8),
    }),
    # Gentle, low-intensity activities all day
    BreedCategory.BRACHYCEPHALIC: BreedShape(intensity_scale=0.5, intensity_cap=0.4, overrides={
        "afternoon": PeriodOverride(category=ContentCategory.ENGAGEMENT, priority=Priority.MEDIUM),
    }),
    # Moderate activity with plenty of rest
    BreedCategory.GIANT: BreedShape(intensity_scale=0.8, overrides={
        "afternoon": PeriodOverride(category=ContentCategory.ENGAGEMENT, intensity=0.6,
                                    priority=Priority.MEDIUM),
        "afternoon_rest": PeriodOverride(priority=Priority.HIGH),
    }),
    # Varied activities throughout the day
    BreedCategory.SPORTING: BreedShape(overrides={
        "mid_morning": PeriodOverride(category=ContentCategory.ENGAGEMENT, intensity=0.5),
        "evening": PeriodOverride(intensity=0.8),
    }),
    # Mental stimulation and structured activities
    BreedCategory.HERDING: BreedShape(overrides={
        "morning": PeriodOverride(category=ContentCategory.TRAINING, intensity=0.7),
        "afternoon": PeriodOverride(intensity=0.85, priority=Priority.CRITICAL),
    }),
    # Gentle activities with frequent attention
    BreedCategory.TOY: BreedShape(intensity_scale=0.7, intensity_cap=0.6, overrides={
        "mid_morning": PeriodOverride(priority=Priority.HIGH),
    }),
}

SUMMER_MONTHS = (6, 7, 8)
WINTER_MONTHS = (12, 1, 2)
SEASONAL_STEP = 0.1


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def schedule_day_for(moment: datetime) -> date:
    """The schedule day a moment belongs to (days start at 06:00)."""
    if moment.hour >= DAY_START_HOUR:
        return moment.date()
    return moment.date() - timedelta(days=1)


def split_oversized_slots(slots: List[TimeSlot], max_duration: timedelta) -> List[TimeSlot]:
    """
    Split every slot longer than `max_duration` into ceil(duration / max)
    contiguous sub-slots of equal size. Sub-slots keep the parent's
    category/intensity/priority/breed_specific; the last one ends exactly
    where the parent ended.
    """
    if max_duration < MIN_SLOT:
        raise ScheduleBuildError(
            f"Maximum slot duration {max_duration} would produce zero-length slots."
        )

    result: List[TimeSlot] = []
    for slot in slots:
        duration = slot.duration
        if duration <= timedelta(0):
            raise ScheduleBuildError(f"Slot '{slot.period}' starting {slot.start} has no duration.")
        if duration <= max_duration:
            result.append(slot)
            continue

        pieces = math.ceil(duration / max_duration)
        total_us = duration // timedelta(microseconds=1)
        for i in range(pieces):
            start = slot.start + timedelta(microseconds=(total_us * i) // pieces)
            if i == pieces - 1:
                end = slot.end
            else:
                end = slot.start + timedelta(microseconds=(total_us * (i + 1)) // pieces)
            result.append(slot.model_copy(update={"start": start, "end": end}))
    return result


def validate_schedule(
    slots: List[TimeSlot],
    max_duration: timedelta,
    check_from: Optional[datetime] = None,
) -> None:
    """
    Enforce the schedule invariants: non-empty, contiguous, exactly 24h,
    and no slot (starting at or after `check_from`) longer than `max_duration`.
    """
    if not slots:
        raise ScheduleBuildError("Schedule has no slots.")

    for i, slot in enumerate(slots):
        if slot.end <= slot.start:
            raise ScheduleBuildError(
                f"Slot '{slot.period}' at {slot.start.isoformat()} has zero or negative length."
            )
        if (check_from is None or slot.start >= check_from) and slot.duration > max_duration:
            raise ScheduleBuildError(
                f"Slot '{slot.period}' at {slot.start.isoformat()} lasts {slot.duration}, "
                f"exceeding the attention span of {max_duration}."
            )
        if i > 0 and slots[i - 1].end != slot.start:
            raise ScheduleBuildError(
                f"Slots are not contiguous at {slot.start.isoformat()} "
                f"(previous ends {slots[i - 1].end.isoformat()})."
            )

    span = slots[-1].end - slots[0].start
    if span != DAY_LENGTH:
        raise ScheduleBuildError(f"Schedule spans {span}, expected {DAY_LENGTH}.")


class ScheduleBuilder:
    """
    Builds schedules and owns the one that is currently active.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._active: Optional[Schedule] = None

    @property
    def active(self) -> Optional[Schedule]:
        """The last known-good schedule."""
        return self._active

    def current_slot(self, now: Optional[datetime] = None) -> Optional[TimeSlot]:
        if self._active is None:
            return None
        return self._active.slot_at(now or self._clock())

    # --- Building ---

    def build_schedule(
        self,
        profile: BreedProfile,
        policy: RotationPolicy,
        day: Optional[date] = None,
    ) -> Schedule:
        """Build a complete schedule for `day` (defaults to the current schedule day)."""
        if day is None:
            day = schedule_day_for(self._clock())

        if profile.attention_span_minutes is None or profile.attention_span_minutes <= 0:
            raise ScheduleBuildError(
                f"Breed profile '{profile.name}' has a non-positive attention span."
            )
        max_duration = timedelta(minutes=profile.attention_span_minutes)

        slots = self._shape_periods(profile, policy, day)
        slots = split_oversized_slots(slots, max_duration)
        validate_schedule(slots, max_duration)

        return Schedule(
            breed_profile=profile,
            rotation_policy=policy,
            day=day,
            slots=slots,
            built_at=slots[0].start,
        )

    def _shape_periods(
        self,
        profile: BreedProfile,
        policy: RotationPolicy,
        day: date,
    ) -> List[TimeSlot]:
        shape = BREED_SHAPES.get(profile.category, BreedShape())
        midnight = datetime.combine(day, time())
        slots = []

        for period in CIRCADIAN_TEMPLATE:
            override = shape.overrides.get(period.name, PeriodOverride())
            category = override.category or period.category
            intensity = override.intensity if override.intensity is not None else period.intensity
            priority = override.priority or period.priority

            intensity = min(intensity * shape.intensity_scale, shape.intensity_cap)
            priority = self._energy_priority(profile.energy_level, category, priority)
            if policy.seasonal_adjustments_enabled:
                intensity = self._seasonal_intensity(period.name, day, intensity)

            slots.append(TimeSlot(
                period=period.name,
                start=midnight + timedelta(hours=period.start_hour),
                end=midnight + timedelta(hours=period.end_hour),
                category=category,
                intensity=round(_clamp(intensity), 4),
                priority=priority,
                breed_specific=period.name in shape.overrides or shape.reshapes_everything,
            ))
        return slots

    def _energy_priority(
        self, energy: EnergyLevel, category: ContentCategory, priority: Priority
    ) -> Priority:
        """Low-energy dogs protect their rest; high-energy dogs their activity."""
        if energy == EnergyLevel.LOW and category == ContentCategory.RELAXATION:
            if priority in (Priority.MEDIUM, Priority.LOW):
                return Priority.HIGH
        if energy == EnergyLevel.HIGH and category not in REST_CATEGORIES:
            if priority == Priority.HIGH:
                return Priority.CRITICAL
        return priority

    def _seasonal_intensity(self, period_name: str, day: date, intensity: float) -> float:
        # Hot afternoons call for calmer content; dark winter evenings wind down further
        if day.month in SUMMER_MONTHS and period_name == "afternoon":
            return intensity - SEASONAL_STEP
        if day.month in WINTER_MONTHS and period_name == "evening_wind_down":
            return intensity - SEASONAL_STEP
        return intensity

    # --- Installing ---

    def activate(
        self,
        profile: BreedProfile,
        policy: RotationPolicy,
        now: Optional[datetime] = None,
    ) -> Schedule:
        """
        Build the schedule for the day containing `now` and make it active.
        On ScheduleBuildError the previous schedule stays active.
        """
        if now is None:
            now = self._clock()
        schedule = self.build_schedule(profile, policy, schedule_day_for(now))
        self._active = schedule
        logger.info(
            f"Schedule activated for {profile.name} "
            f"({len(schedule.slots)} slots, day {schedule.day.isoformat()})"
        )
        return schedule

    def rebuild(
        self,
        profile: BreedProfile,
        policy: RotationPolicy,
        now: Optional[datetime] = None,
    ) -> Schedule:
        """
        Mid-day rebuild: slots that have already begun are preserved,
        only the remaining future is replaced. Falls back to a full
        activation when there is no active schedule covering `now`.
        """
        if now is None:
            now = self._clock()

        previous = self._active
        if previous is None or not previous.covers(now):
            return self.activate(profile, policy, now)

        fresh = self.build_schedule(profile, policy, previous.day)
        kept = [s for s in previous.slots if s.start <= now]
        boundary = kept[-1].end

        future = []
        for slot in fresh.slots:
            if slot.end <= boundary:
                continue
            if slot.start < boundary:
                slot = slot.model_copy(update={"start": boundary})
            future.append(slot)

        slots = kept + future
        validate_schedule(
            slots,
            timedelta(minutes=profile.attention_span_minutes),
            check_from=boundary,
        )

        schedule = Schedule(
            breed_profile=profile,
            rotation_policy=policy,
            day=previous.day,
            slots=slots,
            built_at=now,
        )
        self._active = schedule
        logger.info(
            f"Schedule rebuilt for {profile.name} at {now.isoformat()} "
            f"({len(kept)} slots preserved, {len(future)} replaced)"
        )
        return schedule
