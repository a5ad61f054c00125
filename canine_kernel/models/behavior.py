"""Behavior Observation and Behavior State — the fused behavioral signal."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TailSignal(str, Enum):
    TUCKED = "tucked"
    NEUTRAL = "neutral"
    LOW_WAG = "low_wag"
    HIGH_WAG = "high_wag"


class EarSignal(str, Enum):
    FORWARD = "forward"
    NEUTRAL = "neutral"
    BACK = "back"
    PINNED = "pinned"


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


class BehaviorObservation(BaseModel):
    """
    One already-classified reading from the vision collaborator.

    Produced at a fixed sampling cadence upstream; never mutated.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    tail_signal: TailSignal
    ear_signal: EarSignal
    body_language_score: float = Field(ge=0.0, le=1.0)   # 1.0 = fully relaxed
    confidence: float = Field(ge=0.0, le=1.0)


class BehaviorState(BaseModel):
    """
    Smoothed, hysteresis-protected view of the dog's state.

    Owned by the Behavior Fusion Engine. Consumers only ever receive
    a frozen snapshot.
    """

    model_config = ConfigDict(frozen=True)

    stress_level: float = Field(ge=0.0, le=1.0, default=0.0)
    engagement_level: float = Field(ge=0.0, le=1.0, default=0.0)
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    stress_trend: Trend = Trend.STABLE
    engagement_trend: Trend = Trend.STABLE
    last_updated: Optional[datetime] = None
    observation_count: int = 0
    stale: bool = False


# Used wherever sensing is degraded: no stress-based preemption, no intensity nudge.
NEUTRAL_BEHAVIOR = BehaviorState(stale=True)
