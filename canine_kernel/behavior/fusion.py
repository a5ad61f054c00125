"""
Behavior Fusion Engine — turns classified observations into a BehaviorState.

Behavioral Contract:
- Rejects observations below the confidence floor (state unchanged, warning logged)
- Computes instantaneous stress and engagement estimates, clamped to [0, 1]
- Smooths both axes exponentially so single frames never drive decisions
- Reports a trend only after the smoothed value has left the dead-band for
  several consecutive observations (hysteresis)
- Exclusively owns the BehaviorState; consumers receive frozen snapshots
"""

import threading
from datetime import datetime
from typing import Callable, Optional

from loguru import logger

from canine_kernel.errors import LowConfidenceObservation
from canine_kernel.models.behavior import (
    BehaviorObservation,
    BehaviorState,
    EarSignal,
    TailSignal,
    Trend,
)
from canine_kernel.models.config import FusionConfig


# How strongly each signal indicates stress (1.0 = strongest indicator)
TAIL_STRESS = {
    TailSignal.TUCKED: 1.0,
    TailSignal.LOW_WAG: 0.4,
    TailSignal.NEUTRAL: 0.1,
    TailSignal.HIGH_WAG: 0.0,
}

EAR_STRESS = {
    EarSignal.PINNED: 1.0,
    EarSignal.BACK: 0.6,
    EarSignal.NEUTRAL: 0.1,
    EarSignal.FORWARD: 0.0,
}

# Wag amplitude and forward-ear weighting for engagement
WAG_AMPLITUDE = {
    TailSignal.HIGH_WAG: 1.0,
    TailSignal.LOW_WAG: 0.5,
    TailSignal.NEUTRAL: 0.2,
    TailSignal.TUCKED: 0.0,
}

EAR_FORWARD = {
    EarSignal.FORWARD: 1.0,
    EarSignal.NEUTRAL: 0.4,
    EarSignal.BACK: 0.1,
    EarSignal.PINNED: 0.0,
}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


class TrendTracker:
    """
    Dead-band hysteresis for one smoothed axis.

    The tracker holds an anchor value. Leaving the band around the anchor in
    the same direction for `confirm` consecutive observations reports a
    rising/falling trend and re-anchors at the current value. Staying inside
    the band for `stable_window` consecutive observations returns to stable.
    """

    def __init__(self, dead_band: float, confirm: int, stable_window: int):
        self.dead_band = dead_band
        self.confirm = confirm
        self.stable_window = stable_window
        self.trend = Trend.STABLE
        self.changes = 0
        self._anchor: Optional[float] = None
        self._pending = Trend.STABLE
        self._pending_count = 0

    def update(self, value: float) -> Trend:
        if self._anchor is None:
            self._anchor = value
            return self.trend

        delta = value - self._anchor
        if delta > self.dead_band:
            direction = Trend.RISING
        elif delta < -self.dead_band:
            direction = Trend.FALLING
        else:
            direction = Trend.STABLE

        if direction == self._pending:
            self._pending_count += 1
        else:
            self._pending = direction
            self._pending_count = 1

        required = self.stable_window if direction == Trend.STABLE else self.confirm
        if self._pending_count >= required:
            if direction != Trend.STABLE:
                self._anchor = value
                self._pending_count = 0
            if direction != self.trend:
                self.trend = direction
                self.changes += 1

        return self.trend


class BehaviorFusionEngine:
    """
    Fuses tail, ear and body-language signals into a smoothed BehaviorState.

    `ingest` may be called from the observation producer while the decision
    loop reads `snapshot`; the state is swapped under a lock and is itself
    immutable, so readers never see a partially-written state.
    """

    def __init__(
        self,
        config: Optional[FusionConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or FusionConfig()
        self._clock = clock
        self._lock = threading.Lock()
        self._alpha = 1.0 - 0.5 ** (1.0 / self.config.half_life_observations)
        self.rejected_count = 0
        self._reset_locked()

    def _reset_locked(self) -> None:
        self._state = BehaviorState()
        self._stress: Optional[float] = None
        self._engagement: Optional[float] = None
        self._confidence: Optional[float] = None
        self._stress_trend = TrendTracker(
            self.config.stress_dead_band,
            self.config.confirm_observations,
            self.config.stable_window,
        )
        self._engagement_trend = TrendTracker(
            self.config.engagement_dead_band,
            self.config.confirm_observations,
            self.config.stable_window,
        )

    def reset(self) -> None:
        """Forget all history (e.g., a different dog is now watching)."""
        with self._lock:
            self._reset_locked()

    @property
    def state(self) -> BehaviorState:
        """The latest state, without staleness evaluation."""
        return self._state

    @property
    def trend_changes(self) -> dict:
        """Number of trend flips reported so far, per axis."""
        return {
            "stress": self._stress_trend.changes,
            "engagement": self._engagement_trend.changes,
        }

    def instantaneous_stress(self, observation: BehaviorObservation) -> float:
        cfg = self.config
        return _clamp(
            cfg.tail_stress_weight * TAIL_STRESS[observation.tail_signal]
            + cfg.ear_stress_weight * EAR_STRESS[observation.ear_signal]
            + cfg.body_stress_weight * (1.0 - observation.body_language_score)
        )

    def instantaneous_engagement(self, observation: BehaviorObservation) -> float:
        cfg = self.config
        return _clamp(
            cfg.wag_engagement_weight * WAG_AMPLITUDE[observation.tail_signal]
            + cfg.ear_engagement_weight * EAR_FORWARD[observation.ear_signal]
        )

    def _smooth(self, previous: Optional[float], sample: float) -> float:
        if previous is None:
            return sample
        return previous + self._alpha * (sample - previous)

    def ingest(self, observation: BehaviorObservation) -> BehaviorState:
        """
        Fold one observation into the state.

        Returns the new state, or the previous state unchanged when the
        observation is below the confidence floor.
        """
        if observation.confidence < self.config.min_confidence:
            self.rejected_count += 1
            logger.warning(str(LowConfidenceObservation(
                observation.confidence, self.config.min_confidence
            )))
            return self._state

        stress_sample = self.instantaneous_stress(observation)
        engagement_sample = self.instantaneous_engagement(observation)

        with self._lock:
            self._stress = self._smooth(self._stress, stress_sample)
            self._engagement = self._smooth(self._engagement, engagement_sample)
            self._confidence = self._smooth(self._confidence, observation.confidence)

            self._state = BehaviorState(
                stress_level=_clamp(self._stress),
                engagement_level=_clamp(self._engagement),
                confidence=_clamp(self._confidence),
                stress_trend=self._stress_trend.update(self._stress),
                engagement_trend=self._engagement_trend.update(self._engagement),
                last_updated=observation.timestamp,
                observation_count=self._state.observation_count + 1,
                stale=False,
            )
            return self._state

    def snapshot(self, now: Optional[datetime] = None) -> BehaviorState:
        """
        Read the current state, flagged stale when the observation stream
        has gone quiet for longer than `stale_after_seconds`.
        """
        if now is None:
            now = self._clock()

        state = self._state
        if state.last_updated is None:
            return state.model_copy(update={"stale": True})

        silence = (now - state.last_updated).total_seconds()
        if silence > self.config.stale_after_seconds:
            return state.model_copy(update={"stale": True})
        return state
