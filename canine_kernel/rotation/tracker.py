"""
Rotation Tracker — habituation bookkeeping.

Keeps a bounded FIFO of recently played content ids and the last time each
id was played. The penalty for replaying an item decays linearly from 1.0
(just played) to 0.0 once the habituation window has elapsed, and is 0 for
anything that has left the FIFO or was never played.
"""

from collections import deque
from datetime import datetime
from typing import Callable, Deque, Dict, Optional

from canine_kernel.models.rotation import RotationState
from canine_kernel.models.schedule import RotationPolicy


class RotationTracker:

    def __init__(
        self,
        policy: Optional[RotationPolicy] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.policy = policy or RotationPolicy()
        self._clock = clock
        self._recent: Deque[str] = deque()
        self._last_played: Dict[str, datetime] = {}

    def record_play(self, item_id: str, timestamp: Optional[datetime] = None) -> None:
        """The only mutation path: append, evicting the oldest entry past capacity."""
        if timestamp is None:
            timestamp = self._clock()
        self._recent.append(item_id)
        while len(self._recent) > self.policy.history_size:
            self._recent.popleft()
        self._last_played[item_id] = timestamp

    def last_played(self, item_id: str) -> Optional[datetime]:
        return self._last_played.get(item_id)

    def penalty_for(self, item_id: str, now: Optional[datetime] = None) -> float:
        """Habituation penalty in [0, 1]."""
        if item_id not in self._recent:
            return 0.0
        played_at = self._last_played.get(item_id)
        if played_at is None:
            return 0.0
        if now is None:
            now = self._clock()

        window = self.policy.habituation_window.total_seconds()
        if window <= 0:
            return 0.0
        elapsed = max(0.0, (now - played_at).total_seconds())
        return max(0.0, 1.0 - elapsed / window)

    def weighted_penalty(self, item_id: str, now: Optional[datetime] = None) -> float:
        """Penalty scaled by the policy's variety level, as it enters the score."""
        return self.policy.variety_level * self.penalty_for(item_id, now)

    def snapshot(self) -> RotationState:
        return RotationState(
            recent=list(self._recent),
            last_played=dict(self._last_played),
            capacity=self.policy.history_size,
        )
