"""Session — one playback run owned by the Session Orchestrator."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from canine_kernel.models.behavior import BehaviorState
from canine_kernel.models.content import ContentItem
from canine_kernel.models.schedule import TimeSlot


class SessionPhase(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    PLAYING = "playing"
    ADAPTING = "adapting"
    TERMINATING = "terminating"
    TERMINATED = "terminated"   # Absorbing; only reached by shutdown


class TerminationReason(str, Enum):
    EXPIRED = "expired"
    STRESS_PREEMPTED = "stress-preempted"
    BOREDOM_ESCALATED = "boredom-escalated"
    MANUAL_STOP = "manual-stop"
    SHUTDOWN = "shutdown"


class AdjustmentEvent(BaseModel):
    """One mid-session adaptation, in the order it happened."""

    timestamp: datetime
    reason: str                             # e.g., "stress-interrupt", "held-previous"
    detail: str = ""
    item_id: Optional[str] = None


class Session(BaseModel):
    """
    Created on the Scheduled -> Playing transition, archived on termination.
    Sub-sessions started by an adaptation keep the same Session.
    """

    id: str
    active_item: ContentItem
    slot: TimeSlot
    started_at: datetime
    item_started_at: datetime
    planned_duration_seconds: float = Field(ge=0)
    desired_intensity: float = Field(ge=0.0, le=1.0)
    calming_override: bool = False
    adjustment_log: List[AdjustmentEvent] = []
    ended_at: Optional[datetime] = None
    termination_reason: Optional[TerminationReason] = None

    @property
    def active(self) -> bool:
        return self.termination_reason is None

    def elapsed_seconds(self, now: datetime) -> float:
        """Seconds the current item has been playing."""
        return (now - self.item_started_at).total_seconds()


class OrchestratorSnapshot(BaseModel):
    """Immutable state published to subscribers after every decision-loop tick."""

    phase: SessionPhase
    session: Optional[Session] = None
    behavior: BehaviorState
    current_slot: Optional[TimeSlot] = None
    schedule_day: Optional[str] = None
    archived_sessions: int = 0
    consecutive_no_content: int = 0
    taken_at: datetime
