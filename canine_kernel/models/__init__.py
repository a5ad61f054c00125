"""Canine Kernel data models."""

from canine_kernel.models.behavior import (
    NEUTRAL_BEHAVIOR,
    BehaviorObservation,
    BehaviorState,
    EarSignal,
    TailSignal,
    Trend,
)
from canine_kernel.models.breed import (
    BreedCategory,
    BreedProfile,
    EnergyLevel,
    SizeClass,
)
from canine_kernel.models.config import FusionConfig, OrchestratorConfig
from canine_kernel.models.content import (
    ContentCategory,
    ContentItem,
    DirectiveType,
    PlaybackDirective,
)
from canine_kernel.models.rotation import RotationState
from canine_kernel.models.schedule import (
    Priority,
    RotationPolicy,
    Schedule,
    TimeSlot,
)
from canine_kernel.models.session import (
    AdjustmentEvent,
    OrchestratorSnapshot,
    Session,
    SessionPhase,
    TerminationReason,
)

__all__ = [
    "AdjustmentEvent",
    "BehaviorObservation",
    "BehaviorState",
    "BreedCategory",
    "BreedProfile",
    "ContentCategory",
    "ContentItem",
    "DirectiveType",
    "EarSignal",
    "EnergyLevel",
    "FusionConfig",
    "NEUTRAL_BEHAVIOR",
    "OrchestratorConfig",
    "OrchestratorSnapshot",
    "PlaybackDirective",
    "Priority",
    "RotationPolicy",
    "RotationState",
    "Schedule",
    "Session",
    "SessionPhase",
    "SizeClass",
    "TailSignal",
    "TerminationReason",
    "TimeSlot",
    "Trend",
]
