"""Fusion and orchestrator configuration. Fixed for the lifetime of an orchestrator."""

from croniter import croniter
from pydantic import BaseModel, ConfigDict, Field, field_validator

from canine_kernel.models.content import ContentCategory


class FusionConfig(BaseModel):
    """Weights and thresholds for the Behavior Fusion Engine."""

    model_config = ConfigDict(frozen=True)

    min_confidence: float = Field(ge=0.0, le=1.0, default=0.3)
    half_life_observations: float = Field(gt=0, default=10.0)
    stress_dead_band: float = Field(ge=0.0, default=0.08)
    engagement_dead_band: float = Field(ge=0.0, default=0.08)
    confirm_observations: int = Field(ge=1, default=3)
    stable_window: int = Field(ge=1, default=10)
    stale_after_seconds: float = Field(gt=0, default=10.0)

    # Stress contributions
    tail_stress_weight: float = 0.4
    ear_stress_weight: float = 0.35
    body_stress_weight: float = 0.25

    # Engagement contributions
    wag_engagement_weight: float = 0.6
    ear_engagement_weight: float = 0.4


class OrchestratorConfig(BaseModel):
    """Configuration for the Session Orchestrator decision loop."""

    model_config = ConfigDict(frozen=True)

    tick_interval_seconds: float = Field(gt=0, default=15.0)
    critical_stress_threshold: float = Field(ge=0.0, le=1.0, default=0.85)
    boredom_threshold: float = Field(ge=0.0, le=1.0, default=0.2)
    min_play_seconds_before_escalation: float = Field(ge=0, default=60.0)
    calming_category: ContentCategory = ContentCategory.RELAXATION
    rebuild_cron: str = "0 6 * * *"         # Daily schedule boundary
    observation_queue_size: int = Field(ge=1, default=64)
    archive_size: int = Field(ge=1, default=200)

    @field_validator("rebuild_cron")
    @classmethod
    def _check_rebuild_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            raise ValueError(f"rebuild_cron is not a valid cron expression: {value!r}")
        return value
