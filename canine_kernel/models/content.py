"""Content Item and Playback Directive — what the kernel chooses and emits."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from canine_kernel.models.breed import BreedCategory


class ContentCategory(str, Enum):
    RELAXATION = "relaxation"
    ENGAGEMENT = "engagement"
    STIMULATION = "stimulation"
    PLAY = "play"
    TRAINING = "training"
    MAINTENANCE = "maintenance"


class ContentItem(BaseModel):
    """A catalog entry supplied by the content library. Immutable."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    category: ContentCategory
    intensity: float = Field(ge=0.0, le=1.0)
    min_duration_seconds: float = Field(gt=0)
    max_duration_seconds: float = Field(gt=0)
    breed_specific: bool = False
    breed_categories: List[BreedCategory] = []   # Which breed groups the item was produced for

    @model_validator(mode="after")
    def _check_duration_bounds(self) -> "ContentItem":
        if self.max_duration_seconds < self.min_duration_seconds:
            raise ValueError("max_duration_seconds must be >= min_duration_seconds")
        return self


class DirectiveType(str, Enum):
    PLAY = "play"
    NO_CONTENT = "no_content"


class PlaybackDirective(BaseModel):
    """Sent to the renderer/audio collaborators on every Playing transition."""

    model_config = ConfigDict(frozen=True)

    directive_type: DirectiveType = DirectiveType.PLAY
    content_item_id: Optional[str] = None     # None for NO_CONTENT
    category: ContentCategory
    intensity: float = Field(ge=0.0, le=1.0)
    planned_duration_seconds: float = Field(ge=0)
    issued_at: datetime
    session_id: Optional[str] = None
