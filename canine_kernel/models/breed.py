"""Breed Profile — static reference data from the breed database collaborator."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BreedCategory(str, Enum):
    WORKING = "working"                 # Border Collie, German Shepherd
    COMPANION = "companion"             # Labrador, Golden Retriever
    TERRIER = "terrier"                 # Jack Russell, Yorkshire
    BRACHYCEPHALIC = "brachycephalic"   # Bulldog, Pug
    GIANT = "giant"                     # Great Dane, Mastiff
    SPORTING = "sporting"               # Pointer, Setter
    HERDING = "herding"                 # Australian Shepherd, Collie
    TOY = "toy"                         # Chihuahua, Pomeranian


class EnergyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SizeClass(str, Enum):
    TOY = "toy"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    GIANT = "giant"


class BreedProfile(BaseModel):
    """Loaded once, immutable for the process lifetime."""

    model_config = ConfigDict(frozen=True)

    name: str
    attention_span_minutes: float = Field(gt=0)
    energy_level: EnergyLevel = EnergyLevel.MEDIUM
    size_class: SizeClass = SizeClass.MEDIUM
    category: BreedCategory = BreedCategory.COMPANION
    stimulation_level: float = Field(ge=0.0, le=1.0, default=0.6)
