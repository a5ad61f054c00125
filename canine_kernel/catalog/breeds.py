"""
Breed Database — static breed reference data.

Lookups never fail: unknown breeds resolve to a generic companion profile.
"""

from typing import Dict, List, Optional

from canine_kernel.models.breed import BreedCategory, BreedProfile, EnergyLevel, SizeClass

DEFAULT_PROFILE = BreedProfile(
    name="Default",
    attention_span_minutes=20.0,
    energy_level=EnergyLevel.MEDIUM,
    size_class=SizeClass.MEDIUM,
    category=BreedCategory.COMPANION,
    stimulation_level=0.6,
)


def _profile(name, attention, energy, size, category, stimulation) -> BreedProfile:
    return BreedProfile(
        name=name,
        attention_span_minutes=attention,
        energy_level=energy,
        size_class=size,
        category=category,
        stimulation_level=stimulation,
    )


DEFAULT_BREEDS: Dict[str, BreedProfile] = {
    # Working
    "border collie": _profile("Border Collie", 25.0, EnergyLevel.HIGH, SizeClass.MEDIUM,
                              BreedCategory.WORKING, 0.9),
    "german shepherd": _profile("German Shepherd", 22.0, EnergyLevel.HIGH, SizeClass.LARGE,
                                BreedCategory.WORKING, 0.8),
    "siberian husky": _profile("Siberian Husky", 22.0, EnergyLevel.HIGH, SizeClass.LARGE,
                               BreedCategory.WORKING, 0.8),
    # Companion
    "labrador": _profile("Labrador", 20.0, EnergyLevel.MEDIUM, SizeClass.LARGE,
                         BreedCategory.COMPANION, 0.7),
    "golden retriever": _profile("Golden Retriever", 18.0, EnergyLevel.MEDIUM, SizeClass.LARGE,
                                 BreedCategory.COMPANION, 0.6),
    # Brachycephalic
    "bulldog": _profile("Bulldog", 15.0, EnergyLevel.LOW, SizeClass.MEDIUM,
                        BreedCategory.BRACHYCEPHALIC, 0.4),
    "pug": _profile("Pug", 12.0, EnergyLevel.LOW, SizeClass.SMALL,
                    BreedCategory.BRACHYCEPHALIC, 0.3),
    # Terrier
    "jack russell terrier": _profile("Jack Russell Terrier", 10.0, EnergyLevel.HIGH,
                                     SizeClass.SMALL, BreedCategory.TERRIER, 0.85),
    "yorkshire terrier": _profile("Yorkshire Terrier", 12.0, EnergyLevel.MEDIUM,
                                  SizeClass.TOY, BreedCategory.TERRIER, 0.6),
    # Giant
    "great dane": _profile("Great Dane", 15.0, EnergyLevel.LOW, SizeClass.GIANT,
                           BreedCategory.GIANT, 0.4),
    "mastiff": _profile("Mastiff", 14.0, EnergyLevel.LOW, SizeClass.GIANT,
                        BreedCategory.GIANT, 0.35),
    # Sporting
    "pointer": _profile("Pointer", 20.0, EnergyLevel.HIGH, SizeClass.LARGE,
                        BreedCategory.SPORTING, 0.75),
    "irish setter": _profile("Irish Setter", 18.0, EnergyLevel.HIGH, SizeClass.LARGE,
                             BreedCategory.SPORTING, 0.7),
    # Herding
    "australian shepherd": _profile("Australian Shepherd", 24.0, EnergyLevel.HIGH,
                                    SizeClass.MEDIUM, BreedCategory.HERDING, 0.85),
    "collie": _profile("Collie", 22.0, EnergyLevel.MEDIUM, SizeClass.LARGE,
                       BreedCategory.HERDING, 0.7),
    # Toy
    "chihuahua": _profile("Chihuahua", 10.0, EnergyLevel.MEDIUM, SizeClass.TOY,
                          BreedCategory.TOY, 0.5),
    "pomeranian": _profile("Pomeranian", 11.0, EnergyLevel.MEDIUM, SizeClass.TOY,
                           BreedCategory.TOY, 0.5),
}


def normalize_breed_name(name: str) -> str:
    return " ".join(name.lower().split())


class BreedDatabase:
    """Read-only breed lookup, injected into the orchestrator."""

    def __init__(
        self,
        profiles: Optional[Dict[str, BreedProfile]] = None,
        default: BreedProfile = DEFAULT_PROFILE,
    ):
        source = DEFAULT_BREEDS if profiles is None else profiles
        self._profiles = {normalize_breed_name(k): v for k, v in source.items()}
        self.default = default

    def get_profile(self, breed_name: str) -> BreedProfile:
        """Profile for a breed, or the default companion profile when unknown."""
        return self._profiles.get(normalize_breed_name(breed_name), self.default)

    def knows(self, breed_name: str) -> bool:
        return normalize_breed_name(breed_name) in self._profiles

    def all_breeds(self) -> List[str]:
        return sorted(self._profiles)

    def breeds_by_category(self, category: BreedCategory) -> List[str]:
        return sorted(k for k, p in self._profiles.items() if p.category == category)

    def suggest(self, partial: str) -> List[str]:
        """Breed names that contain, or are contained in, the input."""
        needle = normalize_breed_name(partial)
        if not needle:
            return []
        return sorted(
            k for k in self._profiles
            if needle in k or k in needle
        )
