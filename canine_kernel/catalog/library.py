"""
Content Library — the catalog of playable items, queryable by category.

The catalog may be refreshed wholesale by the content collaborator; entries
themselves are immutable.
"""

from typing import Dict, Iterable, List, Optional

from canine_kernel.models.breed import BreedCategory
from canine_kernel.models.content import ContentCategory, ContentItem


def _item(item_id, title, category, intensity, min_s, max_s, breed_categories=()) -> ContentItem:
    return ContentItem(
        id=item_id,
        title=title,
        category=category,
        intensity=intensity,
        min_duration_seconds=min_s,
        max_duration_seconds=max_s,
        breed_specific=bool(breed_categories),
        breed_categories=list(breed_categories),
    )


DEFAULT_CATALOG: List[ContentItem] = [
    _item("calm_blue_meadow", "Blue-Yellow Meadow", ContentCategory.RELAXATION, 0.1, 600, 1800),
    _item("calm_ocean_waves", "Soft Ocean Waves", ContentCategory.RELAXATION, 0.2, 600, 1500),
    _item("calm_binaural_rest", "Binaural Rest", ContentCategory.RELAXATION, 0.15, 900, 1800,
          [BreedCategory.BRACHYCEPHALIC, BreedCategory.TOY]),
    _item("sleep_dimming_lights", "Dimming Lights", ContentCategory.MAINTENANCE, 0.05, 1200, 3600),
    _item("sleep_lullaby", "Lullaby Sounds", ContentCategory.MAINTENANCE, 0.1, 1200, 3600),
    _item("engage_squirrels", "Backyard Squirrels", ContentCategory.ENGAGEMENT, 0.6, 300, 900),
    _item("engage_birds", "Garden Birds", ContentCategory.ENGAGEMENT, 0.5, 300, 900),
    _item("stim_puzzle_chase", "Puzzle Chase", ContentCategory.STIMULATION, 0.9, 300, 600,
          [BreedCategory.WORKING, BreedCategory.HERDING]),
    _item("stim_sheep_run", "Sheep on the Run", ContentCategory.STIMULATION, 0.85, 300, 600,
          [BreedCategory.HERDING]),
    _item("stim_agility_course", "Agility Course", ContentCategory.STIMULATION, 0.75, 300, 720),
    _item("play_colorful_toys", "Colorful Toys", ContentCategory.PLAY, 0.6, 300, 900),
    _item("play_ball_fetch", "Ball Fetch", ContentCategory.PLAY, 0.7, 300, 900,
          [BreedCategory.SPORTING, BreedCategory.TERRIER]),
    _item("train_sit_stay", "Sit and Stay Cues", ContentCategory.TRAINING, 0.4, 300, 600),
    _item("train_recall", "Recall Practice", ContentCategory.TRAINING, 0.5, 300, 600),
]


class ContentLibrary:
    """In-memory, read-only view of the content catalog."""

    def __init__(self, items: Optional[Iterable[ContentItem]] = None):
        self._items: Dict[str, ContentItem] = {}
        self.refresh(DEFAULT_CATALOG if items is None else items)

    def refresh(self, items: Iterable[ContentItem]) -> None:
        """Replace the whole catalog."""
        self._items = {item.id: item for item in items}

    def items(self) -> List[ContentItem]:
        return sorted(self._items.values(), key=lambda i: i.id)

    def get(self, item_id: str) -> Optional[ContentItem]:
        return self._items.get(item_id)

    def by_category(self, category: ContentCategory) -> List[ContentItem]:
        return [i for i in self.items() if i.category == category]

    def categories(self) -> Dict[str, int]:
        """Item count per category."""
        counts: Dict[str, int] = {}
        for item in self._items.values():
            counts[item.category.value] = counts.get(item.category.value, 0) + 1
        return counts
