"""
Content Selector — picks the next item for the current slot and behavior.

Scoring, per candidate:
    base (1.0 same category as the slot, 0.0 for an adjacency fallback)
  - |candidate.intensity - desired_intensity|
  - variety_level * rotation penalty
  + 0.15 breed bonus when the item was made for the active breed

Ties are broken by least-recently-played, then by id. The selector never
retries; an empty pool raises NoEligibleContentError for the caller to handle.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from canine_kernel.errors import NoEligibleContentError
from canine_kernel.models.behavior import BehaviorState
from canine_kernel.models.breed import BreedProfile
from canine_kernel.models.content import ContentCategory, ContentItem
from canine_kernel.models.schedule import TimeSlot
from canine_kernel.rotation.tracker import RotationTracker

STRESS_WEIGHT = 0.5
ENGAGEMENT_WEIGHT = 0.3
BREED_BONUS = 0.15
SCORE_PRECISION = 9

# Nearest categories, in order of preference, used when a category has no content
CATEGORY_ADJACENCY: Dict[ContentCategory, List[ContentCategory]] = {
    ContentCategory.RELAXATION: [ContentCategory.MAINTENANCE, ContentCategory.ENGAGEMENT],
    ContentCategory.MAINTENANCE: [ContentCategory.RELAXATION],
    ContentCategory.ENGAGEMENT: [ContentCategory.PLAY, ContentCategory.TRAINING,
                                 ContentCategory.STIMULATION],
    ContentCategory.STIMULATION: [ContentCategory.ENGAGEMENT, ContentCategory.PLAY],
    ContentCategory.PLAY: [ContentCategory.ENGAGEMENT, ContentCategory.STIMULATION],
    ContentCategory.TRAINING: [ContentCategory.ENGAGEMENT, ContentCategory.STIMULATION],
}

# Forced calming never falls back outside these
REST_CATEGORIES = (ContentCategory.RELAXATION, ContentCategory.MAINTENANCE)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class ContentSelector:

    def __init__(
        self,
        rotation: RotationTracker,
        profile: Optional[BreedProfile] = None,
    ):
        self.rotation = rotation
        self.profile = profile

    def desired_intensity(self, slot: TimeSlot, state: BehaviorState) -> float:
        """Stressed dogs get gentler content; engaged dogs a little more."""
        return _clamp(
            slot.intensity
            - STRESS_WEIGHT * state.stress_level
            + ENGAGEMENT_WEIGHT * state.engagement_level
        )

    def eligible_pool(
        self,
        category: ContentCategory,
        candidates: List[ContentItem],
        restrict_to: Optional[Tuple[ContentCategory, ...]] = None,
    ) -> Tuple[ContentCategory, List[ContentItem]]:
        """
        Hard category filter, falling back along the adjacency table only
        when the slot's own category has no candidates at all. Fallbacks
        outside `restrict_to` are skipped.
        """
        tried = [category.value]
        pool = [c for c in candidates if c.category == category]
        if pool:
            return category, pool

        for fallback in CATEGORY_ADJACENCY.get(category, []):
            if restrict_to is not None and fallback not in restrict_to:
                continue
            tried.append(fallback.value)
            pool = [c for c in candidates if c.category == fallback]
            if pool:
                return fallback, pool

        raise NoEligibleContentError(category.value, tried)

    def _matches_profile(self, item: ContentItem) -> bool:
        if not item.breed_specific or self.profile is None:
            return False
        if not item.breed_categories:
            return True
        return self.profile.category in item.breed_categories

    def score(
        self,
        item: ContentItem,
        slot_category: ContentCategory,
        desired: float,
        now: Optional[datetime] = None,
    ) -> float:
        base = 1.0 if item.category == slot_category else 0.0
        value = (
            base
            - abs(item.intensity - desired)
            - self.rotation.weighted_penalty(item.id, now)
        )
        if self._matches_profile(item):
            value += BREED_BONUS
        return round(value, SCORE_PRECISION)

    def _sort_key(self, item: ContentItem, score: float) -> tuple:
        played = self.rotation.last_played(item.id)
        if played is None:
            recency = (0, 0.0)
        else:
            recency = (1, played.timestamp())
        return (-score, recency, item.id)

    def ranked(
        self,
        slot: TimeSlot,
        state: BehaviorState,
        candidates: List[ContentItem],
        category_override: Optional[ContentCategory] = None,
        now: Optional[datetime] = None,
    ) -> List[Tuple[ContentItem, float]]:
        """All eligible candidates with their scores, best first."""
        category = category_override or slot.category
        restrict_to = REST_CATEGORIES if category_override is not None else None
        _, pool = self.eligible_pool(category, candidates, restrict_to)
        desired = self.desired_intensity(slot, state)

        scored = [(item, self.score(item, category, desired, now)) for item in pool]
        scored.sort(key=lambda pair: self._sort_key(pair[0], pair[1]))
        return scored

    def select_next(
        self,
        slot: TimeSlot,
        state: BehaviorState,
        candidates: List[ContentItem],
        category_override: Optional[ContentCategory] = None,
        now: Optional[datetime] = None,
    ) -> ContentItem:
        """
        Choose the best candidate for `slot`. `category_override` replaces
        the slot's category (used to force calming content under stress) and
        limits the adjacency fallback to rest categories.
        """
        return self.ranked(slot, state, candidates, category_override, now)[0][0]
