from __future__ import annotations

import logging
from typing import Iterable

from ..vibe.calculator import compute_vibe_score
from ..vibe.config import DEFAULT_POLICY, ScoringPolicy
from .models import Venue, VenueCreate, VenueUpdate
from .ranking import filter_venues, matches_query

logger = logging.getLogger(__name__)


class VenueStore:
    """In-memory venue index keyed by id.

    The store is the only place a ``Venue`` is built, so every stored record
    carries a vibe score computed from its current fields under ``policy``.
    """

    def __init__(
        self,
        venues: Iterable[VenueCreate] = (),
        policy: ScoringPolicy = DEFAULT_POLICY,
    ) -> None:
        self.policy = policy
        self._venues: dict[str, Venue] = {}
        for venue in venues:
            self.upsert(venue)

    def __len__(self) -> int:
        return len(self._venues)

    def __contains__(self, venue_id: str) -> bool:
        return venue_id in self._venues

    def score(self, data: VenueCreate) -> int:
        return compute_vibe_score(
            data.rating,
            data.review_count,
            data.price_level.value,
            data.tags,
            name=data.name,
            photo_count=data.photo_count,
            review_text=data.tip_text,
            policy=self.policy,
            rating_scale=data.rating_scale,
        )

    def _build(self, data: VenueCreate) -> Venue:
        fields = data.model_dump(exclude={"vibe_score"})
        return Venue(**fields, vibe_score=self.score(data))

    def get_all(self) -> list[Venue]:
        """Snapshot of every venue, best vibe first, insertion order on ties."""
        return sorted(self._venues.values(), key=lambda v: -v.vibe_score)

    def get(self, venue_id: str) -> Venue | None:
        return self._venues.get(venue_id)

    def create(self, data: VenueCreate) -> Venue:
        if data.id in self._venues:
            raise KeyError(f"Venue {data.id!r} already exists")
        return self.upsert(data)

    def upsert(self, data: VenueCreate) -> Venue:
        venue = self._build(data)
        self._venues[venue.id] = venue
        return venue

    def update(self, venue_id: str, updates: VenueUpdate) -> Venue | None:
        existing = self._venues.get(venue_id)
        if existing is None:
            return None
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        merged = VenueCreate(**{**existing.model_dump(exclude={"vibe_score"}), **changes})
        venue = self._build(merged)
        self._venues[venue_id] = venue
        logger.info("Updated venue %s (vibe %d -> %d)", venue_id, existing.vibe_score, venue.vibe_score)
        return venue

    def remove(self, venue_id: str) -> bool:
        return self._venues.pop(venue_id, None) is not None

    def search(self, query: str) -> list[Venue]:
        """Venues whose name, neighborhood or any tag contains *query*."""
        return filter_venues(self.get_all(), matches_query(query))

    def neighborhoods(self) -> list[str]:
        return sorted({v.neighborhood for v in self._venues.values() if v.neighborhood})

    def tags(self) -> list[str]:
        return sorted({t for v in self._venues.values() for t in v.tags})
