from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from ..venues.cache import TTLCache, coordinate_key, make_key
from ..venues.models import Venue, VenueCreate, VenueDetails, VenueUpdate
from ..venues.seed import load_seed_venues
from ..venues.store import VenueStore
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .foursquare import (
    FoursquareClient,
    FoursquareError,
    to_detail_extras,
    to_venue_create,
)

logger = logging.getLogger(__name__)

PROVIDER_ERRORS = (FoursquareError, httpx.HTTPError, ValidationError, ValueError)


class VenueService:
    """Fetches venues from the provider, caches them, and falls back gracefully.

    Nearby lists are cached per rounded coordinate for ``config.cache_ttl``
    seconds. Detail views are cached with no expiry once fetched. When the
    provider fails or returns nothing, the last cached list for the same cell
    is served, then the store's own records (seed data).

    Venues learned from the provider are kept in the store only while they
    keep showing up: one not returned for ``config.cache_ttl`` seconds is
    evicted. Venues created or edited through the service are pinned.
    """

    def __init__(
        self,
        store: VenueStore,
        client: FoursquareClient | None = None,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        nearby_cache: TTLCache | None = None,
        details_cache: TTLCache | None = None,
    ) -> None:
        self.store = store
        self.config = config
        self.client = client or FoursquareClient(config)
        self.nearby_cache = nearby_cache if nearby_cache is not None else TTLCache(ttl=config.cache_ttl)
        self.details_cache = details_cache if details_cache is not None else TTLCache(ttl=None)
        self._provider_seen: dict[str, float] = {}

    def _fallback(self, key: str) -> list[Venue]:
        stale = self.nearby_cache.get_stale(key)
        if stale is not None:
            logger.info("Serving stale cached venues for %s", key)
            return stale
        return self.store.get_all()

    def _remember(self, data: VenueCreate) -> Venue:
        venue = self.store.upsert(data)
        self._provider_seen[venue.id] = self.nearby_cache.clock()
        return venue

    def _evict_unseen(self) -> None:
        ttl = self.nearby_cache.ttl
        if ttl is None:
            return
        now = self.nearby_cache.clock()
        expired = [vid for vid, seen in self._provider_seen.items() if now - seen >= ttl]
        for venue_id in expired:
            del self._provider_seen[venue_id]
            self.store.remove(venue_id)
            self.details_cache.invalidate(venue_id)
        if expired:
            logger.info("Evicted %d provider venues not seen for %ss", len(expired), ttl)

    def _ingest(self, places) -> list[Venue]:
        self._evict_unseen()
        venues: list[Venue] = []
        for place in places:
            try:
                venues.append(self._remember(to_venue_create(place, self.config)))
            except ValidationError:
                logger.warning("Skipping venue %s that failed validation", place.fsq_id, exc_info=True)
        venues.sort(key=lambda v: -v.vibe_score)
        return venues

    def nearby(self, latitude: float | None = None, longitude: float | None = None) -> list[Venue]:
        lat = self.config.default_latitude if latitude is None else latitude
        lng = self.config.default_longitude if longitude is None else longitude
        key = coordinate_key(lat, lng, self.config.coord_precision)

        cached = self.nearby_cache.get(key)
        if cached is not None:
            return cached

        if not self.client.enabled:
            return self._fallback(key)

        try:
            places = self.client.search_coffee_shops(lat, lng)
        except PROVIDER_ERRORS:
            logger.warning("Foursquare search failed, falling back to cached data", exc_info=True)
            return self._fallback(key)

        if not places:
            logger.warning("Foursquare returned no venues for %s", key)
            return self._fallback(key)

        venues = self._ingest(places)
        self.nearby_cache.set(key, venues)
        return venues

    def search(
        self, query: str, latitude: float | None = None, longitude: float | None = None,
    ) -> list[Venue]:
        """Provider-side text search; falls back to searching the store."""
        if not query.strip() or not self.client.enabled:
            return self.store.search(query)

        lat = self.config.default_latitude if latitude is None else latitude
        lng = self.config.default_longitude if longitude is None else longitude
        key = make_key({"q": query.strip().lower(), "cell": coordinate_key(lat, lng, self.config.coord_precision)})
        cached = self.nearby_cache.get(key)
        if cached is not None:
            return cached

        try:
            places = self.client.search_by_query(query, lat, lng)
        except PROVIDER_ERRORS:
            logger.warning("Foursquare query search failed, searching local venues", exc_info=True)
            return self.store.search(query)

        if not places:
            return self.store.search(query)

        venues = self._ingest(places)
        self.nearby_cache.set(key, venues)
        return venues

    def get(self, venue_id: str) -> Venue | None:
        return self.store.get(venue_id)

    def details(self, venue_id: str) -> VenueDetails | None:
        venue = self.store.get(venue_id)
        cached = self.details_cache.get(venue_id)
        if cached is not None:
            if venue is None:
                return cached
            # base fields come from the store so edits show through
            return VenueDetails(
                **venue.model_dump(), photos=cached.photos, reviews=cached.reviews, hours=cached.hours,
            )

        if self.client.enabled:
            try:
                place = self.client.get_place(venue_id)
                data = to_venue_create(place, self.config)
            except PROVIDER_ERRORS:
                logger.warning("Foursquare details failed for %s", venue_id, exc_info=True)
            else:
                pinned = venue is not None and venue_id not in self._provider_seen
                venue = self.store.upsert(data) if pinned else self._remember(data)
                details = VenueDetails(**venue.model_dump(), **to_detail_extras(place))
                self.details_cache.set(venue_id, details)
                return details

        if venue is None:
            return None
        return VenueDetails(**venue.model_dump())

    def create(self, data: VenueCreate) -> Venue:
        """Add a curated venue. Raises ``KeyError`` if the id is taken."""
        venue = self.store.create(data)
        self.details_cache.invalidate(venue.id)
        return venue

    def update(self, venue_id: str, updates: VenueUpdate) -> Venue | None:
        """Edit a venue and pin it so provider eviction leaves it alone."""
        venue = self.store.update(venue_id, updates)
        if venue is not None:
            self._provider_seen.pop(venue_id, None)
        return venue

    def refresh(self) -> None:
        """Drop cached lists so the next request goes back to the provider."""
        self.nearby_cache.clear()

    def cache_stats(self) -> dict:
        return {
            "nearby": self.nearby_cache.stats(),
            "details": self.details_cache.stats(),
            "venues": len(self.store),
            "provider_enabled": self.client.enabled,
        }


_service: VenueService | None = None


def get_venue_service() -> VenueService:
    """Return the process-wide service, seeding the store on first call."""
    global _service
    if _service is None:
        _service = VenueService(VenueStore(load_seed_venues()))
    return _service
