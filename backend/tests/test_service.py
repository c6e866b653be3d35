from unittest.mock import MagicMock

import httpx

from backend.places.config import PlacesConfig
from backend.places.foursquare import FoursquareError, FoursquarePlace
from backend.places.service import VenueService
from backend.venues.cache import TTLCache
from backend.venues.models import VenueCreate, VenueUpdate
from backend.venues.seed import load_seed_venues
from backend.venues.store import VenueStore
from backend.vibe.config import COFFEE_CLASSIC

CONFIG = PlacesConfig(api_key="fsq-test-key", cache_ttl=3600)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _place(fsq_id: str, name: str, rating: float = 8.0) -> FoursquarePlace:
    return FoursquarePlace.model_validate({
        "fsq_id": fsq_id,
        "name": name,
        "location": {"formatted_address": "1 King St W, Hamilton ON"},
        "geocodes": {"main": {"latitude": 43.256, "longitude": -79.871}},
        "categories": [{"name": "Coffee Shop"}],
        "rating": rating,
        "stats": {"total_ratings": 50},
        "price": 2,
        "photos": [{"id": "p", "prefix": "https://img/", "suffix": "/x.jpg", "width": 10, "height": 10}],
        "tips": [{"text": "Cozy spot", "created_at": "2024-01-01"}],
    })


def _service(client=None, clock=None):
    clock = clock or FakeClock()
    if client is None:
        client = MagicMock()
        client.enabled = True
    store = VenueStore(load_seed_venues(), policy=COFFEE_CLASSIC)
    return VenueService(
        store,
        client=client,
        config=CONFIG,
        nearby_cache=TTLCache(ttl=CONFIG.cache_ttl, clock=clock),
        details_cache=TTLCache(ttl=None, clock=clock),
    ), client, clock


def test_nearby_fetches_scores_and_caches():
    service, client, _ = _service()
    client.search_coffee_shops.return_value = [_place("f1", "Low"), _place("f2", "High", rating=9.5)]

    first = service.nearby(43.2557, -79.8711)
    second = service.nearby(43.2561, -79.8749)  # same rounded cell

    assert [v.id for v in first] == ["f2", "f1"]
    assert second == first
    assert client.search_coffee_shops.call_count == 1
    assert service.store.get("f2").vibe_score == first[0].vibe_score
    assert service.nearby_cache.stats()["hits"] == 1


def test_nearby_refetches_after_ttl():
    service, client, clock = _service()
    client.search_coffee_shops.return_value = [_place("f1", "One")]
    service.nearby(43.2557, -79.8711)
    clock.now += 3600
    service.nearby(43.2557, -79.8711)
    assert client.search_coffee_shops.call_count == 2


def test_provider_error_falls_back_to_seed_data():
    service, client, _ = _service()
    client.search_coffee_shops.side_effect = FoursquareError(500, "boom")
    venues = service.nearby()
    assert [v.id for v in venues][:3] == ["cafe-3", "cafe-1", "cafe-5"]


def test_provider_error_falls_back_to_stale_cache():
    service, client, clock = _service()
    client.search_coffee_shops.return_value = [_place("f1", "One")]
    service.nearby(43.2557, -79.8711)

    clock.now += 7200
    client.search_coffee_shops.side_effect = httpx.ConnectError("offline")
    venues = service.nearby(43.2557, -79.8711)
    assert [v.id for v in venues] == ["f1"]


def test_empty_result_falls_back():
    service, client, _ = _service()
    client.search_coffee_shops.return_value = []
    venues = service.nearby()
    assert len(venues) == 6
    assert len(service.nearby_cache) == 0


def test_disabled_client_serves_store():
    client = MagicMock()
    client.enabled = False
    service, _, _ = _service(client=client)
    assert len(service.nearby(10.0, 10.0)) == 6
    client.search_coffee_shops.assert_not_called()


def test_search_uses_provider_then_caches():
    service, client, _ = _service()
    client.search_by_query.return_value = [_place("q1", "Matcha Bar")]
    assert [v.id for v in service.search("matcha")] == ["q1"]
    assert [v.id for v in service.search("Matcha ")] == ["q1"]
    assert client.search_by_query.call_count == 1


def test_search_falls_back_to_store():
    service, client, _ = _service()
    client.search_by_query.side_effect = FoursquareError(429, "slow down")
    assert [v.id for v in service.search("quiet")] == ["cafe-2"]


def test_details_are_cached_forever():
    service, client, clock = _service()
    client.get_place.return_value = _place("f9", "Detail Cafe")

    details = service.details("f9")
    clock.now += 10**7
    again = service.details("f9")

    assert client.get_place.call_count == 1
    assert again == details
    assert details.photos[0].url == "https://img/original/x.jpg"
    assert details.reviews[0].text == "Cozy spot"
    assert service.store.get("f9") is not None


def test_details_failure_uses_store_and_is_not_cached():
    service, client, _ = _service()
    client.get_place.side_effect = FoursquareError(404, "not found")

    details = service.details("cafe-1")
    assert details.id == "cafe-1"
    assert details.photos == []
    assert details.vibe_score == 84
    assert len(service.details_cache) == 0


def test_details_unknown_venue():
    service, client, _ = _service()
    client.get_place.side_effect = FoursquareError(404, "not found")
    assert service.details("nope") is None


def test_refresh_clears_nearby_cache():
    service, client, _ = _service()
    client.search_coffee_shops.return_value = [_place("f1", "One")]
    service.nearby()
    service.refresh()
    service.nearby()
    assert client.search_coffee_shops.call_count == 2


def test_cache_stats_shape():
    service, _, _ = _service()
    stats = service.cache_stats()
    assert stats["venues"] == 6
    assert stats["provider_enabled"] is True
    assert stats["details"]["ttl_seconds"] is None


def test_nearby_skips_places_that_fail_validation():
    service, client, _ = _service()
    client.search_coffee_shops.return_value = [_place("f1", "Fine"), _place("bad", "Broken", rating=12.0)]
    venues = service.nearby()
    assert [v.id for v in venues] == ["f1"]
    assert service.store.get("bad") is None


def test_injected_caches_are_used_even_when_empty():
    clock = FakeClock()
    nearby = TTLCache(ttl=10, clock=clock)
    details = TTLCache(ttl=None, clock=clock)
    client = MagicMock()
    client.enabled = True
    service = VenueService(
        VenueStore(load_seed_venues(), policy=COFFEE_CLASSIC),
        client=client,
        config=CONFIG,
        nearby_cache=nearby,
        details_cache=details,
    )
    assert service.nearby_cache is nearby
    assert service.details_cache is details


def test_cached_details_follow_store_updates():
    service, client, _ = _service()
    client.get_place.return_value = _place("f1", "Detail Cafe")
    before = service.details("f1")

    updated = service.update("f1", VenueUpdate(rating=2.0))
    after = service.details("f1")

    assert client.get_place.call_count == 1
    assert updated.vibe_score < before.vibe_score
    assert after.vibe_score == updated.vibe_score
    assert after.rating == 2.0
    assert after.reviews == before.reviews


def test_provider_venues_not_seen_within_ttl_are_evicted():
    service, client, clock = _service()
    client.search_coffee_shops.return_value = [_place("f1", "Old")]
    service.nearby(43.2557, -79.8711)
    assert "f1" in service.store

    clock.now += 3600
    client.search_coffee_shops.return_value = [_place("f2", "New")]
    service.nearby(43.2557, -79.8711)

    assert "f1" not in service.store
    assert "f2" in service.store
    assert "cafe-1" in service.store
    assert len(service.store) == 7


def test_edited_provider_venue_is_kept():
    service, client, clock = _service()
    client.search_coffee_shops.return_value = [_place("f1", "Keeper")]
    service.nearby()
    service.update("f1", VenueUpdate(tags=["Latte Art"]))

    clock.now += 3600
    client.search_coffee_shops.return_value = [_place("f2", "Other")]
    service.nearby()

    assert "f1" in service.store


def test_create_adds_curated_venue():
    service, _, _ = _service()
    venue = service.create(VenueCreate(id="mine", name="Mine", latitude=43.25, longitude=-79.87))
    assert service.store.get("mine") == venue
