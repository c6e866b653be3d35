import httpx
import pytest

from backend.places.config import PlacesConfig
from backend.places.foursquare import (
    FoursquareClient,
    FoursquareError,
    FoursquarePlace,
    infer_neighborhood,
    parse_places,
    to_detail_extras,
    to_venue_create,
)

CONFIG = PlacesConfig(api_key="fsq-test-key", base_url="https://api.foursquare.test/v3")

PLACE = {
    "fsq_id": "4b5f8e2af964a520",
    "name": "Detour Coffee",
    "location": {
        "address": "41 King William St",
        "locality": "Hamilton",
        "region": "ON",
        "formatted_address": "41 King William St, Hamilton ON L8R 1A2",
    },
    "geocodes": {"main": {"latitude": 43.2571, "longitude": -79.8665}},
    "categories": [{"id": 13035, "name": "Coffee Shop"}],
    "rating": 9.1,
    "stats": {"total_ratings": 240, "total_photos": 31, "total_tips": 2},
    "price": 1,
    "photos": [
        {"id": "p1", "created_at": "2023-01-01", "prefix": "https://fastly.4sqi.net/img/general/", "suffix": "/a.jpg", "width": 800, "height": 600},
        {"id": "p2", "created_at": "2023-02-01", "prefix": "https://fastly.4sqi.net/img/general/", "suffix": "/b.jpg", "width": 640, "height": 480},
    ],
    "website": "https://detourcoffee.example",
    "tel": "(905) 555-0101",
    "hours": {
        "display": "Mon-Fri 7:00 AM-6:00 PM",
        "is_local_holiday": False,
        "open_now": True,
        "regular": [
            {"day": 1, "open": "0700", "close": "1800"},
            {"day": 5, "open": "0730", "close": "+0100"},
        ],
    },
    "tips": [
        {"text": "Great pour over, lively on weekends", "created_at": "2023-05-02"},
    ],
    "tastes": ["pour over", "cold brew"],
}


def _client(handler) -> FoursquareClient:
    http = httpx.Client(transport=httpx.MockTransport(handler), base_url=CONFIG.base_url)
    return FoursquareClient(CONFIG, http_client=http)


def test_search_coffee_shops_sends_expected_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"results": [PLACE]})

    places = _client(handler).search_coffee_shops(43.25, -79.87, limit=500)

    assert seen["path"] == "/v3/places/search"
    assert seen["auth"] == "fsq-test-key"
    assert seen["params"]["ll"] == "43.25,-79.87"
    assert seen["params"]["limit"] == "50"
    assert seen["params"]["categories"] == CONFIG.coffee_category_id
    assert [p.fsq_id for p in places] == ["4b5f8e2af964a520"]


def test_search_by_query_uses_defaults():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(dict(request.url.params))
        return httpx.Response(200, json={"results": []})

    assert _client(handler).search_by_query("matcha") == []
    assert seen["query"] == "matcha"
    assert seen["ll"] == f"{CONFIG.default_latitude},{CONFIG.default_longitude}"
    assert "categories" not in seen


def test_error_status_raises():
    client = _client(lambda request: httpx.Response(401, json={"message": "bad key"}))
    with pytest.raises(FoursquareError) as exc_info:
        client.search_coffee_shops()
    assert exc_info.value.status_code == 401


def test_get_place_requests_tips():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["fields"] = request.url.params["fields"]
        return httpx.Response(200, json=PLACE)

    place = _client(handler).get_place("4b5f8e2af964a520")
    assert seen["path"] == "/v3/places/4b5f8e2af964a520"
    assert "tips" in seen["fields"].split(",")
    assert place.tips[0].text.startswith("Great pour over")


def test_malformed_records_are_skipped():
    missing_geocodes = {"fsq_id": "x", "name": "Nowhere"}
    places = parse_places([missing_geocodes, PLACE])
    assert [p.fsq_id for p in places] == ["4b5f8e2af964a520"]


def test_to_venue_create_maps_fields():
    venue = to_venue_create(FoursquarePlace.model_validate(PLACE), CONFIG)
    assert venue.id == "4b5f8e2af964a520"
    assert venue.address == "41 King William St, Hamilton ON L8R 1A2"
    assert venue.latitude == 43.2571
    assert venue.rating == 9.1
    assert venue.rating_scale == 10
    assert venue.review_count == 240
    assert venue.price_level.value == "$"
    assert venue.tags == ["Coffee Shop", "Coffee", "Pour Over", "Cold Brew"]
    assert venue.image_url == "https://fastly.4sqi.net/img/general/300x300/a.jpg"
    assert venue.photo_count == 31
    assert venue.phone == "(905) 555-0101"
    assert venue.opening_hours == {
        "Monday": "7:00 AM - 6:00 PM",
        "Friday": "7:30 AM - 1:00 AM",
    }
    assert "lively" in venue.tip_text


def test_to_venue_create_defaults():
    bare = FoursquarePlace.model_validate({
        "fsq_id": "y",
        "name": "Mystery Beans",
        "location": {"address": "10 Locke St S"},
        "geocodes": {"main": {"latitude": 43.25, "longitude": -79.88}},
    })
    venue = to_venue_create(bare, CONFIG)
    assert venue.price_level.value == "$$"
    assert venue.tags == ["Coffee"]
    assert venue.rating == 0.0
    assert venue.review_count == 0
    assert venue.image_url is None
    assert venue.neighborhood == "Locke Street"
    assert venue.opening_hours == {}


def test_infer_neighborhood_prefers_provider_value():
    place = FoursquarePlace.model_validate({
        **PLACE, "location": {**PLACE["location"], "neighborhood": ["Corktown"]},
    })
    assert infer_neighborhood("1 James St", place.location) == "Corktown"
    assert infer_neighborhood("1 James St N") == "Downtown"
    assert infer_neighborhood("1 Main St", default="Dundas") == "Dundas"


def test_detail_extras():
    extras = to_detail_extras(FoursquarePlace.model_validate(PLACE))
    assert [p.url for p in extras["photos"]] == [
        "https://fastly.4sqi.net/img/general/original/a.jpg",
        "https://fastly.4sqi.net/img/general/original/b.jpg",
    ]
    assert extras["photos"][0].width == 800
    assert extras["reviews"][0].date == "2023-05-02"
    assert extras["hours"].open_now is True
    assert [(p.day, p.open, p.close) for p in extras["hours"].periods] == [
        (1, "0700", "1800"), (5, "0730", "+0100"),
    ]


def test_client_disabled_without_key():
    assert not FoursquareClient(PlacesConfig(api_key="")).enabled
    assert FoursquareClient(CONFIG).enabled
