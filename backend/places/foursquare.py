from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..venues.models import Hours, HoursPeriod, Photo, ReviewExcerpt, VenueCreate
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig

logger = logging.getLogger(__name__)

SEARCH_FIELDS = (
    "fsq_id,name,location,geocodes,categories,rating,stats,price,"
    "photos,website,tel,hours,tastes,description"
)
DETAIL_FIELDS = SEARCH_FIELDS + ",tips"

_DAY_NAMES = {
    1: "Monday", 2: "Tuesday", 3: "Wednesday", 4: "Thursday",
    5: "Friday", 6: "Saturday", 7: "Sunday",
}

# Address fragments that identify a Hamilton neighborhood when the provider
# does not send one.
_NEIGHBORHOOD_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("james", "downtown"), "Downtown"),
    (("westdale",), "Westdale"),
    (("barton",), "Barton"),
    (("stinson",), "Stinson"),
    (("locke",), "Locke Street"),
]

_DERIVED_TAGS: list[tuple[str, str]] = [
    ("coffee", "Coffee"),
    ("café", "Café"),
    ("cafe", "Café"),
    ("espresso", "Espresso"),
    ("bar", "Bar"),
]


class FoursquareError(Exception):
    """Non-success response from the Foursquare API."""

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"Foursquare API error: {status_code} {message}".strip())
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Provider schema
# ---------------------------------------------------------------------------


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FsqPoint(_Lenient):
    latitude: float
    longitude: float


class FsqGeocodes(_Lenient):
    main: FsqPoint


class FsqLocation(_Lenient):
    address: str | None = None
    locality: str | None = None
    region: str | None = None
    postcode: str | None = None
    country: str | None = None
    formatted_address: str | None = None
    neighborhood: list[str] = Field(default_factory=list)


class FsqCategory(_Lenient):
    id: int | str | None = None
    name: str


class FsqPhoto(_Lenient):
    id: str
    created_at: str | None = None
    prefix: str
    suffix: str
    width: int = 0
    height: int = 0

    def url(self, size: str = "original") -> str:
        return f"{self.prefix}{size}{self.suffix}"


class FsqHoursRegular(_Lenient):
    day: int
    open: str
    close: str


class FsqHours(_Lenient):
    display: str | None = None
    is_local_holiday: bool = False
    open_now: bool | None = None
    regular: list[FsqHoursRegular] = Field(default_factory=list)


class FsqTip(_Lenient):
    text: str
    created_at: str = ""


class FsqStats(_Lenient):
    total_ratings: int | None = None
    total_photos: int | None = None
    total_tips: int | None = None


class FoursquarePlace(_Lenient):
    fsq_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    location: FsqLocation = Field(default_factory=FsqLocation)
    geocodes: FsqGeocodes
    categories: list[FsqCategory] = Field(default_factory=list)
    rating: float | None = None
    stats: FsqStats | None = None
    price: int | None = None
    photos: list[FsqPhoto] = Field(default_factory=list)
    website: str | None = None
    tel: str | None = None
    hours: FsqHours | None = None
    tips: list[FsqTip] = Field(default_factory=list)
    tastes: list[str] = Field(default_factory=list)
    description: str | None = None


def parse_places(results: list[dict[str, Any]]) -> list[FoursquarePlace]:
    """Validate raw search results, dropping records that do not fit the schema."""
    places: list[FoursquarePlace] = []
    for raw in results:
        try:
            places.append(FoursquarePlace.model_validate(raw))
        except ValidationError:
            logger.warning("Skipping malformed Foursquare record %s", raw.get("fsq_id"), exc_info=True)
    return places


# ---------------------------------------------------------------------------
# Mapping into venue records
# ---------------------------------------------------------------------------


def _format_address(location: FsqLocation) -> str:
    if location.formatted_address:
        return location.formatted_address
    parts = [location.address, location.locality, location.region]
    return ", ".join(p for p in parts if p)


def infer_neighborhood(address: str, location: FsqLocation | None = None, default: str = "Hamilton") -> str:
    if location is not None and location.neighborhood:
        return location.neighborhood[0]
    lowered = address.lower()
    for hints, name in _NEIGHBORHOOD_HINTS:
        if any(h in lowered for h in hints):
            return name
    if location is not None and location.locality:
        return location.locality
    return default


def _price_level(price: int | None) -> str:
    if price in (1, 2, 3, 4):
        return "$" * price
    return "$$"


def _tags(place: FoursquarePlace) -> list[str]:
    tags: list[str] = []
    for cat in place.categories:
        tags.append(cat.name)
        lowered = cat.name.lower()
        for needle, tag in _DERIVED_TAGS:
            if needle in lowered:
                tags.append(tag)
    tags.extend(t.title() for t in place.tastes)
    deduped = list(dict.fromkeys(t.strip() for t in tags if t.strip()))
    return deduped or ["Coffee"]


def _clock(hhmm: str) -> str:
    """``"0730"`` -> ``"7:30 AM"``; ``"+0200"`` (next day) keeps the clock time."""
    digits = hhmm.lstrip("+")
    if len(digits) != 4 or not digits.isdigit():
        return hhmm
    hour, minute = int(digits[:2]) % 24, int(digits[2:])
    meridiem = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {meridiem}"


def _opening_hours(hours: FsqHours | None) -> dict[str, str]:
    if hours is None:
        return {}
    opening: dict[str, str] = {}
    for period in hours.regular:
        day = _DAY_NAMES.get(period.day)
        if day is None:
            continue
        text = f"{_clock(period.open)} - {_clock(period.close)}"
        opening[day] = f"{opening[day]}, {text}" if day in opening else text
    if not opening and hours.display:
        opening["general"] = hours.display
    return opening


def to_venue_create(place: FoursquarePlace, config: PlacesConfig = DEFAULT_PLACES_CONFIG) -> VenueCreate:
    address = _format_address(place.location)
    neighborhood = infer_neighborhood(address, place.location, default=config.default_city)
    stats = place.stats or FsqStats()
    first_photo = place.photos[0] if place.photos else None
    tip_text = " ".join(t.text for t in place.tips) or None

    return VenueCreate(
        id=place.fsq_id,
        name=place.name,
        address=address,
        neighborhood=neighborhood,
        latitude=place.geocodes.main.latitude,
        longitude=place.geocodes.main.longitude,
        rating=place.rating or 0.0,
        rating_scale=10,
        review_count=stats.total_ratings or 0,
        price_level=_price_level(place.price),
        tags=_tags(place),
        image_url=first_photo.url("300x300") if first_photo else None,
        phone=place.tel,
        website=place.website,
        opening_hours=_opening_hours(place.hours),
        description=place.description or f"Coffee shop in {neighborhood}, {config.default_city}",
        photo_count=stats.total_photos or len(place.photos),
        tip_text=tip_text,
    )


def to_detail_extras(place: FoursquarePlace) -> dict[str, Any]:
    """Photos, review excerpts and structured hours for the detail view."""
    hours = None
    if place.hours is not None:
        hours = Hours(
            display=place.hours.display,
            open_now=place.hours.open_now,
            periods=[
                HoursPeriod(day=p.day, open=p.open, close=p.close)
                for p in place.hours.regular
                if 1 <= p.day <= 7
            ],
        )
    return {
        "photos": [
            Photo(id=p.id, url=p.url(), width=p.width, height=p.height)
            for p in place.photos
        ],
        "reviews": [ReviewExcerpt(text=t.text, date=t.created_at) for t in place.tips],
        "hours": hours,
    }


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


class FoursquareClient:
    """Thin synchronous client for the Foursquare Places API."""

    def __init__(
        self,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.config = config
        self._http = http_client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
        )

    @property
    def enabled(self) -> bool:
        return self.config.is_active

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> FoursquareClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        response = self._http.get(
            path,
            params=params or {},
            headers={
                "Accept": "application/json",
                "Authorization": self.config.api_key,
            },
        )
        if response.status_code >= 400:
            raise FoursquareError(response.status_code, response.reason_phrase)
        return response.json()

    def _search(self, params: dict[str, Any]) -> list[FoursquarePlace]:
        data = self._request("/places/search", params)
        places = parse_places(data.get("results", []))
        logger.info("Fetched %d places from Foursquare", len(places))
        return places

    def _search_params(
        self, latitude: float, longitude: float, radius: int | None, limit: int | None,
    ) -> dict[str, Any]:
        return {
            "ll": f"{latitude},{longitude}",
            "radius": str(radius or self.config.radius_m),
            "limit": str(min(limit or self.config.limit, self.config.max_limit)),
            "fields": SEARCH_FIELDS,
        }

    def search_coffee_shops(
        self,
        latitude: float | None = None,
        longitude: float | None = None,
        radius: int | None = None,
        limit: int | None = None,
    ) -> list[FoursquarePlace]:
        params = self._search_params(
            self.config.default_latitude if latitude is None else latitude,
            self.config.default_longitude if longitude is None else longitude,
            radius,
            limit,
        )
        params["categories"] = self.config.coffee_category_id
        return self._search(params)

    def search_by_query(
        self,
        query: str,
        latitude: float | None = None,
        longitude: float | None = None,
        radius: int | None = None,
        limit: int | None = None,
    ) -> list[FoursquarePlace]:
        params = self._search_params(
            self.config.default_latitude if latitude is None else latitude,
            self.config.default_longitude if longitude is None else longitude,
            radius,
            limit,
        )
        params["query"] = query
        return self._search(params)

    def get_place(self, fsq_id: str) -> FoursquarePlace:
        data = self._request(f"/places/{fsq_id}", {"fields": DETAIL_FIELDS})
        return FoursquarePlace.model_validate(data)
