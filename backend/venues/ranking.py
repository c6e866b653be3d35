"""
Ranking and filtering over venue snapshots.

Responsibilities:
- Sort venues by vibe score, price tier or distance from a reference point.
- Provide composable filter predicates (search, tag keywords, open now).
- Tag the top vibe scores for distinguished presentation.

Nothing here mutates the venues it is given; every function returns a new
list. Ties are broken by input position, so ranking an already ranked list
with the same mode returns it unchanged.
"""
from __future__ import annotations

import math
import re
from datetime import datetime, time as dtime
from typing import Callable, Iterable, Sequence

import numpy as np

from ..vibe.calculator import score_label, score_tier
from .models import PRICE_ORDER, SortMode, Venue, VenueOut

EARTH_RADIUS_KM = 6371.0
TOP_PICK_COUNT = 3

Coordinate = tuple[float, float]
Predicate = Callable[[Venue], bool]


# ---------------------------------------------------------------------------
# Distance
# ---------------------------------------------------------------------------


def haversine_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two (lat, lng) pairs in kilometres."""
    lat1, lng1 = map(math.radians, a)
    lat2, lng2 = map(math.radians, b)
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(h)))


def distances_km(reference: Coordinate, venues: Sequence[Venue]) -> np.ndarray:
    """Vectorised haversine from *reference* to every venue."""
    if not venues:
        return np.zeros(0)
    lat1, lng1 = np.radians(reference[0]), np.radians(reference[1])
    lats = np.radians(np.array([v.latitude for v in venues], dtype=float))
    lngs = np.radians(np.array([v.longitude for v in venues], dtype=float))
    h = (
        np.sin((lats - lat1) / 2) ** 2
        + np.cos(lat1) * np.cos(lats) * np.sin((lngs - lng1) / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.minimum(1.0, np.sqrt(h)))


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


def _price_rank(price_level: str) -> int:
    try:
        return PRICE_ORDER.index(price_level)
    except ValueError:
        return len(PRICE_ORDER)


def rank(
    venues: Iterable[Venue],
    mode: SortMode | str = SortMode.vibe,
    reference: Coordinate | None = None,
) -> list[Venue]:
    """Return *venues* ordered for *mode*.

    Distance mode without a *reference* keeps the input order.
    """
    items = list(venues)
    mode = SortMode(mode)

    if mode is SortMode.vibe:
        keys = [-v.vibe_score for v in items]
    elif mode is SortMode.price:
        keys = [_price_rank(v.price_level.value) for v in items]
    elif reference is not None:
        keys = distances_km(reference, items).tolist()
    else:
        return items

    order = sorted(range(len(items)), key=lambda i: (keys[i], i))
    return [items[i] for i in order]


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def filter_venues(venues: Iterable[Venue], predicate: Predicate | None) -> list[Venue]:
    if predicate is None:
        return list(venues)
    return [v for v in venues if predicate(v)]


def matches_query(query: str) -> Predicate:
    """Case-insensitive substring search over name, neighborhood and tags."""
    q = (query or "").strip().lower()

    def _match(venue: Venue) -> bool:
        if not q:
            return True
        return (
            q in venue.name.lower()
            or q in venue.neighborhood.lower()
            or any(q in tag.lower() for tag in venue.tags)
        )

    return _match


def has_tag_containing(*substrings: str) -> Predicate:
    needles = [s.lower() for s in substrings]

    def _match(venue: Venue) -> bool:
        return any(n in tag.lower() for tag in venue.tags for n in needles)

    return _match


def all_of(*predicates: Predicate | None) -> Predicate:
    active = [p for p in predicates if p is not None]

    def _match(venue: Venue) -> bool:
        return all(p(venue) for p in active)

    return _match


# ---------------------------------------------------------------------------
# Opening hours
# ---------------------------------------------------------------------------

_DAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_RANGE_RE = re.compile(
    r"(\d{1,2})(?::(\d{2}))?\s*([ap]m)\s*[-–]\s*(\d{1,2})(?::(\d{2}))?\s*([ap]m)",
    re.IGNORECASE,
)


def _to_time(hour: str, minute: str | None, meridiem: str) -> dtime:
    h = int(hour) % 12
    if meridiem.lower() == "pm":
        h += 12
    return dtime(h, int(minute or 0))


def parse_hours_range(text: str) -> tuple[dtime, dtime] | None:
    """Parse ``"7:00 AM - 8:00 PM"`` into (open, close); None if unparsable."""
    match = _RANGE_RE.search(text or "")
    if not match:
        return None
    oh, om, omer, ch, cm, cmer = match.groups()
    return _to_time(oh, om, omer), _to_time(ch, cm, cmer)


def _hours_for(venue: Venue, day_index: int) -> tuple[dtime, dtime] | None:
    wanted = _DAYS[day_index]
    for day, text in venue.opening_hours.items():
        if day.strip().lower() == wanted:
            return parse_hours_range(text)
    return None


def is_open_at(venue: Venue, when: datetime) -> bool:
    """Whether *venue*'s weekly hours cover *when*.

    Ranges that close at or before they open run past midnight. Venues
    without parsable hours count as closed.
    """
    now = when.time()
    today = _hours_for(venue, when.weekday())
    if today is not None:
        opens, closes = today
        if opens < closes and opens <= now < closes:
            return True
        if closes <= opens and now >= opens:
            return True
    yesterday = _hours_for(venue, (when.weekday() - 1) % 7)
    if yesterday is not None:
        opens, closes = yesterday
        if closes <= opens and now < closes:
            return True
    return False


def is_open_now(when: datetime | None = None) -> Predicate:
    moment = when or datetime.now()

    def _match(venue: Venue) -> bool:
        return is_open_at(venue, moment)

    return _match


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

CATEGORY_FILTERS: dict[str, tuple[str, ...] | None] = {
    "All": None,
    "Open Now": None,
    "Study Spots": ("study", "quiet", "wifi"),
    "Outdoor Seating": ("outdoor", "patio"),
}


def category_predicate(category: str | None, when: datetime | None = None) -> Predicate | None:
    """Predicate for a named category; None means no filtering.

    Raises ``KeyError`` for unknown categories.
    """
    if not category or category == "All":
        return None
    if category not in CATEGORY_FILTERS:
        raise KeyError(category)
    if category == "Open Now":
        return is_open_now(when)
    return has_tag_containing(*CATEGORY_FILTERS[category])


# ---------------------------------------------------------------------------
# Top picks & presentation
# ---------------------------------------------------------------------------


def top_pick_ids(venues: Iterable[Venue], n: int = TOP_PICK_COUNT) -> set[str]:
    """Ids of the *n* highest vibe scores, whatever order *venues* are in.

    Equal scores are broken by id so the picks never depend on input order.
    """
    return {v.id for v in sorted(venues, key=lambda v: (-v.vibe_score, v.id))[:n]}


def annotate(
    venues: Iterable[Venue],
    top_ids: set[str] | None = None,
    reference: Coordinate | None = None,
) -> list[VenueOut]:
    items = list(venues)
    top_ids = top_ids if top_ids is not None else top_pick_ids(items)
    distances = distances_km(reference, items).tolist() if reference is not None else None

    out: list[VenueOut] = []
    for i, venue in enumerate(items):
        is_top = venue.id in top_ids
        out.append(VenueOut(
            **venue.model_dump(),
            vibe_label=score_label(venue.vibe_score),
            marker_tier="top" if is_top else score_tier(venue.vibe_score),
            is_top_pick=is_top,
            distance_km=round(distances[i], 2) if distances is not None else None,
        ))
    return out
