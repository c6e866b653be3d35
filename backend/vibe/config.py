"""
Scoring policies for the vibe score engine.

Every number the engine uses lives on a ``ScoringPolicy``. The engine never
branches on which policy is active, so a new weighting scheme is a new entry
in ``SCORING_POLICIES`` and nothing else.

* **coffee_classic** (default) – rating 50, reviews 20, price 15, coffee
  keywords 15.  ``4.6★ / 128 reviews / $$ / [Single Origin, Pour Over, WiFi]``
  scores 84.
* **coffee_rating_heavy** – rating 60, reviews 15, price 10, keywords 15.
* **bar_nightlife** – rating 45 (+5 for 9.0/10 and up), reviews 15, price 10,
  bar keywords 12, plus photo/tip social signals, name bonuses and a flat +10.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _frozen(mapping: dict[str, float]) -> Mapping[str, float]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True)
class ScoringPolicy:
    name: str

    # Rating
    rating_weight: float = 50.0
    exceptional_rating_threshold: float | None = None  # on a 10-point scale
    exceptional_rating_bonus: float = 0.0

    # Review count (saturating)
    review_weight: float = 20.0
    review_saturation: int = 200

    # Price tier lookup, peaks at "$$"
    price_points: Mapping[str, float] = field(
        default_factory=lambda: _frozen({"$": 10, "$$": 15, "$$$": 10, "$$$$": 5})
    )

    # Tag keywords
    keywords: tuple[str, ...] = ()
    keyword_points: float = 5.0
    keyword_cap: float = 15.0

    # Photo count
    photo_points: float = 0.0
    photo_cap: float = 0.0
    photo_bonus_threshold: int | None = None
    photo_bonus: float = 0.0

    # Review / tip text
    social_keywords: tuple[str, ...] = ()
    social_points: float = 0.0
    social_cap: float = 0.0
    social_phrase_bonuses: Mapping[str, float] = field(default_factory=lambda: _frozen({}))

    # Establishment name
    name_strong_keywords: tuple[str, ...] = ()
    name_strong_bonus: float = 0.0
    name_moderate_keywords: tuple[str, ...] = ()
    name_moderate_bonus: float = 0.0

    flat_boost: float = 0.0


COFFEE_KEYWORDS: tuple[str, ...] = (
    "Single Origin",
    "Pour Over",
    "Artisan Roasted",
    "Specialty Drinks",
    "Local Roaster",
    "Espresso Bar",
    "French Press",
    "Cold Brew",
    "Organic",
    "Fair Trade",
    "Third Wave",
)

BAR_KEYWORDS: tuple[str, ...] = (
    "Cocktail",
    "Craft Beer",
    "Live Music",
    "Rooftop",
    "Speakeasy",
    "Wine Bar",
    "Happy Hour",
    "DJ",
    "Dance",
    "Karaoke",
)

SOCIAL_KEYWORDS: tuple[str, ...] = (
    "lively",
    "packed",
    "buzzing",
    "crowded",
    "fun",
    "party",
    "busy",
    "energetic",
    "vibe",
    "atmosphere",
)


COFFEE_CLASSIC = ScoringPolicy(
    name="coffee_classic",
    keywords=COFFEE_KEYWORDS,
)

COFFEE_RATING_HEAVY = ScoringPolicy(
    name="coffee_rating_heavy",
    rating_weight=60.0,
    review_weight=15.0,
    price_points=_frozen({"$": 7, "$$": 10, "$$$": 7, "$$$$": 3}),
    keywords=COFFEE_KEYWORDS,
)

BAR_NIGHTLIFE = ScoringPolicy(
    name="bar_nightlife",
    rating_weight=45.0,
    exceptional_rating_threshold=9.0,
    exceptional_rating_bonus=5.0,
    review_weight=15.0,
    review_saturation=500,
    price_points=_frozen({"$": 8, "$$": 10, "$$$": 6, "$$$$": 3}),
    keywords=BAR_KEYWORDS,
    keyword_points=4.0,
    keyword_cap=12.0,
    photo_points=0.5,
    photo_cap=8.0,
    photo_bonus_threshold=20,
    photo_bonus=2.0,
    social_keywords=SOCIAL_KEYWORDS,
    social_points=2.0,
    social_cap=10.0,
    social_phrase_bonuses=_frozen({
        "best bar": 3.0,
        "must visit": 3.0,
        "always packed": 2.0,
    }),
    name_strong_keywords=("brewery", "taproom", "speakeasy"),
    name_strong_bonus=6.0,
    name_moderate_keywords=("pub", "tavern", "lounge", "bar"),
    name_moderate_bonus=3.0,
    flat_boost=10.0,
)

SCORING_POLICIES: dict[str, ScoringPolicy] = {
    p.name: p for p in (COFFEE_CLASSIC, COFFEE_RATING_HEAVY, BAR_NIGHTLIFE)
}


def get_policy(name: str) -> ScoringPolicy:
    """Return the policy registered under *name*.

    Raises ``KeyError`` listing the known names when *name* is not registered.
    """
    try:
        return SCORING_POLICIES[name]
    except KeyError:
        known = ", ".join(sorted(SCORING_POLICIES))
        raise KeyError(f"Unknown scoring policy {name!r} (known: {known})") from None


DEFAULT_POLICY = get_policy(os.getenv("VIBE_POLICY", COFFEE_CLASSIC.name))
