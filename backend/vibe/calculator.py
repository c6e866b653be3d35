from __future__ import annotations

import math
from typing import Iterable

from .config import DEFAULT_POLICY, ScoringPolicy

MIN_SCORE = 0
MAX_SCORE = 100


def _normalize_rating(rating: float, rating_scale: float | None) -> float:
    """Map a raw rating onto [0, 1].

    Without an explicit scale, anything above 5 is read as a 10-point rating.
    """
    if rating is None or not math.isfinite(rating) or rating <= 0:
        return 0.0
    if rating_scale and rating_scale > 0:
        scale = rating_scale
    else:
        scale = 10.0 if rating > 5 else 5.0
    return min(rating / scale, 1.0)


def _rating_points(
    rating: float, rating_scale: float | None, policy: ScoringPolicy,
) -> float:
    normalized = _normalize_rating(rating, rating_scale)
    points = normalized * policy.rating_weight
    threshold = policy.exceptional_rating_threshold
    if threshold is not None and normalized * 10 >= threshold:
        points += policy.exceptional_rating_bonus
    return points


def _review_points(review_count: int, policy: ScoringPolicy) -> float:
    if not review_count or review_count < 0 or policy.review_saturation <= 0:
        return 0.0
    return min(review_count / policy.review_saturation, 1.0) * policy.review_weight


def _price_points(price_level: str, policy: ScoringPolicy) -> float:
    return float(policy.price_points.get(str(price_level), 0.0))


def _keyword_points(tags: Iterable[str], policy: ScoringPolicy) -> float:
    vocabulary = [k.lower() for k in policy.keywords]
    matches = sum(
        1 for tag in tags or ()
        if any(k in str(tag).lower() for k in vocabulary)
    )
    return min(matches * policy.keyword_points, policy.keyword_cap)


def _photo_points(photo_count: int | None, policy: ScoringPolicy) -> float:
    if not photo_count or photo_count < 0:
        return 0.0
    points = min(photo_count * policy.photo_points, policy.photo_cap)
    threshold = policy.photo_bonus_threshold
    if threshold is not None and photo_count >= threshold:
        points += policy.photo_bonus
    return points


def _review_text_points(review_text: str | None, policy: ScoringPolicy) -> float:
    if not review_text:
        return 0.0
    text = review_text.lower()
    found = sum(1 for k in policy.social_keywords if k.lower() in text)
    points = min(found * policy.social_points, policy.social_cap)
    for phrase, bonus in policy.social_phrase_bonuses.items():
        if phrase.lower() in text:
            points += bonus
    return points


def _name_points(name: str | None, policy: ScoringPolicy) -> float:
    if not name:
        return 0.0
    lowered = name.lower()
    if any(k.lower() in lowered for k in policy.name_strong_keywords):
        return policy.name_strong_bonus
    if any(k.lower() in lowered for k in policy.name_moderate_keywords):
        return policy.name_moderate_bonus
    return 0.0


def compute_vibe_score(
    rating: float,
    review_count: int,
    price_level: str,
    tags: Iterable[str],
    name: str | None = None,
    photo_count: int | None = None,
    review_text: str | None = None,
    *,
    policy: ScoringPolicy = DEFAULT_POLICY,
    rating_scale: float | None = None,
) -> int:
    """Compute the 0-100 vibe score for one venue.

    Each signal contributes an independently capped number of points taken
    from *policy*; the sum plus the policy's flat boost is clamped to
    [0, 100] and rounded half up. Missing or malformed signals contribute
    nothing instead of raising.
    """
    total = (
        _rating_points(rating, rating_scale, policy)
        + _review_points(review_count, policy)
        + _price_points(price_level, policy)
        + _keyword_points(tags, policy)
        + _photo_points(photo_count, policy)
        + _review_text_points(review_text, policy)
        + _name_points(name, policy)
        + policy.flat_boost
    )
    clamped = max(float(MIN_SCORE), min(total, float(MAX_SCORE)))
    return int(math.floor(clamped + 0.5))


def score_label(score: float) -> str:
    if score >= 90:
        return "Exceptional"
    if score >= 80:
        return "Excellent"
    if score >= 70:
        return "Great"
    if score >= 60:
        return "Good"
    return "Fair"


def score_tier(score: float) -> str:
    """Marker tier used by the map for a non-top-pick venue."""
    if score >= 85:
        return "high"
    if score >= 75:
        return "good"
    return "standard"
