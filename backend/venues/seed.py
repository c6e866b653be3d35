from __future__ import annotations

import json
import logging
from pathlib import Path

import pandas as pd
from pydantic import ValidationError

from .models import VenueCreate

logger = logging.getLogger(__name__)

SEED_CSV = Path(__file__).resolve().parent.parent / "data" / "seed_cafes.csv"

_OPTIONAL_TEXT = ["image_url", "yelp_id", "phone", "website", "description"]


def _parse_hours(raw: object) -> dict[str, str]:
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unparsable opening_hours in seed data: %r", raw)
        return {}
    return {str(k): str(v) for k, v in parsed.items()} if isinstance(parsed, dict) else {}


def _load(path: Path) -> pd.DataFrame:
    df = pd.read_csv(path, dtype={"id": str, "price_level": str})

    for col in _OPTIONAL_TEXT:
        if col not in df.columns:
            df[col] = None
    df[_OPTIONAL_TEXT] = df[_OPTIONAL_TEXT].astype(object).where(df[_OPTIONAL_TEXT].notna(), None)

    df["tags"] = (
        df["tags"]
        .fillna("")
        .apply(lambda s: [t.strip() for t in s.split(",") if t.strip()])
    )
    if "opening_hours" not in df.columns:
        df["opening_hours"] = ""
    df["opening_hours"] = df["opening_hours"].apply(_parse_hours)
    df["review_count"] = pd.to_numeric(df["review_count"], errors="coerce").fillna(0).astype(int)
    df["rating"] = pd.to_numeric(df["rating"], errors="coerce").fillna(0.0)
    return df


def load_seed_venues(path: Path = SEED_CSV) -> list[VenueCreate]:
    """Read the bundled seed venues; rows that fail validation are skipped."""
    df = _load(path)
    venues: list[VenueCreate] = []
    for row in df.to_dict(orient="records"):
        try:
            venues.append(VenueCreate(**row))
        except ValidationError:
            logger.warning("Skipping invalid seed row %s", row.get("id"), exc_info=True)
    logger.info("Loaded %d seed venues from %s", len(venues), path)
    return venues
