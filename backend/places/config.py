from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class PlacesConfig:
    api_key: str = os.getenv("FOURSQUARE_API_KEY", "")
    base_url: str = os.getenv("FOURSQUARE_BASE_URL", "https://api.foursquare.com/v3")
    coffee_category_id: str = "13032"  # Café, Coffee, and Tea House
    default_latitude: float = float(os.getenv("PLACES_DEFAULT_LAT", "43.2557"))  # Hamilton, ON
    default_longitude: float = float(os.getenv("PLACES_DEFAULT_LNG", "-79.8711"))
    radius_m: int = int(os.getenv("PLACES_RADIUS_M", "10000"))
    limit: int = int(os.getenv("PLACES_LIMIT", "50"))
    max_limit: int = 50
    timeout: float = float(os.getenv("PLACES_TIMEOUT", "10.0"))
    cache_ttl: float = float(os.getenv("PLACES_CACHE_TTL", "3600"))
    coord_precision: int = int(os.getenv("PLACES_COORD_PRECISION", "2"))
    default_city: str = "Hamilton"
    enabled: bool = True

    @property
    def is_active(self) -> bool:
        return self.enabled and bool(self.api_key)


DEFAULT_PLACES_CONFIG = PlacesConfig()
