from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PriceLevel(str, Enum):
    CHEAP = "$"
    MODERATE = "$$"
    PRICEY = "$$$"
    LUXURY = "$$$$"


PRICE_ORDER = [p.value for p in PriceLevel]


class SortMode(str, Enum):
    vibe = "vibe"
    price = "price"
    distance = "distance"


class VenueCreate(BaseModel):
    """Raw venue fields; the vibe score is derived from these by the store."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    address: str = ""
    neighborhood: str = ""
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    rating: float = Field(default=0.0, ge=0.0, le=10.0)
    rating_scale: float | None = Field(
        default=None, description="5 or 10; None lets the scorer infer it"
    )
    review_count: int = Field(default=0, ge=0)
    price_level: PriceLevel = PriceLevel.MODERATE
    tags: list[str] = Field(default_factory=list)
    image_url: str | None = None
    phone: str | None = None
    website: str | None = None
    opening_hours: dict[str, str] = Field(default_factory=dict)
    yelp_id: str | None = None
    description: str | None = None
    photo_count: int = Field(default=0, ge=0)
    tip_text: str | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _clean_tags(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [str(t).strip() for t in value if str(t).strip()]

    @field_validator("rating_scale")
    @classmethod
    def _known_scale(cls, value):
        if value is not None and value not in (5, 10):
            raise ValueError("rating_scale must be 5 or 10")
        return value


class VenueUpdate(BaseModel):
    """Partial update; only the fields that are set are applied."""

    name: str | None = Field(default=None, min_length=1)
    address: str | None = None
    neighborhood: str | None = None
    latitude: float | None = Field(default=None, ge=-90.0, le=90.0)
    longitude: float | None = Field(default=None, ge=-180.0, le=180.0)
    rating: float | None = Field(default=None, ge=0.0, le=10.0)
    review_count: int | None = Field(default=None, ge=0)
    price_level: PriceLevel | None = None
    tags: list[str] | None = None
    image_url: str | None = None
    phone: str | None = None
    website: str | None = None
    opening_hours: dict[str, str] | None = None
    description: str | None = None
    photo_count: int | None = Field(default=None, ge=0)
    tip_text: str | None = None


class Venue(VenueCreate):
    model_config = ConfigDict(frozen=True)

    vibe_score: int = Field(..., ge=0, le=100)


class VenueOut(Venue):
    """A venue as served to the list and map views."""

    vibe_label: str
    marker_tier: str
    is_top_pick: bool = False
    distance_km: float | None = None


class Photo(BaseModel):
    id: str
    url: str
    width: int = 0
    height: int = 0


class ReviewExcerpt(BaseModel):
    text: str
    date: str = ""


class HoursPeriod(BaseModel):
    day: int = Field(..., ge=1, le=7)
    open: str
    close: str


class Hours(BaseModel):
    display: str | None = None
    open_now: bool | None = None
    periods: list[HoursPeriod] | None = None


class VenueDetails(Venue):
    photos: list[Photo] = Field(default_factory=list)
    reviews: list[ReviewExcerpt] = Field(default_factory=list)
    hours: Hours | None = None


# bcrypt only hashes the first 72 bytes and rejects longer input
PASSWORD_MAX_BYTES = 72


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_BYTES)

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, value: str) -> str:
        if len(value.encode()) > PASSWORD_MAX_BYTES:
            raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes")
        return value


class UserCreate(LoginRequest):
    password: str = Field(..., min_length=6, max_length=PASSWORD_MAX_BYTES)
