from __future__ import annotations

import logging
import os

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from starlette.middleware.sessions import SessionMiddleware

from .auth.dependencies import require_admin, require_user
from .auth.users import UsernameTakenError, authenticate, create_user
from .places.service import VenueService, get_venue_service
from .venues.models import (
    LoginRequest,
    SortMode,
    UserCreate,
    Venue,
    VenueCreate,
    VenueDetails,
    VenueOut,
    VenueUpdate,
)
from .venues.ranking import (
    CATEGORY_FILTERS,
    all_of,
    annotate,
    category_predicate,
    filter_venues,
    matches_query,
    rank,
    top_pick_ids,
)

logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="Vibe Café Finder API", version="1.0.0")
app.add_middleware(
    SessionMiddleware,
    secret_key=os.environ.get("SESSION_SECRET", "vibe-finder-secret-change-in-production"),
)


def _reference(lat: float | None, lng: float | None) -> tuple[float, float] | None:
    if (lat is None) != (lng is None):
        raise HTTPException(status_code=422, detail="lat and lng must be given together")
    return (lat, lng) if lat is not None else None


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metadata")
def metadata(service: VenueService = Depends(get_venue_service)) -> dict:
    return {
        "neighborhoods": service.store.neighborhoods(),
        "tags": service.store.tags(),
        "sort_modes": [m.value for m in SortMode],
        "filters": list(CATEGORY_FILTERS),
        "scoring_policy": service.store.policy.name,
    }


@app.get("/api/cafes", response_model=list[VenueOut])
def list_cafes(
    sort: SortMode = SortMode.vibe,
    category: str = Query(default="All", alias="filter"),
    q: str = "",
    lat: float | None = Query(default=None, ge=-90.0, le=90.0),
    lng: float | None = Query(default=None, ge=-180.0, le=180.0),
    service: VenueService = Depends(get_venue_service),
) -> list[VenueOut]:
    reference = _reference(lat, lng)
    try:
        predicate = category_predicate(category)
    except KeyError:
        raise HTTPException(status_code=422, detail=f"Unknown filter {category!r}")

    venues = service.nearby(lat, lng)
    top_ids = top_pick_ids(venues)
    visible = filter_venues(venues, all_of(matches_query(q), predicate))
    return annotate(rank(visible, sort, reference), top_ids, reference)


@app.get("/api/cafes/search", response_model=list[VenueOut])
def search_cafes(
    q: str = "",
    lat: float | None = Query(default=None, ge=-90.0, le=90.0),
    lng: float | None = Query(default=None, ge=-180.0, le=180.0),
    service: VenueService = Depends(get_venue_service),
) -> list[VenueOut]:
    reference = _reference(lat, lng)
    venues = rank(service.search(q, lat, lng))
    return annotate(venues, reference=reference)


@app.get("/api/cafes/{venue_id}", response_model=Venue)
def get_cafe(venue_id: str, service: VenueService = Depends(get_venue_service)) -> Venue:
    venue = service.get(venue_id)
    if venue is None:
        raise HTTPException(status_code=404, detail="Cafe not found")
    return venue


@app.get("/api/cafes/{venue_id}/details", response_model=VenueDetails)
def get_cafe_details(
    venue_id: str, service: VenueService = Depends(get_venue_service),
) -> VenueDetails:
    details = service.details(venue_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Cafe not found")
    return details


# ── Auth endpoints ───────────────────────────────────────────────────────


@app.post("/auth/register", status_code=201)
def register(body: UserCreate, request: Request) -> dict:
    try:
        user = create_user(body.username, body.password)
    except UsernameTakenError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/login")
def login(body: LoginRequest, request: Request) -> dict:
    user = authenticate(body.username, body.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["user"] = user
    return {"status": "ok", "user": user}


@app.post("/auth/logout")
def logout(request: Request) -> dict:
    request.session.clear()
    return {"status": "logged_out"}


@app.get("/auth/me")
def auth_me(user: dict = Depends(require_user)) -> dict:
    return user


# ── Admin endpoints ──────────────────────────────────────────────────────


@app.post("/api/cafes", response_model=Venue, status_code=201)
def create_cafe(
    body: VenueCreate,
    user: dict = Depends(require_admin),
    service: VenueService = Depends(get_venue_service),
) -> Venue:
    try:
        venue = service.create(body)
    except KeyError:
        raise HTTPException(status_code=409, detail="Cafe already exists")
    logger.info("%s created venue %s (vibe %d)", user["username"], venue.id, venue.vibe_score)
    return venue


@app.patch("/api/cafes/{venue_id}", response_model=Venue)
def update_cafe(
    venue_id: str,
    body: VenueUpdate,
    user: dict = Depends(require_admin),
    service: VenueService = Depends(get_venue_service),
) -> Venue:
    venue = service.update(venue_id, body)
    if venue is None:
        raise HTTPException(status_code=404, detail="Cafe not found")
    return venue


@app.post("/api/cafes/refresh")
def refresh_cafes(
    user: dict = Depends(require_admin),
    service: VenueService = Depends(get_venue_service),
) -> dict:
    service.refresh()
    return {"status": "refreshed"}


@app.get("/cache/stats")
def cache_stats(
    user: dict = Depends(require_admin),
    service: VenueService = Depends(get_venue_service),
) -> dict:
    return service.cache_stats()
