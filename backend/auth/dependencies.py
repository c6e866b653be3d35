from __future__ import annotations

from fastapi import HTTPException, Request

from .users import get_user


def get_current_user(request: Request) -> dict | None:
    """Return the user for the session, or ``None``."""
    session_user = request.session.get("user")
    if not session_user:
        return None
    return get_user(session_user.get("id", ""))


def require_user(request: Request) -> dict:
    """Raise 401 if no user is logged in."""
    user = get_current_user(request)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(request: Request) -> dict:
    """Raise 401 if not logged in, 403 if not admin."""
    user = require_user(request)
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
