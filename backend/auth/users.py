from __future__ import annotations

import os
import uuid
from typing import Any

import bcrypt

_users: dict[str, dict[str, Any]] = {}


class UsernameTakenError(ValueError):
    pass


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _public(record: dict[str, Any]) -> dict[str, Any]:
    return {"id": record["id"], "username": record["username"], "role": record["role"]}


def create_user(username: str, password: str, role: str = "user") -> dict[str, Any]:
    """Register a new account. Raises ``UsernameTakenError`` if the name is taken."""
    if get_user_by_username(username) is not None:
        raise UsernameTakenError(f"Username {username!r} already exists")
    record = {
        "id": str(uuid.uuid4()),
        "username": username,
        "password_hash": _hash_password(password),
        "role": role,
    }
    _users[record["id"]] = record
    return _public(record)


def get_user(user_id: str) -> dict[str, Any] | None:
    record = _users.get(user_id)
    return _public(record) if record else None


def get_user_by_username(username: str) -> dict[str, Any] | None:
    for record in _users.values():
        if record["username"] == username:
            return _public(record)
    return None


def authenticate(username: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns ``{id, username, role}`` or ``None``."""
    for record in _users.values():
        if record["username"] == username and _verify_password(password, record["password_hash"]):
            return _public(record)
    return None


def _seed_users() -> None:
    """Pre-seed the curator account that can edit venues."""
    create_user("admin", os.environ.get("ADMIN_PASSWORD", "admin123"), role="admin")
    create_user("user", "user123")


_seed_users()
