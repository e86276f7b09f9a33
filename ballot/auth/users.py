from __future__ import annotations

from typing import Any

import bcrypt

from ..storage.models import Identity

_users: dict[str, dict[str, Any]] = {}


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _seed_users() -> None:
    """Pre-seed demo voters on import."""
    _users["user"] = {"uid": "uid-user", "password_hash": _hash_password("user123")}
    _users["guest"] = {"uid": "uid-guest", "password_hash": _hash_password("guest123")}


def account_ids() -> list[str]:
    return [record["uid"] for record in _users.values()]


def authenticate(username: str, password: str) -> Identity | None:
    """Verify credentials. Returns the voter's ``Identity`` or ``None``."""
    record = _users.get(username)
    if record and _verify_password(password, record["password_hash"]):
        return Identity(id=record["uid"], email=username)
    return None


_seed_users()
