from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from ..session.provider import SessionContext, SessionProvider
from ..storage.models import Identity


def get_current_user(request: Request) -> Identity | None:
    """Return the identity from the session, or ``None``."""
    raw = request.session.get("user")
    return Identity.model_validate(raw) if raw else None


def require_user(request: Request) -> Identity:
    """Raise 401 if no user is logged in."""
    identity = get_current_user(request)
    if identity is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return identity


def get_session_provider(request: Request) -> SessionProvider:
    return request.app.state.session_provider


def require_session(
    identity: Identity = Depends(require_user),
    provider: SessionProvider = Depends(get_session_provider),
) -> SessionContext:
    """Resolve ``{identity, profile}`` for a logged-in user."""
    return provider.current(identity)
