"""
Session provider.

Responsibilities:
- Resolve the signed-in identity and its profile for each request.
- Keep the cached profile in step with auth-state changes.
"""
from .provider import SessionContext, SessionProvider

__all__ = ["SessionContext", "SessionProvider"]
